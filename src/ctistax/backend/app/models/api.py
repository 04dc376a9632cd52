"""Pydantic models describing the engine's request surface."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Annotated, Any, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from ctistax.backend.config.schema import TaxpayerCategory, TaxType, to_decimal

__all__ = [
    "AllowanceInput",
    "IncomeTaxBase",
    "GstBase",
    "EmployeeInput",
    "PayrollBase",
    "ExciseItemInput",
    "ExciseBase",
    "TaxableBase",
    "FilingDates",
    "TaxCalculationRequest",
    "FilingInput",
    "ComplianceSignals",
    "AssessmentRequest",
    "format_validation_error",
    "MAX_AMOUNT",
]

# Largest figure accepted for any amount or quantity. Anything above it cannot
# be carried through currency rounding within the 28 digit decimal context.
MAX_AMOUNT = Decimal("1000000000000000")


class InputModel(BaseModel):
    """Frozen base for caller supplied figures."""

    model_config = ConfigDict(extra="forbid", frozen=True)


def _coerce_amount(value: Any) -> Any:
    if value is None:
        return Decimal("0")
    return to_decimal(value)


class AllowanceInput(InputModel):
    """Named allowance subtracted from gross income."""

    name: str = Field(min_length=1)
    amount: Decimal = Field(ge=0, le=MAX_AMOUNT)

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _coerce_amount(value)


class IncomeTaxBase(InputModel):
    """Gross income less deductions and allowances."""

    tax_type: Literal["income_tax"] = "income_tax"
    gross_income: Decimal = Field(ge=0, le=MAX_AMOUNT)
    deductions: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)
    allowances: tuple[AllowanceInput, ...] = ()

    @field_validator("gross_income", "deductions", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _coerce_amount(value)

    @property
    def kind(self) -> TaxType:
        return TaxType.INCOME

    @property
    def total_allowances(self) -> Decimal:
        return sum((allowance.amount for allowance in self.allowances), Decimal("0"))


class GstBase(InputModel):
    """Supplies, input tax and import figures for a GST period.

    ``input_tax`` is the total input tax paid. ``exempt_input_tax`` is the part
    of it attributable to exempt supplies, which cannot be credited.
    """

    tax_type: Literal["gst"] = "gst"
    gross_sales: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)
    taxable_supplies: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)
    exempt_supplies: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)
    zero_rated_supplies: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)
    input_tax: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)
    exempt_input_tax: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)
    is_import: bool = False
    import_value: Decimal = Field(default=Decimal("0"), ge=0, le=MAX_AMOUNT)

    @field_validator(
        "gross_sales",
        "taxable_supplies",
        "exempt_supplies",
        "zero_rated_supplies",
        "input_tax",
        "exempt_input_tax",
        "import_value",
        mode="before",
    )
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _coerce_amount(value)

    @model_validator(mode="after")
    def _validate_totals(self) -> GstBase:
        if self.exempt_input_tax > self.input_tax:
            raise ValueError("exempt_input_tax cannot exceed input_tax")
        supplies = self.taxable_supplies + self.exempt_supplies + self.zero_rated_supplies
        if self.gross_sales and supplies > self.gross_sales:
            raise ValueError(
                "taxable, exempt and zero-rated supplies cannot exceed gross_sales"
            )
        return self

    @property
    def kind(self) -> TaxType:
        return TaxType.GST

    @property
    def creditable_input_tax(self) -> Decimal:
        return self.input_tax - self.exempt_input_tax


class EmployeeInput(InputModel):
    """Annual salary for one employee."""

    employee_id: str = Field(min_length=1)
    employee_name: str | None = None
    annual_salary: Decimal = Field(ge=0, le=MAX_AMOUNT)

    @field_validator("annual_salary", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _coerce_amount(value)


class PayrollBase(InputModel):
    """Employees on the payroll plus the gross payroll the levy applies to."""

    tax_type: Literal["payroll_tax"] = "payroll_tax"
    employees: tuple[EmployeeInput, ...] = ()
    total_payroll: Decimal | None = Field(default=None, ge=0, le=MAX_AMOUNT)

    @field_validator("total_payroll", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @model_validator(mode="after")
    def _validate_employees(self) -> PayrollBase:
        identifiers = [employee.employee_id for employee in self.employees]
        if len(identifiers) != len(set(identifiers)):
            raise ValueError("employee_id values must be unique")
        return self

    @property
    def kind(self) -> TaxType:
        return TaxType.PAYROLL

    @property
    def gross_payroll(self) -> Decimal:
        if self.total_payroll is not None:
            return self.total_payroll
        return sum((employee.annual_salary for employee in self.employees), Decimal("0"))


class ExciseItemInput(InputModel):
    """A single excisable line item."""

    product_code: str = Field(min_length=1)
    product_name: str | None = None
    product_category: str | None = None
    quantity: Decimal = Field(ge=0, le=MAX_AMOUNT)
    value: Decimal = Field(ge=0, le=MAX_AMOUNT)

    @field_validator("quantity", "value", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return _coerce_amount(value)

    @field_validator("product_code")
    @classmethod
    def _normalise_code(cls, value: str) -> str:
        return value.strip().upper()


class ExciseBase(InputModel):
    """Excisable goods declared for the period."""

    tax_type: Literal["excise_duty"] = "excise_duty"
    items: tuple[ExciseItemInput, ...] = ()

    @property
    def kind(self) -> TaxType:
        return TaxType.EXCISE


TaxableBase = Annotated[
    Union[IncomeTaxBase, GstBase, PayrollBase, ExciseBase],
    Field(discriminator="tax_type"),
]


class FilingDates(InputModel):
    """Statutory due date and the date the return was actually filed or paid."""

    due_date: date | None = None
    actual_date: date | None = None


class TaxCalculationRequest(InputModel):
    """Single tax type calculation request."""

    taxpayer_category: TaxpayerCategory
    tax_year: int = Field(ge=1900, le=2999)
    base: TaxableBase
    dates: FilingDates = Field(default_factory=FilingDates)
    rates_as_of: date | None = None


class FilingInput(InputModel):
    """Taxable base and dates for one tax type inside an assessment."""

    base: TaxableBase
    dates: FilingDates = Field(default_factory=FilingDates)


class ComplianceSignals(InputModel):
    """Document and payment completeness figures supplied by the caller."""

    documents_required: int = Field(default=0, ge=0)
    documents_submitted: int = Field(default=0, ge=0)
    payments_expected: int = Field(default=0, ge=0)
    payments_completed: int = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _validate_counts(self) -> ComplianceSignals:
        if self.documents_submitted > self.documents_required:
            raise ValueError("documents_submitted cannot exceed documents_required")
        if self.payments_completed > self.payments_expected:
            raise ValueError("payments_completed cannot exceed payments_expected")
        return self


class AssessmentRequest(InputModel):
    """Per-client, per-year comprehensive assessment request."""

    client_id: str = Field(min_length=1)
    tax_year: int = Field(ge=1900, le=2999)
    taxpayer_category: TaxpayerCategory
    filings: tuple[FilingInput, ...] = ()
    expected_tax_types: tuple[TaxType, ...] = ()
    signals: ComplianceSignals = Field(default_factory=ComplianceSignals)
    evaluation_date: date | None = None
    rates_as_of: date | None = None

    @model_validator(mode="after")
    def _validate_filings(self) -> AssessmentRequest:
        kinds = [filing.base.kind for filing in self.filings]
        duplicates = sorted({kind.value for kind in kinds if kinds.count(kind) > 1})
        if duplicates:
            raise ValueError(
                "at most one filing per tax type is allowed; duplicated: "
                + ", ".join(duplicates)
            )
        expected = list(self.expected_tax_types)
        repeated = sorted({kind.value for kind in expected if expected.count(kind) > 1})
        if repeated:
            raise ValueError(
                "expected tax types must be unique; repeated: " + ", ".join(repeated)
            )
        return self


def _exceeds_amount_limit(issue: Any) -> bool:
    limit = issue.get("ctx", {}).get("le")
    return limit is not None and Decimal(str(limit)) == MAX_AMOUNT


def format_validation_error(error: ValidationError) -> str:
    """Return a concise human-readable description of validation issues."""

    messages: list[str] = []
    for issue in error.errors():
        location = ".".join(str(part) for part in issue.get("loc", ()))
        message = issue.get("msg", "Invalid value")
        if "greater than or equal to 0" in message.lower():
            message = "value cannot be negative"
        elif _exceeds_amount_limit(issue):
            message = f"value exceeds the supported maximum of {MAX_AMOUNT:,}"
        if location:
            messages.append(f"{location}: {message}")
        else:
            messages.append(message)

    details = "; ".join(messages) if messages else str(error)
    return f"Invalid calculation payload: {details}"
