"""Typed request and result models shared across the engine services.

Caller supplied figures are validated by the Pydantic inputs in ``api``; every
derived result is a frozen dataclass so results can be shared freely between
threads and serialised uniformly by the response builder.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Union

from ctistax.backend.config.schema import TaxpayerCategory, TaxType

from .api import (
    AllowanceInput,
    AssessmentRequest,
    ComplianceSignals,
    EmployeeInput,
    ExciseBase,
    ExciseItemInput,
    FilingDates,
    FilingInput,
    GstBase,
    IncomeTaxBase,
    PayrollBase,
    TaxableBase,
    TaxCalculationRequest,
    format_validation_error,
)

__all__ = [
    "AllowanceInput",
    "AssessmentRequest",
    "BreakdownLine",
    "CalculationDetail",
    "CalculationResult",
    "ComplianceComponents",
    "ComplianceIssue",
    "ComplianceReport",
    "ComplianceSignals",
    "ComprehensiveAssessment",
    "EmployeeInput",
    "EmployeePaye",
    "ExciseBase",
    "ExciseDetail",
    "ExciseItemInput",
    "ExciseLine",
    "FilingDates",
    "FilingInput",
    "GstBase",
    "GstDetail",
    "IncomeTaxBase",
    "IncomeTaxDetail",
    "PayrollBase",
    "PayrollDetail",
    "PenaltyComponent",
    "PenaltyKind",
    "PenaltyResult",
    "TaxCalculationRequest",
    "TaxCalculationResponse",
    "TaxTypeFailure",
    "TaxTypeOutcome",
    "TaxableBase",
    "format_validation_error",
]


@dataclass(frozen=True, slots=True)
class BreakdownLine:
    """One audited line of a tax computation."""

    label: str
    base: Decimal
    rate: Decimal
    amount: Decimal
    lower_bound: Decimal | None = None
    upper_bound: Decimal | None = None


@dataclass(frozen=True, slots=True)
class IncomeTaxDetail:
    gross_income: Decimal
    deductions: Decimal
    allowances: Decimal
    taxable_income: Decimal
    minimum_tax_rate: Decimal | None


@dataclass(frozen=True, slots=True)
class GstDetail:
    """GST figures; ``net_liability`` and ``refund_due`` are never both positive."""

    gst_rate: Decimal
    taxable_supplies: Decimal
    exempt_supplies: Decimal
    zero_rated_supplies: Decimal
    output_tax: Decimal
    reverse_charge_tax: Decimal
    total_output_tax: Decimal
    input_tax: Decimal
    creditable_input_tax: Decimal
    non_creditable_input_tax: Decimal
    input_tax_credit_applied: Decimal
    net_liability: Decimal
    refund_due: Decimal


@dataclass(frozen=True, slots=True)
class EmployeePaye:
    employee_id: str
    employee_name: str | None
    annual_salary: Decimal
    taxable_salary: Decimal
    paye: Decimal
    effective_rate: Decimal
    marginal_rate: Decimal | None
    brackets: tuple[BreakdownLine, ...]


@dataclass(frozen=True, slots=True)
class PayrollDetail:
    employees: tuple[EmployeePaye, ...]
    tax_free_threshold: Decimal
    total_paye: Decimal
    gross_payroll: Decimal
    skills_levy_rate: Decimal
    skills_development_levy: Decimal
    total_payroll_tax: Decimal


@dataclass(frozen=True, slots=True)
class ExciseLine:
    product_code: str
    product_name: str | None
    category: str
    unit_of_measure: str | None
    quantity: Decimal
    value: Decimal
    specific_rate: Decimal
    ad_valorem_rate: Decimal
    specific_duty: Decimal
    ad_valorem_duty: Decimal
    total_duty: Decimal


@dataclass(frozen=True, slots=True)
class ExciseDetail:
    items: tuple[ExciseLine, ...]
    total_specific_duty: Decimal
    total_ad_valorem_duty: Decimal
    total_duty: Decimal


CalculationDetail = Union[IncomeTaxDetail, GstDetail, PayrollDetail, ExciseDetail]


@dataclass(frozen=True, slots=True)
class CalculationResult:
    """Liability for one tax type.

    ``bracket_breakdown`` always sums to ``gross_tax``; ``payable_tax`` is the
    larger of ``gross_tax`` and ``minimum_tax_floor``.
    """

    tax_type: TaxType
    rate_table: str
    taxable_amount: Decimal
    bracket_breakdown: tuple[BreakdownLine, ...]
    gross_tax: Decimal
    minimum_tax_floor: Decimal
    payable_tax: Decimal
    effective_rate: Decimal
    marginal_rate: Decimal | None
    detail: CalculationDetail

    @property
    def minimum_tax_applied(self) -> bool:
        return self.minimum_tax_floor > self.gross_tax


class PenaltyKind(str, Enum):
    LATE_FILING = "late_filing"
    SIMPLE_INTEREST = "simple_interest"
    COMPOUND_INTEREST = "compound_interest"
    REMAINDER_INTEREST = "remainder_interest"


@dataclass(frozen=True, slots=True)
class PenaltyComponent:
    """One named penalty or interest charge.

    ``adjustment`` records a bound that changed the charge: ``"minimum"`` or
    ``"maximum"`` for the filing penalty, ``"day_cap"`` when interest days were
    capped. ``unadjusted_amount`` keeps the figure before a penalty bound.
    """

    name: str
    kind: PenaltyKind
    base: Decimal
    rate: Decimal
    amount: Decimal
    days: int
    periods: int
    calculation: str = ""
    legal_reference: str | None = None
    adjustment: str | None = None
    unadjusted_amount: Decimal | None = None


@dataclass(frozen=True, slots=True)
class PenaltyResult:
    """Late filing penalty and late payment interest for one tax type."""

    tax_type: TaxType
    tax_amount: Decimal
    due_date: date | None
    reference_date: date | None
    days_late: int
    grace_period_days: int
    chargeable_days: int
    late_filing_penalty: Decimal
    late_payment_interest: Decimal
    total_penalty: Decimal
    breakdown: tuple[PenaltyComponent, ...] = ()

    @property
    def is_late(self) -> bool:
        return self.days_late > 0


@dataclass(frozen=True, slots=True)
class TaxCalculationResponse:
    """Single tax type liability plus the penalty when a due date was supplied."""

    calculation: CalculationResult
    penalty: PenaltyResult | None = None

    @property
    def total_due(self) -> Decimal:
        penalty = self.penalty.total_penalty if self.penalty is not None else Decimal("0")
        return self.calculation.payable_tax + penalty


@dataclass(frozen=True, slots=True)
class ComplianceIssue:
    issue_type: str
    severity: str
    description: str
    recommended_action: str
    tax_type: TaxType | None = None
    deadline: date | None = None


@dataclass(frozen=True, slots=True)
class ComplianceComponents:
    """Component scores in the range 0..1 before weighting."""

    timeliness: Decimal
    completeness: Decimal
    penalty_magnitude: Decimal


@dataclass(frozen=True, slots=True)
class ComplianceReport:
    score: Decimal
    grade: str
    description: str
    components: ComplianceComponents
    issues: tuple[ComplianceIssue, ...] = ()
    positive_factors: tuple[str, ...] = ()
    improvement_areas: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class TaxTypeFailure:
    """Typed failure captured for one tax type of an assessment."""

    kind: str
    message: str


@dataclass(frozen=True, slots=True)
class TaxTypeOutcome:
    """Result of one filing inside an assessment.

    ``days_late`` is derived from the filing dates alone, so it is known even
    when the calculation itself failed.
    """

    tax_type: TaxType
    due_date: date | None = None
    actual_date: date | None = None
    days_late: int = 0
    calculation: CalculationResult | None = None
    penalty: PenaltyResult | None = None
    failure: TaxTypeFailure | None = None

    @property
    def succeeded(self) -> bool:
        return self.failure is None and self.calculation is not None

    @property
    def outstanding(self) -> bool:
        return self.actual_date is None and self.days_late > 0


@dataclass(frozen=True, slots=True)
class ComprehensiveAssessment:
    """Per-client, per-year roll-up of every tax type outcome."""

    client_id: str
    tax_year: int
    taxpayer_category: TaxpayerCategory
    evaluation_date: date
    outcomes: tuple[TaxTypeOutcome, ...]
    total_tax_liability: Decimal
    total_penalties: Decimal
    grand_total: Decimal
    compliance: ComplianceReport

    @property
    def compliance_score(self) -> Decimal:
        return self.compliance.score

    @property
    def compliance_grade(self) -> str:
        return self.compliance.grade

    @property
    def issues(self) -> tuple[ComplianceIssue, ...]:
        return self.compliance.issues

    @property
    def failures(self) -> dict[TaxType, TaxTypeFailure]:
        return {
            outcome.tax_type: outcome.failure
            for outcome in self.outcomes
            if outcome.failure is not None
        }

    @property
    def is_complete(self) -> bool:
        return all(outcome.succeeded for outcome in self.outcomes)

    def outcome(self, tax_type: TaxType) -> TaxTypeOutcome:
        for entry in self.outcomes:
            if entry.tax_type is tax_type:
                return entry
        raise KeyError(tax_type)
