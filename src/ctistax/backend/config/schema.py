"""Pydantic models describing the rate table and compliance policy schema."""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Iterable, Literal, Mapping, Sequence

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    computed_field,
    field_validator,
    model_validator,
)
from typing_extensions import Self


class ConfigurationError(ValueError):
    """Raised when configuration values violate schema expectations."""


class ImmutableModel(BaseModel):
    """Base class that freezes instances and rejects unknown fields."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


class TaxType(str, Enum):
    """Tax types handled by the engine."""

    INCOME = "income_tax"
    GST = "gst"
    PAYROLL = "payroll_tax"
    EXCISE = "excise_duty"

    @property
    def label(self) -> str:
        return _TAX_TYPE_LABELS[self]


_TAX_TYPE_LABELS = {
    TaxType.INCOME: "Income Tax",
    TaxType.GST: "GST",
    TaxType.PAYROLL: "Payroll Tax",
    TaxType.EXCISE: "Excise Duty",
}


class TaxpayerCategory(str, Enum):
    """Taxpayer segments used to pick category-specific rate tables."""

    INDIVIDUAL = "Individual"
    LARGE = "Large"
    MEDIUM = "Medium"
    SMALL = "Small"
    MICRO = "Micro"


def to_decimal(value: Any) -> Any:
    """Convert ``value`` to :class:`Decimal` without binary float artefacts."""

    if value is None or isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise ConfigurationError("Boolean values cannot be used as amounts or rates")
    if isinstance(value, (int, float, str)):
        try:
            return Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ConfigurationError(f"'{value}' is not a valid decimal value") from exc
    return value


def _ensure_fraction(name: str, value: Decimal | None) -> None:
    if value is not None and not (Decimal("0") <= value <= Decimal("1")):
        raise ConfigurationError(f"'{name}' must be between 0 and 1")


class TaxBracket(ImmutableModel):
    """A contiguous income range taxed at a single marginal rate.

    The upper bound is exclusive; ``None`` marks the open top bracket.
    """

    lower_bound: Decimal = Field(alias="from_amount")
    upper_bound: Decimal | None = Field(default=None, alias="to_amount")
    rate: Decimal

    @field_validator("lower_bound", "upper_bound", "rate", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @model_validator(mode="after")
    def _validate_values(self) -> TaxBracket:
        if self.lower_bound < 0:
            raise ConfigurationError("Bracket lower bounds must be non-negative")
        if self.upper_bound is not None and self.upper_bound <= self.lower_bound:
            raise ConfigurationError("Bracket upper bounds must exceed their lower bound")
        _ensure_fraction("rate", self.rate)
        return self

    def contains(self, amount: Decimal) -> bool:
        """Return ``True`` when ``amount`` tops out inside this bracket."""

        return self.upper_bound is None or amount <= self.upper_bound


class PenaltyParameters(ImmutableModel):
    """Late-filing penalty and late-payment interest parameters for a tax type."""

    late_filing_rate: Decimal
    daily_interest_rate: Decimal
    monthly_compounding: bool = False
    monthly_interest_rate: Decimal | None = None
    grace_period_days: int = Field(default=0, ge=0)
    minimum_penalty: Decimal | None = None
    maximum_penalty: Decimal | None = None
    max_interest_days: int | None = Field(default=None, gt=0)
    legal_reference: str | None = None

    @field_validator(
        "late_filing_rate",
        "daily_interest_rate",
        "monthly_interest_rate",
        "minimum_penalty",
        "maximum_penalty",
        mode="before",
    )
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @model_validator(mode="after")
    def _validate_values(self) -> PenaltyParameters:
        _ensure_fraction("late_filing_rate", self.late_filing_rate)
        _ensure_fraction("daily_interest_rate", self.daily_interest_rate)
        _ensure_fraction("monthly_interest_rate", self.monthly_interest_rate)
        if self.monthly_compounding and self.monthly_interest_rate is None:
            raise ConfigurationError(
                "'monthly_interest_rate' is required when 'monthly_compounding' is enabled"
            )
        for name in ("minimum_penalty", "maximum_penalty"):
            value = getattr(self, name)
            if value is not None and value < 0:
                raise ConfigurationError(f"'{name}' must be non-negative")
        if (
            self.minimum_penalty is not None
            and self.maximum_penalty is not None
            and self.minimum_penalty > self.maximum_penalty
        ):
            raise ConfigurationError("'minimum_penalty' cannot exceed 'maximum_penalty'")
        return self


class ExciseProductRate(ImmutableModel):
    """Specific (per-unit) duty rate for a single product code."""

    product_code: str
    product_name: str | None = None
    specific_rate: Decimal = Decimal("0")
    unit_of_measure: str | None = None

    @field_validator("specific_rate", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("product_code")
    @classmethod
    def _normalise_code(cls, value: str) -> str:
        code = value.strip().upper()
        if not code:
            raise ConfigurationError("Excise product codes must be non-empty")
        return code

    @model_validator(mode="after")
    def _validate_rate(self) -> ExciseProductRate:
        if self.specific_rate < 0:
            raise ConfigurationError("Excise specific rates must be non-negative")
        return self


ExciseMode = Literal["both", "specific_only", "ad_valorem_only"]


class ExciseCategory(ImmutableModel):
    """Product category carrying an ad-valorem rate and per-product specific rates."""

    name: str
    mode: ExciseMode = "both"
    code_prefix: str | None = None
    ad_valorem_rate: Decimal = Decimal("0")
    products: Sequence[ExciseProductRate] = Field(default_factory=tuple)

    @field_validator("ad_valorem_rate", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("products", mode="before")
    @classmethod
    def _coerce_products(cls, value: Any) -> Sequence[Any]:
        if value is None:
            return ()
        if isinstance(value, Iterable) and not isinstance(value, (str, Mapping)):
            return tuple(value)
        raise ConfigurationError("Excise 'products' must be a list of product rates")

    @field_validator("code_prefix")
    @classmethod
    def _normalise_prefix(cls, value: str | None) -> str | None:
        if value is None:
            return None
        prefix = value.strip().upper()
        return prefix or None

    @model_validator(mode="after")
    def _validate_category(self) -> ExciseCategory:
        _ensure_fraction("ad_valorem_rate", self.ad_valorem_rate)
        return self

    @property
    def charges_specific(self) -> bool:
        return self.mode != "ad_valorem_only"

    @property
    def charges_ad_valorem(self) -> bool:
        return self.mode != "specific_only"

    def product(self, product_code: str) -> ExciseProductRate | None:
        code = product_code.strip().upper()
        return next((entry for entry in self.products if entry.product_code == code), None)

    def effective_ad_valorem_rate(self) -> Decimal:
        return self.ad_valorem_rate if self.charges_ad_valorem else Decimal("0")


class RateTable(ImmutableModel):
    """Effective-dated rates for one tax type, taxpayer category and tax year."""

    tax_type: TaxType
    category: TaxpayerCategory | None = None
    tax_year: int
    effective_from: date
    effective_to: date | None = None
    description: str | None = None
    brackets: Sequence[TaxBracket] = Field(default_factory=tuple)
    gst_rate: Decimal | None = None
    skills_levy_rate: Decimal | None = None
    minimum_tax_rate: Decimal | None = None
    tax_free_threshold: Decimal = Decimal("0")
    penalties: PenaltyParameters
    excise_categories: Sequence[ExciseCategory] = Field(default_factory=tuple)

    @field_validator(
        "gst_rate", "skills_levy_rate", "minimum_tax_rate", "tax_free_threshold", mode="before"
    )
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @field_validator("brackets", "excise_categories", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: Any) -> Sequence[Any]:
        if value is None:
            return ()
        if isinstance(value, Iterable) and not isinstance(value, (str, Mapping)):
            return tuple(value)
        raise ConfigurationError("Rate table sections must be provided as lists")

    @model_validator(mode="after")
    def _validate_table(self) -> RateTable:
        if self.effective_to is not None and self.effective_to <= self.effective_from:
            raise ConfigurationError("'effective_to' must fall after 'effective_from'")
        _ensure_fraction("gst_rate", self.gst_rate)
        _ensure_fraction("skills_levy_rate", self.skills_levy_rate)
        _ensure_fraction("minimum_tax_rate", self.minimum_tax_rate)
        if self.tax_free_threshold < 0:
            raise ConfigurationError("'tax_free_threshold' must be non-negative")

        if self.tax_type in {TaxType.INCOME, TaxType.PAYROLL}:
            self._validate_bracket_sequence(self.brackets)
        if self.tax_type is TaxType.GST and self.gst_rate is None:
            raise ConfigurationError("GST rate tables must define 'gst_rate'")
        if self.tax_type is TaxType.PAYROLL and self.skills_levy_rate is None:
            raise ConfigurationError("Payroll rate tables must define 'skills_levy_rate'")
        if self.tax_type is TaxType.EXCISE and not self.excise_categories:
            raise ConfigurationError("Excise rate tables must define 'excise_categories'")
        return self

    @staticmethod
    def _validate_bracket_sequence(brackets: Sequence[TaxBracket]) -> None:
        if not brackets:
            raise ConfigurationError("At least one tax bracket must be defined")
        if brackets[0].lower_bound != 0:
            raise ConfigurationError("The first tax bracket must start at 0")
        for current, following in zip(brackets, brackets[1:]):
            if current.upper_bound is None:
                raise ConfigurationError("Only the final tax bracket may be open-ended")
            if current.upper_bound != following.lower_bound:
                raise ConfigurationError(
                    "Tax brackets must be contiguous: "
                    f"{current.upper_bound} does not meet {following.lower_bound}"
                )
        if brackets[-1].upper_bound is not None:
            raise ConfigurationError("Final tax bracket must have an open upper bound")

    def is_effective(self, as_of: date) -> bool:
        """Return ``True`` when the table applies on ``as_of``."""

        if self.effective_from > as_of:
            return False
        return self.effective_to is None or self.effective_to > as_of

    def applies_to(self, category: TaxpayerCategory | None) -> bool:
        return self.category is None or self.category == category

    def excise_category(self, name: str) -> ExciseCategory | None:
        wanted = name.strip().lower()
        return next(
            (entry for entry in self.excise_categories if entry.name.lower() == wanted),
            None,
        )

    def excise_category_for_code(self, product_code: str) -> ExciseCategory | None:
        code = product_code.strip().upper()
        for entry in self.excise_categories:
            if entry.code_prefix and code.startswith(entry.code_prefix):
                return entry
        return self.excise_category("Other")

    @property
    def scope(self) -> str:
        category = self.category.value if self.category else "*"
        return f"{self.tax_type.value}/{category}/{self.tax_year}"


class RateTableFile(ImmutableModel):
    """Contents of one rate table YAML file.

    ``penalty_profiles`` holds shared penalty blocks that tables reference
    through YAML anchors; they are validated but not used directly.
    """

    penalty_profiles: Mapping[str, PenaltyParameters] = Field(default_factory=dict)
    tables: Sequence[RateTable] = Field(default_factory=tuple)

    @field_validator("tables", mode="before")
    @classmethod
    def _coerce_tables(cls, value: Any) -> Sequence[Any]:
        if value is None:
            return ()
        if isinstance(value, Iterable) and not isinstance(value, (str, Mapping)):
            return tuple(value)
        raise ConfigurationError("'tables' must be a list of rate table records")


class RateManifestEntry(ImmutableModel):
    """Entry describing a rate table file in the manifest."""

    year: int
    filename: str | None = None
    status: str = "active"

    @computed_field
    @property
    def resolved_filename(self) -> str:
        return self.filename or f"{self.year}.yaml"


class RateManifest(ImmutableModel):
    """Manifest describing the available rate table files."""

    files: Sequence[RateManifestEntry]

    @model_validator(mode="after")
    def _validate_years(self) -> RateManifest:
        seen: set[int] = set()
        for entry in self.files:
            if entry.year in seen:
                raise ConfigurationError(
                    f"Duplicate year {entry.year} declared in the rate manifest"
                )
            seen.add(entry.year)
        return self

    def get_entry(self, year: int) -> RateManifestEntry:
        for entry in self.files:
            if entry.year == year:
                return entry
        raise KeyError(year)

    @computed_field
    @property
    def supported_years(self) -> tuple[int, ...]:
        return tuple(sorted(entry.year for entry in self.files))


class ComplianceWeights(ImmutableModel):
    """Relative weights of the compliance score components."""

    timeliness: Decimal
    completeness: Decimal
    penalty_magnitude: Decimal

    @field_validator("timeliness", "completeness", "penalty_magnitude", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)

    @model_validator(mode="after")
    def _validate_weights(self) -> Self:
        values = (self.timeliness, self.completeness, self.penalty_magnitude)
        if any(value < 0 for value in values):
            raise ConfigurationError("Compliance weights must be non-negative")
        if sum(values) <= 0:
            raise ConfigurationError("At least one compliance weight must be positive")
        if self.timeliness <= self.penalty_magnitude:
            raise ConfigurationError(
                "Timeliness must carry more weight than penalty magnitude"
            )
        return self

    @property
    def total(self) -> Decimal:
        return self.timeliness + self.completeness + self.penalty_magnitude


class GradeBand(ImmutableModel):
    """Lowest score that earns ``grade``."""

    grade: str
    minimum_score: Decimal
    description: str

    @field_validator("minimum_score", mode="before")
    @classmethod
    def _coerce_decimal(cls, value: Any) -> Any:
        return to_decimal(value)


class SeverityBand(ImmutableModel):
    """Severity assigned while ``days_late`` stays below ``below_days``."""

    severity: Literal["Low", "Medium", "High", "Critical"]
    below_days: int | None = None


class CompliancePolicy(ImmutableModel):
    """Weighting, grading and severity tables used by the compliance scorer."""

    weights: ComplianceWeights
    grade_bands: Sequence[GradeBand]
    severity_bands: Sequence[SeverityBand]

    @field_validator("grade_bands", "severity_bands", mode="before")
    @classmethod
    def _coerce_sequence(cls, value: Any) -> Sequence[Any]:
        if isinstance(value, Iterable) and not isinstance(value, (str, Mapping)):
            return tuple(value)
        raise ConfigurationError("Policy bands must be provided as lists")

    @model_validator(mode="after")
    def _validate_bands(self) -> Self:
        if not self.grade_bands:
            raise ConfigurationError("At least one grade band must be defined")
        thresholds = [band.minimum_score for band in self.grade_bands]
        if thresholds != sorted(thresholds, reverse=True):
            raise ConfigurationError("Grade bands must be ordered from highest to lowest")
        if thresholds[-1] != 0:
            raise ConfigurationError("The lowest grade band must start at 0")

        if not self.severity_bands:
            raise ConfigurationError("At least one severity band must be defined")
        limits = [band.below_days for band in self.severity_bands]
        if limits[-1] is not None:
            raise ConfigurationError("The final severity band must be open-ended")
        bounded = [limit for limit in limits[:-1] if limit is not None]
        if len(bounded) != len(limits) - 1 or bounded != sorted(bounded):
            raise ConfigurationError("Severity bands must be ordered by ascending day limits")
        return self

    def grade_for(self, score: Decimal) -> GradeBand:
        for band in self.grade_bands:
            if score >= band.minimum_score:
                return band
        return self.grade_bands[-1]

    def severity_for(self, days_late: int) -> str:
        for band in self.severity_bands:
            if band.below_days is None or days_late < band.below_days:
                return band.severity
        return self.severity_bands[-1].severity


__all__ = [
    "CompliancePolicy",
    "ComplianceWeights",
    "ConfigurationError",
    "ExciseCategory",
    "ExciseMode",
    "ExciseProductRate",
    "GradeBand",
    "ImmutableModel",
    "PenaltyParameters",
    "RateManifest",
    "RateManifestEntry",
    "RateTable",
    "RateTableFile",
    "SeverityBand",
    "TaxBracket",
    "TaxType",
    "TaxpayerCategory",
    "ValidationError",
    "to_decimal",
]
