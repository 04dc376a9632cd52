"""Typed failures raised by the tax engine."""

from __future__ import annotations

from datetime import date

from ctistax.backend.config.schema import TaxpayerCategory, TaxType


class TaxEngineError(Exception):
    """Base class for every failure the engine reports."""

    kind = "engine_error"


class InvalidInput(TaxEngineError, ValueError):
    """Raised when a taxable base or request fails validation."""

    kind = "invalid_input"


class CalculationOverflow(TaxEngineError, ArithmeticError):
    """Raised when a figure grows beyond what currency rounding can represent."""

    kind = "calculation_overflow"


class RateNotFound(TaxEngineError, LookupError):
    """Raised when no rate table (or product rate) resolves for a lookup."""

    kind = "rate_not_found"

    def __init__(
        self,
        tax_type: TaxType,
        category: TaxpayerCategory | None,
        tax_year: int,
        as_of: date | None,
        detail: str | None = None,
    ) -> None:
        self.tax_type = tax_type
        self.category = category
        self.tax_year = tax_year
        self.as_of = as_of
        scope = _describe_scope(tax_type, category, tax_year, as_of)
        message = f"No rate table resolves for {scope}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class AmbiguousRate(TaxEngineError, LookupError):
    """Raised when more than one rate table is equally applicable."""

    kind = "ambiguous_rate"

    def __init__(
        self,
        tax_type: TaxType,
        category: TaxpayerCategory | None,
        tax_year: int,
        as_of: date,
        candidates: int,
    ) -> None:
        self.tax_type = tax_type
        self.category = category
        self.tax_year = tax_year
        self.as_of = as_of
        self.candidates = candidates
        scope = _describe_scope(tax_type, category, tax_year, as_of)
        super().__init__(f"{candidates} rate tables are equally applicable for {scope}")


def _describe_scope(
    tax_type: TaxType,
    category: TaxpayerCategory | None,
    tax_year: int,
    as_of: date | None,
) -> str:
    category_label = category.value if category is not None else "any category"
    scope = f"{tax_type.value} ({category_label}, {tax_year})"
    if as_of is None:
        return scope
    return f"{scope} as of {as_of.isoformat()}"


__all__ = [
    "AmbiguousRate",
    "CalculationOverflow",
    "InvalidInput",
    "RateNotFound",
    "TaxEngineError",
]
