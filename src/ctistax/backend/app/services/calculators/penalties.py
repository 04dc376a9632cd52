"""Late filing penalty and late payment interest shared by every tax type."""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal

from ctistax.backend.app.models import (
    FilingDates,
    PenaltyComponent,
    PenaltyKind,
    PenaltyResult,
)
from ctistax.backend.app.services.formatting import describe_component
from ctistax.backend.config.schema import PenaltyParameters, TaxType

from .utils import ZERO, round_currency, sum_amounts

DAYS_PER_PERIOD = 30


def days_between(due_date: date | None, reference_date: date | None) -> int:
    """Return whole days ``reference_date`` falls after ``due_date`` (never negative)."""

    if due_date is None or reference_date is None:
        return 0
    return max(0, (reference_date - due_date).days)


def _late_filing_component(
    tax_amount: Decimal, chargeable_days: int, penalties: PenaltyParameters
) -> PenaltyComponent:
    raw = round_currency(tax_amount * penalties.late_filing_rate)
    amount = raw
    adjustment: str | None = None
    if penalties.minimum_penalty is not None and amount < penalties.minimum_penalty:
        amount = round_currency(penalties.minimum_penalty)
        adjustment = "minimum"
    if penalties.maximum_penalty is not None and amount > penalties.maximum_penalty:
        amount = round_currency(penalties.maximum_penalty)
        adjustment = "maximum"

    return PenaltyComponent(
        name="Late filing penalty",
        kind=PenaltyKind.LATE_FILING,
        base=tax_amount,
        rate=penalties.late_filing_rate,
        amount=amount,
        days=chargeable_days,
        periods=1,
        legal_reference=penalties.legal_reference,
        adjustment=adjustment,
        unadjusted_amount=raw if adjustment else None,
    )


def _interest_components(
    tax_amount: Decimal, chargeable_days: int, penalties: PenaltyParameters
) -> list[PenaltyComponent]:
    interest_days = chargeable_days
    adjustment: str | None = None
    if penalties.max_interest_days is not None and interest_days > penalties.max_interest_days:
        interest_days = penalties.max_interest_days
        adjustment = "day_cap"

    if not penalties.monthly_compounding or penalties.monthly_interest_rate is None:
        return [
            PenaltyComponent(
                name="Late payment interest",
                kind=PenaltyKind.SIMPLE_INTEREST,
                base=tax_amount,
                rate=penalties.daily_interest_rate,
                amount=round_currency(
                    tax_amount * penalties.daily_interest_rate * interest_days
                ),
                days=interest_days,
                periods=0,
                legal_reference=penalties.legal_reference,
                adjustment=adjustment,
            )
        ]

    full_periods, remainder_days = divmod(interest_days, DAYS_PER_PERIOD)
    monthly_rate = penalties.monthly_interest_rate
    components: list[PenaltyComponent] = []
    if full_periods:
        growth = (Decimal("1") + monthly_rate) ** full_periods - Decimal("1")
        components.append(
            PenaltyComponent(
                name="Late payment interest (compounded monthly)",
                kind=PenaltyKind.COMPOUND_INTEREST,
                base=tax_amount,
                rate=monthly_rate,
                amount=round_currency(tax_amount * growth),
                days=full_periods * DAYS_PER_PERIOD,
                periods=full_periods,
                legal_reference=penalties.legal_reference,
                adjustment=adjustment,
            )
        )
    if remainder_days:
        components.append(
            PenaltyComponent(
                name="Late payment interest (remaining days)",
                kind=PenaltyKind.REMAINDER_INTEREST,
                base=tax_amount,
                rate=penalties.daily_interest_rate,
                amount=round_currency(
                    tax_amount * penalties.daily_interest_rate * remainder_days
                ),
                days=remainder_days,
                periods=0,
                legal_reference=penalties.legal_reference,
                adjustment=adjustment if not full_periods else None,
            )
        )
    return components


def calculate_penalty(
    tax_type: TaxType,
    tax_amount: Decimal,
    dates: FilingDates,
    penalties: PenaltyParameters,
    evaluation_date: date,
) -> PenaltyResult:
    """Compute the late filing penalty and late payment interest.

    A missing ``actual_date`` means the return is still outstanding, so lateness
    is measured to ``evaluation_date``. Days inside the grace period are not
    chargeable. The filing penalty is charged once, not per day.
    """

    reference_date = dates.actual_date or evaluation_date
    days_late = days_between(dates.due_date, reference_date)
    chargeable_days = max(0, days_late - penalties.grace_period_days)
    amount = max(ZERO, tax_amount)

    if chargeable_days == 0:
        return PenaltyResult(
            tax_type=tax_type,
            tax_amount=amount,
            due_date=dates.due_date,
            reference_date=reference_date if dates.due_date else None,
            days_late=days_late,
            grace_period_days=penalties.grace_period_days,
            chargeable_days=0,
            late_filing_penalty=ZERO,
            late_payment_interest=ZERO,
            total_penalty=ZERO,
        )

    filing = _late_filing_component(amount, chargeable_days, penalties)
    interest = _interest_components(amount, chargeable_days, penalties)
    breakdown = tuple(
        replace(component, calculation=describe_component(component))
        for component in (filing, *interest)
    )

    late_payment_interest = sum_amounts(component.amount for component in interest)
    return PenaltyResult(
        tax_type=tax_type,
        tax_amount=amount,
        due_date=dates.due_date,
        reference_date=reference_date,
        days_late=days_late,
        grace_period_days=penalties.grace_period_days,
        chargeable_days=chargeable_days,
        late_filing_penalty=filing.amount,
        late_payment_interest=late_payment_interest,
        total_penalty=filing.amount + late_payment_interest,
        breakdown=breakdown,
    )


__all__ = [
    "DAYS_PER_PERIOD",
    "calculate_penalty",
    "days_between",
]
