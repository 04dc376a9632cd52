"""Human-readable calculation strings for penalty breakdowns.

The penalty calculator produces structured components; this module turns them
into the audit strings shown next to each charge so presentation never leaks
into the arithmetic.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from ctistax.backend.app.models import PenaltyComponent, PenaltyKind, PenaltyResult

CURRENCY = "SLE"


def format_amount(value: Decimal) -> str:
    """Return ``value`` with thousands separators and two decimals."""

    return f"{value.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP):,.2f}"


def format_money(value: Decimal) -> str:
    return f"{format_amount(value)} {CURRENCY}"


def format_percentage(value: Decimal) -> str:
    """Return a human-readable percentage label for ``value``."""

    percentage = (value * 100).normalize()
    if percentage == percentage.to_integral_value():
        return f"{int(percentage)}%"
    return f"{format(percentage, 'f')}%"


def _plural(count: int, noun: str) -> str:
    return f"{count} {noun}" if count == 1 else f"{count} {noun}s"


def _describe_adjustment(component: PenaltyComponent) -> str:
    if component.adjustment == "minimum":
        return f"; minimum penalty of {format_money(component.amount)} applied"
    if component.adjustment == "maximum":
        return f"; capped at maximum penalty of {format_money(component.amount)}"
    if component.adjustment == "day_cap":
        return f"; interest days capped at {component.days}"
    return ""


def describe_component(component: PenaltyComponent) -> str:
    """Return the audit string for one penalty component."""

    base = format_money(component.base)
    rate = format_percentage(component.rate)

    match component.kind:
        case PenaltyKind.LATE_FILING:
            raw = component.amount
            if component.unadjusted_amount is not None:
                raw = component.unadjusted_amount
            text = (
                f"{base} × {rate} = {format_money(raw)} "
                f"(flat penalty, {_plural(component.days, 'chargeable day')} late)"
            )
        case PenaltyKind.SIMPLE_INTEREST | PenaltyKind.REMAINDER_INTEREST:
            text = (
                f"{base} × {rate} per day × {_plural(component.days, 'day')} "
                f"= {format_money(component.amount)}"
            )
        case PenaltyKind.COMPOUND_INTEREST:
            text = (
                f"{base} × ((1 + {rate})^{component.periods} - 1) "
                f"= {format_money(component.amount)} "
                f"({_plural(component.periods, 'full 30-day period')})"
            )
        case _:
            raise ValueError(f"Unsupported penalty component kind: {component.kind!r}")

    return text + _describe_adjustment(component)


def describe_penalty(result: PenaltyResult) -> tuple[str, ...]:
    """Return the step-by-step narrative for a complete penalty result."""

    if result.due_date is None:
        return ("No due date supplied - no penalty assessed",)

    steps = [f"Days late: {result.days_late}"]
    if result.days_late == 0:
        steps.append("Filed on or before the due date - no penalty")
        return tuple(steps)

    if result.grace_period_days:
        steps.append(f"Grace period: {_plural(result.grace_period_days, 'day')}")
        if result.chargeable_days == 0:
            steps.append("Within the grace period - no penalty")
            return tuple(steps)
        steps.append(f"Chargeable days: {result.chargeable_days}")

    for component in result.breakdown:
        line = f"{component.name}: {component.calculation}"
        if component.legal_reference:
            line = f"{line} [{component.legal_reference}]"
        steps.append(line)

    steps.append(f"Total penalty: {format_money(result.total_penalty)}")
    return tuple(steps)


__all__ = [
    "CURRENCY",
    "describe_component",
    "describe_penalty",
    "format_amount",
    "format_money",
    "format_percentage",
]
