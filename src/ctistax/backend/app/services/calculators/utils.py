"""Utility helpers for calculator modules."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from ctistax.backend.app.models import BreakdownLine
from ctistax.backend.app.services.formatting import format_amount
from ctistax.backend.config.schema import TaxBracket

_CENT = Decimal("0.01")
_RATE_QUANTUM = Decimal("0.0001")
ZERO = Decimal("0")


def round_currency(value: Decimal) -> Decimal:
    """Round monetary amounts to two decimals, half away from zero."""

    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def round_rate(value: Decimal) -> Decimal:
    """Round rate values to four decimals."""

    return value.quantize(_RATE_QUANTUM, rounding=ROUND_HALF_UP)


def sum_amounts(values: Iterable[Decimal]) -> Decimal:
    return sum(values, ZERO)


def effective_rate(tax: Decimal, base: Decimal) -> Decimal:
    if base <= 0:
        return round_rate(ZERO)
    return round_rate(tax / base)


@dataclass(frozen=True, slots=True)
class BracketEvaluation:
    lines: tuple[BreakdownLine, ...]
    gross_tax: Decimal
    marginal_rate: Decimal | None


def _bracket_label(bracket: TaxBracket) -> str:
    if bracket.upper_bound is None:
        return f"Above {format_amount(bracket.lower_bound)}"
    return f"{format_amount(bracket.lower_bound)} - {format_amount(bracket.upper_bound)}"


def evaluate_brackets(amount: Decimal, brackets: Sequence[TaxBracket]) -> BracketEvaluation:
    """Walk ``brackets`` in order and tax ``amount`` progressively.

    An amount equal to a bracket's upper bound tops out that bracket; the next
    bracket starts charging only above it. Every bracket the amount reaches
    produces a breakdown line, including zero-rated ones.
    """

    lines: list[BreakdownLine] = []
    marginal_rate: Decimal | None = brackets[0].rate if brackets else None

    if amount > 0:
        for bracket in brackets:
            upper = bracket.upper_bound
            top = amount if upper is None else min(amount, upper)
            taxable_in_bracket = max(ZERO, top - bracket.lower_bound)
            lines.append(
                BreakdownLine(
                    label=_bracket_label(bracket),
                    base=round_currency(taxable_in_bracket),
                    rate=bracket.rate,
                    amount=round_currency(taxable_in_bracket * bracket.rate),
                    lower_bound=bracket.lower_bound,
                    upper_bound=upper,
                )
            )
            marginal_rate = bracket.rate
            if bracket.contains(amount):
                break

    gross_tax = sum_amounts(line.amount for line in lines)
    return BracketEvaluation(lines=tuple(lines), gross_tax=gross_tax, marginal_rate=marginal_rate)
