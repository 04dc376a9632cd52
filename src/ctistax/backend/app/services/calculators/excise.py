"""Specific and ad-valorem excise duty per line item."""

from __future__ import annotations

from decimal import Decimal

from ctistax.backend.app.errors import RateNotFound
from ctistax.backend.app.models import (
    BreakdownLine,
    CalculationResult,
    ExciseBase,
    ExciseDetail,
    ExciseItemInput,
    ExciseLine,
)
from ctistax.backend.config.schema import ExciseCategory, RateTable, TaxType

from .utils import ZERO, effective_rate, round_currency, sum_amounts


def _missing_rate(table: RateTable, detail: str) -> RateNotFound:
    return RateNotFound(TaxType.EXCISE, table.category, table.tax_year, None, detail)


def _resolve_category(item: ExciseItemInput, table: RateTable) -> ExciseCategory:
    if item.product_category:
        category = table.excise_category(item.product_category)
        if category is None:
            raise _missing_rate(
                table, f"unknown excise category '{item.product_category}'"
            )
        return category

    category = table.excise_category_for_code(item.product_code)
    if category is None:
        raise _missing_rate(
            table, f"no excise category matches product code '{item.product_code}'"
        )
    return category


def _calculate_line(item: ExciseItemInput, table: RateTable) -> ExciseLine:
    category = _resolve_category(item, table)

    specific_rate = ZERO
    unit_of_measure: str | None = None
    product_name = item.product_name
    if category.charges_specific:
        product = category.product(item.product_code)
        if product is None:
            raise _missing_rate(
                table,
                f"no specific rate for product code '{item.product_code}' "
                f"in category '{category.name}'",
            )
        specific_rate = product.specific_rate
        unit_of_measure = product.unit_of_measure
        product_name = product_name or product.product_name

    ad_valorem_rate = category.effective_ad_valorem_rate()
    specific_duty = round_currency(item.quantity * specific_rate)
    ad_valorem_duty = round_currency(item.value * ad_valorem_rate)

    return ExciseLine(
        product_code=item.product_code,
        product_name=product_name,
        category=category.name,
        unit_of_measure=unit_of_measure,
        quantity=item.quantity,
        value=item.value,
        specific_rate=specific_rate,
        ad_valorem_rate=ad_valorem_rate,
        specific_duty=specific_duty,
        ad_valorem_duty=ad_valorem_duty,
        total_duty=specific_duty + ad_valorem_duty,
    )


def calculate_excise_duty(base: ExciseBase, table: RateTable) -> CalculationResult:
    """Charge specific and ad-valorem duty on every item.

    Both components are always reported; a category that is specific-only or
    ad-valorem-only contributes a zero-rated line for the other component.
    """

    items = tuple(_calculate_line(item, table) for item in base.items)

    lines: list[BreakdownLine] = []
    for entry in items:
        lines.append(
            BreakdownLine(
                label=f"{entry.product_code} specific duty",
                base=entry.quantity,
                rate=entry.specific_rate,
                amount=entry.specific_duty,
            )
        )
        lines.append(
            BreakdownLine(
                label=f"{entry.product_code} ad valorem duty",
                base=entry.value,
                rate=entry.ad_valorem_rate,
                amount=entry.ad_valorem_duty,
            )
        )

    total_specific = sum_amounts(entry.specific_duty for entry in items)
    total_ad_valorem = sum_amounts(entry.ad_valorem_duty for entry in items)
    total_duty = total_specific + total_ad_valorem
    total_value: Decimal = sum_amounts(entry.value for entry in items)

    return CalculationResult(
        tax_type=TaxType.EXCISE,
        rate_table=table.scope,
        taxable_amount=round_currency(total_value),
        bracket_breakdown=tuple(lines),
        gross_tax=total_duty,
        minimum_tax_floor=ZERO,
        payable_tax=total_duty,
        effective_rate=effective_rate(total_duty, total_value),
        marginal_rate=None,
        detail=ExciseDetail(
            items=items,
            total_specific_duty=total_specific,
            total_ad_valorem_duty=total_ad_valorem,
            total_duty=total_duty,
        ),
    )


__all__ = ["calculate_excise_duty"]
