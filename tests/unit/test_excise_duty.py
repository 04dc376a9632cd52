"""Unit coverage for specific and ad-valorem excise duty."""

from __future__ import annotations

from decimal import Decimal

import pytest

from ctistax.backend.app.errors import RateNotFound
from ctistax.backend.app.models import ExciseBase
from ctistax.backend.app.services.calculators import calculate_excise_duty
from ctistax.backend.config.schema import RateTable


def test_worked_example_charges_both_components(excise_table: RateTable) -> None:
    result = calculate_excise_duty(
        ExciseBase(items=[{"product_code": "TOB001", "quantity": 100, "value": 1_000_000}]),
        excise_table,
    )

    line = result.detail.items[0]
    assert line.category == "Tobacco"
    assert line.product_name == "Cigarettes"
    assert line.specific_duty == Decimal("50000.00")
    assert line.ad_valorem_duty == Decimal("100000.00")
    assert line.total_duty == Decimal("150000.00")
    assert result.payable_tax == Decimal("150000.00")


def test_specific_only_category_reports_a_zero_ad_valorem_line(
    excise_table: RateTable,
) -> None:
    result = calculate_excise_duty(
        ExciseBase(items=[{"product_code": "fuel001", "quantity": 10, "value": 100_000}]),
        excise_table,
    )

    line = result.detail.items[0]
    assert line.category == "Fuel"
    assert line.specific_duty == Decimal("35000.00")
    assert line.ad_valorem_rate == Decimal("0")
    assert line.ad_valorem_duty == Decimal("0.00")
    assert len(result.bracket_breakdown) == 2


def test_unmatched_codes_fall_back_to_the_ad_valorem_only_category(
    excise_table: RateTable,
) -> None:
    result = calculate_excise_duty(
        ExciseBase(items=[{"product_code": "JWL001", "quantity": 3, "value": 200_000}]),
        excise_table,
    )

    line = result.detail.items[0]
    assert line.category == "Other"
    assert line.specific_rate == Decimal("0")
    assert line.specific_duty == Decimal("0.00")
    assert line.ad_valorem_duty == Decimal("20000.00")


def test_breakdown_shape_is_uniform_and_sums_to_the_total(excise_table: RateTable) -> None:
    result = calculate_excise_duty(
        ExciseBase(
            items=[
                {"product_code": "TOB001", "quantity": 100, "value": 1_000_000},
                {"product_code": "FUEL001", "quantity": 10, "value": 100_000},
                {"product_code": "JWL001", "quantity": 3, "value": 200_000},
            ]
        ),
        excise_table,
    )

    assert len(result.bracket_breakdown) == 6
    assert sum(line.amount for line in result.bracket_breakdown) == result.gross_tax
    assert result.detail.total_specific_duty == Decimal("85000.00")
    assert result.detail.total_ad_valorem_duty == Decimal("120000.00")


def test_unknown_product_in_a_specific_duty_category_is_rate_not_found(
    excise_table: RateTable,
) -> None:
    with pytest.raises(RateNotFound, match="TOB999"):
        calculate_excise_duty(
            ExciseBase(items=[{"product_code": "TOB999", "quantity": 1, "value": 10}]),
            excise_table,
        )


def test_unknown_named_category_is_rate_not_found(excise_table: RateTable) -> None:
    with pytest.raises(RateNotFound, match="Jewellery"):
        calculate_excise_duty(
            ExciseBase(
                items=[
                    {
                        "product_code": "JWL001",
                        "product_category": "Jewellery",
                        "quantity": 1,
                        "value": 10,
                    }
                ]
            ),
            excise_table,
        )
