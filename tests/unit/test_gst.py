"""Unit coverage for the GST net liability calculator."""

from __future__ import annotations

from decimal import Decimal

import pytest
from pydantic import ValidationError

from ctistax.backend.app.models import GstBase
from ctistax.backend.app.services.calculators import calculate_gst
from ctistax.backend.config.schema import RateTable


def test_net_liability_is_output_tax_less_input_credit(gst_table: RateTable) -> None:
    result = calculate_gst(
        GstBase(gross_sales=1_000_000, taxable_supplies=1_000_000, input_tax=100_000),
        gst_table,
    )

    assert result.detail.output_tax == Decimal("150000.00")
    assert result.detail.net_liability == Decimal("50000.00")
    assert result.detail.refund_due == Decimal("0.00")
    assert result.payable_tax == Decimal("50000.00")
    assert sum(line.amount for line in result.bracket_breakdown) == result.gross_tax


def test_excess_input_tax_becomes_a_refund(gst_table: RateTable) -> None:
    result = calculate_gst(GstBase(taxable_supplies=200_000, input_tax=100_000), gst_table)

    assert result.detail.net_liability == Decimal("0.00")
    assert result.detail.refund_due == Decimal("70000.00")
    assert result.detail.input_tax_credit_applied == Decimal("30000.00")
    assert result.payable_tax == Decimal("0.00")
    assert sum(line.amount for line in result.bracket_breakdown) == result.gross_tax


def test_capped_credit_line_shows_only_the_credit_applied(gst_table: RateTable) -> None:
    result = calculate_gst(GstBase(taxable_supplies=200_000, input_tax=100_000), gst_table)

    credit_line = result.bracket_breakdown[-1]
    assert credit_line.label == "Input tax credit applied"
    assert credit_line.base == Decimal("30000.00")
    assert credit_line.base * credit_line.rate == -credit_line.amount
    assert result.detail.refund_due == Decimal("70000.00")


def test_reverse_charge_is_added_to_output_tax_and_tracked_separately(
    gst_table: RateTable,
) -> None:
    result = calculate_gst(
        GstBase(
            taxable_supplies=1_000_000,
            input_tax=10_000,
            is_import=True,
            import_value=400_000,
        ),
        gst_table,
    )

    labels = [line.label for line in result.bracket_breakdown]
    assert labels == [
        "Output GST on taxable supplies",
        "Reverse charge GST on imports",
        "Input tax credit applied",
    ]
    assert result.detail.reverse_charge_tax == Decimal("60000.00")
    assert result.detail.total_output_tax == Decimal("210000.00")
    assert result.detail.net_liability == Decimal("200000.00")
    assert sum(line.amount for line in result.bracket_breakdown) == result.gross_tax


def test_import_value_is_ignored_without_the_import_flag(gst_table: RateTable) -> None:
    result = calculate_gst(
        GstBase(taxable_supplies=100_000, import_value=400_000), gst_table
    )

    assert result.detail.reverse_charge_tax == Decimal("0.00")
    assert len(result.bracket_breakdown) == 2


def test_zero_rated_supplies_keep_input_credit_but_exempt_supplies_do_not(
    gst_table: RateTable,
) -> None:
    zero_rated = calculate_gst(
        GstBase(gross_sales=500_000, zero_rated_supplies=500_000, input_tax=50_000),
        gst_table,
    )
    exempt = calculate_gst(
        GstBase(
            gross_sales=500_000,
            exempt_supplies=500_000,
            input_tax=50_000,
            exempt_input_tax=50_000,
        ),
        gst_table,
    )

    assert zero_rated.detail.output_tax == exempt.detail.output_tax == Decimal("0.00")
    assert zero_rated.detail.refund_due == Decimal("50000.00")
    assert exempt.detail.refund_due == Decimal("0.00")
    assert exempt.detail.non_creditable_input_tax == Decimal("50000")


@pytest.mark.parametrize(
    ("taxable_supplies", "input_tax"),
    [(0, 0), (100_000, 15_000), (100_000, 14_999), (100_000, 15_001), (0, 5_000)],
)
def test_liability_and_refund_are_never_both_positive(
    gst_table: RateTable, taxable_supplies: int, input_tax: int
) -> None:
    detail = calculate_gst(
        GstBase(taxable_supplies=taxable_supplies, input_tax=input_tax), gst_table
    ).detail

    assert not (detail.net_liability > 0 and detail.refund_due > 0)
    assert detail.net_liability >= 0
    assert detail.refund_due >= 0


def test_exempt_input_tax_cannot_exceed_total_input_tax() -> None:
    with pytest.raises(ValidationError):
        GstBase(input_tax=1_000, exempt_input_tax=2_000)


def test_supplies_cannot_exceed_declared_gross_sales() -> None:
    with pytest.raises(ValidationError):
        GstBase(gross_sales=100, taxable_supplies=80, exempt_supplies=50)
