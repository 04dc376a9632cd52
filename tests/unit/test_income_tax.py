"""Unit coverage for progressive income tax and the bracket evaluator."""

from __future__ import annotations

from decimal import Decimal

import pytest

from ctistax.backend.app.models import IncomeTaxBase
from ctistax.backend.app.services.calculators import calculate_income_tax, evaluate_brackets
from ctistax.backend.config.schema import RateTable


def test_worked_example_taxes_only_the_portion_above_the_zero_band(
    income_table: RateTable,
) -> None:
    result = calculate_income_tax(IncomeTaxBase(gross_income=5_000_000), income_table)

    assert result.taxable_amount == Decimal("5000000")
    assert result.gross_tax == Decimal("300000.00")
    assert result.payable_tax == Decimal("300000.00")
    assert result.marginal_rate == Decimal("0.15")
    assert result.effective_rate == Decimal("0.0600")
    assert [line.amount for line in result.bracket_breakdown] == [
        Decimal("0.00"),
        Decimal("300000.00"),
    ]
    assert result.bracket_breakdown[1].base == Decimal("2000000.00")


def test_breakdown_sums_to_gross_tax(income_table: RateTable) -> None:
    result = calculate_income_tax(IncomeTaxBase(gross_income="9876543.21"), income_table)

    assert sum(line.amount for line in result.bracket_breakdown) == result.gross_tax
    assert len(result.bracket_breakdown) == 3


def test_amount_on_a_boundary_tops_out_the_lower_bracket(income_table: RateTable) -> None:
    evaluation = evaluate_brackets(Decimal("3000000"), income_table.brackets)

    assert len(evaluation.lines) == 1
    assert evaluation.gross_tax == Decimal("0.00")
    assert evaluation.marginal_rate == Decimal("0")


def test_amount_just_above_a_boundary_enters_the_next_bracket(
    income_table: RateTable,
) -> None:
    evaluation = evaluate_brackets(Decimal("3000001"), income_table.brackets)

    assert len(evaluation.lines) == 2
    assert evaluation.lines[1].base == Decimal("1.00")
    assert evaluation.gross_tax == Decimal("0.15")
    assert evaluation.marginal_rate == Decimal("0.15")


def test_gross_tax_is_monotonic_in_the_taxable_amount(income_table: RateTable) -> None:
    amounts = [Decimal(value) for value in range(0, 12_000_001, 250_000)]
    taxes = [evaluate_brackets(amount, income_table.brackets).gross_tax for amount in amounts]

    assert taxes == sorted(taxes)


def test_deductions_and_allowances_reduce_the_taxable_base(income_table: RateTable) -> None:
    base = IncomeTaxBase(
        gross_income=5_500_000,
        deductions=300_000,
        allowances=[{"name": "Housing", "amount": 200_000}],
    )

    result = calculate_income_tax(base, income_table)

    assert result.taxable_amount == Decimal("5000000.00")
    assert result.detail.allowances == Decimal("200000")
    assert result.gross_tax == Decimal("300000.00")


def test_taxable_income_is_floored_at_zero(income_table: RateTable) -> None:
    result = calculate_income_tax(
        IncomeTaxBase(gross_income=100_000, deductions=250_000), income_table
    )

    assert result.taxable_amount == Decimal("0.00")
    assert result.gross_tax == Decimal("0")
    assert result.bracket_breakdown == ()
    assert result.payable_tax >= 0


def test_minimum_tax_floor_applies_when_larger_than_bracket_tax(table_factory) -> None:
    table = table_factory(
        category="Micro",
        brackets=[{"from_amount": 0, "rate": "0"}],
        minimum_tax_rate="0.01",
    )

    result = calculate_income_tax(IncomeTaxBase(gross_income=1_000_000), table)

    assert result.gross_tax == Decimal("0.00")
    assert result.minimum_tax_floor == Decimal("10000.00")
    assert result.payable_tax == Decimal("10000.00")
    assert result.minimum_tax_applied is True


@pytest.mark.parametrize("gross_income", [0, 1_000_000, 7_500_000, 80_000_000])
def test_payable_tax_is_the_larger_of_bracket_tax_and_floor(
    corporate_table: RateTable, gross_income: int
) -> None:
    result = calculate_income_tax(IncomeTaxBase(gross_income=gross_income), corporate_table)

    assert result.payable_tax == max(result.gross_tax, result.minimum_tax_floor)
    assert result.minimum_tax_floor == (
        Decimal(gross_income) * Decimal("0.005")
    ).quantize(Decimal("0.01"))
