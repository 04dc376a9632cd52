"""Progressive income tax with an optional minimum tax floor."""

from __future__ import annotations

from ctistax.backend.app.models import CalculationResult, IncomeTaxBase, IncomeTaxDetail
from ctistax.backend.config.schema import RateTable, TaxType

from .utils import ZERO, effective_rate, evaluate_brackets, round_currency


def calculate_income_tax(base: IncomeTaxBase, table: RateTable) -> CalculationResult:
    """Tax gross income less deductions and allowances using ``table`` brackets.

    When the table defines ``minimum_tax_rate`` the floor
    ``taxable_income * minimum_tax_rate`` is reported alongside the bracket
    tax and payable tax is the larger of the two.
    """

    allowances = base.total_allowances
    taxable_income = max(ZERO, base.gross_income - base.deductions - allowances)

    evaluation = evaluate_brackets(taxable_income, table.brackets)

    floor = ZERO
    if table.minimum_tax_rate is not None:
        floor = round_currency(taxable_income * table.minimum_tax_rate)

    payable = max(evaluation.gross_tax, floor)

    return CalculationResult(
        tax_type=TaxType.INCOME,
        rate_table=table.scope,
        taxable_amount=round_currency(taxable_income),
        bracket_breakdown=evaluation.lines,
        gross_tax=evaluation.gross_tax,
        minimum_tax_floor=floor,
        payable_tax=payable,
        effective_rate=effective_rate(payable, taxable_income),
        marginal_rate=evaluation.marginal_rate,
        detail=IncomeTaxDetail(
            gross_income=base.gross_income,
            deductions=base.deductions,
            allowances=allowances,
            taxable_income=round_currency(taxable_income),
            minimum_tax_rate=table.minimum_tax_rate,
        ),
    )


__all__ = ["calculate_income_tax"]
