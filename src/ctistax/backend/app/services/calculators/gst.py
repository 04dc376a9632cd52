"""GST output tax, reverse charge, input credit and net liability."""

from __future__ import annotations

from decimal import Decimal

from ctistax.backend.app.models import BreakdownLine, CalculationResult, GstBase, GstDetail
from ctistax.backend.config.schema import RateTable, TaxType

from .utils import ZERO, effective_rate, round_currency


def calculate_gst(base: GstBase, table: RateTable) -> CalculationResult:
    """Compute the GST position for one period.

    Exempt and zero-rated supplies carry no output tax. Input tax attributable
    to exempt supplies is not creditable; zero-rated supplies keep full credit.
    Credit beyond the total output tax becomes ``refund_due`` rather than a
    negative liability.
    """

    rate = table.gst_rate if table.gst_rate is not None else ZERO

    output_tax = round_currency(base.taxable_supplies * rate)
    import_value = base.import_value if base.is_import else ZERO
    reverse_charge = round_currency(import_value * rate)
    total_output = output_tax + reverse_charge

    creditable = round_currency(base.creditable_input_tax)
    credit_applied = min(creditable, total_output)
    net_liability = total_output - credit_applied
    refund_due = creditable - credit_applied

    lines = [
        BreakdownLine(
            label="Output GST on taxable supplies",
            base=base.taxable_supplies,
            rate=rate,
            amount=output_tax,
        )
    ]
    if base.is_import:
        lines.append(
            BreakdownLine(
                label="Reverse charge GST on imports",
                base=import_value,
                rate=rate,
                amount=reverse_charge,
            )
        )
    lines.append(
        BreakdownLine(
            label="Input tax credit applied",
            base=credit_applied,
            rate=Decimal("1"),
            amount=-credit_applied,
        )
    )

    taxable_amount = base.taxable_supplies + import_value

    return CalculationResult(
        tax_type=TaxType.GST,
        rate_table=table.scope,
        taxable_amount=round_currency(taxable_amount),
        bracket_breakdown=tuple(lines),
        gross_tax=net_liability,
        minimum_tax_floor=ZERO,
        payable_tax=net_liability,
        effective_rate=effective_rate(net_liability, taxable_amount),
        marginal_rate=rate,
        detail=GstDetail(
            gst_rate=rate,
            taxable_supplies=base.taxable_supplies,
            exempt_supplies=base.exempt_supplies,
            zero_rated_supplies=base.zero_rated_supplies,
            output_tax=output_tax,
            reverse_charge_tax=reverse_charge,
            total_output_tax=total_output,
            input_tax=base.input_tax,
            creditable_input_tax=creditable,
            non_creditable_input_tax=base.exempt_input_tax,
            input_tax_credit_applied=credit_applied,
            net_liability=net_liability,
            refund_due=refund_due,
        ),
    )


__all__ = ["calculate_gst"]
