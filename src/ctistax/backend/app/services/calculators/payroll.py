"""PAYE per employee plus the skills development levy on gross payroll."""

from __future__ import annotations

from dataclasses import replace

from ctistax.backend.app.models import (
    BreakdownLine,
    CalculationResult,
    EmployeeInput,
    EmployeePaye,
    PayrollBase,
    PayrollDetail,
)
from ctistax.backend.config.schema import RateTable, TaxType

from .utils import ZERO, effective_rate, evaluate_brackets, round_currency, sum_amounts


def _employee_paye(employee: EmployeeInput, table: RateTable) -> EmployeePaye:
    taxable_salary = max(ZERO, employee.annual_salary - table.tax_free_threshold)
    evaluation = evaluate_brackets(taxable_salary, table.brackets)
    return EmployeePaye(
        employee_id=employee.employee_id,
        employee_name=employee.employee_name,
        annual_salary=employee.annual_salary,
        taxable_salary=round_currency(taxable_salary),
        paye=evaluation.gross_tax,
        effective_rate=effective_rate(evaluation.gross_tax, employee.annual_salary),
        marginal_rate=evaluation.marginal_rate,
        brackets=evaluation.lines,
    )


def _paye_lines(entry: EmployeePaye) -> list[BreakdownLine]:
    """Break an employee's PAYE down by bracket so each line is base times rate."""

    label = f"PAYE - {entry.employee_id}"
    if not entry.brackets:
        return [BreakdownLine(label=label, base=entry.taxable_salary, rate=ZERO, amount=entry.paye)]
    return [replace(line, label=f"{label} ({line.label})") for line in entry.brackets]


def calculate_payroll_tax(base: PayrollBase, table: RateTable) -> CalculationResult:
    """Compute PAYE for each employee and the levy on the gross payroll.

    The levy base is ``base.gross_payroll`` (the declared total payroll, or
    the sum of salaries) and never the PAYE taxable salaries.
    """

    employees = tuple(_employee_paye(employee, table) for employee in base.employees)
    total_paye = sum_amounts(entry.paye for entry in employees)

    levy_rate = table.skills_levy_rate if table.skills_levy_rate is not None else ZERO
    gross_payroll = base.gross_payroll
    levy = round_currency(gross_payroll * levy_rate)
    total = total_paye + levy

    lines = [line for entry in employees for line in _paye_lines(entry)]
    lines.append(
        BreakdownLine(
            label="Skills development levy",
            base=gross_payroll,
            rate=levy_rate,
            amount=levy,
        )
    )

    taxable_total = sum_amounts(entry.taxable_salary for entry in employees)
    marginal_rates = [entry.marginal_rate for entry in employees if entry.marginal_rate is not None]

    return CalculationResult(
        tax_type=TaxType.PAYROLL,
        rate_table=table.scope,
        taxable_amount=taxable_total,
        bracket_breakdown=tuple(lines),
        gross_tax=total,
        minimum_tax_floor=ZERO,
        payable_tax=total,
        effective_rate=effective_rate(total, gross_payroll),
        marginal_rate=max(marginal_rates) if marginal_rates else None,
        detail=PayrollDetail(
            employees=employees,
            tax_free_threshold=table.tax_free_threshold,
            total_paye=total_paye,
            gross_payroll=gross_payroll,
            skills_levy_rate=levy_rate,
            skills_development_levy=levy,
            total_payroll_tax=total,
        ),
    )


__all__ = ["calculate_payroll_tax"]
