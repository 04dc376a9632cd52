"""Domain-specific calculation helpers."""

from .compliance import score_compliance
from .excise import calculate_excise_duty
from .gst import calculate_gst
from .income import calculate_income_tax
from .payroll import calculate_payroll_tax
from .penalties import calculate_penalty, days_between
from .utils import evaluate_brackets, round_currency, round_rate

__all__ = [
    "calculate_excise_duty",
    "calculate_gst",
    "calculate_income_tax",
    "calculate_payroll_tax",
    "calculate_penalty",
    "days_between",
    "evaluate_brackets",
    "round_currency",
    "round_rate",
    "score_compliance",
]
