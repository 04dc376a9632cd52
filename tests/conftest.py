"""Test configuration utilities and shared fixtures."""

import sys
from datetime import date
from pathlib import Path
from typing import Any, Callable

# Ensure the ``src`` directory is importable when tests are executed without an
# editable install.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import pytest  # noqa: E402

from ctistax.backend.app.services.rate_repository import RateRepository  # noqa: E402
from ctistax.backend.config.rate_tables import load_compliance_policy  # noqa: E402
from ctistax.backend.config.schema import CompliancePolicy, RateTable  # noqa: E402

TAX_YEAR = 2025

SIMPLE_PENALTIES: dict[str, Any] = {
    "late_filing_rate": "0.05",
    "daily_interest_rate": "0.0005",
    "legal_reference": "Finance Act 2020, Section 112",
}

COMPOUNDING_PENALTIES: dict[str, Any] = {
    "late_filing_rate": "0.10",
    "daily_interest_rate": "0.001",
    "monthly_compounding": True,
    "monthly_interest_rate": "0.03",
}


def build_table(**overrides: Any) -> RateTable:
    """Return a validated rate table with sensible defaults for ``overrides``."""

    record: dict[str, Any] = {
        "tax_type": "income_tax",
        "tax_year": TAX_YEAR,
        "effective_from": date(TAX_YEAR, 1, 1),
        "brackets": [
            {"from_amount": 0, "to_amount": 3_000_000, "rate": "0"},
            {"from_amount": 3_000_000, "to_amount": 6_000_000, "rate": "0.15"},
            {"from_amount": 6_000_000, "rate": "0.25"},
        ],
        "penalties": SIMPLE_PENALTIES,
    }
    record.update(overrides)
    return RateTable.model_validate(record)


@pytest.fixture()
def table_factory() -> Callable[..., RateTable]:
    return build_table


@pytest.fixture()
def income_table() -> RateTable:
    """Income tax table using the illustrative 0% / 15% / 25% brackets."""

    return build_table(category="Individual")


@pytest.fixture()
def corporate_table() -> RateTable:
    return build_table(
        category="Large",
        brackets=[{"from_amount": 0, "rate": "0.30"}],
        minimum_tax_rate="0.005",
    )


@pytest.fixture()
def gst_table() -> RateTable:
    return build_table(
        tax_type="gst",
        brackets=[],
        gst_rate="0.15",
        penalties=COMPOUNDING_PENALTIES,
    )


@pytest.fixture()
def payroll_table() -> RateTable:
    return build_table(
        tax_type="payroll_tax",
        tax_free_threshold=600_000,
        skills_levy_rate="0.01",
        brackets=[
            {"from_amount": 0, "to_amount": 12_000_000, "rate": "0.15"},
            {"from_amount": 12_000_000, "to_amount": 60_000_000, "rate": "0.20"},
            {"from_amount": 60_000_000, "rate": "0.30"},
        ],
    )


@pytest.fixture()
def excise_table() -> RateTable:
    return build_table(
        tax_type="excise_duty",
        brackets=[],
        excise_categories=[
            {
                "name": "Tobacco",
                "code_prefix": "TOB",
                "ad_valorem_rate": "0.10",
                "products": [
                    {"product_code": "TOB001", "product_name": "Cigarettes", "specific_rate": 500},
                ],
            },
            {
                "name": "Fuel",
                "code_prefix": "FUE",
                "mode": "specific_only",
                "ad_valorem_rate": "0.20",
                "products": [
                    {"product_code": "FUEL001", "product_name": "Petrol", "specific_rate": 3500},
                ],
            },
            {"name": "Other", "mode": "ad_valorem_only", "ad_valorem_rate": "0.10"},
        ],
    )


@pytest.fixture()
def repository(
    income_table: RateTable,
    corporate_table: RateTable,
    gst_table: RateTable,
    payroll_table: RateTable,
    excise_table: RateTable,
) -> RateRepository:
    """Repository holding one table per tax type for the test year."""

    return RateRepository(
        [income_table, corporate_table, gst_table, payroll_table, excise_table]
    )


@pytest.fixture()
def policy() -> CompliancePolicy:
    return load_compliance_policy()
