"""Unit tests for the JSON serialisation helpers."""

from __future__ import annotations

import json
from datetime import date, timedelta
from decimal import Decimal

from ctistax.backend.app.models import FilingDates, IncomeTaxBase
from ctistax.backend.app.services.assessment_service import assess, calculate_tax
from ctistax.backend.app.services.calculators import calculate_income_tax, calculate_penalty
from ctistax.backend.config.schema import PenaltyParameters, TaxType
from ctistax.backend.services.response_builder import (
    serialize_assessment,
    serialize_calculation,
    serialize_penalty,
    serialize_response,
)

DUE = date(2025, 4, 30)


def test_serialize_calculation_emits_decimal_strings(income_table) -> None:
    result = calculate_income_tax(IncomeTaxBase(gross_income=10_000_000), income_table)

    payload = serialize_calculation(result)

    assert payload["tax_type"] == "income_tax"
    assert payload["payable_tax"] == "1450000.00"
    assert payload["effective_rate"] == "0.1450"
    assert [line["amount"] for line in payload["bracket_breakdown"]] == [
        "0.00",
        "450000.00",
        "1000000.00",
    ]
    assert payload["bracket_breakdown"][-1]["upper_bound"] is None
    assert payload["detail"]["taxable_income"] == "10000000.00"
    json.dumps(payload)


def test_serialize_penalty_includes_breakdown_strings() -> None:
    params = PenaltyParameters(
        late_filing_rate=Decimal("0.05"), daily_interest_rate=Decimal("0.0005")
    )
    dates = FilingDates(due_date=DUE, actual_date=DUE + timedelta(days=45))

    payload = serialize_penalty(
        calculate_penalty(TaxType.INCOME, Decimal("1000000"), dates, params, DUE)
    )

    assert payload["due_date"] == "2025-04-30"
    assert payload["total_penalty"] == "72500.00"
    assert [entry["kind"] for entry in payload["breakdown"]] == [
        "late_filing",
        "simple_interest",
    ]
    assert payload["breakdown"][1]["calculation"].endswith("= 22,500.00 SLE")


def test_serialize_response_adds_total_due(repository) -> None:
    response = calculate_tax(
        {
            "taxpayer_category": "Individual",
            "tax_year": 2025,
            "base": {"tax_type": "income_tax", "gross_income": 10_000_000},
            "dates": {"due_date": "2025-04-30", "actual_date": "2025-06-14"},
        },
        repository=repository,
        evaluation_date=date(2025, 12, 31),
    )

    payload = serialize_response(response)

    assert payload["total_due"] == "1555125.00"
    assert payload["penalty"]["days_late"] == 45


def test_serialize_assessment_includes_summary_fields(repository, policy) -> None:
    assessment = assess(
        {
            "client_id": "CL-042",
            "tax_year": 2025,
            "taxpayer_category": "Individual",
            "evaluation_date": "2025-12-31",
            "filings": [
                {"base": {"tax_type": "income_tax", "gross_income": 10_000_000}},
            ],
            "expected_tax_types": ["income_tax", "gst"],
        },
        repository=repository,
        policy=policy,
    )

    payload = serialize_assessment(assessment)

    assert payload["client_id"] == "CL-042"
    assert payload["taxpayer_category"] == "Individual"
    assert payload["compliance_score"] == str(assessment.compliance_score)
    assert payload["compliance_grade"] == assessment.compliance_grade
    assert payload["is_complete"] is True
    assert payload["outcomes"][0]["penalty"] is None
    assert payload["compliance"]["issues"][0]["issue_type"] == "Missing Filing"
    assert payload["compliance"]["issues"][0]["tax_type"] == "gst"
    json.dumps(payload)
