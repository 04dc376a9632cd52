"""Utilities for serialising engine results into JSON-ready payloads."""

from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter, ValidationError

from ctistax.backend.app.models import (
    CalculationResult,
    ComprehensiveAssessment,
    PenaltyResult,
    TaxCalculationResponse,
)
from ctistax.backend.config.schema import ConfigurationError, RateTable


@lru_cache(maxsize=None)
def _adapter(model: type) -> TypeAdapter[Any]:
    return TypeAdapter(model)


def _dump(model: type, value: Any) -> dict[str, Any]:
    return _adapter(model).dump_python(value, mode="json")


def serialize_calculation(result: CalculationResult) -> dict[str, Any]:
    """Return ``result`` as a JSON-ready mapping (decimals become strings)."""

    return _dump(CalculationResult, result)


def serialize_penalty(result: PenaltyResult) -> dict[str, Any]:
    return _dump(PenaltyResult, result)


def serialize_response(response: TaxCalculationResponse) -> dict[str, Any]:
    payload = _dump(TaxCalculationResponse, response)
    payload["total_due"] = str(response.total_due)
    return payload


def serialize_assessment(assessment: ComprehensiveAssessment) -> dict[str, Any]:
    """Return ``assessment`` with its derived summary fields included."""

    payload = _dump(ComprehensiveAssessment, assessment)
    payload["compliance_score"] = str(assessment.compliance_score)
    payload["compliance_grade"] = assessment.compliance_grade
    payload["is_complete"] = assessment.is_complete
    return payload


def serialize_rate_table(table: RateTable) -> dict[str, Any]:
    """Return ``table`` in the same shape the YAML rate files use."""

    return table.model_dump(mode="json", by_alias=True, exclude_none=True)


def deserialize_rate_table(payload: Mapping[str, Any]) -> RateTable:
    try:
        return RateTable.model_validate(payload)
    except ValidationError as error:
        raise ConfigurationError(f"Rate table validation failed: {error}") from error


__all__ = [
    "deserialize_rate_table",
    "serialize_assessment",
    "serialize_calculation",
    "serialize_penalty",
    "serialize_rate_table",
    "serialize_response",
]
