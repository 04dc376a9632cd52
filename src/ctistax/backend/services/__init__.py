"""Service-layer helpers for the tax engine backend."""

from ctistax.backend.app.services.assessment_service import (
    assess,
    assess_many,
    calculate_tax,
    parse_assessment_request,
    parse_calculation_request,
)

from .response_builder import (
    deserialize_rate_table,
    serialize_assessment,
    serialize_calculation,
    serialize_penalty,
    serialize_rate_table,
    serialize_response,
)

__all__ = [
    "assess",
    "assess_many",
    "calculate_tax",
    "deserialize_rate_table",
    "parse_assessment_request",
    "parse_calculation_request",
    "serialize_assessment",
    "serialize_calculation",
    "serialize_penalty",
    "serialize_rate_table",
    "serialize_response",
]
