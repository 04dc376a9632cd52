"""Orchestrate rate resolution, per-tax calculations, penalties and scoring.

``calculate_tax`` handles a single tax type; ``assess`` composes every filing
of one client and tax year into a :class:`ComprehensiveAssessment`; and
``assess_many`` fans independent assessments out over a thread pool. All
calculators are pure, so the only shared state is the rate repository
snapshot, which is never mutated in place.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from concurrent.futures import Executor, ThreadPoolExecutor
from contextlib import contextmanager
from datetime import date
from time import perf_counter
from typing import Any

from pydantic import ValidationError
from typing_extensions import assert_never

from ctistax.backend.app.errors import CalculationOverflow, InvalidInput, TaxEngineError
from ctistax.backend.app.models import (
    AssessmentRequest,
    CalculationResult,
    ComprehensiveAssessment,
    ExciseBase,
    FilingDates,
    FilingInput,
    GstBase,
    IncomeTaxBase,
    PayrollBase,
    PenaltyResult,
    TaxableBase,
    TaxCalculationRequest,
    TaxCalculationResponse,
    TaxTypeFailure,
    TaxTypeOutcome,
    format_validation_error,
)
from ctistax.backend.config.rate_tables import load_compliance_policy
from ctistax.backend.config.schema import (
    CompliancePolicy,
    RateTable,
    TaxpayerCategory,
)

from .calculators import (
    calculate_excise_duty,
    calculate_gst,
    calculate_income_tax,
    calculate_payroll_tax,
    calculate_penalty,
    days_between,
    score_compliance,
)
from .calculators.utils import sum_amounts
from .rate_repository import RateRepository, default_repository

_LOGGER = logging.getLogger(__name__)


@contextmanager
def _profile_section(name: str, store: dict[str, float] | None):
    """Capture the duration of a named section when profiling is enabled."""

    if store is None:
        yield
        return

    start = perf_counter()
    try:
        yield
    finally:
        store[name] = perf_counter() - start


def _new_timings() -> dict[str, float] | None:
    return {} if _LOGGER.isEnabledFor(logging.DEBUG) else None


def _log_timings(label: str, timings: dict[str, float] | None) -> None:
    if timings is None:
        return
    _LOGGER.debug(
        "%s timings (ms): %s",
        label,
        {name: round(duration * 1000, 3) for name, duration in timings.items()},
    )


def parse_calculation_request(
    payload: Mapping[str, Any] | TaxCalculationRequest,
) -> TaxCalculationRequest:
    """Validate ``payload`` into a :class:`TaxCalculationRequest`."""

    if isinstance(payload, TaxCalculationRequest):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidInput("Payload must be a mapping")
    try:
        return TaxCalculationRequest.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInput(format_validation_error(exc)) from exc


def parse_assessment_request(
    payload: Mapping[str, Any] | AssessmentRequest,
) -> AssessmentRequest:
    """Validate ``payload`` into an :class:`AssessmentRequest`."""

    if isinstance(payload, AssessmentRequest):
        return payload
    if not isinstance(payload, Mapping):
        raise InvalidInput("Payload must be a mapping")
    try:
        return AssessmentRequest.model_validate(payload)
    except ValidationError as exc:
        raise InvalidInput(format_validation_error(exc)) from exc


def default_rates_as_of(tax_year: int, evaluation_date: date) -> date:
    """Return ``evaluation_date`` clamped into ``tax_year``."""

    start = date(tax_year, 1, 1)
    end = date(tax_year, 12, 31)
    return min(max(evaluation_date, start), end)


def calculate_liability(base: TaxableBase, table: RateTable) -> CalculationResult:
    """Dispatch ``base`` to the calculator for its tax type."""

    match base:
        case IncomeTaxBase():
            return calculate_income_tax(base, table)
        case GstBase():
            return calculate_gst(base, table)
        case PayrollBase():
            return calculate_payroll_tax(base, table)
        case ExciseBase():
            return calculate_excise_duty(base, table)
        case _:
            assert_never(base)


def _calculate_with_penalty(
    base: TaxableBase,
    dates: FilingDates,
    table: RateTable,
    evaluation_date: date,
) -> tuple[CalculationResult, PenaltyResult | None]:
    try:
        calculation = calculate_liability(base, table)
        if dates.due_date is None:
            return calculation, None
        penalty = calculate_penalty(
            base.kind,
            calculation.payable_tax,
            dates,
            table.penalties,
            evaluation_date,
        )
    except ArithmeticError as exc:
        raise CalculationOverflow(
            f"{base.kind.label} figures exceed the range currency rounding supports"
        ) from exc
    return calculation, penalty


def calculate_tax(
    payload: Mapping[str, Any] | TaxCalculationRequest,
    *,
    repository: RateRepository | None = None,
    evaluation_date: date | None = None,
) -> TaxCalculationResponse:
    """Compute the liability for one tax type and, with a due date, its penalty."""

    request = parse_calculation_request(payload)
    repository = repository or default_repository()
    evaluation_date = evaluation_date or date.today()
    as_of = request.rates_as_of or default_rates_as_of(request.tax_year, evaluation_date)

    timings = _new_timings()
    with _profile_section("resolve_rates", timings):
        table = repository.resolve(
            request.base.kind, request.taxpayer_category, request.tax_year, as_of
        )
    with _profile_section(request.base.kind.value, timings):
        calculation, penalty = _calculate_with_penalty(
            request.base, request.dates, table, evaluation_date
        )
    _log_timings("calculate_tax", timings)

    return TaxCalculationResponse(calculation=calculation, penalty=penalty)


def _assess_filing(
    filing: FilingInput,
    repository: RateRepository,
    category: TaxpayerCategory,
    tax_year: int,
    as_of: date,
    evaluation_date: date,
    strict: bool,
) -> TaxTypeOutcome:
    tax_type = filing.base.kind
    dates = filing.dates
    days_late = days_between(dates.due_date, dates.actual_date or evaluation_date)

    try:
        table = repository.resolve(tax_type, category, tax_year, as_of)
        calculation, penalty = _calculate_with_penalty(
            filing.base, dates, table, evaluation_date
        )
    except TaxEngineError as exc:
        if strict:
            raise
        _LOGGER.warning("%s could not be assessed: %s", tax_type.label, exc)
        return TaxTypeOutcome(
            tax_type=tax_type,
            due_date=dates.due_date,
            actual_date=dates.actual_date,
            days_late=days_late,
            failure=TaxTypeFailure(kind=exc.kind, message=str(exc)),
        )

    return TaxTypeOutcome(
        tax_type=tax_type,
        due_date=dates.due_date,
        actual_date=dates.actual_date,
        days_late=days_late,
        calculation=calculation,
        penalty=penalty,
    )


def assess(
    payload: Mapping[str, Any] | AssessmentRequest,
    *,
    repository: RateRepository | None = None,
    policy: CompliancePolicy | None = None,
    executor: Executor | None = None,
    strict: bool = False,
) -> ComprehensiveAssessment:
    """Build the comprehensive assessment for one client and tax year.

    A tax type whose rates cannot be resolved, or whose figures overflow
    currency rounding, is recorded as a failed outcome and raised as a
    compliance issue while the remaining tax types are still assessed;
    ``is_complete`` on the result reports whether that happened. With
    ``strict=True`` the first failure is raised instead. When an ``executor``
    is supplied the filings are calculated concurrently and joined before
    scoring.
    """

    request = parse_assessment_request(payload)
    repository = repository or default_repository()
    policy = policy or load_compliance_policy()
    evaluation_date = request.evaluation_date or date.today()
    as_of = request.rates_as_of or default_rates_as_of(request.tax_year, evaluation_date)

    timings = _new_timings()
    overall_start = perf_counter() if timings is not None else None

    arguments = (
        repository,
        request.taxpayer_category,
        request.tax_year,
        as_of,
        evaluation_date,
        strict,
    )
    with _profile_section("tax_types", timings):
        if executor is None:
            outcomes = tuple(_assess_filing(filing, *arguments) for filing in request.filings)
        else:
            futures = [
                executor.submit(_assess_filing, filing, *arguments)
                for filing in request.filings
            ]
            outcomes = tuple(future.result() for future in futures)

    total_tax_liability = sum_amounts(
        outcome.calculation.payable_tax
        for outcome in outcomes
        if outcome.calculation is not None
    )
    total_penalties = sum_amounts(
        outcome.penalty.total_penalty for outcome in outcomes if outcome.penalty is not None
    )

    with _profile_section("compliance", timings):
        compliance = score_compliance(
            outcomes,
            request.signals,
            policy,
            expected_tax_types=request.expected_tax_types,
        )

    if timings is not None and overall_start is not None:
        timings["total"] = perf_counter() - overall_start
    _log_timings("assess", timings)

    assessment = ComprehensiveAssessment(
        client_id=request.client_id,
        tax_year=request.tax_year,
        taxpayer_category=request.taxpayer_category,
        evaluation_date=evaluation_date,
        outcomes=outcomes,
        total_tax_liability=total_tax_liability,
        total_penalties=total_penalties,
        grand_total=total_tax_liability + total_penalties,
        compliance=compliance,
    )
    _LOGGER.info(
        "Assessment for client %s (%s) completed: grand total %s, grade %s%s",
        assessment.client_id,
        assessment.tax_year,
        assessment.grand_total,
        assessment.compliance_grade,
        "" if assessment.is_complete else " (incomplete)",
    )
    return assessment


def assess_many(
    payloads: Iterable[Mapping[str, Any] | AssessmentRequest],
    *,
    repository: RateRepository | None = None,
    policy: CompliancePolicy | None = None,
    max_workers: int | None = None,
    strict: bool = False,
) -> list[ComprehensiveAssessment]:
    """Assess many clients concurrently, returning results in request order.

    Every payload is validated before any work is scheduled, so an invalid
    request fails the batch without partial results.
    """

    requests = [parse_assessment_request(payload) for payload in payloads]
    repository = repository or default_repository()
    policy = policy or load_compliance_policy()

    if not requests:
        return []

    def _run(request: AssessmentRequest) -> ComprehensiveAssessment:
        return assess(request, repository=repository, policy=policy, strict=strict)

    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        return list(pool.map(_run, requests))


__all__ = [
    "assess",
    "assess_many",
    "calculate_liability",
    "calculate_tax",
    "default_rates_as_of",
    "parse_assessment_request",
    "parse_calculation_request",
]
