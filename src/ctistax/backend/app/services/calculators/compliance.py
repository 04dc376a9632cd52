"""Weighted compliance scoring, grading and issue detection."""

from __future__ import annotations

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal

from ctistax.backend.app.models import (
    ComplianceComponents,
    ComplianceIssue,
    ComplianceReport,
    ComplianceSignals,
    TaxTypeOutcome,
)
from ctistax.backend.config.schema import CompliancePolicy, TaxType

from .utils import ZERO, sum_amounts

_ONE = Decimal("1")
_SCORE_QUANTUM = Decimal("0.01")
_COMPONENT_QUANTUM = Decimal("0.0001")

_FAILURE_ISSUES = {
    "rate_not_found": ("Missing Rate Table", "High"),
    "ambiguous_rate": ("Ambiguous Rate Table", "Critical"),
    "invalid_input": ("Invalid Filing Data", "High"),
    "calculation_overflow": ("Calculation Failure", "High"),
}


def _ratio(numerator: int | Decimal, denominator: int | Decimal) -> Decimal:
    return Decimal(numerator) / Decimal(denominator)


def _timeliness(outcomes: Sequence[TaxTypeOutcome], missing: Sequence[TaxType]) -> Decimal:
    considered = len(outcomes) + len(missing)
    if considered == 0:
        return _ONE
    timely = sum(1 for outcome in outcomes if outcome.days_late == 0)
    return _ratio(timely, considered)


def _completeness(
    outcomes: Sequence[TaxTypeOutcome],
    missing: Sequence[TaxType],
    signals: ComplianceSignals,
) -> Decimal:
    ratios: list[Decimal] = []
    if signals.documents_required:
        ratios.append(_ratio(signals.documents_submitted, signals.documents_required))
    if signals.payments_expected:
        ratios.append(_ratio(signals.payments_completed, signals.payments_expected))
    filings = len(outcomes) + len(missing)
    if filings:
        ratios.append(_ratio(sum(1 for outcome in outcomes if outcome.succeeded), filings))
    if not ratios:
        return _ONE
    return sum(ratios, ZERO) / len(ratios)


def _penalty_magnitude(liability: Decimal, penalties: Decimal) -> Decimal:
    if penalties <= 0:
        return _ONE
    if liability <= 0:
        return ZERO
    return _ONE - min(_ONE, penalties / liability)


def _outcome_issues(
    outcome: TaxTypeOutcome, policy: CompliancePolicy
) -> list[ComplianceIssue]:
    issues: list[ComplianceIssue] = []
    label = outcome.tax_type.label

    if outcome.failure is not None:
        issue_type, severity = _FAILURE_ISSUES.get(
            outcome.failure.kind, ("Calculation Failure", "High")
        )
        issues.append(
            ComplianceIssue(
                issue_type=issue_type,
                severity=severity,
                description=f"{label} could not be assessed: {outcome.failure.message}",
                recommended_action=(
                    f"Review the {label} filing and the published rates, then re-run the assessment"
                ),
                tax_type=outcome.tax_type,
            )
        )

    if outcome.days_late > 0:
        severity = policy.severity_for(outcome.days_late)
        due = outcome.due_date.isoformat() if outcome.due_date else "the due date"
        penalty = outcome.penalty.total_penalty if outcome.penalty is not None else ZERO
        if outcome.outstanding:
            issues.append(
                ComplianceIssue(
                    issue_type="Outstanding Return",
                    severity=severity,
                    description=(
                        f"{label} return due {due} is {outcome.days_late} days overdue "
                        "and has not been filed"
                    ),
                    recommended_action=(
                        f"File the {label} return and settle the liability immediately "
                        "to stop further interest accruing"
                    ),
                    tax_type=outcome.tax_type,
                    deadline=outcome.due_date,
                )
            )
        else:
            issues.append(
                ComplianceIssue(
                    issue_type="Late Filing",
                    severity=severity,
                    description=(
                        f"{label} return was filed {outcome.days_late} days after the "
                        f"due date {due}; penalties of {penalty:,.2f} apply"
                    ),
                    recommended_action=(
                        f"Settle the assessed {label} penalties and file future returns "
                        "on or before the due date"
                    ),
                    tax_type=outcome.tax_type,
                )
            )

    return issues


def _signal_issues(signals: ComplianceSignals) -> list[ComplianceIssue]:
    issues: list[ComplianceIssue] = []

    missing_documents = signals.documents_required - signals.documents_submitted
    if missing_documents > 0:
        submitted_ratio = _ratio(signals.documents_submitted, signals.documents_required)
        issues.append(
            ComplianceIssue(
                issue_type="Incomplete Documentation",
                severity="High" if submitted_ratio < Decimal("0.5") else "Medium",
                description=(
                    f"{missing_documents} of {signals.documents_required} required "
                    "documents have not been submitted"
                ),
                recommended_action="Submit the outstanding supporting documents",
            )
        )

    missing_payments = signals.payments_expected - signals.payments_completed
    if missing_payments > 0:
        issues.append(
            ComplianceIssue(
                issue_type="Outstanding Payment",
                severity="High",
                description=(
                    f"{missing_payments} of {signals.payments_expected} expected "
                    "payments have not been completed"
                ),
                recommended_action="Complete the outstanding tax payments",
            )
        )

    return issues


def score_compliance(
    outcomes: Sequence[TaxTypeOutcome],
    signals: ComplianceSignals,
    policy: CompliancePolicy,
    *,
    expected_tax_types: Sequence[TaxType] = (),
) -> ComplianceReport:
    """Combine timeliness, completeness and penalty signals into a graded report.

    Each component lies in ``[0, 1]``; the score is their weighted average
    scaled to 100. Expected tax types without a filing count against both
    timeliness and completeness and raise a "Missing Filing" issue.
    """

    filed = {outcome.tax_type for outcome in outcomes}
    missing = [tax_type for tax_type in expected_tax_types if tax_type not in filed]

    liability = sum_amounts(
        outcome.calculation.payable_tax
        for outcome in outcomes
        if outcome.calculation is not None
    )
    penalties = sum_amounts(
        outcome.penalty.total_penalty for outcome in outcomes if outcome.penalty is not None
    )

    components = ComplianceComponents(
        timeliness=_timeliness(outcomes, missing).quantize(
            _COMPONENT_QUANTUM, rounding=ROUND_HALF_UP
        ),
        completeness=_completeness(outcomes, missing, signals).quantize(
            _COMPONENT_QUANTUM, rounding=ROUND_HALF_UP
        ),
        penalty_magnitude=_penalty_magnitude(liability, penalties).quantize(
            _COMPONENT_QUANTUM, rounding=ROUND_HALF_UP
        ),
    )

    weights = policy.weights
    weighted = (
        weights.timeliness * components.timeliness
        + weights.completeness * components.completeness
        + weights.penalty_magnitude * components.penalty_magnitude
    )
    score = (Decimal("100") * weighted / weights.total).quantize(
        _SCORE_QUANTUM, rounding=ROUND_HALF_UP
    )
    band = policy.grade_for(score)

    issues: list[ComplianceIssue] = []
    for outcome in outcomes:
        issues.extend(_outcome_issues(outcome, policy))
    for tax_type in missing:
        issues.append(
            ComplianceIssue(
                issue_type="Missing Filing",
                severity="High",
                description=f"No {tax_type.label} filing was supplied for the period",
                recommended_action=f"Prepare and file the {tax_type.label} return",
                tax_type=tax_type,
            )
        )
    issues.extend(_signal_issues(signals))

    positive_factors: list[str] = []
    improvement_areas: list[str] = []

    if filed or missing:
        if components.timeliness == _ONE:
            positive_factors.append("All returns filed on time")
        else:
            improvement_areas.append("File returns on or before their due dates")
    if missing:
        improvement_areas.append(
            "File the missing returns: " + ", ".join(tax_type.label for tax_type in missing)
        )
    if signals.documents_required:
        if signals.documents_submitted == signals.documents_required:
            positive_factors.append("All required documents submitted")
        else:
            improvement_areas.append("Submit outstanding supporting documents")
    if signals.payments_expected:
        if signals.payments_completed == signals.payments_expected:
            positive_factors.append("All expected payments completed")
        else:
            improvement_areas.append("Complete outstanding tax payments")
    if outcomes and penalties == 0:
        positive_factors.append("No penalties incurred")
    elif penalties > 0:
        improvement_areas.append("Reduce penalty exposure by filing and paying on time")
    failed = [outcome.tax_type.label for outcome in outcomes if outcome.failure is not None]
    if failed:
        improvement_areas.append("Resolve calculation failures for: " + ", ".join(failed))

    return ComplianceReport(
        score=score,
        grade=band.grade,
        description=band.description,
        components=components,
        issues=tuple(issues),
        positive_factors=tuple(positive_factors),
        improvement_areas=tuple(improvement_areas),
    )


__all__ = ["score_compliance"]
