"""
Result aggregation.

Turns the complete, ordered list of check results into summary counts,
a severity-weighted risk score, a compliance percentage and per-category
scorecards.

IMPORTANT:
- Aggregation is pure: same results in, same numbers out.
- Skipped and errored results never count toward compliance.
- Only fail and warning results carry severity into the risk score.
- Rounding is half-up, matching published scores.
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, List, Sequence

from idp_auditor.app.schemas.report import (
    AuditReport,
    ReportMetadata,
    Scorecard,
    Summary,
)
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    CheckStatus,
    Severity,
)


# ---------------------------------------------------------------------------
# Scoring constants
# ---------------------------------------------------------------------------

RISK_WEIGHTS: Dict[Severity, int] = {
    Severity.CRITICAL: 10,
    Severity.HIGH: 5,
    Severity.MEDIUM: 3,
    Severity.LOW: 1,
    Severity.INFO: 0,
}

RISK_MULTIPLIER = 2
RISK_CEILING = 100

CATEGORY_STANDARDS: Dict[CheckCategory, str] = {
    CheckCategory.OAUTH: "OAuth 2.0 / RFC 6749",
    CheckCategory.NIST: "NIST 800-63B",
    CheckCategory.OWASP: "OWASP Top 10",
    CheckCategory.CUSTOM: "Custom Checks",
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def percentage(part: int, whole: int) -> int:
    if whole <= 0:
        return 0
    return round_half_up(part / whole * 100)


# ---------------------------------------------------------------------------
# Aggregation
# ---------------------------------------------------------------------------


def risk_score(by_severity: Dict[Severity, int]) -> int:
    """
    min(100, round(2 * (critical*10 + high*5 + medium*3 + low*1)))
    """
    weighted = sum(
        RISK_WEIGHTS[severity] * count
        for severity, count in by_severity.items()
    )
    return min(RISK_CEILING, round_half_up(RISK_MULTIPLIER * weighted))


def summarize(results: Sequence[CheckResult]) -> Summary:
    counts = {status: 0 for status in CheckStatus}
    by_severity = {severity: 0 for severity in Severity}
    by_category = {category: 0 for category in CheckCategory}

    for result in results:
        counts[result.status] += 1
        by_category[result.category] += 1
        if result.is_finding and result.severity is not None:
            by_severity[result.severity] += 1

    total = len(results)
    evaluated = total - counts[CheckStatus.SKIPPED] - counts[CheckStatus.ERROR]

    return Summary(
        total_checks=total,
        passed=counts[CheckStatus.PASS],
        failed=counts[CheckStatus.FAIL],
        warnings=counts[CheckStatus.WARNING],
        skipped=counts[CheckStatus.SKIPPED],
        errors=counts[CheckStatus.ERROR],
        by_severity=by_severity,
        by_category=by_category,
        risk_score=risk_score(by_severity),
        compliance_percentage=percentage(counts[CheckStatus.PASS], evaluated),
    )


def build_scorecards(results: Sequence[CheckResult]) -> List[Scorecard]:
    """
    One scorecard per category present, in first-appearance order.
    """
    grouped: Dict[CheckCategory, List[CheckResult]] = {}
    for result in results:
        grouped.setdefault(result.category, []).append(result)

    scorecards = []
    for category, members in grouped.items():
        passed = sum(1 for r in members if r.status is CheckStatus.PASS)
        failed = sum(1 for r in members if r.status is CheckStatus.FAIL)
        scorecards.append(
            Scorecard(
                standard=CATEGORY_STANDARDS[category],
                category=category,
                total_checks=len(members),
                passed=passed,
                failed=failed,
                compliance_percentage=percentage(passed, len(members)),
                compliant=failed == 0,
            )
        )
    return scorecards


def collect_findings(results: Sequence[CheckResult]) -> List[CheckResult]:
    return [r for r in results if r.is_finding]


def build_report(
    *,
    target: str,
    results: Sequence[CheckResult],
    start_time: datetime,
    end_time: datetime,
    duration_ms: float,
) -> AuditReport:
    """
    Assemble the immutable AuditReport for a completed run.
    """
    results = list(results)
    return AuditReport(
        metadata=ReportMetadata(
            target=target,
            start_time=start_time,
            end_time=end_time,
            duration_ms=duration_ms,
        ),
        summary=summarize(results),
        results=results,
        findings=collect_findings(results),
        scorecards=build_scorecards(results),
    )
