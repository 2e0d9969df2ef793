"""
Audit report schema.

The AuditReport is the single authoritative output of an audit run. It is
assembled exactly once by the aggregator from the complete list of check
results and is immutable thereafter.
"""

from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, model_validator

from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    Severity,
)


REPORT_VERSION = "0.1.0"


class Summary(BaseModel):
    """
    Aggregate counts and scores across all results of a run.
    """

    total_checks: int = Field(..., ge=0)
    passed: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    warnings: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    errors: int = Field(..., ge=0)

    by_severity: Dict[Severity, int] = Field(
        ...,
        description="Findings (fail or warning) per severity",
    )
    by_category: Dict[CheckCategory, int] = Field(
        ...,
        description="Results per category, regardless of status",
    )

    risk_score: int = Field(..., ge=0, le=100)
    compliance_percentage: int = Field(..., ge=0, le=100)

    model_config = ConfigDict(frozen=True, extra="forbid")


class Scorecard(BaseModel):
    """
    Per-category compliance view.
    """

    standard: str = Field(..., description="Human-readable standard name")
    category: CheckCategory
    total_checks: int = Field(..., ge=0)
    passed: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    compliance_percentage: int = Field(..., ge=0, le=100)
    compliant: bool

    @model_validator(mode="after")
    def compliant_iff_no_failures(self) -> "Scorecard":
        if self.compliant != (self.failed == 0):
            raise ValueError("compliant must be true exactly when failed == 0")
        return self

    model_config = ConfigDict(frozen=True, extra="forbid")


class ReportMetadata(BaseModel):
    target: str
    start_time: datetime
    end_time: datetime
    duration_ms: float = Field(..., ge=0.0)
    version: str = REPORT_VERSION

    model_config = ConfigDict(frozen=True, extra="forbid")


class AuditReport(BaseModel):
    """
    Final, immutable result of an audit run.

    `findings` contains the fail and warning results in the order the
    checks ran.
    """

    metadata: ReportMetadata
    summary: Summary
    results: List[CheckResult]
    findings: List[CheckResult]
    scorecards: List[Scorecard]

    def has_findings_at_or_above(
        self,
        min_severity: Severity = Severity.CRITICAL,
    ) -> bool:
        """
        Return True if any finding carries a severity >= min_severity.
        """
        threshold = Severity(min_severity).rank
        return any(
            f.severity is not None and f.severity.rank >= threshold
            for f in self.findings
        )

    model_config = ConfigDict(frozen=True, extra="forbid")
