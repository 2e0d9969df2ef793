"""
Compliance check contract and result-building helpers.

A check:
- is identified by immutable class-level fields (id, name, category, ...)
- reads the capability document through the context's MetadataSource
- returns exactly one CheckResult
- MUST NOT mutate the context
- reports non-compliance as a result, never by raising

Exceptions that do escape `evaluate` are converted into ERROR results by
the orchestrator; checks never build ERROR results for their own bugs.
"""

from __future__ import annotations

import logging
from typing import Any, ClassVar, List, Mapping, Optional, Protocol, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from idp_auditor.app.discovery.models import (
    DiscoveryFailure,
    DiscoveryOutcome,
)
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    CheckStatus,
    MetadataBuilder,
    Severity,
)


MetadataLike = Union[Mapping[str, Any], MetadataBuilder]


# ---------------------------------------------------------------------------
# Execution context
# ---------------------------------------------------------------------------


class AuditContext(BaseModel):
    """
    Immutable context shared by every check in a run.
    """

    target: str = Field(..., description="Issuer URL under audit")

    metadata_source: Any = Field(
        ...,
        description="MetadataSource used to fetch the capability document",
    )

    logger: Optional[logging.Logger] = Field(
        None,
        description="Optional logger for per-check diagnostics",
    )

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        arbitrary_types_allowed=True,
    )


# ---------------------------------------------------------------------------
# Check interface
# ---------------------------------------------------------------------------


class ComplianceCheck(Protocol):
    """
    Interface for a single compliance check.
    """

    # ------------------------------------------------------------------
    # Static identity (required)
    # ------------------------------------------------------------------
    id: str                         # e.g. "oauth-pkce"
    name: str                       # Human-readable name
    category: CheckCategory
    default_severity: Severity
    description: str
    references: Tuple[str, ...]

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------
    async def evaluate(self, context: AuditContext) -> CheckResult:
        ...


# ---------------------------------------------------------------------------
# Rule accumulation
# ---------------------------------------------------------------------------


class RuleFindings:
    """
    Collects the outcome of independent rule evaluations.

    Critical issues make the check fail; recommendations alone make it
    a warning.
    """

    def __init__(self) -> None:
        self.critical_issues: List[str] = []
        self.recommendations: List[str] = []

    def critical(self, issue: str) -> None:
        self.critical_issues.append(issue)

    def recommend(self, recommendation: str) -> None:
        self.recommendations.append(recommendation)

    @property
    def empty(self) -> bool:
        return not self.critical_issues and not self.recommendations


def bullet_list(items: List[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


# ---------------------------------------------------------------------------
# Base implementation
# ---------------------------------------------------------------------------


_STATUS_TEXT = {
    200: "OK",
    403: "Forbidden",
    404: "Not Found",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


DISCOVERY_REMEDIATION = (
    "Publish OAuth 2.0 Authorization Server Metadata (RFC 8414) or an "
    "OpenID Connect Discovery document so the provider can be audited.\n"
    "Serve one of:\n"
    "  - /.well-known/oauth-authorization-server (RFC 8414)\n"
    "  - /.well-known/openid-configuration (OpenID Connect Discovery)\n"
    "References:\n"
    "- RFC 8414: https://datatracker.ietf.org/doc/html/rfc8414\n"
    "- OpenID Connect Discovery: "
    "https://openid.net/specs/openid-connect-discovery-1_0.html"
)


class BaseCheck:
    """
    Shared result construction for concrete checks.

    Subclasses set the identity class attributes and implement
    `evaluate`.
    """

    id: ClassVar[str]
    name: ClassVar[str]
    category: ClassVar[CheckCategory]
    default_severity: ClassVar[Severity]
    description: ClassVar[str]
    references: ClassVar[Tuple[str, ...]] = ()

    # Used in discovery warnings ("Could not verify <subject>.")
    subject: ClassVar[str] = "compliance"

    async def evaluate(self, context: AuditContext) -> CheckResult:
        raise NotImplementedError

    # ------------------------------------------------------------------
    # Result helpers
    # ------------------------------------------------------------------

    def _result(
        self,
        status: CheckStatus,
        *,
        severity: Optional[Severity] = None,
        message: Optional[str] = None,
        remediation: Optional[str] = None,
        metadata: Optional[MetadataLike] = None,
    ) -> CheckResult:
        if metadata is None:
            frozen = MetadataBuilder().build()
        elif isinstance(metadata, MetadataBuilder):
            frozen = metadata.build()
        else:
            frozen = MetadataBuilder(metadata).build()

        return CheckResult(
            id=self.id,
            name=self.name,
            category=self.category,
            status=status,
            severity=severity,
            description=self.description,
            message=message,
            remediation=remediation,
            references=list(self.references),
            metadata=frozen,
        )

    def passed(
        self,
        message: str,
        metadata: Optional[MetadataLike] = None,
    ) -> CheckResult:
        return self._result(
            CheckStatus.PASS,
            message=message,
            metadata=metadata,
        )

    def failed(
        self,
        message: str,
        *,
        severity: Optional[Severity] = None,
        remediation: Optional[str] = None,
        metadata: Optional[MetadataLike] = None,
    ) -> CheckResult:
        return self._result(
            CheckStatus.FAIL,
            severity=severity or self.default_severity,
            message=message,
            remediation=remediation,
            metadata=metadata,
        )

    def warned(
        self,
        message: str,
        *,
        remediation: Optional[str] = None,
        metadata: Optional[MetadataLike] = None,
    ) -> CheckResult:
        return self._result(
            CheckStatus.WARNING,
            severity=Severity.LOW,
            message=message,
            remediation=remediation,
            metadata=metadata,
        )

    def skipped(
        self,
        reason: str,
        metadata: Optional[MetadataLike] = None,
    ) -> CheckResult:
        return self._result(
            CheckStatus.SKIPPED,
            message=reason,
            metadata=metadata,
        )

    def conclude(
        self,
        findings: RuleFindings,
        *,
        failure_message: str,
        warning_message: str,
        pass_message: str,
        metadata: MetadataBuilder,
        severity: Optional[Severity] = None,
    ) -> CheckResult:
        """
        Select fail / warning / pass from accumulated rule findings.
        """
        metadata.set("critical_issues", list(findings.critical_issues))
        metadata.set("recommendations", list(findings.recommendations))

        if findings.critical_issues:
            remediation = (
                "Critical issues:\n"
                + bullet_list(findings.critical_issues)
            )
            if findings.recommendations:
                remediation += (
                    "\n\nRecommendations:\n"
                    + bullet_list(findings.recommendations)
                )
            return self.failed(
                failure_message,
                severity=severity,
                remediation=remediation,
                metadata=metadata,
            )

        if findings.recommendations:
            return self.warned(
                warning_message,
                remediation=(
                    "Recommendations:\n"
                    + bullet_list(findings.recommendations)
                ),
                metadata=metadata,
            )

        return self.passed(pass_message, metadata=metadata)

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def discovery_warning(self, failure: DiscoveryFailure) -> CheckResult:
        """
        Warning returned when no capability document could be fetched.
        """
        lines = [
            f"  - {a.url} ({a.status} {_STATUS_TEXT.get(a.status, f'HTTP {a.status}')})"
            for a in failure.attempts
        ]
        message = (
            "Unable to discover OAuth metadata. "
            f"Could not verify {self.subject}."
        )
        if lines:
            message += "\nAttempted endpoints:\n" + "\n".join(lines)
        if failure.error:
            message += f"\nDiscovery aborted: {failure.error}"

        metadata = MetadataBuilder().set("attempts", failure.attempts_payload())
        if failure.error:
            metadata.set("error", failure.error)

        return self.warned(
            message,
            remediation=DISCOVERY_REMEDIATION,
            metadata=metadata,
        )

    async def discover(self, context: AuditContext) -> DiscoveryOutcome:
        self.log(context, "Discovering provider metadata")
        return await context.metadata_source.discover(context.target)

    def log(self, context: AuditContext, message: str, *args: Any) -> None:
        if context.logger is not None:
            context.logger.debug("[%s] " + message, self.id, *args)
