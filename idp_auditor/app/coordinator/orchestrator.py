"""
Audit orchestrator.

IMPORTANT:
The orchestrator is a DUMB AUTHORITY.

It MUST NOT:
- inspect the capability document
- interpret check results
- reorder checks by severity or category

Its sole responsibilities are:
- holding the ordered check registry
- applying include / exclude / category filters
- running each check exactly once with fault isolation and timing
- handing the complete result list to the aggregator
"""

from __future__ import annotations

import logging
import time
import traceback
from datetime import datetime, timezone
from typing import Iterable, List, Optional
from uuid import uuid4

from idp_auditor.app.aggregation.aggregator import build_report
from idp_auditor.app.checks.base import AuditContext, ComplianceCheck
from idp_auditor.app.checks.catalogue import build_check_catalogue
from idp_auditor.app.config import AuditorConfig
from idp_auditor.app.discovery.http_source import HttpMetadataSource
from idp_auditor.app.discovery.source import MetadataSource
from idp_auditor.app.schemas.report import AuditReport
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    CheckStatus,
    Severity,
)

# Events (observational only)
from idp_auditor.app.events import (
    AuditEvent,
    AuditEventType,
    AuditEventEmitter,
    NullEventEmitter,
)


logger = logging.getLogger(__name__)


class CheckRegistrationError(RuntimeError):
    """Raised when a check id is registered twice."""


class AuditOrchestrator:
    """
    Runs registered compliance checks against one target.

    Execution order equals post-filter registration order. Checks run
    sequentially; each is awaited to completion before the next starts.
    """

    def __init__(
        self,
        config: AuditorConfig,
        metadata_source: MetadataSource,
        *,
        target: Optional[str] = None,
        check_logger: Optional[logging.Logger] = None,
        emitter: Optional[AuditEventEmitter] = None,
    ) -> None:
        """
        Direct constructor.

        Intended for tests and explicit wiring. No checks are registered
        implicitly.
        """
        self._config = config
        self._metadata_source = metadata_source
        self._target = target if target is not None else config.TARGET
        self._check_logger = check_logger
        self._emitter = emitter or NullEventEmitter()
        self._checks: List[ComplianceCheck] = []

    # ------------------------------------------------------------------
    # Integration constructor (composition root)
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: AuditorConfig,
        *,
        target: Optional[str] = None,
        emitter: Optional[AuditEventEmitter] = None,
    ) -> "AuditOrchestrator":
        """
        Construct a fully wired orchestrator: HTTP discovery and the
        default check catalogue.
        """
        orchestrator = cls(
            config,
            HttpMetadataSource.from_config(config),
            target=target,
            check_logger=logging.getLogger("idp_auditor.checks"),
            emitter=emitter,
        )
        orchestrator.register_many(build_check_catalogue(config))
        return orchestrator

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register(self, check: ComplianceCheck) -> None:
        if any(existing.id == check.id for existing in self._checks):
            raise CheckRegistrationError(
                f"Check '{check.id}' is already registered"
            )
        self._checks.append(check)

    def register_many(self, checks: Iterable[ComplianceCheck]) -> None:
        for check in checks:
            self.register(check)

    @property
    def checks(self) -> List[ComplianceCheck]:
        return list(self._checks)

    def filtered_checks(self) -> List[ComplianceCheck]:
        """
        Apply include, then exclude, then category filters.

        Empty filters are no-ops; filters compose by intersection.
        """
        selected = list(self._checks)

        include = set(self._config.INCLUDE_CHECKS)
        if include:
            selected = [c for c in selected if c.id in include]

        exclude = set(self._config.EXCLUDE_CHECKS)
        if exclude:
            selected = [c for c in selected if c.id not in exclude]

        categories = {CheckCategory(c) for c in self._config.CATEGORIES}
        if categories:
            selected = [c for c in selected if c.category in categories]

        return selected

    def is_blocking(self, report: AuditReport) -> bool:
        """
        True if the report holds a finding at or above FAIL_ON.
        """
        return report.has_findings_at_or_above(Severity(self._config.FAIL_ON))

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, *, audit_id: Optional[str] = None) -> AuditReport:
        """
        Execute every filtered check once and return the final report.
        """
        audit_id = audit_id or str(uuid4())
        checks = self.filtered_checks()

        context = AuditContext(
            target=self._target,
            metadata_source=self._metadata_source,
            logger=self._check_logger,
        )

        start_time = datetime.now(timezone.utc)
        run_started = time.perf_counter()

        logger.info(
            "Audit %s started for %s (%d checks)",
            audit_id,
            self._target,
            len(checks),
        )
        await self._emit(
            audit_id,
            AuditEventType.AUDIT_STARTED,
            {"target": self._target, "checks": [c.id for c in checks]},
        )

        results: List[CheckResult] = []
        for check in checks:
            results.append(await self._run_check(audit_id, check, context))

        end_time = datetime.now(timezone.utc)
        duration_ms = (time.perf_counter() - run_started) * 1000

        report = build_report(
            target=self._target,
            results=results,
            start_time=start_time,
            end_time=end_time,
            duration_ms=duration_ms,
        )

        logger.info(
            "Audit %s completed: %d passed, %d failed, %d warnings, "
            "%d skipped, %d errors (risk %d, compliance %d%%)",
            audit_id,
            report.summary.passed,
            report.summary.failed,
            report.summary.warnings,
            report.summary.skipped,
            report.summary.errors,
            report.summary.risk_score,
            report.summary.compliance_percentage,
        )
        await self._emit(
            audit_id,
            AuditEventType.AUDIT_COMPLETED,
            {
                "risk_score": report.summary.risk_score,
                "compliance_percentage": report.summary.compliance_percentage,
                "findings": len(report.findings),
                "blocking": self.is_blocking(report),
            },
        )

        return report

    # ------------------------------------------------------------------
    # Execution envelope
    # ------------------------------------------------------------------

    async def _run_check(
        self,
        audit_id: str,
        check: ComplianceCheck,
        context: AuditContext,
    ) -> CheckResult:
        logger.debug("Running check %s", check.id)
        await self._emit(
            audit_id,
            AuditEventType.CHECK_STARTED,
            {"check_id": check.id},
        )

        started = time.perf_counter()
        try:
            result = await check.evaluate(context)
        except Exception as exc:
            duration_ms = (time.perf_counter() - started) * 1000
            logger.exception("Check %s raised during evaluation", check.id)
            result = self._error_result(check, exc, duration_ms)
            await self._emit(
                audit_id,
                AuditEventType.CHECK_ERRORED,
                {
                    "check_id": check.id,
                    "exception_type": type(exc).__name__,
                },
            )
            return result

        duration_ms = (time.perf_counter() - started) * 1000
        result = result.model_copy(update={"duration_ms": duration_ms})

        logger.debug("Check %s finished: %s", check.id, result.status.value)
        await self._emit(
            audit_id,
            AuditEventType.CHECK_COMPLETED,
            {
                "check_id": check.id,
                "status": result.status.value,
                "severity": result.severity.value if result.severity else None,
            },
        )
        return result

    @staticmethod
    def _error_result(
        check: ComplianceCheck,
        exc: Exception,
        duration_ms: float,
    ) -> CheckResult:
        message = str(exc) or type(exc).__name__
        return CheckResult(
            id=check.id,
            name=check.name,
            category=check.category,
            status=CheckStatus.ERROR,
            description=check.description,
            message=f"Check execution failed: {message}",
            references=list(check.references),
            metadata={
                "error": message,
                "exception_type": type(exc).__name__,
                "stack": traceback.format_exc(),
            },
            duration_ms=duration_ms,
        )

    async def _emit(
        self,
        audit_id: str,
        event_type: AuditEventType,
        details: Optional[dict] = None,
    ) -> None:
        event = AuditEvent(
            audit_id=audit_id,
            event_type=event_type,
            details=details,
        )
        try:
            await self._emitter.emit(event)
        except Exception:
            # Events are observational; a failing sink never aborts a run
            logger.warning(
                "Event emitter failed on %s for audit %s",
                event_type.value,
                audit_id,
                exc_info=True,
            )
