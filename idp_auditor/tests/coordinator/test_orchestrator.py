import pytest

from idp_auditor.app.config import AuditorConfig
from idp_auditor.app.coordinator.orchestrator import (
    AuditOrchestrator,
    CheckRegistrationError,
)
from idp_auditor.app.events import AuditEventType, MemoryQueueEventEmitter
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckStatus,
    Severity,
)
from idp_auditor.tests.helpers import (
    ISSUER,
    FailingEmitter,
    FakeMetadataSource,
    ListEmitter,
    RaisingCheck,
    SlowCheck,
    StaticCheck,
    oidc_document,
)

pytestmark = pytest.mark.anyio


def _orchestrator(config=None, **kwargs):
    return AuditOrchestrator(
        config or AuditorConfig(),
        FakeMetadataSource(oidc_document()),
        target=ISSUER,
        **kwargs,
    )


def _checks():
    return [
        StaticCheck("oauth-a"),
        StaticCheck("oauth-b", CheckStatus.FAIL, severity=Severity.HIGH),
        StaticCheck("nist-a", category=CheckCategory.NIST),
        StaticCheck(
            "nist-b",
            CheckStatus.WARNING,
            category=CheckCategory.NIST,
        ),
    ]


async def test_results_follow_registration_order():
    orchestrator = _orchestrator()
    orchestrator.register_many(_checks())

    report = await orchestrator.run()

    assert [r.id for r in report.results] == [
        "oauth-a",
        "oauth-b",
        "nist-a",
        "nist-b",
    ]
    assert report.summary.total_checks == 4
    assert report.metadata.target == ISSUER


async def test_raising_check_is_isolated():
    checks = [
        StaticCheck("first"),
        RaisingCheck("middle"),
        StaticCheck("last"),
    ]
    orchestrator = _orchestrator()
    orchestrator.register_many(checks)

    report = await orchestrator.run()

    assert len(report.results) == 3
    errored = report.results[1]
    assert errored.status is CheckStatus.ERROR
    assert errored.severity is None
    assert errored.metadata["error"] == "boom from middle"
    assert errored.metadata["exception_type"] == "RuntimeError"
    assert "RuntimeError" in errored.metadata["stack"]
    assert report.results[2].status is CheckStatus.PASS
    assert all(c.calls == 1 for c in checks)
    assert report.summary.errors == 1


async def test_every_outcome_records_wall_clock_duration():
    orchestrator = _orchestrator()
    orchestrator.register_many(
        [
            SlowCheck("slow-pass"),
            SlowCheck("slow-skip", CheckStatus.SKIPPED),
            SlowCheck("slow-error", raises=True),
        ]
    )

    report = await orchestrator.run()

    assert [r.status for r in report.results] == [
        CheckStatus.PASS,
        CheckStatus.SKIPPED,
        CheckStatus.ERROR,
    ]
    assert all(r.duration_ms >= 10 for r in report.results)
    assert report.metadata.duration_ms >= 30
    assert report.metadata.end_time >= report.metadata.start_time


async def test_failing_emitter_never_aborts_the_run():
    emitter = FailingEmitter(
        AuditEventType.CHECK_COMPLETED,
        AuditEventType.CHECK_ERRORED,
        AuditEventType.AUDIT_COMPLETED,
    )
    orchestrator = _orchestrator(emitter=emitter)
    orchestrator.register_many(
        [StaticCheck("a"), RaisingCheck("b"), StaticCheck("c")]
    )

    report = await orchestrator.run()

    assert [r.id for r in report.results] == ["a", "b", "c"]
    assert [r.status for r in report.results] == [
        CheckStatus.PASS,
        CheckStatus.ERROR,
        CheckStatus.PASS,
    ]
    assert [e.event_type for e in emitter.events] == [
        AuditEventType.AUDIT_STARTED,
        AuditEventType.CHECK_STARTED,
        AuditEventType.CHECK_STARTED,
        AuditEventType.CHECK_STARTED,
    ]


@pytest.mark.parametrize(
    "fail_on, expected",
    [
        ("critical", False),
        ("high", True),
        ("low", True),
    ],
)
async def test_blocking_follows_fail_on_threshold(fail_on, expected):
    emitter = ListEmitter()
    orchestrator = _orchestrator(
        AuditorConfig(FAIL_ON=fail_on),
        emitter=emitter,
    )
    orchestrator.register_many(_checks())

    report = await orchestrator.run()

    assert orchestrator.is_blocking(report) is expected
    assert emitter.events[-1].details["blocking"] is expected


async def test_include_filter():
    config = AuditorConfig(INCLUDE_CHECKS=["oauth-b", "nist-a"])
    orchestrator = _orchestrator(config)
    orchestrator.register_many(_checks())

    report = await orchestrator.run()

    assert [r.id for r in report.results] == ["oauth-b", "nist-a"]


async def test_exclude_filter_applies_after_include():
    config = AuditorConfig(
        INCLUDE_CHECKS=["oauth-a", "oauth-b"],
        EXCLUDE_CHECKS=["oauth-a"],
    )
    orchestrator = _orchestrator(config)
    orchestrator.register_many(_checks())

    assert [c.id for c in orchestrator.filtered_checks()] == ["oauth-b"]


async def test_category_filter_intersects_with_id_filters():
    config = AuditorConfig(
        EXCLUDE_CHECKS=["nist-b"],
        CATEGORIES=["nist"],
    )
    orchestrator = _orchestrator(config)
    orchestrator.register_many(_checks())

    report = await orchestrator.run()

    assert [r.id for r in report.results] == ["nist-a"]
    assert [c.category for c in report.scorecards] == [CheckCategory.NIST]


async def test_filtered_out_checks_are_never_evaluated():
    checks = _checks()
    config = AuditorConfig(CATEGORIES=["oauth"])
    orchestrator = _orchestrator(config)
    orchestrator.register_many(checks)

    await orchestrator.run()

    assert [c.calls for c in checks] == [1, 1, 0, 0]


async def test_duplicate_registration_is_rejected():
    orchestrator = _orchestrator()
    orchestrator.register(StaticCheck("dup"))

    with pytest.raises(CheckRegistrationError):
        orchestrator.register(StaticCheck("dup"))


async def test_report_summary_reflects_results():
    orchestrator = _orchestrator()
    orchestrator.register_many(_checks())

    report = await orchestrator.run()

    assert report.summary.passed == 2
    assert report.summary.failed == 1
    assert report.summary.warnings == 1
    # high fail (5) + low warning (1) -> 2 * 6
    assert report.summary.risk_score == 12
    assert [f.id for f in report.findings] == ["oauth-b", "nist-b"]


async def test_lifecycle_events_are_emitted_in_order():
    emitter = ListEmitter()
    orchestrator = _orchestrator(emitter=emitter)
    orchestrator.register_many([StaticCheck("a"), RaisingCheck("b")])

    await orchestrator.run(audit_id="audit-001")

    assert [e.event_type for e in emitter.events] == [
        AuditEventType.AUDIT_STARTED,
        AuditEventType.CHECK_STARTED,
        AuditEventType.CHECK_COMPLETED,
        AuditEventType.CHECK_STARTED,
        AuditEventType.CHECK_ERRORED,
        AuditEventType.AUDIT_COMPLETED,
    ]
    assert all(e.audit_id == "audit-001" for e in emitter.events)
    assert emitter.events[2].details["status"] == "pass"


async def test_memory_emitter_closes_on_completion():
    emitter = MemoryQueueEventEmitter()
    orchestrator = _orchestrator(emitter=emitter)
    orchestrator.register(StaticCheck("a"))

    await orchestrator.run()
    events = await emitter.drain()

    assert emitter.closed is True
    assert events[-1].event_type is AuditEventType.AUDIT_COMPLETED


async def test_from_config_registers_default_catalogue():
    config = AuditorConfig(
        TARGET=ISSUER,
        NIST_ASSURANCE_LEVEL="AAL2",
        ENABLE_AUTHENTICATOR_LIFECYCLE=True,
    )

    orchestrator = AuditOrchestrator.from_config(config)

    assert [c.id for c in orchestrator.checks] == [
        "oauth-pkce",
        "oauth-state-parameter",
        "oauth-redirect-uri",
        "oauth-token-storage",
        "nist-aal-detection",
        "nist-aal1-compliance",
        "nist-aal2-compliance",
        "nist-session-management",
        "nist-authenticator-lifecycle",
    ]
