from typing import Any, Dict, List, Optional

import anyio

from idp_auditor.app.checks.base import AuditContext, BaseCheck
from idp_auditor.app.discovery.models import (
    DiscoveryAttempt,
    DiscoveryFailure,
    DiscoverySuccess,
    ProviderMetadata,
)
from idp_auditor.app.events.models import AuditEvent, AuditEventType
from idp_auditor.app.schemas.results import (
    CheckCategory,
    CheckResult,
    CheckStatus,
    Severity,
)


ISSUER = "https://idp.example.com"


def oidc_document(**overrides: Any) -> Dict[str, Any]:
    """
    A well-formed OpenID provider document advertising all three AALs.
    """
    document = {
        "issuer": ISSUER,
        "authorization_endpoint": f"{ISSUER}/authorize",
        "token_endpoint": f"{ISSUER}/token",
        "userinfo_endpoint": f"{ISSUER}/userinfo",
        "end_session_endpoint": f"{ISSUER}/logout",
        "revocation_endpoint": f"{ISSUER}/revoke",
        "response_types_supported": ["code", "id_token", "code id_token"],
        "code_challenge_methods_supported": ["S256"],
        "token_endpoint_auth_methods_supported": [
            "client_secret_basic",
            "private_key_jwt",
        ],
        "acr_values_supported": [
            "urn:nist:800-63-3:aal:1",
            "urn:nist:800-63-3:aal:2",
            "urn:nist:800-63-3:aal:3",
        ],
        "claims_supported": ["sub", "iss", "acr", "amr", "auth_time"],
        "prompt_values_supported": ["none", "login", "consent"],
    }
    document.update(overrides)
    return {k: v for k, v in document.items() if v is not None}


def oauth_document(**overrides: Any) -> Dict[str, Any]:
    """
    A plain OAuth 2.0 authorization server document (no id_token).
    """
    document = {
        "issuer": ISSUER,
        "authorization_endpoint": f"{ISSUER}/authorize",
        "token_endpoint": f"{ISSUER}/token",
        "response_types_supported": ["code"],
        "code_challenge_methods_supported": ["S256", "plain"],
    }
    document.update(overrides)
    return {k: v for k, v in document.items() if v is not None}


def not_found_attempts(issuer: str = ISSUER) -> tuple:
    return (
        DiscoveryAttempt(
            url=f"{issuer}/.well-known/oauth-authorization-server",
            status=404,
            success=False,
        ),
        DiscoveryAttempt(
            url=f"{issuer}/.well-known/openid-configuration",
            status=404,
            success=False,
        ),
    )


class FakeMetadataSource:
    """
    MetadataSource returning a fixed outcome and counting calls.
    """

    def __init__(
        self,
        document: Optional[Dict[str, Any]] = None,
        failure: Optional[DiscoveryFailure] = None,
    ):
        self.document = document
        self.failure = failure
        self.calls: List[str] = []

    async def discover(self, target: str):
        self.calls.append(target)
        if self.document is None:
            return self.failure or DiscoveryFailure(
                attempts=not_found_attempts(target)
            )
        return DiscoverySuccess(
            document=ProviderMetadata(self.document),
            attempts=(
                DiscoveryAttempt(
                    url=f"{target}/.well-known/openid-configuration",
                    status=200,
                    success=True,
                ),
            ),
        )


def make_context(document: Optional[Dict[str, Any]] = None) -> AuditContext:
    return AuditContext(
        target=ISSUER,
        metadata_source=FakeMetadataSource(document),
    )


def make_result(
    status: CheckStatus,
    severity: Optional[Severity] = None,
    category: CheckCategory = CheckCategory.OAUTH,
    check_id: str = "check",
) -> CheckResult:
    return CheckResult(
        id=check_id,
        name=check_id,
        category=category,
        status=status,
        severity=severity,
    )


class StaticCheck(BaseCheck):
    """
    Check returning a preset status without touching discovery.
    """

    description = "Static test check"
    default_severity = Severity.MEDIUM

    def __init__(
        self,
        check_id: str,
        status: CheckStatus = CheckStatus.PASS,
        category: CheckCategory = CheckCategory.OAUTH,
        severity: Optional[Severity] = None,
    ):
        self.id = check_id
        self.name = f"Static {check_id}"
        self.category = category
        self.status = status
        self.severity = severity
        self.calls = 0

    async def evaluate(self, context: AuditContext) -> CheckResult:
        self.calls += 1
        if self.status is CheckStatus.FAIL:
            return self.failed("static failure", severity=self.severity)
        if self.status is CheckStatus.WARNING:
            return self.warned("static warning")
        if self.status is CheckStatus.SKIPPED:
            return self.skipped("static skip")
        return self.passed("static pass")


class RaisingCheck(StaticCheck):
    """
    Check whose evaluation always raises.
    """

    async def evaluate(self, context: AuditContext) -> CheckResult:
        self.calls += 1
        raise RuntimeError(f"boom from {self.id}")


class SlowCheck(StaticCheck):
    """
    Check that sleeps before returning its preset status, or raising.
    """

    def __init__(
        self,
        check_id: str,
        status: CheckStatus = CheckStatus.PASS,
        *,
        delay: float = 0.02,
        raises: bool = False,
    ):
        super().__init__(check_id, status)
        self.delay = delay
        self.raises = raises

    async def evaluate(self, context: AuditContext) -> CheckResult:
        await anyio.sleep(self.delay)
        if self.raises:
            raise RuntimeError(f"slow failure from {self.id}")
        return await super().evaluate(context)


class ListEmitter:
    def __init__(self):
        self.events: List[AuditEvent] = []

    async def emit(self, event: AuditEvent) -> None:
        self.events.append(event)


class FailingEmitter(ListEmitter):
    """
    Records events, but raises on the given event types.
    """

    def __init__(self, *fail_on: AuditEventType):
        super().__init__()
        self.fail_on = set(fail_on)

    async def emit(self, event: AuditEvent) -> None:
        if event.event_type in self.fail_on:
            raise RuntimeError("event sink down")
        await super().emit(event)
