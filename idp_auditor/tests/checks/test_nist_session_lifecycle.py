import pytest

from idp_auditor.app.checks.nist.authenticator_lifecycle import (
    AuthenticatorLifecycleCheck,
    expiration_indicators,
)
from idp_auditor.app.checks.nist.session_management import (
    SessionManagementCheck,
    session_timeout_details,
)
from idp_auditor.app.classification.assurance import AssuranceLevel
from idp_auditor.app.discovery.models import ProviderMetadata
from idp_auditor.app.schemas.results import CheckStatus, Severity
from idp_auditor.tests.helpers import (
    make_context,
    oauth_document,
    oidc_document,
)

pytestmark = pytest.mark.anyio


AAL1_ONLY = ["urn:nist:800-63-3:aal:1"]
AAL2_ONLY = ["urn:nist:800-63-3:aal:2"]


# ----------------------------------------------------------------------
# Session timeout details
# ----------------------------------------------------------------------


def test_session_timeout_uses_first_advertised_field():
    metadata = ProviderMetadata(
        {"id_token_ttl": 3600, "session_lifetime": 999999}
    )

    details = session_timeout_details(metadata, AssuranceLevel.AAL2)

    assert details["source"] == "id_token_ttl"
    assert details["required_max_seconds"] == 12 * 3600
    assert details["meets_requirements"] is True


def test_session_timeout_non_numeric_is_not_compared():
    metadata = ProviderMetadata({"session_lifetime": "8h"})

    details = session_timeout_details(metadata, AssuranceLevel.AAL3)

    assert details["has_timeout_info"] is True
    assert "meets_requirements" not in details


# ----------------------------------------------------------------------
# Session management
# ----------------------------------------------------------------------


async def test_session_management_targets_highest_advertised_level():
    result = await SessionManagementCheck().evaluate(
        make_context(oidc_document())
    )

    assert result.status is CheckStatus.WARNING
    assert result.metadata["target_aal"] == "AAL3"
    assert result.metadata["session_binding"] == [
        "PKCE (authorization code binding)"
    ]
    assert any(
        "15 minutes" in r for r in result.metadata["recommendations"]
    )


async def test_session_management_passes_for_aal1_with_lifetime():
    document = oidc_document(
        acr_values_supported=AAL1_ONLY,
        session_lifetime=3600,
    )

    result = await SessionManagementCheck().evaluate(make_context(document))

    assert result.status is CheckStatus.PASS
    assert result.metadata["target_aal"] == "AAL1"
    assert result.metadata["critical_issues"] == []
    assert result.metadata["recommendations"] == []


async def test_session_management_long_lifetime_fails():
    document = oidc_document(
        acr_values_supported=AAL2_ONLY,
        session_lifetime=24 * 3600,
    )

    result = await SessionManagementCheck().evaluate(make_context(document))

    assert result.status is CheckStatus.FAIL
    assert result.severity is Severity.HIGH
    assert result.metadata["session_timeout_check"]["meets_requirements"] is False


async def test_session_management_without_logout_fails():
    document = oidc_document(
        acr_values_supported=AAL1_ONLY,
        end_session_endpoint=None,
    )

    result = await SessionManagementCheck().evaluate(make_context(document))

    assert result.status is CheckStatus.FAIL
    assert result.metadata["session_termination"] == []


async def test_session_management_accepts_logout_flags():
    document = oidc_document(
        acr_values_supported=AAL1_ONLY,
        end_session_endpoint=None,
        backchannel_logout_supported=True,
        session_lifetime=3600,
    )

    result = await SessionManagementCheck().evaluate(make_context(document))

    assert result.status is CheckStatus.PASS
    assert result.metadata["session_termination"] == [
        "back-channel logout supported"
    ]


async def test_session_management_idle_and_absolute_timeouts():
    document = oidc_document(
        acr_values_supported=AAL2_ONLY,
        session_max_lifetime=8 * 3600,
        idle_timeout=1800,
    )

    result = await SessionManagementCheck().evaluate(make_context(document))

    assert result.status is CheckStatus.PASS
    assert result.metadata["timeout_types"][
        "distinguishes_idle_from_absolute"
    ] is True


async def test_session_management_oauth_only_defaults_to_aal1():
    result = await SessionManagementCheck().evaluate(
        make_context(oauth_document())
    )

    assert result.metadata["target_aal"] == "AAL1"
    # no logout mechanism in a bare OAuth document
    assert result.status is CheckStatus.FAIL


# ----------------------------------------------------------------------
# Authenticator lifecycle
# ----------------------------------------------------------------------


def test_expiration_reauthentication_requires_aal2_or_higher():
    metadata = ProviderMetadata({"claims_supported": ["auth_time"]})

    assert expiration_indicators(metadata, AssuranceLevel.AAL1) == []
    assert expiration_indicators(metadata, AssuranceLevel.AAL2) == [
        "Periodic reauthentication via auth_time"
    ]


async def test_lifecycle_recommends_missing_registration_and_binding():
    result = await AuthenticatorLifecycleCheck().evaluate(
        make_context(oidc_document())
    )

    assert result.status is CheckStatus.WARNING
    assert result.metadata["registration"] == []
    assert result.metadata["binding"] == []
    assert len(result.metadata["recommendations"]) == 2
    assert result.metadata["critical_issues"] == []


async def test_lifecycle_without_revocation_fails():
    document = oidc_document(
        revocation_endpoint=None,
        end_session_endpoint=None,
    )

    result = await AuthenticatorLifecycleCheck().evaluate(make_context(document))

    assert result.status is CheckStatus.FAIL
    assert result.severity is Severity.HIGH
    assert result.metadata["revocation"] == []
    assert len(result.metadata["critical_issues"]) == 1


async def test_lifecycle_passes_with_full_evidence():
    document = oidc_document(
        acr_values_supported=[
            "urn:nist:800-63-3:aal:2",
            "urn:nist:800-63-3:aal:3",
            "webauthn",
        ],
        registration_endpoint="https://idp.example.com/register",
        dpop_signing_alg_values_supported=["ES256"],
    )

    result = await AuthenticatorLifecycleCheck().evaluate(make_context(document))

    assert result.status is CheckStatus.PASS
    assert result.metadata["registration"][0] == "WebAuthn/FIDO2 registration"
    assert result.metadata["binding"] == ["DPoP (key binding)"]
    assert (
        "WebAuthn/FIDO2 (multi-credential support)"
        in result.metadata["multiple_authenticators"]
    )
