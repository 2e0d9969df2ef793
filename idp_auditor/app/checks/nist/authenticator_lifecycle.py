"""
NIST SP 800-63B authenticator lifecycle check (Section 6).

Looks for metadata evidence of registration, binding, expiration,
revocation, multiple authenticators per subscriber and status
verification. Only missing revocation is a critical issue; metadata
rarely proves the rest, so their absence is a recommendation.
"""

from __future__ import annotations

from typing import List

from idp_auditor.app.checks.base import AuditContext, RuleFindings
from idp_auditor.app.checks.nist.common import NIST_REFERENCE, NistCheck
from idp_auditor.app.classification.assurance import (
    AssuranceLevel,
    find_indicators,
)
from idp_auditor.app.discovery.models import DiscoveryFailure, ProviderMetadata
from idp_auditor.app.schemas.results import (
    CheckResult,
    MetadataBuilder,
    Severity,
)


ACCOUNT_MANAGEMENT_FIELDS = (
    "account_management_uri",
    "user_management_endpoint",
    "credential_management_endpoint",
)

EXPIRATION_FIELDS = (
    "credential_max_lifetime",
    "authenticator_lifetime",
    "credential_validity_period",
)

CRYPTOGRAPHIC_AMR_VALUES = frozenset({"hwk", "swk", "fpt", "sc"})


# ---------------------------------------------------------------------------
# Evidence collectors
# ---------------------------------------------------------------------------


def registration_mechanisms(metadata: ProviderMetadata) -> List[str]:
    found = []
    acr = metadata.acr_values_supported
    if find_indicators(acr, ("webauthn", "fido", "u2f")):
        found.append("WebAuthn/FIDO2 registration")
    device = metadata.string("device_authorization_endpoint")
    if device:
        found.append(f"Device authorization ({device})")
    if metadata.registration_endpoint:
        found.append(
            f"Dynamic client registration ({metadata.registration_endpoint})"
        )
    for field in ACCOUNT_MANAGEMENT_FIELDS:
        if metadata.has(field):
            found.append(f"Account management ({metadata.get(field)})")
    return found


def binding_methods(metadata: ProviderMetadata) -> List[str]:
    found = []
    if metadata.has("tls_client_certificate_bound_access_tokens") or metadata.has(
        "mtls_endpoint_aliases"
    ):
        found.append("Certificate binding (mTLS)")
    if metadata.has("dpop_signing_alg_values_supported") or metadata.has(
        "dpop_algs_supported"
    ):
        found.append("DPoP (key binding)")
    if CRYPTOGRAPHIC_AMR_VALUES.intersection(metadata.amr_values_supported):
        found.append("Cryptographic authenticator binding (AMR)")
    if "cnf" in metadata.claims_supported:
        found.append("Confirmation claim (cnf)")
    return found


def expiration_indicators(
    metadata: ProviderMetadata,
    level: AssuranceLevel,
) -> List[str]:
    found = []
    for field in EXPIRATION_FIELDS:
        if metadata.get(field) is not None:
            found.append(f"{field}: {metadata.get(field)}")
    if metadata.has("mtls_endpoint_aliases"):
        found.append("Certificate expiration (mTLS)")
    if level is not AssuranceLevel.AAL1 and "auth_time" in metadata.claims_supported:
        found.append("Periodic reauthentication via auth_time")
    return found


def revocation_mechanisms(metadata: ProviderMetadata) -> List[str]:
    found = []
    if metadata.revocation_endpoint:
        found.append(f"Token revocation (RFC 7009): {metadata.revocation_endpoint}")
    if metadata.end_session_endpoint:
        found.append(f"Session termination: {metadata.end_session_endpoint}")
    status_endpoint = metadata.string("credential_status_endpoint")
    if status_endpoint:
        found.append(f"Credential status: {status_endpoint}")
    if metadata.has("backchannel_logout_supported"):
        found.append("Back-channel logout")
    return found


def multiple_authenticator_evidence(metadata: ProviderMetadata) -> List[str]:
    found = []
    acr = metadata.acr_values_supported
    if "amr" in metadata.claims_supported:
        found.append("AMR claim (multiple methods supported)")
    if len(acr) > 1:
        found.append(f"Multiple ACR values ({len(acr)} levels)")
    if "login" in metadata.prompt_values_supported:
        found.append("Step-up authentication (prompt=login)")
    if find_indicators(acr, ("webauthn", "fido")):
        found.append("WebAuthn/FIDO2 (multi-credential support)")
    return found


def status_verification_mechanisms(metadata: ProviderMetadata) -> List[str]:
    found = []
    if metadata.has("credential_status_list") or metadata.has(
        "credential_status_endpoint"
    ):
        found.append("Credential status verification")
    if "auth_time" in metadata.claims_supported:
        found.append("Authentication timestamp verification (auth_time)")
    if metadata.introspection_endpoint:
        found.append(f"Token introspection: {metadata.introspection_endpoint}")
    if metadata.userinfo_endpoint:
        found.append(f"UserInfo endpoint: {metadata.userinfo_endpoint}")
    return found


# ---------------------------------------------------------------------------
# Check
# ---------------------------------------------------------------------------


class AuthenticatorLifecycleCheck(NistCheck):
    id = "nist-authenticator-lifecycle"
    name = "NIST Authenticator Lifecycle Management"
    default_severity = Severity.HIGH
    description = (
        "Validates authenticator lifecycle management including registration, "
        "binding, expiration, and revocation according to NIST SP 800-63B"
    )
    references = (
        NIST_REFERENCE + "#sec6",
        NIST_REFERENCE + "#sec5",
        "https://www.w3.org/TR/webauthn-2/",
        "https://datatracker.ietf.org/doc/html/rfc8414",
    )
    subject = "authenticator lifecycle management"

    async def evaluate(self, context: AuditContext) -> CheckResult:
        outcome = await self.discover(context)
        if isinstance(outcome, DiscoveryFailure):
            return self.discovery_warning(outcome)

        metadata = outcome.document
        findings = RuleFindings()
        details = MetadataBuilder({"issuer": metadata.issuer})

        level = self.target_level(metadata)
        details.set("target_aal", level.label)

        registration = registration_mechanisms(metadata)
        details.set("registration", registration)
        if not registration:
            findings.recommend(
                "Cannot detect authenticator registration mechanisms from "
                "metadata. Manual verification required."
            )
        else:
            self.log(context, "Registration mechanisms: %s", registration)

        binding = binding_methods(metadata)
        details.set("binding", binding)
        if not binding:
            findings.recommend(
                "Cannot verify authenticator binding mechanisms. Ensure "
                "authenticators are cryptographically bound to user accounts."
            )

        expiration = expiration_indicators(metadata, level)
        details.set("expiration", expiration)
        if not expiration:
            findings.recommend(
                "Cannot detect authenticator expiration policies. NIST "
                "recommends time-limited authenticators for AAL2 and AAL3."
            )

        revocation = revocation_mechanisms(metadata)
        details.set("revocation", revocation)
        if not revocation:
            findings.critical(
                "No authenticator revocation mechanisms detected. NIST "
                "requires the ability to revoke compromised authenticators."
            )

        multiple = multiple_authenticator_evidence(metadata)
        details.set("multiple_authenticators", multiple)
        if not multiple:
            findings.recommend(
                "Cannot verify support for multiple authenticators per user. "
                "Recommended for backup and recovery."
            )

        status = status_verification_mechanisms(metadata)
        details.set("status_verification", status)
        if not status:
            findings.recommend(
                "Cannot detect authenticator status verification. Ensure "
                "authenticator validity is checked before use."
            )

        return self.conclude(
            findings,
            failure_message=(
                "Authenticator lifecycle management check FAILED for "
                f"{level.label}."
            ),
            warning_message=(
                "Authenticator lifecycle management check passed with "
                f"recommendations for {level.label}."
            ),
            pass_message=(
                "Authenticator lifecycle management controls meet NIST "
                f"requirements for {level.label}."
            ),
            metadata=details,
        )
