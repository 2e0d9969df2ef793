"""
NIST SP 800-63B assurance level compliance checks (AAL1, AAL2, AAL3).

Each level check runs independent rules against the capability document.
Rules that a level strictly requires are critical issues and fail the
check at the level's severity; the rest are recommendations.

Rules beyond HTTPS are only evaluated for OpenID Connect providers, since
assurance context (acr, amr, auth_time) is an OIDC concept.
"""

from __future__ import annotations

from typing import ClassVar

from idp_auditor.app.checks.base import AuditContext, RuleFindings
from idp_auditor.app.checks.nist.common import NIST_REFERENCE, NistCheck
from idp_auditor.app.classification.assurance import (
    AssuranceLevel,
    ClassificationOutcome,
    hardware_indicators,
    mfa_indicators,
    phishing_resistance_indicators,
)
from idp_auditor.app.discovery.models import DiscoveryFailure, ProviderMetadata
from idp_auditor.app.schemas.results import (
    CheckResult,
    MetadataBuilder,
    Severity,
)


class AALComplianceCheck(NistCheck):
    """
    Shared evaluation flow for the per-level compliance checks.
    """

    level: ClassVar[AssuranceLevel]

    async def evaluate(self, context: AuditContext) -> CheckResult:
        outcome = await self.discover(context)
        if isinstance(outcome, DiscoveryFailure):
            return self.discovery_warning(outcome)

        metadata = outcome.document
        findings = RuleFindings()
        details = MetadataBuilder({"issuer": metadata.issuer})

        self.check_https(metadata, findings, details)

        is_oidc = metadata.is_oidc_provider
        details.set("oidc_provider", is_oidc)

        if not is_oidc:
            self.on_not_oidc(findings)
        else:
            classification = self.classify(metadata)
            self.check_level_advertised(classification, findings, details)
            self.apply_rules(metadata, classification, findings, details)

        label = self.level.label
        return self.conclude(
            findings,
            failure_message=(
                f"{label} compliance check FAILED. "
                f"{len(findings.critical_issues)} critical issue(s) found."
            ),
            warning_message=(
                f"{label} compliance check passed with recommendations. "
                f"All critical {label} requirements are met."
            ),
            pass_message=(
                f"{label} compliance check PASSED. The provider meets all "
                f"checked NIST SP 800-63B {label} requirements."
            ),
            metadata=details,
            severity=self.default_severity,
        )

    # ------------------------------------------------------------------
    # Rule hooks
    # ------------------------------------------------------------------

    def on_not_oidc(self, findings: RuleFindings) -> None:
        findings.critical(
            f"Not an OpenID Connect provider. {self.level.label} requires "
            "OIDC for authentication context (ACR/AMR claims)."
        )

    def check_level_advertised(
        self,
        classification: ClassificationOutcome,
        findings: RuleFindings,
        details: MetadataBuilder,
    ) -> None:
        label = self.level.label
        key = f"{label.lower()}_advertised"

        if classification.can_determine:
            details.set(key, classification.supports(self.level))
            details.set("acr_values", list(classification.tokens))
            if not classification.supports(self.level):
                findings.critical(
                    f"Provider does not advertise {label} support in ACR values."
                )
        else:
            details.set(key, "unknown")
            findings.recommend(
                f"Unable to determine {label} support from metadata. "
                f"Advertise acr_values_supported with {label} values."
            )

    def apply_rules(
        self,
        metadata: ProviderMetadata,
        classification: ClassificationOutcome,
        findings: RuleFindings,
        details: MetadataBuilder,
    ) -> None:
        raise NotImplementedError


# ---------------------------------------------------------------------------
# AAL1
# ---------------------------------------------------------------------------


class AAL1ComplianceCheck(AALComplianceCheck):
    id = "nist-aal1-compliance"
    name = "NIST AAL1 Compliance"
    level = AssuranceLevel.AAL1
    default_severity = Severity.MEDIUM
    description = (
        "Validates compliance with NIST SP 800-63B Authentication Assurance "
        "Level 1 (AAL1) requirements"
    )
    references = (
        NIST_REFERENCE + "#aal1",
        "https://openid.net/specs/openid-connect-core-1_0.html",
    )

    def on_not_oidc(self, findings: RuleFindings) -> None:
        findings.recommend(
            "Not an OpenID Connect provider. Consider implementing OIDC for "
            "better authentication context and AAL verification."
        )

    def check_level_advertised(
        self,
        classification: ClassificationOutcome,
        findings: RuleFindings,
        details: MetadataBuilder,
    ) -> None:
        if classification.can_determine:
            supported = classification.supports(AssuranceLevel.AAL1)
            details.set("aal1_advertised", supported)
            details.set("acr_values", list(classification.tokens))
            if not supported:
                findings.recommend(
                    "AAL1 not explicitly advertised in ACR values. Consider "
                    "adding AAL1 to acr_values_supported for clarity."
                )
        else:
            details.set("aal1_advertised", "unknown")
            findings.recommend(
                "Unable to determine AAL support from metadata. Consider "
                "implementing acr_values_supported."
            )

    def apply_rules(self, metadata, classification, findings, details):
        has_auth_time = classification.claim_support.auth_time
        details.set("auth_time_supported", has_auth_time)
        if not has_auth_time:
            findings.recommend(
                "auth_time claim not advertised. Recommended for session "
                "management and reauthentication tracking."
            )


# ---------------------------------------------------------------------------
# AAL2
# ---------------------------------------------------------------------------


class AAL2ComplianceCheck(AALComplianceCheck):
    id = "nist-aal2-compliance"
    name = "NIST AAL2 Compliance"
    level = AssuranceLevel.AAL2
    default_severity = Severity.HIGH
    description = (
        "Validates compliance with NIST SP 800-63B Authentication Assurance "
        "Level 2 (AAL2) requirements for multi-factor authentication"
    )
    references = (
        NIST_REFERENCE + "#aal2",
        NIST_REFERENCE + "#sessionmgmt",
        "https://openid.net/specs/openid-connect-core-1_0.html",
        "https://www.rfc-editor.org/rfc/rfc8176.html",
    )

    def apply_rules(self, metadata, classification, findings, details):
        indicators = mfa_indicators(
            metadata.acr_values_supported,
            pkce_s256=metadata.supports_pkce_s256,
        )
        details.set("mfa_indicators", indicators)
        if not indicators:
            findings.recommend(
                "No multi-factor authentication indicators found in "
                "metadata. Support MFA methods like OTP, TOTP, WebAuthn, or "
                "hardware tokens."
            )

        claims = classification.claim_support
        details.set("auth_time_supported", claims.auth_time)
        if not claims.auth_time:
            findings.critical(
                "auth_time claim not advertised. AAL2 requires authentication "
                "event timestamping for session timeout enforcement "
                "(12-hour maximum)."
            )

        details.set("amr_claim_supported", claims.amr)
        if not claims.amr:
            findings.recommend(
                "AMR (Authentication Method Reference) claim not advertised. "
                "Recommended for verifying which authentication factors were "
                "used."
            )


# ---------------------------------------------------------------------------
# AAL3
# ---------------------------------------------------------------------------


class AAL3ComplianceCheck(AALComplianceCheck):
    id = "nist-aal3-compliance"
    name = "NIST AAL3 Compliance"
    level = AssuranceLevel.AAL3
    default_severity = Severity.CRITICAL
    description = (
        "Validates compliance with NIST SP 800-63B Authentication Assurance "
        "Level 3 (AAL3) requirements for hardware-based cryptographic "
        "authenticators"
    )
    references = (
        NIST_REFERENCE + "#aal3",
        NIST_REFERENCE + "#sessionmgmt",
        "https://www.w3.org/TR/webauthn-2/",
        "https://fidoalliance.org/specifications/",
    )

    def check_level_advertised(self, classification, findings, details):
        if classification.can_determine:
            supported = classification.supports(AssuranceLevel.AAL3)
            details.set("aal3_advertised", supported)
            details.set("acr_values", list(classification.tokens))
            if not supported:
                findings.critical(
                    "Provider does not advertise AAL3 support in ACR values. "
                    "AAL3 requires hardware-based cryptographic "
                    "authenticators."
                )
        else:
            details.set("aal3_advertised", "unknown")
            findings.critical(
                "Unable to determine AAL3 support from metadata. AAL3 "
                "requires explicit advertisement of hardware authenticator "
                "support."
            )

    def apply_rules(self, metadata, classification, findings, details):
        hardware = hardware_indicators(
            metadata.acr_values_supported,
            pkce_s256=metadata.supports_pkce_s256,
        )
        details.set("hardware_auth_indicators", hardware)
        if not hardware:
            findings.critical(
                "No hardware authenticator indicators found. AAL3 requires "
                "hardware-based cryptographic authenticators (FIDO2, "
                "WebAuthn, PIV/CAC)."
            )

        claims = classification.claim_support
        details.set("auth_time_supported", claims.auth_time)
        if not claims.auth_time:
            findings.critical(
                "auth_time claim not advertised. AAL3 requires authentication "
                "event timestamping for strict session management (12-hour "
                "maximum, 15-minute idle timeout)."
            )

        details.set("amr_claim_supported", claims.amr)
        if not claims.amr:
            findings.critical(
                "AMR claim not advertised. AAL3 requires verification of "
                "the hardware authentication methods used."
            )

        phishing_resistant = phishing_resistance_indicators(
            metadata.acr_values_supported
        )
        details.set("phishing_resistant_indicators", phishing_resistant)
        if not phishing_resistant:
            findings.recommend(
                "No phishing-resistant authentication indicators found. "
                "Prefer FIDO2/WebAuthn authenticators with verifier-impersonation "
                "resistance."
            )


AAL_COMPLIANCE_CHECKS = (
    AAL1ComplianceCheck,
    AAL2ComplianceCheck,
    AAL3ComplianceCheck,
)
