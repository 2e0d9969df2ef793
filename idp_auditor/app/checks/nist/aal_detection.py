"""
NIST AAL support detection.

Reports which authenticator assurance levels the provider advertises
through `acr_values_supported`. Informational: the check never fails.
"""

from __future__ import annotations

from idp_auditor.app.checks.base import AuditContext
from idp_auditor.app.checks.nist.common import NIST_REFERENCE, NistCheck
from idp_auditor.app.discovery.models import DiscoveryFailure
from idp_auditor.app.schemas.results import (
    CheckResult,
    MetadataBuilder,
    Severity,
)


ACR_GUIDANCE = """
Advertise NIST assurance levels in the OpenID Connect Discovery document:
  "acr_values_supported": [
    "urn:nist:800-63-3:aal:1",
    "urn:nist:800-63-3:aal:2",
    "urn:nist:800-63-3:aal:3"
  ],
  "claims_supported": ["acr", "amr", "auth_time"]
Honour the acr_values authorization parameter and include acr and amr in
ID tokens.

References:
- NIST SP 800-63B: https://pages.nist.gov/800-63-3/sp800-63b.html
- OpenID Connect Core: https://openid.net/specs/openid-connect-core-1_0.html
- RFC 8176 (AMR Values): https://www.rfc-editor.org/rfc/rfc8176.html
""".strip()


class AALDetectionCheck(NistCheck):
    id = "nist-aal-detection"
    name = "NIST AAL Support Detection"
    default_severity = Severity.INFO
    description = (
        "Discovers which NIST Authentication Assurance Levels (AAL1, AAL2, "
        "AAL3) are supported by analyzing OAuth/OIDC metadata"
    )
    references = (
        NIST_REFERENCE,
        "https://openid.net/specs/openid-connect-core-1_0.html#IDToken",
        "https://openid.net/specs/openid-connect-discovery-1_0.html",
    )

    async def evaluate(self, context: AuditContext) -> CheckResult:
        outcome = await self.discover(context)
        if isinstance(outcome, DiscoveryFailure):
            return self.discovery_warning(outcome)

        metadata = outcome.document

        if not metadata.is_oidc_provider:
            return self.skipped(
                "This is not an OpenID Connect provider. NIST AAL compliance "
                "requires OIDC with ACR/AMR claims support."
            )

        classification = self.classify(metadata)
        claims = classification.claim_support
        details = MetadataBuilder({"issuer": metadata.issuer})
        details.update(classification.as_metadata())

        if not classification.can_determine:
            message = "Unable to determine AAL support from metadata."
            advertised = [
                label
                for label, present in (("ACR", claims.acr), ("AMR", claims.amr))
                if present
            ]
            if advertised:
                message += (
                    f" The provider supports {' and '.join(advertised)} "
                    "claims, but does not advertise specific ACR values. "
                    "Verify AAL support manually through provider "
                    "documentation or ID token inspection."
                )
            else:
                message += (
                    " The provider does not advertise ACR or AMR claim "
                    "support in metadata."
                )

            details.set("claims_supported", list(metadata.claims_supported))
            return self.warned(
                message,
                remediation=ACR_GUIDANCE,
                metadata=details,
            )

        levels = ", ".join(
            level.description for level in classification.detected_levels
        )
        message = (
            f"NIST AAL support detected with "
            f"{classification.confidence.value} confidence. "
            f"Supported AAL levels: {levels}. "
            f"Highest AAL: {classification.highest_level.description}."
        )
        if classification.unmapped_tokens:
            message += (
                " The following ACR values could not be mapped to NIST AAL "
                f"levels: {', '.join(classification.unmapped_tokens)}."
            )

        self.log(
            context,
            "Detected levels %s (%s confidence)",
            [level.label for level in classification.detected_levels],
            classification.confidence.value,
        )
        return self.passed(message, metadata=details)
