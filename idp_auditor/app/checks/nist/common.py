"""
Shared helpers for NIST SP 800-63B checks.
"""

from __future__ import annotations

from idp_auditor.app.checks.base import BaseCheck, RuleFindings
from idp_auditor.app.classification.assurance import (
    AssuranceLevel,
    ClassificationOutcome,
    classify_assurance,
)
from idp_auditor.app.discovery.models import ProviderMetadata
from idp_auditor.app.schemas.results import CheckCategory, MetadataBuilder


NIST_REFERENCE = "https://pages.nist.gov/800-63-3/sp800-63b.html"


class NistCheck(BaseCheck):
    category = CheckCategory.NIST
    subject = "NIST AAL compliance"

    @staticmethod
    def classify(metadata: ProviderMetadata) -> ClassificationOutcome:
        return classify_assurance(
            metadata.acr_values_supported,
            metadata.claims_supported,
        )

    @classmethod
    def target_level(cls, metadata: ProviderMetadata) -> AssuranceLevel:
        """Highest advertised level, AAL1 when nothing is advertised."""
        highest = cls.classify(metadata).highest_level
        return highest if highest is not None else AssuranceLevel.AAL1

    @staticmethod
    def check_https(
        metadata: ProviderMetadata,
        findings: RuleFindings,
        details: MetadataBuilder,
    ) -> None:
        insecure = metadata.non_https_endpoints()
        details.set("https_enforced", not insecure)
        if insecure:
            details.set("insecure_endpoints", insecure)
            findings.critical(
                "HTTPS not enforced for all endpoints: " + ", ".join(insecure)
            )
