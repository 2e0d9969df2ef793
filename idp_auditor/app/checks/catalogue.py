"""
Default check catalogue.

Builds the ordered list of checks registered for a run. Registration order
is execution order.
"""

from __future__ import annotations

from typing import List

from idp_auditor.app.checks.base import ComplianceCheck
from idp_auditor.app.checks.nist.aal_compliance import AAL_COMPLIANCE_CHECKS
from idp_auditor.app.checks.nist.aal_detection import AALDetectionCheck
from idp_auditor.app.checks.nist.authenticator_lifecycle import (
    AuthenticatorLifecycleCheck,
)
from idp_auditor.app.checks.nist.session_management import (
    SessionManagementCheck,
)
from idp_auditor.app.checks.oauth.pkce import PKCECheck
from idp_auditor.app.checks.oauth.redirect_uri import RedirectURICheck
from idp_auditor.app.checks.oauth.state_parameter import StateParameterCheck
from idp_auditor.app.checks.oauth.token_storage import TokenStorageCheck
from idp_auditor.app.classification.assurance import AssuranceLevel
from idp_auditor.app.config import AuditorConfig


def build_check_catalogue(config: AuditorConfig) -> List[ComplianceCheck]:
    """
    Return the checks for this configuration, in execution order.

    AAL compliance checks are included for every level up to and
    including NIST_ASSURANCE_LEVEL.
    """
    checks: List[ComplianceCheck] = [
        PKCECheck(),
        StateParameterCheck(),
        RedirectURICheck(),
        TokenStorageCheck(),
        AALDetectionCheck(),
    ]

    target = AssuranceLevel.from_label(config.NIST_ASSURANCE_LEVEL)
    checks.extend(
        check_cls()
        for check_cls in AAL_COMPLIANCE_CHECKS
        if check_cls.level <= target
    )

    if config.ENABLE_SESSION_MANAGEMENT:
        checks.append(SessionManagementCheck())

    if config.ENABLE_AUTHENTICATOR_LIFECYCLE:
        checks.append(AuthenticatorLifecycleCheck())

    return checks
