from enum import Enum
from typing import Iterable, List


class PermissionCode(str, Enum):
    # Core / tenant
    SYSTEM_ADMIN = "system.admin"
    AUDIT_LOG_VIEW = "audit_log.view"

    # Staff administration
    STAFF_VIEW = "staff.view"
    STAFF_MANAGE = "staff.manage"

    # Loan applications
    APPLICATION_VIEW = "application.view"
    APPLICATION_STATUS_CHANGE = "application.status.change"
    APPLICATION_APPROVE_REJECT = "application.approve_reject"
    APPLICATION_ASSIGN = "application.assign"
    APPLICATION_COUNTER_OFFER = "application.counter_offer"
    APPLICATION_RISK_MANAGE = "application.risk.manage"

    # Applicant self-service
    APPLICATION_SUBMIT_OWN = "application.submit_own"
    APPLICATION_CANCEL_OWN = "application.cancel_own"
    APPLICATION_VIEW_OWN = "application.view_own"
    COUNTER_OFFER_RESPOND = "application.counter_offer.respond"

    # KYC / verification
    KYC_VIEW = "kyc.view"
    KYC_VERIFY = "kyc.verify"

    @classmethod
    def list_all(cls) -> List[str]:
        return [code.value for code in cls]

    @classmethod
    def normalize(cls, values: Iterable[str]) -> List[str]:
        """Return unique permission codes that are valid members."""
        seen = set()
        normalized: list[str] = []
        for value in values:
            try:
                code = cls(value)
            except ValueError:
                continue
            if code.value not in seen:
                seen.add(code.value)
                normalized.append(code.value)
        return normalized


APPLICANT_PERMISSIONS = frozenset(
    PermissionCode.normalize(
        [
            PermissionCode.APPLICATION_SUBMIT_OWN,
            PermissionCode.APPLICATION_CANCEL_OWN,
            PermissionCode.APPLICATION_VIEW_OWN,
            PermissionCode.COUNTER_OFFER_RESPOND,
        ]
    )
)


SYSTEM_ROLE_DEFINITIONS = {
    "ADMIN": {
        "description": "Full control within the tenant",
        "permissions": [
            code
            for code in PermissionCode.list_all()
            if code not in APPLICANT_PERMISSIONS
        ],
    },
    "SUPERVISOR": {
        "description": "Credit supervisor: decides, assigns and counter-offers applications",
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.APPLICATION_VIEW,
                PermissionCode.APPLICATION_STATUS_CHANGE,
                PermissionCode.APPLICATION_APPROVE_REJECT,
                PermissionCode.APPLICATION_ASSIGN,
                PermissionCode.APPLICATION_COUNTER_OFFER,
                PermissionCode.APPLICATION_RISK_MANAGE,
                PermissionCode.KYC_VIEW,
                PermissionCode.KYC_VERIFY,
                PermissionCode.STAFF_VIEW,
            ]
        ),
    },
    "ANALYST": {
        "description": "Credit analyst: reviews applications and verifies applicant data",
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.APPLICATION_VIEW,
                PermissionCode.APPLICATION_STATUS_CHANGE,
                PermissionCode.APPLICATION_RISK_MANAGE,
                PermissionCode.KYC_VIEW,
                PermissionCode.KYC_VERIFY,
            ]
        ),
    },
    "VIEWER": {
        "description": "Read-only access to applications",
        "permissions": PermissionCode.normalize(
            [
                PermissionCode.APPLICATION_VIEW,
                PermissionCode.KYC_VIEW,
            ]
        ),
    },
}
