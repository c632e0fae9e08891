"""Domain enums used across SQLAlchemy models and Pydantic schemas.

String enums serialize straight to JSON and are stored as plain VARCHAR.
"""

from __future__ import annotations

from enum import Enum, IntEnum


class Role(str, Enum):
    """The one fixed role taxonomy."""

    OWNER_ADMIN = "owner_admin"
    SUPERVISOR = "supervisor"
    REPORTER = "reporter"


class AccountStatus(str, Enum):
    """Account lifecycle state.

    Only ACTIVE and INACTIVE are stored. LOCKED is derived from locked_until
    (see Account.lifecycle_status) so a lock lifts by itself once it expires.
    """

    ACTIVE = "active"
    INACTIVE = "inactive"  # soft-deactivated by an Owner-Admin
    LOCKED = "locked"  # derived, never written to accounts.status


class CaseCategory(str, Enum):
    """Complaint categories. Rules are keyed on these."""

    HARASSMENT = "harassment"
    DISCRIMINATION = "discrimination"
    NON_PAYMENT = "non_payment"
    SEXUAL_HARASSMENT = "sexual_harassment"
    RIGHTS_VIOLATION = "rights_violation"
    OTHER = "other"


class CasePriority(IntEnum):
    """Ordinal priority, higher wins when several rules match a category."""

    LOW = 0
    MEDIUM = 1
    HIGH = 2
    URGENT = 3


class CaseStatus(str, Enum):
    """Case lifecycle states (owned by the case screens, read here for load)."""

    PENDING = "pending"
    IN_REVIEW = "in_review"
    APPROVED = "approved"
    REFERRED = "referred"
    CLOSED = "closed"
    REJECTED = "rejected"


# Cases that count against a supervisor's load.
OPEN_CASE_STATUSES: frozenset[str] = frozenset({
    CaseStatus.PENDING.value,
    CaseStatus.IN_REVIEW.value,
})


class AuditAction(str, Enum):
    """Closed set of audited actions."""

    # Authentication
    LOGIN = "login"
    LOGIN_FAILED = "login_failed"
    ACCOUNT_LOCKED = "account_locked"
    TOKEN_REJECTED = "token_rejected"

    # Recovery
    IDENTITY_VERIFIED = "identity_verified"
    IDENTITY_VERIFICATION_FAILED = "identity_verification_failed"
    RECOVERY_CODE_ISSUED = "recovery_code_issued"
    RECOVERY_CODE_FAILED = "recovery_code_failed"
    RECOVERY_CODE_VERIFIED = "recovery_code_verified"
    PASSWORD_RESET = "password_reset"
    PASSWORD_RESET_FAILED = "password_reset_failed"

    # Accounts
    ACCOUNT_CREATED = "account_created"
    ACCOUNT_UPDATED = "account_updated"
    ACCOUNT_DELETED = "account_deleted"
    ACCOUNT_VIEWED = "account_viewed"

    # Routing rules
    RULE_CREATED = "rule_created"
    RULE_UPDATED = "rule_updated"
    RULE_DEACTIVATED = "rule_deactivated"

    # Cases
    CASE_CREATED = "case_created"
    CASE_ASSIGNED = "case_assigned"

    # Audit
    AUDIT_QUERY = "audit_query"
