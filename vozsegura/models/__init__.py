"""SQLAlchemy ORM models for the VozSegura control plane.

Import all models here so Alembic and Base.metadata.create_all() discover them.
"""

from __future__ import annotations

from vozsegura.models.account import Account
from vozsegura.models.assignment_rule import AssignmentRule
from vozsegura.models.audit import AuditLog, ImmutableAuditError
from vozsegura.models.base import Base
from vozsegura.models.case import Case
from vozsegura.models.enums import (
    OPEN_CASE_STATUSES,
    AccountStatus,
    AuditAction,
    CaseCategory,
    CasePriority,
    CaseStatus,
    Role,
)

__all__ = [
    # Base
    "Base",
    # Models
    "Account",
    "AssignmentRule",
    "AuditLog",
    "Case",
    "ImmutableAuditError",
    # Enums
    "AccountStatus",
    "AuditAction",
    "CaseCategory",
    "CasePriority",
    "CaseStatus",
    "Role",
    "OPEN_CASE_STATUSES",
]
