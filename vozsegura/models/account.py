"""Account model — every actor that can authenticate.

PII (given name, surname, phone) is stored AES-256-GCM encrypted.
`version` is the optimistic concurrency token: every write to the lockout
counters goes through a compare-and-swap on it (see stores/accounts.py).
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from vozsegura.models.base import Base, TimestampMixin
from vozsegura.models.enums import AccountStatus, Role


class Account(TimestampMixin, Base):
    """An Owner-Admin, Supervisor or Reporter."""

    __tablename__ = "accounts"
    __table_args__ = (
        CheckConstraint("failed_attempts >= 0", name="ck_accounts_failed_attempts_non_negative"),
        CheckConstraint("status IN ('active', 'inactive')", name="ck_accounts_status_stored"),
    )

    # Identity
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False, default=Role.REPORTER.value, index=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=AccountStatus.ACTIVE.value, index=True)

    # Lockout state
    failed_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Encrypted PII
    given_name_encrypted: Mapped[str | None] = mapped_column(Text, comment="AES-256-GCM encrypted")
    surname_encrypted: Mapped[str | None] = mapped_column(Text, comment="AES-256-GCM encrypted")
    phone_encrypted: Mapped[str | None] = mapped_column(Text, comment="AES-256-GCM encrypted")

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # ORM flushes check and bump `version` too (StaleDataError on mismatch)
    __mapper_args__ = {"version_id_col": version, "eager_defaults": True}

    @property
    def is_supervisor(self) -> bool:
        return self.role == Role.SUPERVISOR.value

    def lifecycle_status(self, now: datetime) -> AccountStatus:
        """Stored status, or LOCKED while an active account's lock window runs."""
        if self.status == AccountStatus.ACTIVE.value and self.locked_until is not None and now < self.locked_until:
            return AccountStatus.LOCKED
        return AccountStatus(self.status)

    def __repr__(self) -> str:
        return f"<Account email={self.email} role={self.role} status={self.status}>"
