"""Case assignment rule engine and rule management.

assign() picks the supervisor for a new case:
1. active rules for the case category, highest priority first, first match wins
2. otherwise the Active supervisor with the fewest open cases (ties: lowest id)
3. otherwise nobody; the case is stored unassigned

Rule writes keep at most one active rule per (category, priority). The
pre-check below names the conflicting rule; the partial unique index on
assignment_rules catches concurrent writers that both passed the pre-check.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from vozsegura.errors import Conflict, InvalidInput, NotFound
from vozsegura.models.assignment_rule import AssignmentRule
from vozsegura.models.case import Case
from vozsegura.models.enums import AuditAction, CaseCategory, CasePriority
from vozsegura.routing.selection import pick_least_loaded, pick_rule
from vozsegura.schemas.audit import AuditContext
from vozsegura.security.audit import audit_recorder
from vozsegura.stores.accounts import account_store
from vozsegura.stores.cases import case_store
from vozsegura.stores.rules import rule_store

logger = logging.getLogger(__name__)

_NOT_NULLABLE = frozenset({"label", "category", "priority", "supervisor_id", "active"})


class AssignmentEngine:
    def __init__(
        self,
        rules: Any = rule_store,
        accounts: Any = account_store,
        cases: Any = case_store,
        recorder: Any = audit_recorder,
    ) -> None:
        self._rules = rules
        self._accounts = accounts
        self._cases = cases
        self._recorder = recorder

    # ── Assignment ───────────────────────────────────────────────────

    async def assign(self, db: AsyncSession, category: CaseCategory | str) -> uuid.UUID | None:
        """Supervisor for a new case of this category, or None."""
        category = CaseCategory(category).value
        rule = pick_rule(await self._rules.active_for_category(db, category), category)
        if rule is not None:
            logger.debug("Case %s routed by rule %s to %s", category, rule.id, rule.supervisor_id)
            return rule.supervisor_id

        supervisor_id = pick_least_loaded(await self._accounts.list_supervisor_loads(db))
        if supervisor_id is None:
            logger.warning("No active supervisor available for %s case; leaving unassigned", category)
        else:
            logger.debug("Case %s routed by load to %s", category, supervisor_id)
        return supervisor_id

    async def reassign_unassigned(
        self,
        db: AsyncSession,
        actor_id: uuid.UUID | None = None,
        context: AuditContext | None = None,
    ) -> list[Case]:
        """Re-run assign() for every open case without a supervisor.

        Cases are processed oldest first and each assignment is flushed before
        the next, so the least-loaded fallback sees the updated loads.
        Returns the cases that got a supervisor.
        """
        assigned: list[Case] = []
        for case in await self._cases.unassigned_open(db):
            supervisor_id = await self.assign(db, case.category)
            if supervisor_id is None:
                continue
            await self._cases.set_supervisor(db, case, supervisor_id)
            assigned.append(case)
        await db.commit()

        for case in assigned:
            await self._recorder.log(
                AuditAction.CASE_ASSIGNED,
                actor_id=actor_id,
                context=context,
                resource_table="cases",
                resource_id=case.id,
                details={"supervisor_id": str(case.supervisor_id), "trigger": "reassign"},
            )
        logger.info("Reassigned %d previously unassigned case(s)", len(assigned))
        return assigned

    # ── Rule management ──────────────────────────────────────────────

    async def list_rules(self, db: AsyncSession, active: bool | None = None) -> list[AssignmentRule]:
        return await self._rules.list_rules(db, active=active)

    async def get_rule(self, db: AsyncSession, rule_id: uuid.UUID) -> AssignmentRule:
        rule = await self._rules.get(db, rule_id)
        if rule is None:
            raise NotFound("Assignment rule not found")
        return rule

    async def create_rule(
        self,
        db: AsyncSession,
        *,
        label: str,
        category: CaseCategory | str,
        priority: CasePriority | int,
        supervisor_id: uuid.UUID,
        description: str | None = None,
        active: bool = True,
        actor_id: uuid.UUID | None = None,
        context: AuditContext | None = None,
    ) -> AssignmentRule:
        """Add a rule. An active rule may not share (category, priority) with another.

        Raises:
            InvalidInput: supervisor_id is not a supervisor account.
            Conflict: another active rule already holds the pair.
        """
        category = CaseCategory(category).value
        priority = int(CasePriority(priority))
        await self._check_supervisor(db, supervisor_id)
        if active:
            await self._check_pair(db, category, priority)

        rule = AssignmentRule(
            label=label,
            description=description,
            category=category,
            priority=priority,
            supervisor_id=supervisor_id,
            active=active,
        )
        await self._rules.add(db, rule)
        await db.commit()

        await self._recorder.log(
            AuditAction.RULE_CREATED,
            actor_id=actor_id,
            context=context,
            resource_table="assignment_rules",
            resource_id=rule.id,
            details=_rule_details(rule),
        )
        logger.info("Rule %s created: %s/%d -> %s", rule.id, category, priority, supervisor_id)
        return rule

    async def update_rule(
        self,
        db: AsyncSession,
        rule_id: uuid.UUID,
        changes: dict[str, Any],
        *,
        actor_id: uuid.UUID | None = None,
        context: AuditContext | None = None,
    ) -> AssignmentRule:
        """Apply a partial update, re-checking the active-pair invariant."""
        rule = await self.get_rule(db, rule_id)

        nulls = sorted(name for name in _NOT_NULLABLE if name in changes and changes[name] is None)
        if nulls:
            raise InvalidInput(
                "Fields cannot be null",
                field_errors={name: ["This field cannot be null"] for name in nulls},
            )
        if "category" in changes:
            changes["category"] = CaseCategory(changes["category"]).value
        if "priority" in changes:
            changes["priority"] = int(CasePriority(changes["priority"]))
        if "supervisor_id" in changes:
            await self._check_supervisor(db, changes["supervisor_id"])

        category = changes.get("category", rule.category)
        priority = changes.get("priority", rule.priority)
        if changes.get("active", rule.active):
            await self._check_pair(db, category, priority, exclude_id=rule.id)

        before = _rule_details(rule)
        for name, value in changes.items():
            setattr(rule, name, value)
        await self._rules.save(db, rule)
        await db.commit()

        await self._recorder.log(
            AuditAction.RULE_UPDATED,
            actor_id=actor_id,
            context=context,
            resource_table="assignment_rules",
            resource_id=rule.id,
            details={"before": before, "after": _rule_details(rule)},
        )
        return rule

    async def deactivate_rule(
        self,
        db: AsyncSession,
        rule_id: uuid.UUID,
        *,
        actor_id: uuid.UUID | None = None,
        context: AuditContext | None = None,
    ) -> AssignmentRule:
        """Soft-delete: the rule stays as history with active=False."""
        rule = await self.get_rule(db, rule_id)
        was_active = rule.active
        rule.active = False
        await self._rules.save(db, rule)
        await db.commit()

        await self._recorder.log(
            AuditAction.RULE_DEACTIVATED,
            actor_id=actor_id,
            context=context,
            resource_table="assignment_rules",
            resource_id=rule.id,
            details={"was_active": was_active},
        )
        return rule

    # ── Internals ────────────────────────────────────────────────────

    async def _check_supervisor(self, db: AsyncSession, supervisor_id: uuid.UUID) -> None:
        account = await self._accounts.get_by_id(db, supervisor_id)
        if account is None or not account.is_supervisor:
            raise InvalidInput.for_field("supervisor_id", "Target must be an existing supervisor account")

    async def _check_pair(
        self,
        db: AsyncSession,
        category: str,
        priority: int,
        exclude_id: uuid.UUID | None = None,
    ) -> None:
        existing = await self._rules.find_active(db, category, priority, exclude_id=exclude_id)
        if existing is not None:
            raise Conflict(
                f"An active rule already exists for {category} / {CasePriority(priority).name.lower()}: "
                f"'{existing.label}' ({existing.id})",
                existing_id=str(existing.id),
            )


def _rule_details(rule: AssignmentRule) -> dict[str, Any]:
    return {
        "label": rule.label,
        "category": rule.category,
        "priority": rule.priority,
        "supervisor_id": str(rule.supervisor_id) if rule.supervisor_id else None,
        "active": rule.active,
    }


# Module-level singleton
assignment_engine = AssignmentEngine()
