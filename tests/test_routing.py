"""Tests for case routing: pure selection, the assignment engine and rule management."""

from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest

from tests.conftest import FakeAccountStore, FakeRecorder, FakeRuleStore, make_account
from vozsegura.errors import Conflict, InvalidInput, NotFound
from vozsegura.models.case import Case
from vozsegura.models.enums import AccountStatus, AuditAction, CaseCategory, CasePriority, CaseStatus, Role
from vozsegura.routing.engine import AssignmentEngine
from vozsegura.routing.selection import SupervisorLoad, pick_least_loaded, pick_rule

SUP_A = uuid.UUID("00000000-0000-0000-0000-00000000000a")
SUP_B = uuid.UUID("00000000-0000-0000-0000-00000000000b")
SUP_C = uuid.UUID("00000000-0000-0000-0000-00000000000c")


def _rule(category: str, priority: int, supervisor_id, active: bool = True):
    return SimpleNamespace(
        id=uuid.uuid4(), category=category, priority=priority, supervisor_id=supervisor_id, active=active
    )


class TestSelection:
    def test_least_loaded_picks_the_zero(self) -> None:
        loads = [SupervisorLoad(SUP_A, 2), SupervisorLoad(SUP_B, 0), SupervisorLoad(SUP_C, 5)]
        assert pick_least_loaded(loads) == SUP_B

    def test_least_loaded_tie_goes_to_lowest_id(self) -> None:
        loads = [SupervisorLoad(SUP_C, 1), SupervisorLoad(SUP_A, 1), SupervisorLoad(SUP_B, 3)]
        assert pick_least_loaded(loads) == SUP_A
        assert pick_least_loaded(list(reversed(loads))) == SUP_A

    def test_least_loaded_empty(self) -> None:
        assert pick_least_loaded([]) is None

    def test_highest_priority_rule_wins(self) -> None:
        rules = [_rule("harassment", 1, SUP_A), _rule("harassment", 3, SUP_B), _rule("harassment", 2, SUP_C)]
        assert pick_rule(rules, "harassment").supervisor_id == SUP_B

    def test_inactive_and_other_categories_ignored(self) -> None:
        rules = [_rule("harassment", 3, SUP_A, active=False), _rule("other", 3, SUP_B)]
        assert pick_rule(rules, "harassment") is None

    def test_orphaned_rule_ignored(self) -> None:
        assert pick_rule([_rule("harassment", 3, None)], "harassment") is None


@pytest.fixture
def supervisors(account_store: FakeAccountStore):
    return [
        account_store.put(make_account(email=f"sup{i}@example.com", role=Role.SUPERVISOR, account_id=sid))
        for i, sid in enumerate((SUP_A, SUP_B, SUP_C))
    ]


@pytest.fixture
def engine(rule_store, account_store, case_store, recorder) -> AssignmentEngine:
    return AssignmentEngine(rules=rule_store, accounts=account_store, cases=case_store, recorder=recorder)


class TestAssign:
    @pytest.mark.asyncio
    async def test_rule_match(self, engine, supervisors, db) -> None:
        await engine.create_rule(
            db, label="Harassment", category=CaseCategory.HARASSMENT, priority=CasePriority.HIGH, supervisor_id=SUP_C
        )
        assert await engine.assign(db, CaseCategory.HARASSMENT) == SUP_C

    @pytest.mark.asyncio
    async def test_fallback_loads_2_0_5(self, engine, supervisors, account_store, db) -> None:
        account_store.loads = [SupervisorLoad(SUP_A, 2), SupervisorLoad(SUP_B, 0), SupervisorLoad(SUP_C, 5)]
        assert await engine.assign(db, "discrimination") == SUP_B

    @pytest.mark.asyncio
    async def test_no_supervisors_leaves_unassigned(self, engine, db) -> None:
        assert await engine.assign(db, CaseCategory.OTHER) is None

    @pytest.mark.asyncio
    async def test_deactivated_rule_falls_back(self, engine, supervisors, account_store, db) -> None:
        rule = await engine.create_rule(
            db, label="Other", category="other", priority=CasePriority.URGENT, supervisor_id=SUP_C
        )
        await engine.deactivate_rule(db, rule.id)
        account_store.loads = [SupervisorLoad(SUP_A, 0), SupervisorLoad(SUP_C, 0)]
        assert await engine.assign(db, "other") == SUP_A


class TestRuleManagement:
    @pytest.mark.asyncio
    async def test_harassment_urgent_conflict(self, engine, supervisors, db, recorder: FakeRecorder) -> None:
        first = await engine.create_rule(
            db, label="Urgent harassment", category="harassment", priority=CasePriority.URGENT, supervisor_id=SUP_A
        )
        with pytest.raises(Conflict) as exc_info:
            await engine.create_rule(
                db, label="Duplicate", category="harassment", priority=CasePriority.URGENT, supervisor_id=SUP_B
            )
        assert exc_info.value.existing_id == str(first.id)
        assert "Urgent harassment" in exc_info.value.message
        assert recorder.actions == ["rule_created"]

    @pytest.mark.asyncio
    async def test_inactive_duplicate_allowed(self, engine, supervisors, rule_store: FakeRuleStore, db) -> None:
        await engine.create_rule(db, label="A", category="harassment", priority=3, supervisor_id=SUP_A)
        await engine.create_rule(db, label="B", category="harassment", priority=3, supervisor_id=SUP_B, active=False)
        assert rule_store.active_pairs() == [("harassment", 3)]

    @pytest.mark.asyncio
    async def test_activating_onto_taken_pair_conflicts(self, engine, supervisors, db) -> None:
        await engine.create_rule(db, label="A", category="harassment", priority=3, supervisor_id=SUP_A)
        dormant = await engine.create_rule(
            db, label="B", category="harassment", priority=3, supervisor_id=SUP_B, active=False
        )
        with pytest.raises(Conflict):
            await engine.update_rule(db, dormant.id, {"active": True})

    @pytest.mark.asyncio
    async def test_moving_onto_taken_pair_conflicts(self, engine, supervisors, db) -> None:
        await engine.create_rule(db, label="A", category="harassment", priority=3, supervisor_id=SUP_A)
        other = await engine.create_rule(db, label="B", category="harassment", priority=2, supervisor_id=SUP_B)
        with pytest.raises(Conflict):
            await engine.update_rule(db, other.id, {"priority": CasePriority.URGENT})
        assert other.priority == 2

    @pytest.mark.asyncio
    async def test_update_own_pair_is_not_a_conflict(self, engine, supervisors, db, recorder) -> None:
        rule = await engine.create_rule(db, label="A", category="harassment", priority=3, supervisor_id=SUP_A)
        updated = await engine.update_rule(db, rule.id, {"label": "Renamed", "supervisor_id": SUP_B})
        assert updated.label == "Renamed"
        assert updated.supervisor_id == SUP_B
        entry = recorder.last(AuditAction.RULE_UPDATED)
        assert entry["details"]["before"]["label"] == "A"
        assert entry["details"]["after"]["supervisor_id"] == str(SUP_B)

    @pytest.mark.asyncio
    async def test_invariant_holds_after_a_sequence(self, engine, supervisors, rule_store, db) -> None:
        a = await engine.create_rule(db, label="A", category="harassment", priority=3, supervisor_id=SUP_A)
        b = await engine.create_rule(db, label="B", category="harassment", priority=2, supervisor_id=SUP_B)
        await engine.deactivate_rule(db, a.id)
        await engine.update_rule(db, b.id, {"priority": 3})
        c = await engine.create_rule(db, label="C", category="harassment", priority=2, supervisor_id=SUP_C)
        with pytest.raises(Conflict):
            await engine.update_rule(db, a.id, {"active": True})
        with pytest.raises(Conflict):
            await engine.update_rule(db, c.id, {"priority": 3})

        pairs = rule_store.active_pairs()
        assert len(pairs) == len(set(pairs))

    @pytest.mark.asyncio
    async def test_target_must_be_supervisor(self, engine, account_store, db) -> None:
        reporter = account_store.put(make_account(role=Role.REPORTER))
        with pytest.raises(InvalidInput) as exc_info:
            await engine.create_rule(db, label="X", category="other", priority=0, supervisor_id=reporter.id)
        assert list(exc_info.value.field_errors) == ["supervisor_id"]

        with pytest.raises(InvalidInput):
            await engine.create_rule(db, label="X", category="other", priority=0, supervisor_id=uuid.uuid4())

    @pytest.mark.asyncio
    async def test_null_for_required_field_rejected(self, engine, supervisors, db) -> None:
        rule = await engine.create_rule(db, label="A", category="other", priority=0, supervisor_id=SUP_A)
        with pytest.raises(InvalidInput) as exc_info:
            await engine.update_rule(db, rule.id, {"category": None})
        assert "category" in exc_info.value.field_errors

    @pytest.mark.asyncio
    async def test_deactivate_keeps_the_rule(self, engine, supervisors, rule_store, db, recorder) -> None:
        rule = await engine.create_rule(db, label="A", category="other", priority=0, supervisor_id=SUP_A)
        await engine.deactivate_rule(db, rule.id)
        assert rule_store.rules[rule.id].active is False
        assert recorder.actions == ["rule_created", "rule_deactivated"]

    @pytest.mark.asyncio
    async def test_unknown_rule(self, engine, db) -> None:
        with pytest.raises(NotFound):
            await engine.get_rule(db, uuid.uuid4())


class TestReassign:
    @pytest.mark.asyncio
    async def test_assigns_open_unassigned_cases(self, engine, supervisors, case_store, account_store, db) -> None:
        open_case = Case(id=uuid.uuid4(), category="other", status=CaseStatus.PENDING.value, supervisor_id=None)
        closed_case = Case(id=uuid.uuid4(), category="other", status=CaseStatus.CLOSED.value, supervisor_id=None)
        case_store.cases.extend([open_case, closed_case])

        assigned = await engine.reassign_unassigned(db)

        assert assigned == [open_case]
        assert open_case.supervisor_id == SUP_A
        assert closed_case.supervisor_id is None

    @pytest.mark.asyncio
    async def test_nothing_to_do_without_supervisors(self, engine, case_store, db, recorder) -> None:
        case_store.cases.append(Case(id=uuid.uuid4(), category="other", status="pending", supervisor_id=None))
        assert await engine.reassign_unassigned(db) == []
        assert recorder.entries == []

    @pytest.mark.asyncio
    async def test_inactive_supervisors_are_skipped(self, engine, supervisors, case_store, db) -> None:
        for account in supervisors[:2]:
            account.status = AccountStatus.INACTIVE.value
        case = Case(id=uuid.uuid4(), category="other", status="in_review", supervisor_id=None)
        case_store.cases.append(case)
        await engine.reassign_unassigned(db)
        assert case.supervisor_id == SUP_C
