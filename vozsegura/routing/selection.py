"""Pure selection functions for case routing.

No DB access. The engine loads rules and supervisor loads, these decide.
Deterministic: the same inputs always produce the same supervisor.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class SupervisorLoad:
    """How many open cases an Active supervisor currently holds."""

    supervisor_id: uuid.UUID
    open_cases: int


def pick_rule(rules: Iterable[Any], category: str) -> Any | None:
    """Highest-priority active rule for a category, or None.

    Rules without a target supervisor (orphaned by a hard delete) never match.
    Ties cannot happen for active rules; if they did, the first seen wins.
    """
    best = None
    for rule in rules:
        if not rule.active or rule.category != category or rule.supervisor_id is None:
            continue
        if best is None or rule.priority > best.priority:
            best = rule
    return best


def pick_least_loaded(loads: Iterable[SupervisorLoad]) -> uuid.UUID | None:
    """Supervisor with the fewest open cases; ties go to the lowest id."""
    ranked = sorted(loads, key=lambda load: (load.open_cases, str(load.supervisor_id)))
    if not ranked:
        return None
    return ranked[0].supervisor_id
