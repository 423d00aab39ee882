# taskmarket/core/rbac.py
from __future__ import annotations

from typing import Mapping, Set
from uuid import UUID

from taskmarket.core.errors import ErrorKind, LifecycleError

POSTER = "poster"
ACCEPTER = "accepter"
OTHER = "other"


# Who may change a task, by the caller's relationship to it.
# Acceptance is classified by the acceptance service itself.
ALLOW: Mapping[str, Set[str]] = {
    "task.cancel": {POSTER},

    # ---- Delivery phases ----
    "phase.picked_up": {ACCEPTER},
    "phase.on_the_way": {ACCEPTER},
    "phase.delivered": {ACCEPTER},
    # poster may confirm handoff
    "phase.completed": {ACCEPTER, POSTER},

    # either side of a completed task rates the other
    "task.review": {POSTER, ACCEPTER},
}


def relationship(*, caller_id: UUID, created_by: UUID, accepted_by: UUID | None) -> str:
    if caller_id == created_by:
        return POSTER
    if accepted_by is not None and caller_id == accepted_by:
        return ACCEPTER
    return OTHER


def ensure_allowed(permission: str, role: str) -> None:
    allowed = ALLOW.get(permission, set())
    if role not in allowed:
        raise LifecycleError(
            ErrorKind.NOT_AUTHORIZED,
            f"Relationship '{role}' is not allowed for '{permission}'",
        )
