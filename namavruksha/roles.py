"""Explicit actor session for the three privilege tiers.

Replaces ambient ``namabank_admin`` / ``namabank_moderator`` flags with one
object that is started at login, read through ``current()``, and cleared on
logout. The active actor is persisted under a single store key so a restart
resumes the same session.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from enum import IntEnum
from typing import Any, Optional

from .errors import PermissionDenied
from .logging_utils import log_event

SESSION_KEY = "namavruksha_actor"


class Role(IntEnum):
    USER = 1
    MODERATOR = 2
    ADMIN = 3


@dataclass(frozen=True)
class Actor:
    id: str
    name: str
    role: Role
    started_at: str = ""

    def to_dict(self) -> dict:
        payload = asdict(self)
        payload["role"] = self.role.name.lower()
        return payload

    @classmethod
    def from_dict(cls, payload: Any) -> Optional["Actor"]:
        if not isinstance(payload, dict):
            return None
        try:
            role = Role[str(payload.get("role", "")).upper()]
        except KeyError:
            return None
        actor_id = payload.get("id")
        if not actor_id:
            return None
        return cls(
            id=str(actor_id),
            name=str(payload.get("name") or ""),
            role=role,
            started_at=str(payload.get("started_at") or ""),
        )


class ActorSessionProvider:
    def __init__(self, store: Any) -> None:
        self.store = store
        self._actor: Optional[Actor] = Actor.from_dict(store.get(SESSION_KEY))

    def start(self, actor_id: str, name: str, role: Role) -> Actor:
        actor = Actor(id=actor_id, name=name, role=role, started_at=datetime.now(timezone.utc).isoformat())
        self._actor = actor
        self.store.set(SESSION_KEY, actor.to_dict())
        log_event("actor_session_started", actor_id=actor_id, role=role.name.lower())
        return actor

    def current(self) -> Optional[Actor]:
        return self._actor

    def require(self, role: Role) -> Actor:
        """Return the active actor if it holds at least ``role``."""

        actor = self._actor
        if actor is None:
            raise PermissionDenied("No active session")
        if actor.role < role:
            raise PermissionDenied(f"{role.name.lower()} privileges required")
        return actor

    def clear(self) -> None:
        if self._actor is not None:
            log_event("actor_session_cleared", actor_id=self._actor.id)
        self._actor = None
        self.store.delete(SESSION_KEY)
