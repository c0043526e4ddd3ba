"""
Authorization guard consulted by the routing layer.

`decide` is the pure decision function; `AuthorizationGuard` binds it to the
session store so the decision for the current route is re-evaluated on every
navigation and on every session change (e.g. a forced logout by the
Transport). Stale decisions are never cached.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

import structlog

from console.config import ConsoleSettings
from console.signals import Signal

from .domain import Role
from .models import Session, SessionStatus
from .session import SessionStore

logger = structlog.get_logger(__name__)


class Decision(str, Enum):
    RENDER = "render"
    REDIRECT_TO_LOGIN = "redirect_to_login"
    REDIRECT_TO_DEFAULT = "redirect_to_default"
    LOADING = "loading"


@dataclass(frozen=True)
class Route:
    path: str
    requires_admin: bool = False


def decide(session: Session, requires_admin: bool) -> Decision:
    """Return the routing decision for a session and a route requirement.

    - LOADING while the session is being rehydrated
    - REDIRECT_TO_LOGIN when not authenticated
    - REDIRECT_TO_DEFAULT when authenticated without ADMIN on an admin route
    - RENDER otherwise
    """
    if session.status is SessionStatus.LOADING:
        return Decision.LOADING
    if not session.authenticated:
        return Decision.REDIRECT_TO_LOGIN
    if requires_admin and session.role is not Role.ADMIN:
        return Decision.REDIRECT_TO_DEFAULT
    return Decision.RENDER


class AuthorizationGuard:
    """Evaluate routes against the live session.

    Emits `decision_changed(route, decision)` whenever a session change
    alters the decision for the current route.
    """

    def __init__(self, store: SessionStore, settings: ConsoleSettings) -> None:
        self._store = store
        self._settings = settings
        self._route: Optional[Route] = None
        self._decision: Optional[Decision] = None
        self.decision_changed = Signal("decision_changed")
        store.changed.connect(self._on_session_changed)

    @property
    def current_route(self) -> Optional[Route]:
        return self._route

    @property
    def current_decision(self) -> Optional[Decision]:
        return self._decision

    def evaluate(self, route: Route) -> Decision:
        return decide(self._store.current(), route.requires_admin)

    def navigate(self, route: Route) -> Decision:
        """Record `route` as current and return its decision."""
        self._route = route
        self._decision = self.evaluate(route)
        logger.debug("guard_navigate", path=route.path, decision=self._decision.value)
        return self._decision

    def redirect_target(self, decision: Decision) -> Optional[str]:
        if decision is Decision.REDIRECT_TO_LOGIN:
            return self._settings.login_route
        if decision is Decision.REDIRECT_TO_DEFAULT:
            return self._settings.default_route
        return None

    def close(self) -> None:
        self._store.changed.disconnect(self._on_session_changed)

    def _on_session_changed(self, session: Session) -> None:
        if self._route is None:
            return
        decision = decide(session, self._route.requires_admin)
        if decision is self._decision:
            return
        self._decision = decision
        logger.info("guard_decision_changed", path=self._route.path, decision=decision.value)
        self.decision_changed.emit(self._route, decision)
