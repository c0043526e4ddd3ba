"""Identity & access: roles, session store, durable storage and route guard."""

from .domain import ALLOWED_ROLES, Role, normalize_role
from .guard import AuthorizationGuard, Decision, Route, decide
from .models import Session, SessionStatus, UserIdentity
from .session import SessionStore
from .stores import JsonFileStorage, KeyValueStorage, MemoryStorage

__all__ = [
    "ALLOWED_ROLES",
    "Role",
    "normalize_role",
    "AuthorizationGuard",
    "Decision",
    "Route",
    "decide",
    "Session",
    "SessionStatus",
    "UserIdentity",
    "SessionStore",
    "JsonFileStorage",
    "KeyValueStorage",
    "MemoryStorage",
]
