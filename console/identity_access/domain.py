"""
Identity domain constants and simple helpers.

The records backend issues roles as Spring authorities (`ROLE_ADMIN`,
`ROLE_TEACHER`). Everything inside the console works with the `Role` enum;
only this module knows about the wire spelling.
"""

from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    ADMIN = "ROLE_ADMIN"
    TEACHER = "ROLE_TEACHER"


# Keep roles minimal and explicit. Immutable to prevent accidental mutation.
ALLOWED_ROLES = frozenset(Role)


def normalize_role(value: object) -> Role:
    """Map a wire role (`ROLE_ADMIN`, `ADMIN`, `admin`, ...) to `Role`.

    Raises ValueError for anything outside ALLOWED_ROLES.
    """
    if isinstance(value, Role):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValueError("invalid role")
    name = value.strip().upper()
    if not name.startswith("ROLE_"):
        name = f"ROLE_{name}"
    try:
        return Role(name)
    except ValueError:
        raise ValueError("invalid role") from None


__all__ = ["Role", "ALLOWED_ROLES", "normalize_role"]
