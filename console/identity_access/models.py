"""
Session models for the console.

A `Session` is an immutable value; the session store replaces it as a whole
on every transition, so readers never observe a half-updated session.

Invariant: `user` is present if and only if `credential` is present.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .domain import Role, normalize_role


class SessionStatus(str, Enum):
    LOADING = "loading"  # rehydrating from durable storage
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"  # login call in flight
    AUTHENTICATED = "authenticated"
    EXPIRED = "expired"  # forced out by a 401 on an authenticated call


class UserIdentity(BaseModel):
    """The authenticated user as reported by the login endpoint."""

    model_config = ConfigDict(frozen=True)

    username: str = Field(min_length=1)
    role: Role
    user_id: Optional[int] = None

    @field_validator("role", mode="before")
    @classmethod
    def _wire_role(cls, value: object) -> Role:
        return normalize_role(value)

    def to_storage(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_storage(cls, raw: str) -> "UserIdentity":
        """Parse the persisted user entry; raises ValueError when malformed."""
        return cls.model_validate_json(raw)


class Session(BaseModel):
    model_config = ConfigDict(frozen=True)

    credential: Optional[str] = None
    user: Optional[UserIdentity] = None
    status: SessionStatus = SessionStatus.ANONYMOUS

    @field_validator("credential", mode="before")
    @classmethod
    def _blank_is_absent(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @model_validator(mode="after")
    def _credential_iff_user(self) -> "Session":
        if (self.credential is None) != (self.user is None):
            raise ValueError("credential and user must be present together")
        if self.status is SessionStatus.AUTHENTICATED and self.credential is None:
            raise ValueError("authenticated session requires a credential")
        if self.status in (SessionStatus.ANONYMOUS, SessionStatus.EXPIRED, SessionStatus.LOADING) and self.credential:
            raise ValueError(f"{self.status.value} session cannot carry a credential")
        return self

    @property
    def authenticated(self) -> bool:
        return self.credential is not None

    @property
    def role(self) -> Optional[Role]:
        return self.user.role if self.user else None

    @classmethod
    def anonymous(cls, status: SessionStatus = SessionStatus.ANONYMOUS) -> "Session":
        return cls(status=status)

    def __repr__(self) -> str:
        # Never render the credential
        user = self.user.username if self.user else None
        return f"Session(status={self.status.value!r}, user={user!r})"

    __str__ = __repr__
