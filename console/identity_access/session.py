"""
Session store: the one process-wide authentication state of the console.

Lifecycle:

    loading --restore--> anonymous | authenticated
    anonymous --login--> authenticating --> authenticated | (last settled state)
    authenticated --logout--> anonymous
    authenticated --401 on any non-login call--> expired

Mutation entry points are `restore`, `login`, `logout` and `invalidate`
(the latter reserved for the Transport's 401 handler). Every transition
replaces the immutable `Session` value and emits `changed`.

Persistence: two entries (`token`, `user`) in a KeyValueStorage, written
together and removed together. A malformed or half-present pair on restore
is treated as anonymous and purged (fail closed).

Security: Never log credentials or passwords.
"""
from __future__ import annotations

import asyncio
from typing import Any, Optional, Tuple

import structlog

from console.signals import Signal
from console.transport.client import Transport
from console.transport.errors import AuthError, ConsoleError, Forbidden

from .domain import Role, normalize_role
from .models import Session, SessionStatus, UserIdentity
from .stores import CREDENTIAL_KEY, USER_KEY, KeyValueStorage

logger = structlog.get_logger(__name__)


class SessionStore:
    """Owns the console session and its durable copy.

    Parameters
    ----------
    transport:
        The console transport. The store binds itself so the transport can
        attach the credential and report 401s.
    storage:
        Durable key/value storage for the credential/user pair.
    """

    def __init__(self, transport: Transport, storage: KeyValueStorage) -> None:
        self._transport = transport
        self._storage = storage
        self._settings = transport.settings
        self._session = Session.anonymous(SessionStatus.LOADING)
        # Last session that was not AUTHENTICATING; a failed login settles back to it
        self._settled = self._session
        # Bumped when a login starts and when one succeeds
        self._login_seq = 0
        self._storage_lock = asyncio.Lock()
        self.changed = Signal("session_changed")
        transport.bind_session(self)

    # Reads ------------------------------------------------------------------

    def current(self) -> Session:
        return self._session

    def is_admin(self) -> bool:
        return self._session.authenticated and self._session.role is Role.ADMIN

    def is_teacher(self) -> bool:
        return self._session.authenticated and self._session.role is Role.TEACHER

    # Transitions --------------------------------------------------------------

    async def restore(self) -> Session:
        """Rehydrate the session from durable storage (startup)."""
        if self._session.authenticated:
            return self._session
        if self._session.status is not SessionStatus.LOADING:
            self._set(Session.anonymous(SessionStatus.LOADING))
        token, raw_user = await self._read_pair()
        if self._session.status not in (SessionStatus.LOADING, SessionStatus.AUTHENTICATING):
            # A login completed while the storage read was in flight
            return self._session
        session = self._session_from_storage(token, raw_user)
        if session is None:
            if token is not None or raw_user is not None:
                logger.warning("session_restore_discarded_partial_pair")
            await self._purge_storage()
            session = Session.anonymous()
        else:
            logger.info("session_restored", username=session.user.username, role=session.user.role.value)
        if self._session.status is SessionStatus.LOADING:
            self._set(session)
        elif self._session.status is SessionStatus.AUTHENTICATING:
            # A login is in flight; it settles back to the rehydrated value on failure
            self._settled = session
        return self._session

    async def login(self, username: str, password: str) -> Session:
        """Authenticate against the login endpoint.

        Returns the new session. On failure the session settles back to its
        last non-authenticating value and the classified error is re-raised
        (`AuthError` for rejected credentials; network errors unchanged).
        A failure of a login that a newer login has superseded leaves the
        current session alone.
        """
        self._login_seq += 1
        attempt = self._login_seq
        settled = self._settled
        self._set(
            Session(
                credential=settled.credential,
                user=settled.user,
                status=SessionStatus.AUTHENTICATING,
            )
        )
        try:
            resp = await self._transport.send(
                "POST",
                self._settings.login_path,
                body={"username": username, "password": password},
                authenticate=False,
            )
            session = self._session_from_login(resp.data)
        except ConsoleError as exc:
            logger.info("session_login_failed", username=username, error=exc.code)
            if attempt == self._login_seq:
                self._set(self._settled)
            else:
                logger.info("session_login_superseded", username=username)
            raise

        self._login_seq += 1
        self._set(session)
        await self._persist(session)
        logger.info("session_login_succeeded", username=session.user.username, role=session.user.role.value)
        return session

    async def logout(self) -> None:
        """End the session locally; idempotent.

        The server is notified on a best-effort basis; a failed notification
        never keeps the console logged in.
        """
        if not self._session.authenticated:
            return
        try:
            await self._transport.send("GET", self._settings.logout_path)
        except ConsoleError as exc:
            logger.info("session_logout_notify_failed", error=exc.code)
        await self._destroy(SessionStatus.ANONYMOUS)
        logger.info("session_logged_out")

    async def invalidate(self, reason: str = "unauthorized") -> None:
        """Forced logout; called by the Transport on a 401 outside login."""
        if not self._session.authenticated:
            await self._purge_storage()
            return
        logger.warning("session_invalidated", reason=reason)
        await self._destroy(SessionStatus.EXPIRED)

    async def register(self, username: str, password: str, role: Role | str) -> Any:
        """Create a console account (administrators only).

        Permissions: requires an authenticated ADMIN session; the server
        enforces the same rule.
        """
        if not self.is_admin():
            raise Forbidden("only administrators can register accounts", code="register_forbidden")
        wire_role = normalize_role(role)
        resp = await self._transport.send(
            "POST",
            self._settings.register_path,
            body={"username": username, "password": password, "role": wire_role.value},
        )
        logger.info("session_account_registered", username=username, role=wire_role.value)
        return resp.data

    # Internals ------------------------------------------------------------------

    def _set(self, session: Session) -> None:
        if session is self._session:
            return
        self._session = session
        if session.status is not SessionStatus.AUTHENTICATING:
            self._settled = session
        self.changed.emit(session)

    async def _destroy(self, status: SessionStatus) -> None:
        # Memory first; the storage purge is queued behind any pending write
        self._set(Session.anonymous(status))
        await self._purge_storage()

    def _session_from_login(self, data: Any) -> Session:
        if not isinstance(data, dict):
            raise AuthError("malformed login response", code="login_payload_invalid")
        try:
            user = UserIdentity(
                username=data.get("username"),
                role=data.get("role"),
                user_id=data.get("userId"),
            )
            return Session(credential=data.get("token"), user=user, status=SessionStatus.AUTHENTICATED)
        except ValueError as exc:
            raise AuthError("malformed login response", code="login_payload_invalid") from exc

    @staticmethod
    def _session_from_storage(token: Optional[str], raw_user: Optional[str]) -> Optional[Session]:
        if not token or not raw_user:
            return None
        try:
            user = UserIdentity.from_storage(raw_user)
            return Session(credential=token, user=user, status=SessionStatus.AUTHENTICATED)
        except ValueError:
            return None

    # Storage calls may block (file I/O); they run in a worker thread, one at
    # a time and in call order.

    async def _read_pair(self) -> Tuple[Optional[str], Optional[str]]:
        async with self._storage_lock:
            return await asyncio.to_thread(self._get_pair)

    async def _persist(self, session: Session) -> None:
        async with self._storage_lock:
            try:
                await asyncio.to_thread(self._set_pair, session)
            except OSError as exc:
                # Half-written pairs must not survive; the in-memory session stays valid
                logger.error("session_persist_failed", error=exc.__class__.__name__)
                await asyncio.to_thread(self._remove_pair)

    async def _purge_storage(self) -> None:
        async with self._storage_lock:
            await asyncio.to_thread(self._remove_pair)

    def _get_pair(self) -> Tuple[Optional[str], Optional[str]]:
        return self._storage.get(CREDENTIAL_KEY), self._storage.get(USER_KEY)

    def _set_pair(self, session: Session) -> None:
        self._storage.set(CREDENTIAL_KEY, session.credential or "")
        self._storage.set(USER_KEY, session.user.to_storage())

    def _remove_pair(self) -> None:
        for key in (CREDENTIAL_KEY, USER_KEY):
            try:
                self._storage.remove(key)
            except OSError as exc:
                logger.error("session_purge_failed", key=key, error=exc.__class__.__name__)
