"""
Transport: the single HTTP client every console component talks through.

Behavior:
- Configured once from `ConsoleSettings` (base URL, timeout, default headers).
- Attaches `Authorization: Bearer <token>` when the bound session store holds
  a credential and the call is authenticated.
- Passes 2xx responses through unchanged; classifies everything else into
  the error taxonomy of `console.transport.errors` before raising.
- Any failed answer from the login endpoint is an `AuthError` carrying the
  server message; connection failures and timeouts keep their own types.
- A 401 outside the login endpoint invalidates the session store and emits
  `redirect_to_login`. That handler is the only place where a failed call
  mutates session state.

Security: Never log tokens, passwords or request headers.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Mapping, Optional

import httpx
import structlog

from console.config import ConsoleSettings
from console.signals import Signal
from console.transport.envelope import ApiResponse, envelope_message, envelope_status
from console.transport.errors import (
    ApiError,
    AuthError,
    ConsoleError,
    Forbidden,
    NetworkError,
    Timeout,
    Unauthorized,
    ValidationError,
)

if TYPE_CHECKING:  # pragma: no cover
    from console.identity_access.session import SessionStore

logger = structlog.get_logger(__name__)


def _clean_query(query: Optional[Mapping[str, Any]]) -> Optional[dict]:
    if not query:
        return None
    return {k: v for k, v in query.items() if v is not None}


def _parse_body(resp: httpx.Response) -> Any:
    if not resp.content:
        return None
    try:
        return resp.json()
    except ValueError:
        return None


class Transport:
    """Asynchronous HTTP transport bound to one session store.

    Parameters
    ----------
    settings:
        Frozen console settings (base URL, timeout, default headers, auth paths).
    http_transport:
        Optional httpx transport, e.g. `httpx.MockTransport` in tests.
    """

    def __init__(
        self,
        settings: ConsoleSettings,
        *,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
            headers=dict(settings.default_headers),
            transport=http_transport,
        )
        self._session: Optional["SessionStore"] = None
        self.redirect_to_login = Signal("redirect_to_login")

    def bind_session(self, store: "SessionStore") -> None:
        self._session = store

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "Transport":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def is_login_path(self, path: str) -> bool:
        target = path.split("?", 1)[0].rstrip("/")
        return target.endswith(self.settings.login_path.rstrip("/"))

    def _auth_headers(self, authenticate: bool) -> dict:
        if not authenticate or self._session is None:
            return {}
        token = self._session.current().credential
        if not token:
            return {}
        return {"Authorization": f"Bearer {token}"}

    async def send(
        self,
        method: str,
        path: str,
        body: Any = None,
        query: Optional[Mapping[str, Any]] = None,
        *,
        authenticate: bool = True,
    ) -> ApiResponse:
        """Send one request and return the 2xx response or raise a ConsoleError."""
        method = method.upper()
        headers = self._auth_headers(authenticate)
        try:
            resp = await self._client.request(
                method,
                path,
                params=_clean_query(query),
                json=body,
                headers=headers,
            )
        except httpx.TimeoutException as exc:
            logger.warning("transport_timeout", method=method, path=path)
            raise Timeout(code="timeout") from exc
        except httpx.TransportError as exc:
            logger.warning("transport_network_error", method=method, path=path, error=exc.__class__.__name__)
            raise NetworkError(code="network_error") from exc

        payload = _parse_body(resp)
        status = resp.status_code
        logger.debug("transport_response", method=method, path=path, status=status)

        if 200 <= status < 300:
            business_status = envelope_status(payload)
            if business_status is None or business_status < 400:
                return ApiResponse(status=status, body=payload, headers=dict(resp.headers))
            status = business_status

        error = self._classify(status, payload, path=path)
        if isinstance(error, Unauthorized):
            await self._handle_unauthorized(path)
        raise error

    def _classify(self, status: int, payload: Any, *, path: str) -> ConsoleError:
        message = envelope_message(payload)
        data = payload.get("data") if isinstance(payload, dict) else None

        if self.is_login_path(path):
            # Every rejection of a login attempt is a login failure
            return AuthError(message, status=status, data=data)
        if status == 401:
            return Unauthorized(message, status=status)
        if status == 403:
            logger.info("transport_forbidden", path=path)
            return Forbidden(message, status=status)
        if status in (400, 422):
            return ValidationError(message, status=status, data=data)
        return ApiError(message or f"request failed with status {status}", status=status, data=data)

    async def _handle_unauthorized(self, path: str) -> None:
        logger.warning("transport_unauthorized", path=path)
        if self._session is not None:
            await self._session.invalidate("unauthorized")
        self.redirect_to_login.emit(self.settings.login_route)

    # Convenience wrappers -------------------------------------------------

    async def get(self, path: str, query: Optional[Mapping[str, Any]] = None) -> ApiResponse:
        return await self.send("GET", path, query=query)

    async def post(self, path: str, body: Any = None) -> ApiResponse:
        return await self.send("POST", path, body=body)

    async def put(self, path: str, body: Any = None) -> ApiResponse:
        return await self.send("PUT", path, body=body)

    async def delete(self, path: str) -> ApiResponse:
        return await self.send("DELETE", path)

    async def data(self, method: str, path: str, body: Any = None, query: Optional[Mapping[str, Any]] = None) -> Any:
        """Send a request and return the envelope payload (`data`)."""
        resp = await self.send(method, path, body=body, query=query)
        return resp.data
