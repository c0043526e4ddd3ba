"""
Transport classification of failed calls.

Requirements:
- 2xx passes through unchanged; bearer token attached when authenticated
- 401 on the login endpoint -> AuthError, no redirect, session untouched
- HTTP 200 with envelope status 400 on login -> AuthError (server message)
- any other HTTP failure on login (403, 5xx) -> AuthError with status and message
- 401 elsewhere -> Unauthorized, session EXPIRED, storage purged, redirect emitted
- 403 outside login -> Forbidden, session untouched
- 400/422 -> ValidationError with field data; other >= 400 -> ApiError
- Connection failures -> NetworkError, timeouts -> Timeout (both retryable)
"""
from __future__ import annotations

import httpx
import pytest

from console.identity_access import MemoryStorage, SessionStatus, SessionStore
from console.transport import (
    ApiError,
    AuthError,
    Forbidden,
    NetworkError,
    Timeout,
    Transport,
    Unauthorized,
    ValidationError,
)
from utils.fake_api import FakeApi, envelope, login_payload, request_json

pytestmark = pytest.mark.anyio


def _wire(settings, api: FakeApi, storage=None):
    transport = Transport(settings, http_transport=api.transport)
    store = SessionStore(transport, storage if storage is not None else MemoryStorage())
    return transport, store


async def _logged_in(settings, api: FakeApi, storage=None):
    api.add("POST", "/auth/login", (200, login_payload()))
    transport, store = _wire(settings, api, storage)
    await store.login("admin", "secret")
    return transport, store


async def test_success_passes_through_with_bearer_token(settings):
    api = FakeApi().add("GET", "/students/1", (200, envelope({"stuId": 1, "stuName": "Ann"})))
    transport, store = await _logged_in(settings, api)

    resp = await transport.get("/students/1")

    assert resp.status == 200
    assert resp.data == {"stuId": 1, "stuName": "Ann"}
    assert api.calls("GET", "/students/1")[0].headers["Authorization"] == "Bearer tok-admin"
    await transport.aclose()


async def test_login_request_is_sent_without_authorization(settings):
    api = FakeApi()
    transport, store = await _logged_in(settings, api)

    login_call = api.calls("POST", "/auth/login")[0]
    assert "Authorization" not in login_call.headers
    assert request_json(login_call) == {"username": "admin", "password": "secret"}
    await transport.aclose()


async def test_login_401_is_auth_error_without_redirect(settings):
    api = FakeApi().add("POST", "/auth/login", (401, envelope(None, status=401, message="bad credentials")))
    transport, store = _wire(settings, api)
    redirects = []
    transport.redirect_to_login.connect(redirects.append)

    with pytest.raises(AuthError) as excinfo:
        await transport.send("POST", settings.login_path, body={"username": "x", "password": "y"}, authenticate=False)

    assert excinfo.value.message == "bad credentials"
    assert redirects == []
    await transport.aclose()


async def test_envelope_400_on_http_200_login_is_auth_error(settings):
    api = FakeApi().add("POST", "/auth/login", (200, envelope(None, status=400, message="用户名或密码错误")))
    transport, store = _wire(settings, api)

    with pytest.raises(AuthError) as excinfo:
        await store.login("admin", "wrong")

    assert excinfo.value.status == 400
    assert excinfo.value.message == "用户名或密码错误"
    await transport.aclose()


@pytest.mark.parametrize("status, message", [(403, "account disabled"), (500, "login service down")])
async def test_non_network_login_failure_is_auth_error(settings, status, message):
    api = FakeApi().add("POST", "/auth/login", (status, envelope(None, status=status, message=message)))
    transport, store = _wire(settings, api)
    await store.restore()
    redirects = []
    transport.redirect_to_login.connect(redirects.append)

    with pytest.raises(AuthError) as excinfo:
        await store.login("admin", "secret")

    assert excinfo.value.status == status
    assert excinfo.value.message == message
    assert store.current().status is SessionStatus.ANONYMOUS
    assert redirects == []
    await transport.aclose()


async def test_401_outside_login_forces_logout_and_redirect(settings):
    storage = MemoryStorage()
    api = FakeApi().add("GET", "/students/page", (401, envelope(None, status=401, message="token expired")))
    transport, store = await _logged_in(settings, api, storage)
    assert storage.snapshot()  # persisted after login
    redirects = []
    transport.redirect_to_login.connect(redirects.append)

    with pytest.raises(Unauthorized):
        await transport.get("/students/page")

    session = store.current()
    assert session.status is SessionStatus.EXPIRED
    assert session.credential is None and session.user is None
    assert storage.snapshot() == {}
    assert redirects == [settings.login_route]
    await transport.aclose()


async def test_403_is_forbidden_and_session_untouched(settings):
    api = FakeApi().add("DELETE", "/academies/3", (403, envelope(None, status=403, message="no permission")))
    transport, store = await _logged_in(settings, api)
    before = store.current()

    with pytest.raises(Forbidden) as excinfo:
        await transport.delete("/academies/3")

    assert excinfo.value.message == "no permission"
    assert store.current() is before
    await transport.aclose()


async def test_403_without_message_uses_default_text(settings):
    api = FakeApi().add("GET", "/payments/page", (403, ""))
    transport, store = await _logged_in(settings, api)

    with pytest.raises(Forbidden) as excinfo:
        await transport.get("/payments/page")

    assert excinfo.value.message == "access denied"
    await transport.aclose()


async def test_422_is_validation_error_with_field_data(settings):
    fields = {"stuName": "must not be blank"}
    api = FakeApi().add("POST", "/students", (422, envelope(fields, status=422, message="invalid")))
    transport, store = await _logged_in(settings, api)

    with pytest.raises(ValidationError) as excinfo:
        await transport.post("/students", {"stuName": ""})

    assert excinfo.value.data == fields
    assert store.current().authenticated
    await transport.aclose()


async def test_server_error_is_api_error(settings):
    api = FakeApi().add("GET", "/scores/page", (500, "<html>boom</html>"))
    transport, store = await _logged_in(settings, api)

    with pytest.raises(ApiError) as excinfo:
        await transport.get("/scores/page")

    assert excinfo.value.status == 500
    assert not excinfo.value.retryable
    await transport.aclose()


async def test_unknown_path_is_api_error_404(settings):
    api = FakeApi()
    transport, store = await _logged_in(settings, api)

    with pytest.raises(ApiError) as excinfo:
        await transport.get("/nowhere")

    assert excinfo.value.status == 404
    await transport.aclose()


async def test_connection_failure_is_retryable_network_error(settings):
    def refuse(request: httpx.Request):
        raise httpx.ConnectError("connection refused", request=request)

    api = FakeApi().add("GET", "/teachers/page", refuse)
    transport, store = await _logged_in(settings, api)

    with pytest.raises(NetworkError) as excinfo:
        await transport.get("/teachers/page")

    assert excinfo.value.retryable
    assert not isinstance(excinfo.value, Timeout)
    assert store.current().authenticated
    await transport.aclose()


async def test_timeout_is_retryable_timeout(settings):
    def hang(request: httpx.Request):
        raise httpx.ReadTimeout("timed out", request=request)

    api = FakeApi().add("GET", "/majors/page", hang)
    transport, store = await _logged_in(settings, api)

    with pytest.raises(Timeout) as excinfo:
        await transport.get("/majors/page")

    assert excinfo.value.retryable
    await transport.aclose()


async def test_non_json_success_body_is_tolerated(settings):
    api = FakeApi().add("GET", "/health", (200, "OK"))
    transport, store = _wire(settings, api)

    resp = await transport.get("/health")

    assert resp.status == 200
    assert resp.body is None
    await transport.aclose()
