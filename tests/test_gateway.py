"""
Tests for session establishment and the API gateway.

Core principle: every authenticated call has a session behind it, a 401 is
retried exactly once after a fresh session, and failures reach the caller
as one descriptive error.
"""

import asyncio
import json

import httpx
import pytest

from parley.client import (
    ApiError,
    ApiGateway,
    SessionManager,
    START_ENDPOINT,
    IMPROVE_ENDPOINT,
    TranslationApi,
    UnexpectedResponseError,
)
from parley.config import Settings
from parley.core.models import IdentifyRequest, ImproveRequest, StartRequest, StartResponse


BASE_URL = "http://testserver"


class FakeServer:
    """
    Scripted HTTP backend for httpx.MockTransport.

    `/session` always succeeds (unless told otherwise) and sets a new
    cookie each time; API responses are served from a queue.
    """

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.api_responses: list[httpx.Response | Exception] = []
        self.session_failure: Exception | None = None
        self.session_gate: asyncio.Event | None = None
        self.session_started = asyncio.Event()
        self.session_count = 0
        self.sessions_in_flight = 0
        self.max_sessions_in_flight = 0

    async def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.path == "/session":
            self.session_count += 1
            self.session_started.set()
            self.sessions_in_flight += 1
            self.max_sessions_in_flight = max(self.max_sessions_in_flight, self.sessions_in_flight)
            try:
                if self.session_gate is not None:
                    await self.session_gate.wait()
            finally:
                self.sessions_in_flight -= 1
            if self.session_failure is not None:
                raise self.session_failure
            return httpx.Response(
                200,
                text="OK",
                headers={"Set-Cookie": f"session_token=tok{self.session_count}; Path=/"},
            )

        outcome = self.api_responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def reply(self, *outcomes: httpx.Response | Exception) -> None:
        self.api_responses.extend(outcomes)

    @property
    def calls(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.requests]

    @property
    def posts(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == "POST"]

    @property
    def session_gets(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == "/session"]


def ok(data) -> httpx.Response:
    return httpx.Response(200, json=data)


async def wait_for_posts(server: FakeServer, count: int) -> None:
    while len(server.posts) < count:
        await asyncio.sleep(0)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def client(server):
    return httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(server.handle))


@pytest.fixture
def gateway(client):
    return ApiGateway(client)


@pytest.fixture
def api(gateway):
    return TranslationApi(gateway)


# =============================================================================
# SessionManager Tests
# =============================================================================


class TestSessionManager:
    @pytest.mark.asyncio
    async def test_ensure_requests_once(self, client, server):
        sessions = SessionManager(client)

        await sessions.ensure()
        await sessions.ensure()

        assert server.calls == [("GET", "/session")]

    @pytest.mark.asyncio
    async def test_invalidate_forces_new_request(self, client, server):
        sessions = SessionManager(client)

        await sessions.ensure()
        sessions.invalidate()
        await sessions.ensure()

        assert len(server.session_gets) == 2

    @pytest.mark.asyncio
    async def test_invalidate_without_session_is_noop(self, client, server):
        sessions = SessionManager(client)

        sessions.invalidate()
        sessions.invalidate()

        assert server.requests == []

    @pytest.mark.asyncio
    async def test_concurrent_ensure_coalesces(self, client, server):
        server.session_gate = asyncio.Event()
        sessions = SessionManager(client)

        waiters = [asyncio.ensure_future(sessions.ensure()) for _ in range(5)]
        await asyncio.wait_for(server.session_started.wait(), timeout=1)
        await asyncio.sleep(0)

        assert not any(w.done() for w in waiters)

        server.session_gate.set()
        await asyncio.gather(*waiters)

        assert len(server.session_gets) == 1

    @pytest.mark.asyncio
    async def test_failure_is_swallowed(self, client, server):
        server.session_failure = httpx.ConnectError("unreachable")
        sessions = SessionManager(client)

        await sessions.ensure()  # Must not raise

        # Settled counts as established: no second attempt until invalidated
        await sessions.ensure()
        assert len(server.session_gets) == 1

    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_shared_request(self, client, server):
        server.session_gate = asyncio.Event()
        sessions = SessionManager(client)

        first = asyncio.ensure_future(sessions.ensure())
        await asyncio.wait_for(server.session_started.wait(), timeout=1)
        first.cancel()

        second = asyncio.ensure_future(sessions.ensure())
        server.session_gate.set()
        await second

        assert first.cancelled()
        assert len(server.session_gets) == 1

    @pytest.mark.asyncio
    async def test_custom_path(self, client, server):
        sessions = SessionManager(client, path="/auth/session")

        # Unknown path falls through to the API queue
        server.reply(httpx.Response(200, text="OK"))
        await sessions.ensure()

        assert server.calls == [("GET", "/auth/session")]


# =============================================================================
# ApiGateway Tests
# =============================================================================


class TestGatewayHappyPath:
    @pytest.mark.asyncio
    async def test_start_with_fresh_session(self, api, server):
        server.reply(ok({"contextId": "ctx-1", "result": "hola", "sourceLang": "en"}))

        response = await api.start_translation(StartRequest(source="Hello", lang="es"))

        assert response.to_wire() == {"contextId": "ctx-1", "result": "hola", "sourceLang": "en"}
        assert server.calls == [("GET", "/session"), ("POST", START_ENDPOINT)]

    @pytest.mark.asyncio
    async def test_post_shape(self, gateway, server):
        server.reply(ok({"result": "ok"}))

        await gateway.call(IMPROVE_ENDPOINT, {"contextId": "ctx-1", "feedback": "shorter"})

        post = server.posts[0]
        assert post.headers["Content-Type"] == "application/json"
        assert json.loads(post.content) == {"contextId": "ctx-1", "feedback": "shorter"}

    @pytest.mark.asyncio
    async def test_session_reused_across_calls(self, gateway, server):
        server.reply(ok({"lang": "en"}), ok({"lang": "fr"}))

        await gateway.call("/api/translate/identify", {"source": "Hello"})
        await gateway.call("/api/translate/identify", {"source": "Bonjour"})

        assert len(server.session_gets) == 1
        assert len(server.posts) == 2

    @pytest.mark.asyncio
    async def test_concurrent_calls_share_one_session(self, gateway, server):
        server.session_gate = asyncio.Event()
        server.reply(*[ok({"lang": "en"}) for _ in range(4)])

        calls = [
            asyncio.ensure_future(gateway.call("/api/translate/identify", {"source": "Hi"}))
            for _ in range(4)
        ]
        await asyncio.wait_for(server.session_started.wait(), timeout=1)
        await asyncio.sleep(0)

        assert server.posts == []

        server.session_gate.set()
        results = await asyncio.gather(*calls)

        assert results == [{"lang": "en"}] * 4
        assert len(server.session_gets) == 1
        assert len(server.posts) == 4

    @pytest.mark.asyncio
    async def test_non_json_success_returns_text(self, gateway, server):
        server.reply(httpx.Response(200, text="plain words"))

        assert await gateway.call(START_ENDPOINT, {"source": "x", "lang": "es"}) == "plain words"

    @pytest.mark.asyncio
    async def test_typed_wrapper_rejects_non_object(self, api, server):
        server.reply(httpx.Response(200, text="plain words"))

        with pytest.raises(UnexpectedResponseError) as exc_info:
            await api.start_translation(StartRequest(source="x", lang="es"))

        assert exc_info.value.payload == "plain words"
        assert exc_info.value.endpoint == START_ENDPOINT

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{}, {"unexpected": 1}, {"contextId": "ctx-1"}])
    async def test_typed_wrapper_rejects_missing_fields(self, api, server, body):
        server.reply(ok(body))

        with pytest.raises(UnexpectedResponseError) as exc_info:
            await api.start_translation(StartRequest(source="x", lang="es"))

        assert exc_info.value.payload == body
        assert exc_info.value.status_code == 200

    @pytest.mark.asyncio
    async def test_unexpected_body_keeps_real_status(self, api, server):
        server.reply(httpx.Response(201, text="created"))

        with pytest.raises(UnexpectedResponseError) as exc_info:
            await api.identify_language(IdentifyRequest(source="Hello"))

        assert exc_info.value.status_code == 201
        assert exc_info.value.payload == "created"


class TestGatewayRetry:
    @pytest.mark.asyncio
    async def test_concurrent_401s_share_one_refresh(self, gateway, server):
        await gateway.sessions.ensure()
        server.session_gate = asyncio.Event()
        server.reply(*[httpx.Response(401) for _ in range(3)])
        server.reply(*[ok({"lang": "en"}) for _ in range(3)])

        calls = [
            asyncio.ensure_future(gateway.call("/api/translate/identify", {"source": "Hi"}))
            for _ in range(3)
        ]
        await asyncio.wait_for(wait_for_posts(server, 3), timeout=1)
        for _ in range(5):
            await asyncio.sleep(0)

        # Priming request plus a single refresh, still held at the gate
        assert len(server.session_gets) == 2

        server.session_gate.set()
        results = await asyncio.gather(*calls)

        assert results == [{"lang": "en"}] * 3
        assert len(server.session_gets) == 2
        assert server.max_sessions_in_flight == 1
        assert [p.headers["Cookie"] for p in server.posts[3:]] == ["session_token=tok2"] * 3

    @pytest.mark.asyncio
    async def test_invalidate_during_refresh_joins_it(self, client, server):
        server.session_gate = asyncio.Event()
        sessions = SessionManager(client)

        first = asyncio.ensure_future(sessions.ensure())
        await asyncio.wait_for(server.session_started.wait(), timeout=1)
        sessions.invalidate()
        second = asyncio.ensure_future(sessions.ensure())

        server.session_gate.set()
        await asyncio.gather(first, second)

        assert len(server.session_gets) == 1

    @pytest.mark.asyncio
    async def test_retry_once_after_401(self, api, server):
        server.reply(
            httpx.Response(401),
            ok({"contextId": "ctx-2", "result": "salut", "sourceLang": "en"}),
        )

        response = await api.start_translation(StartRequest(source="Hello", lang="fr"))

        assert response == StartResponse(context_id="ctx-2", result="salut", source_lang="en")
        assert server.calls == [
            ("GET", "/session"),
            ("POST", START_ENDPOINT),
            ("GET", "/session"),
            ("POST", START_ENDPOINT),
        ]

    @pytest.mark.asyncio
    async def test_retry_is_identical_except_cookie(self, gateway, server):
        server.reply(httpx.Response(401), ok({"result": "ok"}))

        await gateway.call(IMPROVE_ENDPOINT, {"contextId": "ctx-1", "feedback": "warmer"})

        first, retry = server.posts
        assert first.content == retry.content
        assert first.headers["Content-Type"] == retry.headers["Content-Type"] == "application/json"
        assert first.headers["Cookie"] == "session_token=tok1"
        assert retry.headers["Cookie"] == "session_token=tok2"

    @pytest.mark.asyncio
    async def test_no_second_retry(self, gateway, server):
        server.reply(httpx.Response(401), httpx.Response(401))

        with pytest.raises(ApiError) as exc_info:
            await gateway.call(START_ENDPOINT, {"source": "Hello", "lang": "fr"})

        assert exc_info.value.status_code == 401
        assert str(exc_info.value) == f"{START_ENDPOINT} failed: 401"
        assert len(server.posts) == 2
        assert len(server.session_gets) == 2

    @pytest.mark.asyncio
    async def test_rate_limit_is_not_retried(self, gateway, server):
        server.reply(httpx.Response(429, text="slow down"))

        with pytest.raises(ApiError) as exc_info:
            await gateway.call(START_ENDPOINT, {"source": "Hello", "lang": "fr"})

        assert exc_info.value.status_code == 429
        assert len(server.posts) == 1


# =============================================================================
# Error Normalisation Tests
# =============================================================================


class TestGatewayErrors:
    @pytest.mark.asyncio
    async def test_server_error_message(self, gateway, server):
        server.reply(httpx.Response(400, json={"error": "Bad request"}))

        with pytest.raises(ApiError) as exc_info:
            await gateway.call(START_ENDPOINT, {"source": "", "lang": "es"})

        assert str(exc_info.value) == "Bad request"
        assert exc_info.value.message == "Bad request"
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_fallback_for_non_json_body(self, gateway, server):
        server.reply(httpx.Response(500, text="<html>oops</html>"))

        with pytest.raises(ApiError) as exc_info:
            await gateway.call(IMPROVE_ENDPOINT, {"contextId": "c", "feedback": "f"})

        assert str(exc_info.value) == f"{IMPROVE_ENDPOINT} failed: 500"

    @pytest.mark.asyncio
    async def test_fallback_for_json_without_error(self, gateway, server):
        server.reply(httpx.Response(404, json={"detail": "Not Found"}))

        with pytest.raises(ApiError) as exc_info:
            await gateway.call(IMPROVE_ENDPOINT, {"contextId": "c", "feedback": "f"})

        assert str(exc_info.value) == f"{IMPROVE_ENDPOINT} failed: 404"

    @pytest.mark.asyncio
    async def test_fallback_for_empty_body(self, gateway, server):
        server.reply(httpx.Response(503))

        with pytest.raises(ApiError, match=f"^{IMPROVE_ENDPOINT} failed: 503$"):
            await gateway.call(IMPROVE_ENDPOINT, {"contextId": "c", "feedback": "f"})

    @pytest.mark.asyncio
    async def test_transport_error_propagates(self, gateway, server):
        server.reply(httpx.ConnectError("connection refused"))

        with pytest.raises(httpx.ConnectError):
            await gateway.call(START_ENDPOINT, {"source": "Hello", "lang": "es"})

        assert len(server.posts) == 1

    @pytest.mark.asyncio
    async def test_session_failure_does_not_block_call(self, api, server):
        server.session_failure = httpx.ConnectError("session host down")
        server.reply(ok({"contextId": "ctx-1", "result": "hola", "sourceLang": "en"}))

        response = await api.start_translation(StartRequest(source="Hello", lang="es"))

        assert response.result == "hola"

    @pytest.mark.asyncio
    async def test_improve_error_surfaces_through_wrapper(self, api, server):
        server.reply(httpx.Response(410, json={"error": "context expired"}))

        with pytest.raises(ApiError, match="context expired"):
            await api.improve_translation(ImproveRequest(context_id="old", feedback="f"))


# =============================================================================
# Credentials Tests
# =============================================================================


class TestCredentials:
    @pytest.mark.asyncio
    async def test_cookie_sent_on_every_request(self, gateway, server):
        server.reply(httpx.Response(401), ok({"result": "a"}), ok({"result": "b"}))

        await gateway.call(IMPROVE_ENDPOINT, {"contextId": "c", "feedback": "f"})
        await gateway.call(IMPROVE_ENDPOINT, {"contextId": "c", "feedback": "g"})

        # The first session request has nothing to send yet
        for request in server.requests[1:]:
            assert request.headers.get("Cookie", "").startswith("session_token=")

        refresh = server.session_gets[1]
        assert refresh.headers["Cookie"] == "session_token=tok1"


# =============================================================================
# Configuration Tests
# =============================================================================


class TestFromSettings:
    @pytest.mark.asyncio
    async def test_client_configuration(self):
        settings = Settings(api_base_url="http://api.example", request_timeout=2.5)

        async with ApiGateway.from_settings(settings) as gateway:
            assert str(gateway._client.base_url) == "http://api.example"
            assert gateway._client.timeout.read == 2.5
            assert gateway.sessions.path == "/session"

    @pytest.mark.asyncio
    async def test_no_timeout_by_default(self):
        settings = Settings(request_timeout=None)

        async with ApiGateway.from_settings(settings) as gateway:
            assert gateway._client.timeout == httpx.Timeout(None)
