"""
Single chokepoint for authenticated API calls.

Every feature-level operation goes through `ApiGateway.call()`, which:

1. waits for a session (`SessionManager.ensure()`)
2. POSTs the JSON body with the client's cookies
3. on 401, invalidates the session, re-establishes it and re-sends the
   identical request exactly once
4. turns any remaining non-2xx response into an `ApiError`
5. decodes the success body as JSON, or returns the raw text if it isn't

Transport failures (connection refused, DNS, timeouts) propagate as the
`httpx` exceptions they are. Nothing is retried more than once.
"""

from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from parley.client.session import SessionManager
from parley.config import Settings, get_settings

logger = logging.getLogger(__name__)

JSON_HEADERS = {"Content-Type": "application/json"}


class ApiError(Exception):
    """A request that still failed after any session refresh."""

    def __init__(self, endpoint: str, status_code: int, message: str):
        super().__init__(message)
        self.endpoint = endpoint
        self.status_code = status_code
        self.message = message

    @classmethod
    def from_response(cls, endpoint: str, response: httpx.Response) -> ApiError:
        """
        Build an error from a failed response.

        Uses the server's `{"error": "..."}` message when there is one,
        otherwise "<endpoint> failed: <status>".
        """
        message = None
        data = decode_body(response)
        if isinstance(data, dict):
            error = data.get("error")
            if error:
                message = str(error)
        if not message:
            message = f"{endpoint} failed: {response.status_code}"
        return cls(endpoint, response.status_code, message)


class UnexpectedResponseError(ApiError):
    """A success response whose body is not the JSON object the caller expects."""

    def __init__(self, endpoint: str, status_code: int, payload: Any):
        super().__init__(
            endpoint,
            status_code,
            f"{endpoint} returned an unexpected body",
        )
        self.payload = payload


def decode_body(response: httpx.Response) -> Any:
    """Parse a body as JSON, falling back to the raw text."""
    try:
        return response.json()
    except ValueError:
        return response.text


class ApiGateway:
    """
    Authenticated JSON POSTs with session recovery.

    Usage:
        async with ApiGateway.from_settings() as gateway:
            data = await gateway.call(
                "/api/translate/identify", {"source": "Bonjour"}
            )
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        sessions: SessionManager | None = None,
        owns_client: bool = False,
    ):
        self._client = client
        self.sessions = sessions or SessionManager(client)
        self._owns_client = owns_client

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> ApiGateway:
        """Create a gateway with its own client, configured from settings."""
        settings = settings or get_settings()
        client = httpx.AsyncClient(
            base_url=settings.api_base_url,
            timeout=settings.request_timeout,
        )
        return cls(
            client,
            SessionManager(client, settings.session_path),
            owns_client=True,
        )

    async def call(self, endpoint: str, body: Any) -> Any:
        """
        POST `body` to `endpoint` and return the decoded response.

        Args:
            endpoint: Path such as "/api/translate/start"
            body: JSON-serialisable request body

        Returns:
            Decoded JSON, or the raw text for a non-JSON success body

        Raises:
            ApiError: Non-2xx status after the single allowed retry
            httpx.TransportError: The request could not be sent
        """
        response = await self.send(endpoint, body)
        return decode_body(response)

    async def send(self, endpoint: str, body: Any) -> httpx.Response:
        """
        POST `body` to `endpoint` and return the successful response.

        Same session handling and errors as `call()`, for callers that need
        the status code as well as the body.
        """
        # Serialised once so the retry sends identical bytes
        content = json.dumps(body).encode("utf-8")

        await self.sessions.ensure()
        response = await self._post(endpoint, content)

        if response.status_code == 401:
            logger.debug(f"{endpoint} returned 401, refreshing session and retrying")
            self.sessions.invalidate()
            await self.sessions.ensure()
            response = await self._post(endpoint, content)

        if not response.is_success:
            raise ApiError.from_response(endpoint, response)

        return response

    async def _post(self, endpoint: str, content: bytes) -> httpx.Response:
        return await self._client.post(endpoint, content=content, headers=JSON_HEADERS)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> ApiGateway:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
