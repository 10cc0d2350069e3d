"""
Typed translation API operations.

Thin wrappers over the gateway, one per endpoint. A success body that is
not the expected JSON object raises `UnexpectedResponseError`.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import ValidationError

from parley.client.gateway import ApiGateway, UnexpectedResponseError, decode_body
from parley.config import Settings
from parley.core.models import (
    IdentifyRequest,
    IdentifyResponse,
    ImproveRequest,
    ImproveResponse,
    PreviewRequest,
    PreviewResponse,
    StartRequest,
    StartResponse,
    WireModel,
)

START_ENDPOINT = "/api/translate/start"
IMPROVE_ENDPOINT = "/api/translate/improve"
PREVIEW_ENDPOINT = "/api/translate/preview"
IDENTIFY_ENDPOINT = "/api/translate/identify"

ResponseT = TypeVar("ResponseT", bound=WireModel)


class TranslationApi:
    """
    Client for the translation endpoints.

    Usage:
        async with TranslationApi.from_settings() as api:
            started = await api.start_translation(
                StartRequest(source="Hello", lang="es")
            )
            improved = await api.improve_translation(
                ImproveRequest(context_id=started.context_id, feedback="More formal")
            )
    """

    def __init__(self, gateway: ApiGateway):
        self.gateway = gateway

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> TranslationApi:
        return cls(ApiGateway.from_settings(settings))

    async def start_translation(self, request: StartRequest) -> StartResponse:
        """Begin a new translation context."""
        return await self._post(START_ENDPOINT, request, StartResponse)

    async def improve_translation(self, request: ImproveRequest) -> ImproveResponse:
        """Revise the latest output of an existing context."""
        return await self._post(IMPROVE_ENDPOINT, request, ImproveResponse)

    async def preview_translation(self, request: PreviewRequest) -> PreviewResponse:
        """Translate without creating a context."""
        return await self._post(PREVIEW_ENDPOINT, request, PreviewResponse)

    async def identify_language(self, request: IdentifyRequest) -> IdentifyResponse:
        """Detect the language of a text; returns a BCP-47 style tag."""
        return await self._post(IDENTIFY_ENDPOINT, request, IdentifyResponse)

    async def _post(
        self,
        endpoint: str,
        request: WireModel,
        response_model: type[ResponseT],
    ) -> ResponseT:
        response = await self.gateway.send(endpoint, request.to_wire())
        data: Any = decode_body(response)
        if not isinstance(data, dict):
            raise UnexpectedResponseError(endpoint, response.status_code, data)
        try:
            return response_model.model_validate(data)
        except ValidationError as e:
            raise UnexpectedResponseError(endpoint, response.status_code, data) from e

    async def aclose(self) -> None:
        await self.gateway.aclose()

    async def __aenter__(self) -> TranslationApi:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
