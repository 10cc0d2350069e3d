"""
Session-authenticated client for the translation API.

Usage:
    from parley.client import TranslationApi
    from parley.core.models import StartRequest

    async with TranslationApi.from_settings() as api:
        started = await api.start_translation(StartRequest(source="Hello", lang="es"))
"""

from parley.client.api import (
    IDENTIFY_ENDPOINT,
    IMPROVE_ENDPOINT,
    PREVIEW_ENDPOINT,
    START_ENDPOINT,
    TranslationApi,
)
from parley.client.gateway import ApiError, ApiGateway, UnexpectedResponseError
from parley.client.session import SessionManager

__all__ = [
    "TranslationApi",
    "ApiGateway",
    "SessionManager",
    # Errors
    "ApiError",
    "UnexpectedResponseError",
    # Endpoints
    "START_ENDPOINT",
    "IMPROVE_ENDPOINT",
    "PREVIEW_ENDPOINT",
    "IDENTIFY_ENDPOINT",
]
