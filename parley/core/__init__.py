"""
Core models and utilities shared by the client, services and dev server.
"""

from parley.core.models import (
    HistoryItem,
    HistoryKind,
    IdentifyRequest,
    IdentifyResponse,
    ImproveRequest,
    ImproveResponse,
    LoadingState,
    Message,
    PreviewRequest,
    PreviewResponse,
    ReverseView,
    StartRequest,
    StartResponse,
    TranslationContext,
    TranslationState,
)
from parley.core.utils import generate_id, random_token, utc_now

__all__ = [
    # Wire
    "StartRequest",
    "StartResponse",
    "ImproveRequest",
    "ImproveResponse",
    "PreviewRequest",
    "PreviewResponse",
    "IdentifyRequest",
    "IdentifyResponse",
    # State
    "Message",
    "TranslationContext",
    "HistoryItem",
    "HistoryKind",
    "ReverseView",
    "LoadingState",
    "TranslationState",
    # Utils
    "generate_id",
    "random_token",
    "utc_now",
]
