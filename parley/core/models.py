"""
Core data models.

Two groups live here: the wire shapes exchanged with the translation API
(camelCase on the wire, snake_case in Python), and the client-side state
the UI renders (context, history, reverse preview).
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from parley.core.utils import generate_id, utc_now


# =============================================================================
# Wire Models
# =============================================================================


class WireModel(BaseModel):
    """Base for request/response bodies. Accepts either field names or aliases."""

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class StartRequest(WireModel):
    source: str
    lang: str


class StartResponse(WireModel):
    context_id: str = Field(alias="contextId")
    result: str
    source_lang: str = Field(default="", alias="sourceLang")


class ImproveRequest(WireModel):
    context_id: str = Field(alias="contextId")
    feedback: str


class ImproveResponse(WireModel):
    result: str


class PreviewRequest(WireModel):
    source: str
    lang: str


class PreviewResponse(WireModel):
    result: str


class IdentifyRequest(WireModel):
    source: str


class IdentifyResponse(WireModel):
    lang: str


# =============================================================================
# Enums
# =============================================================================


class HistoryKind(str, Enum):
    """How a history entry was produced."""

    INITIAL = "initial"  # First translation of a context
    IMPROVE = "improve"  # Revision driven by user feedback


# =============================================================================
# Composition
# =============================================================================


class Message(BaseModel):
    """One message turn the user is composing."""

    id: str = Field(default_factory=lambda: generate_id("msg"))
    text: str = ""


# =============================================================================
# Translation State
# =============================================================================


class TranslationContext(BaseModel):
    """
    A server-side translation thread as seen by the client.

    Replaced wholesale by each new translation; only `output` changes
    when the translation is improved.
    """

    context_id: str | None = None
    output: str = ""
    source_lang: str = ""
    target_lang: str = ""


class HistoryItem(BaseModel):
    """Immutable record of one translation or improvement step."""

    model_config = ConfigDict(frozen=True)

    kind: HistoryKind
    text: str
    at: datetime = Field(default_factory=utc_now)
    feedback: str | None = None  # Only set for IMPROVE


class ReverseView(BaseModel):
    """Cached back-translation of the current output."""

    active: bool = False
    forward_text: str = ""
    preview: str | None = None


class LoadingState(BaseModel):
    translate: bool = False
    improve: bool = False
    language_detection: bool = False


class TranslationState(BaseModel):
    """Everything the UI needs to render a translation session."""

    context: TranslationContext = Field(default_factory=TranslationContext)
    history: list[HistoryItem] = Field(default_factory=list)
    loading: LoadingState = Field(default_factory=LoadingState)
    loading_target: str | None = None
    error: str | None = None
    detected_lang: str = ""
    reverse: ReverseView = Field(default_factory=ReverseView)
