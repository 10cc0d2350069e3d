"""
Translation session state.

`TranslationSession` holds what a translation UI renders: the messages
being composed, the current context and its history, loading flags, the
last error, the detected source language and the reverse preview. Every
network call goes through `TranslationApi`.
"""

from __future__ import annotations

import logging

import httpx

from parley.client.api import TranslationApi
from parley.client.gateway import ApiError
from parley.core.models import (
    HistoryItem,
    HistoryKind,
    IdentifyRequest,
    ImproveRequest,
    Message,
    PreviewRequest,
    ReverseView,
    StartRequest,
    TranslationContext,
    TranslationState,
)
from parley.i18n.languages import get_primary_lang

logger = logging.getLogger(__name__)

EMPTY_SOURCE_ERROR = "Please enter a message to translate"


class NoActiveContextError(RuntimeError):
    """Improve was requested before any translation was started."""

    def __init__(self):
        super().__init__("No active translation context")


class TranslationSession:
    """
    One user's translation workflow.

    Usage:
        session = TranslationSession(api)

        session.update_message(session.messages[0].id, "Hello.")
        session.add_message("I like pizza.")

        await session.translate("ja")
        await session.improve("More formal")
        await session.toggle_reverse()   # show the output back in English

        print(session.display_text)
    """

    def __init__(self, api: TranslationApi):
        self.api = api
        self.state = TranslationState()
        self.messages: list[Message] = [Message()]

    # =========================================================================
    # Composition
    # =========================================================================

    def add_message(self, text: str = "") -> Message:
        message = Message(text=text)
        self.messages.append(message)
        return message

    def update_message(self, message_id: str, text: str) -> Message:
        message = self._get_message(message_id)
        message.text = text
        return message

    def remove_message(self, message_id: str) -> None:
        """Remove a message. The last one left is cleared instead."""
        message = self._get_message(message_id)
        if len(self.messages) == 1:
            message.text = ""
            return
        self.messages.remove(message)

    def compose_source(self) -> str:
        """All message turns as a single source text."""
        return " ".join(m.text for m in self.messages).strip()

    def _get_message(self, message_id: str) -> Message:
        for message in self.messages:
            if message.id == message_id:
                return message
        raise KeyError(f"Message not found: {message_id}")

    # =========================================================================
    # Translation
    # =========================================================================

    async def translate(self, target_lang: str, source: str | None = None) -> str | None:
        """
        Start a new translation, replacing the current context and history.

        Args:
            target_lang: Target language tag
            source: Text to translate (defaults to the composed messages)

        Returns:
            The translated text, or None when there was nothing to translate
        """
        if source is None:
            source = self.compose_source()

        if not source.strip():
            self.state.error = EMPTY_SOURCE_ERROR
            return None

        self.state.loading.translate = True
        self.state.loading_target = target_lang
        self.state.error = None

        try:
            response = await self.api.start_translation(
                StartRequest(source=source.strip(), lang=target_lang)
            )

            self.state.context = TranslationContext(
                context_id=response.context_id,
                output=response.result,
                source_lang=response.source_lang or "",
                target_lang=target_lang,
            )
            self.state.history = [
                HistoryItem(kind=HistoryKind.INITIAL, text=response.result)
            ]
            return response.result

        except Exception as e:
            self.state.error = str(e) or "Translation failed"
            raise
        finally:
            self.state.loading.translate = False
            self.state.loading_target = None

    async def improve(self, feedback: str) -> str:
        """Revise the current output using free-text feedback."""
        context_id = self.state.context.context_id
        if not context_id:
            raise NoActiveContextError()

        self.state.loading.improve = True

        try:
            feedback = feedback.strip()
            response = await self.api.improve_translation(
                ImproveRequest(context_id=context_id, feedback=feedback)
            )

            self.state.context.output = response.result
            self.state.history.append(
                HistoryItem(
                    kind=HistoryKind.IMPROVE,
                    text=response.result,
                    feedback=feedback,
                )
            )
            return response.result

        except Exception as e:
            self.state.error = str(e) or "Improvement failed"
            raise
        finally:
            self.state.loading.improve = False

    async def preview(self, source: str, lang: str) -> str:
        """Stateless translation; does not touch the current context."""
        try:
            response = await self.api.preview_translation(
                PreviewRequest(source=source, lang=lang)
            )
        except (ApiError, httpx.HTTPError) as e:
            logger.warning(f"Preview failed: {e}")
            raise
        return response.result

    # =========================================================================
    # Language Detection
    # =========================================================================

    async def detect_language(self, text: str) -> str | None:
        """
        Identify the language of `text` and remember it.

        Failures are logged and reported as None; detection is advisory.
        """
        if not text.strip():
            self.state.detected_lang = ""
            self.state.loading.language_detection = False
            return None

        self.state.loading.language_detection = True
        try:
            response = await self.api.identify_language(IdentifyRequest(source=text.strip()))
            self.state.detected_lang = response.lang
            return response.lang
        except (ApiError, httpx.HTTPError) as e:
            logger.warning(f"Language identification failed: {e}")
            self.state.detected_lang = ""
            return None
        finally:
            self.state.loading.language_detection = False

    # =========================================================================
    # Reverse Preview
    # =========================================================================

    def _sync_reverse(self) -> ReverseView:
        """Drop the cached preview once the output it mirrors has changed."""
        output = self.state.context.output
        if self.state.reverse.forward_text != output:
            self.state.reverse = ReverseView(forward_text=output)
        return self.state.reverse

    async def toggle_reverse(self) -> bool:
        """
        Switch between the output and its back-translation.

        Returns:
            Whether the reverse view is active afterwards
        """
        context = self.state.context
        reverse = self._sync_reverse()

        if not context.output or not context.source_lang:
            return reverse.active

        if reverse.active:
            reverse.active = False
            return False

        if reverse.preview is not None:
            reverse.active = True
            return True

        forward_text = context.output
        try:
            result = await self.preview(forward_text, get_primary_lang(context.source_lang))
        except (ApiError, httpx.HTTPError):
            return False

        self.state.reverse = ReverseView(
            active=True,
            forward_text=forward_text,
            preview=result,
        )
        return True

    @property
    def display_text(self) -> str:
        reverse = self._sync_reverse()
        if reverse.active and reverse.preview is not None:
            return reverse.preview
        return self.state.context.output

    @property
    def history(self) -> list[HistoryItem]:
        return list(self.state.history)
