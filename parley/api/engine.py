"""
Translation engines behind the dev server.

An engine turns source text into translations and keeps the per-context
conversation needed to improve a translation later. Only a deterministic
mock ships here; it answers a fixed script so the client can be exercised
end to end without a language model.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass

from parley.core.utils import generate_id
from parley.i18n.languages import get_primary_lang


class TranslationEngineError(Exception):
    """The engine could not produce a result."""
    pass


class TranslationEngine(ABC):
    """
    Base class for translation engines.

    Example:
        class EchoEngine(TranslationEngine):
            async def new_translation(self, source, lang):
                return generate_id("ctx"), source
            ...
    """

    @abstractmethod
    async def new_translation(self, source: str, lang: str) -> tuple[str, str]:
        """
        Translate `source` into `lang` and open a context for improvements.

        Returns:
            (context_id, translated text)
        """
        pass

    @abstractmethod
    async def improve(self, context_id: str, feedback: str) -> str:
        """Revise the latest translation of a context using feedback."""
        pass

    async def preview(self, source: str, lang: str) -> str:
        """Translate without keeping a context."""
        context_id, result = await self.new_translation(source, lang)
        self.discard(context_id)
        return result

    @abstractmethod
    async def identify(self, source: str) -> str:
        """Return a BCP-47 tag for the language of `source`."""
        pass

    def discard(self, context_id: str) -> None:
        """Forget a context. Engines without per-context state can ignore this."""
        pass


# =============================================================================
# Mock Engine
# =============================================================================


# Samples the mock recognises, checked in order
MOCK_IDENTIFICATIONS: list[tuple[str, str]] = [
    ("Hello.", "en-US"),
    ("こんにちは。", "ja-JP"),
    ("Hola.", "es-ES"),
    ("Hallo.", "de-DE"),
]

# Initial translation followed by three rounds of improvement
MOCK_SCRIPTS: dict[str, list[str]] = {
    "ja": [
        "こにちは。ピザがすきです。",
        "こんにちは。ピザが大好きです。",
        "こんにちは。トマトとチーズが入っているので、ピザが大好きです。",
        "やあ、友よ！ピザって最高だよね！",
    ],
    "es": [
        "Hola. Me gusta la pizza.",
        "Hola. Me encanta la pizza.",
        "Hola. Me encanta la pizza porque tiene tomate y queso.",
        "¡Hola amigo! ¡La pizza es lo mejor!",
    ],
    "de": [
        "Hallo. Ich mag Pizza.",
        "Hallo. Ich liebe Pizza.",
        "Hallo. Ich liebe Pizza, weil sie Tomaten und Käse enthält.",
        "Hallo Freund! Pizza ist das Beste!",
    ],
}


@dataclass
class _MockContext:
    source: str
    lang: str
    rounds: int = 0  # Improvements applied so far


class MockTranslationEngine(TranslationEngine):
    """
    Scripted engine for development and tests.

    Japanese, Spanish and German targets follow `MOCK_SCRIPTS`; anything
    else (or a round past the script) answers "[<lang>] <text>".
    """

    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self._contexts: dict[str, _MockContext] = {}

    async def _wait(self) -> None:
        if self.delay > 0:
            await asyncio.sleep(self.delay)

    def _render(self, context: _MockContext, feedback: str = "") -> str:
        script = MOCK_SCRIPTS.get(get_primary_lang(context.lang))
        if script and context.rounds < len(script):
            return script[context.rounds]
        text = feedback or context.source
        return f"[{context.lang}] {text}"

    async def new_translation(self, source: str, lang: str) -> tuple[str, str]:
        await self._wait()
        context_id = generate_id("ctx")
        context = _MockContext(source=source, lang=lang)
        self._contexts[context_id] = context
        return context_id, self._render(context)

    async def improve(self, context_id: str, feedback: str) -> str:
        await self._wait()
        context = self._contexts.get(context_id)
        if context is None:
            raise TranslationEngineError("context expired or not found")
        context.rounds += 1
        return self._render(context, feedback)

    async def identify(self, source: str) -> str:
        await self._wait()
        for sample, tag in MOCK_IDENTIFICATIONS:
            if sample in source:
                return tag
        return "en-US"

    def discard(self, context_id: str) -> None:
        self._contexts.pop(context_id, None)


def create_engine(name: str, delay: float = 0.0) -> TranslationEngine:
    """Build the engine named in settings."""
    if name == "mock":
        return MockTranslationEngine(delay=delay)
    raise ValueError(f"Unknown engine: {name}")
