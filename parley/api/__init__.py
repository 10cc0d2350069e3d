"""
Development server speaking the translation API wire protocol.
"""

from parley.api.app import create_app
from parley.api.engine import (
    MockTranslationEngine,
    TranslationEngine,
    TranslationEngineError,
    create_engine,
)

__all__ = [
    "create_app",
    "TranslationEngine",
    "TranslationEngineError",
    "MockTranslationEngine",
    "create_engine",
]
