"""
Services - stateful workflows built on the API client.
"""

from parley.services.translation import (
    EMPTY_SOURCE_ERROR,
    NoActiveContextError,
    TranslationSession,
)

__all__ = [
    "TranslationSession",
    "NoActiveContextError",
    "EMPTY_SOURCE_ERROR",
]
