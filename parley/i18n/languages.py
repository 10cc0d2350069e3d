"""
Target languages offered by the UI, and tag utilities.

Tags are BCP-47 style ("en", "en-US", "zh-Hant-TW"). Most lookups work on
the primary subtag so that "ja-JP" and "ja" are treated alike.
"""

from __future__ import annotations

import re
from enum import Enum


class Language(str, Enum):
    """Languages offered as translation targets, in picker order."""

    JA = "ja"      # Japanese
    EN = "en"      # English
    PT = "pt"      # Portuguese
    ES = "es"      # Spanish
    DE = "de"      # German
    FR = "fr"      # French
    IT = "it"      # Italian
    ZH = "zh"      # Chinese
    KO = "ko"      # Korean
    RU = "ru"      # Russian
    AR = "ar"      # Arabic
    HI = "hi"      # Hindi
    NL = "nl"      # Dutch
    SV = "sv"      # Swedish
    TR = "tr"      # Turkish


COMMON_LANGUAGES: list[Language] = list(Language)


# Picker labels (only where they differ from the plain name)
LANGUAGE_LABELS: dict[str, str] = {
    "zh": "Chinese (zh)",
}


# Human-readable names, including the regional tags the identify endpoint returns
LANGUAGE_NAMES: dict[str, str] = {
    "en": "English",
    "en-US": "American English",
    "ja": "Japanese",
    "ja-JP": "Japanese",
    "es": "Spanish",
    "es-ES": "Spanish",
    "de": "German",
    "de-DE": "German",
    "fr": "French",
    "it": "Italian",
    "pt": "Portuguese",
    "zh": "Chinese",
    "ko": "Korean",
    "ru": "Russian",
    "ar": "Arabic",
    "hi": "Hindi",
    "nl": "Dutch",
    "sv": "Swedish",
    "tr": "Turkish",
}


# Flag shown next to a language (a language is not a country, this is a UI choice)
LANGUAGE_TO_COUNTRY: dict[str, str] = {
    "en": "GB",
    "ja": "JP",
    "es": "ES",
    "de": "DE",
    "fr": "FR",
    "it": "IT",
    "zh": "CN",
    "ko": "KR",
    "pt": "PT",
    "ru": "RU",
    "ar": "SA",
    "hi": "IN",
    "nl": "NL",
    "sv": "SE",
    "tr": "TR",
}


# language[-script][-region][-variant...], case-insensitive
_TAG_PATTERN = re.compile(
    r"^[a-z]{2,3}"
    r"(-[a-z]{4})?"
    r"(-([a-z]{2}|[0-9]{3}))?"
    r"(-([a-z0-9]{5,8}|[0-9][a-z0-9]{3}))*$",
    re.IGNORECASE,
)


# =============================================================================
# Utilities
# =============================================================================


def get_primary_lang(code: str) -> str:
    """Primary subtag, lowercased: "ja-JP" -> "ja"."""
    return code.split("-")[0].lower()


def to_language_name(tag: str) -> str:
    """Human-readable name for a tag, or the tag itself if unknown."""
    return LANGUAGE_NAMES.get(tag) or tag


def get_language_label(code: str) -> str:
    """Label shown in the language picker."""
    return LANGUAGE_LABELS.get(code) or to_language_name(code)


def get_available_languages(exclude_lang: str | None = None) -> list[Language]:
    """
    Languages to offer as targets.

    Args:
        exclude_lang: Detected source language; it and its regional
            variants are left out.
    """
    if not exclude_lang:
        return list(COMMON_LANGUAGES)

    exclude = get_primary_lang(exclude_lang)
    return [lang for lang in COMMON_LANGUAGES if get_primary_lang(lang.value) != exclude]


def get_flag_emoji(code: str) -> str | None:
    """Regional-indicator flag for a language, or None if there is no country."""
    lang = get_primary_lang(code)
    country = LANGUAGE_TO_COUNTRY.get(lang) or lang.upper()

    if len(country) != 2 or not country.isalpha():
        return None

    return "".join(chr(127397 + ord(c)) for c in country)


def is_valid_language_tag(tag: str) -> bool:
    """Check that a tag is shaped like a BCP-47 language tag."""
    return bool(tag) and _TAG_PATTERN.match(tag) is not None
