"""
Language lists and tag helpers.

Usage:
    from parley.i18n import get_available_languages, to_language_name

    targets = get_available_languages(exclude_lang="en-US")
    label = to_language_name("ja-JP")  # -> "Japanese"
"""

from parley.i18n.languages import (
    Language,
    COMMON_LANGUAGES,
    LANGUAGE_NAMES,
    LANGUAGE_TO_COUNTRY,
    get_available_languages,
    get_flag_emoji,
    get_language_label,
    get_primary_lang,
    is_valid_language_tag,
    to_language_name,
)

__all__ = [
    "Language",
    "COMMON_LANGUAGES",
    "LANGUAGE_NAMES",
    "LANGUAGE_TO_COUNTRY",
    "get_available_languages",
    "get_flag_emoji",
    "get_language_label",
    "get_primary_lang",
    "is_valid_language_tag",
    "to_language_name",
]
