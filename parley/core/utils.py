"""
Identifiers, tokens and timestamps.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone


def generate_id(prefix: str) -> str:
    """Short random id such as "msg_1f0c9a7e2b4d", used for messages and contexts."""
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


def random_token() -> str:
    """URL-safe random token for session cookies."""
    return secrets.token_urlsafe(32)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)
