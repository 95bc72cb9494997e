"""
Shared utility functions for the PureTome platform.
"""

from __future__ import annotations

import secrets
import uuid
from datetime import datetime, timezone


def generate_id(prefix: str = "") -> str:
    """
    Generate a unique ID with optional prefix.

    Args:
        prefix: Optional prefix (e.g., "memoir", "inv", "user")

    Returns:
        A unique ID like "memoir_a1b2c3d4e5f6"
    """
    uid = uuid.uuid4().hex[:12]
    return f"{prefix}_{uid}" if prefix else uid


def generate_token(nbytes: int = 32) -> str:
    """Opaque hex token with `nbytes` bytes of entropy."""
    return secrets.token_hex(nbytes)


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(timezone.utc)


def normalize_email(email: str) -> str:
    """Trim and lowercase an email address."""
    return email.strip().lower()
