"""Shared utility helpers."""

from app.core.utils.text import email_local_part, generate_slug, normalize_domain
from app.core.utils.time import as_utc, is_past, utcnow


__all__ = [
    "as_utc",
    "email_local_part",
    "generate_slug",
    "is_past",
    "normalize_domain",
    "utcnow",
]
