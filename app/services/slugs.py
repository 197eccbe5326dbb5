"""
Slug derivation for event URLs
"""

import re

_DISALLOWED = re.compile(r"[^a-z0-9\s-]")
_WHITESPACE = re.compile(r"\s+")
_HYPHENS = re.compile(r"-+")


def generate_slug(title: str) -> str:
    """Turn a free-text title into a URL-safe slug.

    "Happy Birthday!" -> "happy-birthday", "  Multi   Space  " -> "multi-space"
    """
    slug = (title or "").lower().strip()
    slug = _DISALLOWED.sub("", slug)
    slug = _WHITESPACE.sub("-", slug)
    return _HYPHENS.sub("-", slug)


def normalize_title(title: str) -> str:
    """Form used for storage and for uniqueness probes"""
    return (title or "").strip().lower()
