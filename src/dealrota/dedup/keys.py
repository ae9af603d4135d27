"""Stable item identities for deduplication.

An item id is the SHA-256 of the normalized title followed by the normalized
source name. Normalization lower-cases, drops everything but ASCII letters,
digits and whitespace, and collapses whitespace, so repeated scrapes of the
same listing map to the same id despite cosmetic differences.
"""

from __future__ import annotations

import hashlib
import re

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")


def normalize_text(text: str) -> str:
    """Lower-case, strip punctuation and collapse whitespace."""
    text = _NON_ALNUM.sub("", text.strip().lower())
    return _WHITESPACE.sub(" ", text).strip()


def generate_item_id(title: str | None, source: str | None) -> str | None:
    """Deterministic id for an item, or None if title or source is blank.

    Example:
        >>> generate_item_id("  New Deal!! ", "Amazon") == generate_item_id("new deal", "Amazon")
        True
    """
    normalized_title = normalize_text(title or "")
    normalized_source = normalize_text(source or "")

    if not normalized_title or not normalized_source:
        return None

    digest = hashlib.sha256()
    digest.update((normalized_title + normalized_source).encode("utf-8"))
    return digest.hexdigest()
