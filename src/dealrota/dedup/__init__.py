"""Deduplication of discovered items across runs."""

from dealrota.dedup.cache import DedupCache
from dealrota.dedup.keys import generate_item_id, normalize_text

__all__ = ["DedupCache", "generate_item_id", "normalize_text"]
