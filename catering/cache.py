"""
Read-view cache with explicit, tag-based invalidation.

Readers are wrapped with ``st.cache_data`` and registered under the names of
the collections they read. After a write, callers invalidate the collections
they touched and every reader registered under those tags is cleared.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable

import streamlit as st

logger = logging.getLogger(__name__)

_READERS: dict[str, list] = defaultdict(list)


def cached_read(*tags: str) -> Callable:
    if not tags:
        raise ValueError("cached_read needs at least one collection tag.")

    def decorator(fn: Callable) -> Callable:
        cached = st.cache_data(show_spinner=False)(fn)
        for tag in tags:
            _READERS[tag].append(cached)
        return cached

    return decorator


def invalidate(*tags: str) -> int:
    """Clear every reader registered under any of ``tags``. Returns how many were cleared."""
    cleared = set()
    for tag in tags:
        for reader in _READERS.get(tag, []):
            if id(reader) in cleared:
                continue
            reader.clear()
            cleared.add(id(reader))
    logger.debug("Invalidated %d cached reader(s) for %s", len(cleared), ", ".join(tags))
    return len(cleared)


def registered_tags() -> list[str]:
    return sorted(_READERS)
