"""Bounded in-memory cache for analysis reports."""

from __future__ import annotations

import hashlib
import logging
from collections import OrderedDict
from typing import Iterable, Optional

from poetik.models import AnalysisReport

logger = logging.getLogger("poetik")


def text_key(text: str, aspects: Optional[Iterable[str]] = None) -> str:
    """Cache key from the text and the requested aspect set."""
    scope = ",".join(sorted(str(a) for a in aspects)) if aspects else "*"
    return hashlib.sha256(f"{scope}\x00{text}".encode("utf-8")).hexdigest()


class AnalysisCache:
    """LRU cache with an explicit lifecycle.

    ``get`` refreshes an entry; ``put`` beyond *capacity* evicts the least
    recently used one. A capacity of 0 disables storage.
    """

    def __init__(self, capacity: int = 32):
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0 (got {capacity})")
        self.capacity = capacity
        self._entries: OrderedDict[str, AnalysisReport] = OrderedDict()
        self.hits = 0
        self.misses = 0

    def init(self) -> "AnalysisCache":
        """Reset entries and counters; returns self."""
        self._entries.clear()
        self.hits = 0
        self.misses = 0
        return self

    def get(self, key: str) -> Optional[AnalysisReport]:
        report = self._entries.get(key)
        if report is None:
            self.misses += 1
            return None
        self._entries.move_to_end(key)
        self.hits += 1
        return report

    def put(self, key: str, report: AnalysisReport) -> None:
        if self.capacity == 0:
            return
        self._entries[key] = report
        self._entries.move_to_end(key)
        while len(self._entries) > self.capacity:
            self.evict()

    def evict(self, key: Optional[str] = None) -> Optional[str]:
        """Drop *key*, or the least recently used entry when no key is given.

        Returns the evicted key, or None if nothing was removed.
        """
        if key is not None:
            if self._entries.pop(key, None) is None:
                return None
            return key
        if not self._entries:
            return None
        oldest, _ = self._entries.popitem(last=False)
        logger.debug("Cache evicted %s", oldest[:12])
        return oldest

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)
