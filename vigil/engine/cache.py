# Vigil: Static Security Analyzer for Python
# Copyright (C) 2026 Vigil Project Contributors
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published
# by the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE. See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program. If not, see <https://www.gnu.org/licenses/>.

"""Shared memoizing cache for repeatable per-string analyses.

Rules that score string literals (entropy, secret-pattern scans, regex
matches) see the same literal many times across a tree. The cache is
shared by every worker thread, so all reads and writes go through one lock.
"""

from __future__ import annotations

import logging
import re
import threading
from collections import OrderedDict
from enum import Enum
from typing import Any, Callable, Hashable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CAPACITY = 1 << 16

_MISSING = object()


class CacheKind(str, Enum):
    """Namespaces for cached values, so identical strings never collide."""

    REGEX = "regex"
    ENTROPY = "entropy"
    SECRET_PATTERN = "secret_pattern"


class LRUCache:
    """Thread-safe fixed-capacity LRU cache."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError(f"cache capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[Hashable, Any] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, default: Any = None) -> Any:
        with self._lock:
            if key not in self._entries:
                self.misses += 1
                return default
            # Move to end (most recently used)
            self._entries.move_to_end(key)
            self.hits += 1
            return self._entries[key]

    def add(self, key: Hashable, value: Any) -> None:
        with self._lock:
            if key in self._entries:
                self._entries.move_to_end(key)
                self._entries[key] = value
                return
            if len(self._entries) >= self.capacity:
                # Remove oldest
                self._entries.popitem(last=False)
            self._entries[key] = value

    def get_or_compute(self, key: Hashable, compute: Callable[[], T]) -> T:
        """Return the cached value for key, computing and storing it on a miss.

        ``compute`` runs outside the lock. Two threads missing on the same
        key at once may both compute it; the last write wins and both
        callers get an equal value.
        """
        value = self.get(key, _MISSING)
        if value is not _MISSING:
            return value
        value = compute()
        self.add(key, value)
        return value

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "hits": self.hits,
                "misses": self.misses,
            }


GLOBAL_CACHE = LRUCache()


def memoize(kind: CacheKind, key: Hashable, compute: Callable[[], T], cache: Optional[LRUCache] = None) -> T:
    """Memoize ``compute()`` under (kind, key) in the shared cache."""
    target = GLOBAL_CACHE if cache is None else cache
    return target.get_or_compute((kind, key), compute)


def regex_search(pattern: re.Pattern, text: str, cache: Optional[LRUCache] = None) -> bool:
    """Cached ``bool(pattern.search(text))``."""
    return memoize(
        CacheKind.REGEX,
        (pattern.pattern, pattern.flags, text),
        lambda: pattern.search(text) is not None,
        cache,
    )
