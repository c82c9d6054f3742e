"""
Bounded cache of recent traversals, keyed by request id.
"""

import threading
from collections import OrderedDict
from typing import List, Optional, Tuple

from .models import TraversalStep


class TraversalCache:
    """Least-recently-stored eviction once max_entries is exceeded."""

    def __init__(self, max_entries: int = 100):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, List[TraversalStep]]" = OrderedDict()
        self._lock = threading.Lock()

    def put(self, request_id: str, steps: List[TraversalStep]):
        with self._lock:
            self._entries.pop(request_id, None)
            self._entries[request_id] = list(steps)
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)

    def get(self, request_id: str) -> Optional[List[TraversalStep]]:
        with self._lock:
            steps = self._entries.get(request_id)
            return list(steps) if steps is not None else None

    def latest(self) -> Optional[Tuple[str, List[TraversalStep]]]:
        """Most recently stored (request_id, steps), if any."""
        with self._lock:
            if not self._entries:
                return None
            request_id = next(reversed(self._entries))
            return request_id, list(self._entries[request_id])

    def clear(self):
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
