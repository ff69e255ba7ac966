"""Event deduplicator — 처리한 트랜잭션 시그니처 추적.

The seen-set is capped. Once it holds ``max_size`` identifiers the whole set
is dropped before the next insert, so memory stays bounded but a duplicate
that arrives after a clear is admitted again.
"""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)

DEFAULT_MAX_SIZE = 1000


class EventDeduplicator:
    """At-most-once admission per identifier between clears.

    Args:
        max_size: 이 개수에 도달하면 전체 초기화.
    """

    def __init__(self, max_size: int = DEFAULT_MAX_SIZE):
        if max_size < 1:
            raise ValueError(f"max_size must be positive: {max_size}")
        self.max_size = max_size
        self._seen: set[str] = set()
        self._lock = threading.Lock()
        self._admitted: int = 0
        self._rejected: int = 0
        self._clears: int = 0

    def observe(self, event_id: str) -> bool:
        """처음 보는 id면 True (admit), 이미 본 id면 False."""
        with self._lock:
            if event_id in self._seen:
                self._rejected += 1
                return False
            if len(self._seen) >= self.max_size:
                logger.info(
                    "Dedup window full (%d ids), clearing", len(self._seen),
                )
                self._seen.clear()
                self._clears += 1
            self._seen.add(event_id)
            self._admitted += 1
            return True

    def clear(self) -> None:
        """수동 초기화."""
        with self._lock:
            self._seen.clear()

    def __contains__(self, event_id: object) -> bool:
        return event_id in self._seen

    def __len__(self) -> int:
        return len(self._seen)

    @property
    def stats(self) -> dict:
        return {
            "tracked": len(self._seen),
            "admitted": self._admitted,
            "rejected": self._rejected,
            "clears": self._clears,
        }
