"""In-memory TTL cache for token metadata lookups.

mint → (metadata, timestamp).
"""

from __future__ import annotations

import time
from typing import Callable

from raysignal.models.token import TokenMetadata

DEFAULT_TTL_SECONDS = 300.0

_MISSING = object()


class MetadataCache:
    """Token metadata cache with expiry and hit/miss statistics.

    Args:
        ttl_seconds: 캐시 유효 시간 (기본 5분).
        clock: 시간 함수 (테스트 주입용).
    """

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[str, tuple[TokenMetadata, float]] = {}
        self._hits: int = 0
        self._misses: int = 0

    def get(self, mint: str, default=_MISSING):
        """캐시 조회. 만료/없음이면 default (미지정 시 KeyError)."""
        entry = self._entries.get(mint)
        if entry is not None and (self._clock() - entry[1]) < self.ttl_seconds:
            self._hits += 1
            return entry[0]
        if entry is not None:
            del self._entries[mint]
        self._misses += 1
        if default is _MISSING:
            raise KeyError(mint)
        return default

    def put(self, mint: str, metadata: TokenMetadata) -> None:
        self._entries[mint] = (metadata, self._clock())

    def __contains__(self, mint: object) -> bool:
        entry = self._entries.get(mint)  # type: ignore[arg-type]
        return entry is not None and (self._clock() - entry[1]) < self.ttl_seconds

    def clear(self) -> None:
        self._entries.clear()
        self._hits = 0
        self._misses = 0

    @property
    def hit_rate(self) -> float:
        total = self._hits + self._misses
        return self._hits / total if total > 0 else 0.0

    @property
    def stats(self) -> dict:
        return {
            "cached": len(self._entries),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": round(self.hit_rate, 3),
        }
