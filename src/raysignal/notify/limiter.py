"""Outbound notification rate limiter.

Two limits apply to every post:
    - minimum spacing between attempts (default 60s)
    - rolling capacity per window (default 300 per 15 min, counted from
      the first post of the window)

Payloads that cannot go out immediately wait in a FIFO queue. A failed
post goes back to the front and is retried up to ``max_retries`` attempts
in total, then dropped. A 429 carrying Retry-After pauses every attempt
until that time; a 429 without it uses up the current window.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional

from raysignal.errors import RateLimitedError

logger = logging.getLogger(__name__)

MAX_NOTIFICATION_LENGTH = 280
DEFAULT_MIN_INTERVAL = 60.0
DEFAULT_WINDOW_CAPACITY = 300
DEFAULT_WINDOW_SECONDS = 15 * 60
DEFAULT_MAX_RETRIES = 3
IDLE_POLL_SECONDS = 60.0

# 단어 경계를 찾을 때 뒤로 물러나는 최대 글자 수
_WORD_BOUNDARY_SLACK = 20


class SendOutcome(Enum):
    """send()/drain_once() 결과."""

    SENT = "sent"
    DEFERRED = "deferred"    # spacing 미충족 → 큐
    QUEUED = "queued"        # 윈도우 용량 소진 → 큐
    RETRYING = "retrying"    # 전송 실패 → 큐 맨 앞
    DROPPED = "dropped"      # 재시도 한도 초과 (drain 전용)


@dataclass
class QueuedNotification:
    text: str
    retries: int = 0
    queued_at: float = field(default_factory=time.monotonic)


def truncate(text: str, limit: int = MAX_NOTIFICATION_LENGTH) -> str:
    """limit 이하로 자르고 '...' 부착. 가능하면 단어 경계에서 자름."""
    if len(text) <= limit:
        return text
    cut = text[: limit - 3]
    boundary = max(cut.rfind(" "), cut.rfind("\n"))
    if boundary >= len(cut) - _WORD_BOUNDARY_SLACK:
        cut = cut[:boundary]
    return cut.rstrip() + "..."


class NotificationLimiter:
    """Spacing + rolling-window limiter that owns the retry queue.

    Args:
        post: 실제 전송 코루틴. 실패 시 예외를 던져야 함.
        min_interval: 전송 시도 간 최소 간격 (초).
        window_capacity: 윈도우당 최대 전송 수.
        window_seconds: 윈도우 길이 (초).
        max_retries: 항목당 최대 전송 시도 수.
        clock: 시간 함수 (테스트 주입용).
        sleep: flush()에서 사용하는 대기 함수 (테스트 주입용).
    """

    def __init__(
        self,
        post: Callable[[str], Awaitable[None]],
        min_interval: float = DEFAULT_MIN_INTERVAL,
        window_capacity: int = DEFAULT_WINDOW_CAPACITY,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        max_retries: int = DEFAULT_MAX_RETRIES,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._post = post
        self.min_interval = min_interval
        self.window_capacity = window_capacity
        self.window_seconds = window_seconds
        self.max_retries = max_retries
        self._clock = clock
        self._sleep = sleep

        self._queue: deque[QueuedNotification] = deque()
        self._lock = asyncio.Lock()
        self._wake = asyncio.Event()
        self._stopping = False

        self._last_attempt: Optional[float] = None
        # 서버가 Retry-After로 지정한 재개 시각
        self._blocked_until: Optional[float] = None
        self._window_start: Optional[float] = None
        self._window_remaining = window_capacity

        self._counts: dict[str, int] = {o.value: 0 for o in SendOutcome}
        self._failures: int = 0

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send(self, payload: str) -> SendOutcome:
        """즉시 전송 시도. 불가하면 큐에 넣고 사유를 반환."""
        text = truncate(payload)
        async with self._lock:
            now = self._clock()
            self._roll_window(now)

            if self._window_remaining <= 0:
                self._enqueue(QueuedNotification(text, queued_at=now))
                logger.warning(
                    "Notification capacity exhausted, queued (queue=%d)", len(self._queue),
                )
                return self._count(SendOutcome.QUEUED)

            if self._queue or self._spacing_wait(now) > 0:
                self._enqueue(QueuedNotification(text, queued_at=now))
                logger.info(
                    "Notification deferred %.1fs (queue=%d)",
                    self._spacing_wait(now), len(self._queue),
                )
                return self._count(SendOutcome.DEFERRED)

            item = QueuedNotification(text, queued_at=now)
            return self._count(await self._attempt(item, now))

    async def drain_once(self) -> Optional[SendOutcome]:
        """큐 맨 앞 항목을 한 번 전송 시도. 보낼 수 없으면 None."""
        async with self._lock:
            if not self._queue:
                return None
            now = self._clock()
            self._roll_window(now)
            if self._window_remaining <= 0 or self._spacing_wait(now) > 0:
                return None
            item = self._queue.popleft()
            return self._count(await self._attempt(item, now))

    def next_delay(self) -> Optional[float]:
        """다음 큐 항목을 보낼 수 있을 때까지 남은 초. 큐가 비면 None."""
        if not self._queue:
            return None
        now = self._clock()
        delay = self._spacing_wait(now)
        if self._window_remaining <= 0 and self._window_start is not None:
            delay = max(delay, self._window_start + self.window_seconds - now)
        return max(0.0, delay)

    async def run(self) -> None:
        """Background drain loop. stop() 호출 시 종료."""
        logger.info("Notification drain started")
        while not self._stopping:
            if await self.drain_once() is not None:
                continue
            delay = self.next_delay()
            self._wake.clear()
            try:
                await asyncio.wait_for(
                    self._wake.wait(),
                    timeout=delay if delay is not None else IDLE_POLL_SECONDS,
                )
            except asyncio.TimeoutError:
                pass
        logger.info("Notification drain stopped (queue=%d)", len(self._queue))

    def stop(self) -> None:
        self._stopping = True
        self._wake.set()

    async def flush(self, max_wait: float = 300.0) -> int:
        """종료 시 큐 비우기. limits는 그대로 지킴.

        Returns:
            이번 flush에서 전송된 개수.
        """
        sent = 0
        started = self._clock()
        while self._queue:
            outcome = await self.drain_once()
            if outcome is SendOutcome.SENT:
                sent += 1
                continue
            if outcome is not None:
                continue
            delay = self.next_delay()
            if delay is None:
                break
            if self._clock() - started + delay > max_wait:
                logger.warning(
                    "Flush gave up with %d notification(s) pending", len(self._queue),
                )
                break
            await self._sleep(delay)
        return sent

    @property
    def queue_size(self) -> int:
        return len(self._queue)

    def stats(self) -> dict:
        return {
            **self._counts,
            "failures": self._failures,
            "queue_size": len(self._queue),
            "window_remaining": self._window_remaining,
        }

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _attempt(self, item: QueuedNotification, now: float) -> SendOutcome:
        """전송 1회. 호출자가 lock 보유."""
        self._last_attempt = now
        try:
            await self._post(item.text)
        except Exception as exc:
            self._failures += 1
            item.retries += 1
            if isinstance(exc, RateLimitedError):
                if exc.retry_after is not None:
                    self._blocked_until = now + exc.retry_after
                else:
                    # Retry-After 없음 → 이번 윈도우는 소진된 것으로 간주
                    self._window_remaining = 0
                    if self._window_start is None:
                        self._window_start = now
            if item.retries >= self.max_retries:
                logger.error(
                    "Notification dropped after %d attempts: %s", item.retries, exc,
                )
                return SendOutcome.DROPPED
            logger.warning(
                "Notification failed (attempt %d/%d): %s",
                item.retries, self.max_retries, exc,
            )
            self._queue.appendleft(item)
            self._wake.set()
            return SendOutcome.RETRYING

        self._window_remaining -= 1
        if self._window_start is None:
            self._window_start = now
        return SendOutcome.SENT

    def _enqueue(self, item: QueuedNotification) -> None:
        self._queue.append(item)
        self._wake.set()

    def _spacing_wait(self, now: float) -> float:
        wait = 0.0
        if self._last_attempt is not None:
            wait = self.min_interval - (now - self._last_attempt)
        if self._blocked_until is not None:
            wait = max(wait, self._blocked_until - now)
        return max(0.0, wait)

    def _roll_window(self, now: float) -> None:
        if self._window_start is not None and now - self._window_start >= self.window_seconds:
            self._window_start = None
            self._window_remaining = self.window_capacity

    def _count(self, outcome: SendOutcome) -> SendOutcome:
        self._counts[outcome.value] += 1
        return outcome
