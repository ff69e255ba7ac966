"""Cooldown gate — 전역 거래 쿨다운 + 일일 거래 횟수 한도.

One cooldown window applies to every token: a single execution blocks all
executions until the window has elapsed.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class GateBlock(Enum):
    """거래 차단 사유."""

    COOLDOWN = "cooldown"
    DAILY_LIMIT = "daily_limit"


@dataclass(frozen=True)
class GateDecision:
    """게이트 체크 결과."""

    approved: bool
    block: Optional[GateBlock] = None
    remaining_seconds: float = 0.0
    trades_today: int = 0


def _local_day(ts: float) -> date:
    """프로세스 로컬 시계 기준 날짜."""
    return datetime.fromtimestamp(ts).date()


class CooldownGate:
    """Track last execution and per-day counts; answer "may I execute now?".

    Args:
        cooldown_seconds: 거래 간 최소 간격 (초).
        max_daily_trades: 하루 최대 거래 횟수.
        clock: 현재 unix 시간 함수 (테스트 주입용).
    """

    def __init__(
        self,
        cooldown_seconds: float = 300,
        max_daily_trades: int = 10,
        clock: Callable[[], float] = time.time,
    ):
        self.cooldown_seconds = cooldown_seconds
        self.max_daily_trades = max_daily_trades
        self._clock = clock
        self._last_execution: Optional[float] = None
        self._daily_counts: dict[date, int] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def remaining_cooldown(self) -> float:
        """남은 쿨다운 (초). 쿨다운 아니면 0."""
        if self._last_execution is None:
            return 0.0
        elapsed = self._clock() - self._last_execution
        return max(0.0, self.cooldown_seconds - elapsed)

    def trades_today(self) -> int:
        with self._lock:
            self._prune(self._clock())
            return self._daily_counts.get(_local_day(self._clock()), 0)

    def check(self) -> GateDecision:
        """쿨다운 → 일일 한도 순으로 체크."""
        with self._lock:
            return _warn_if_capped(self._check_locked(self._clock()), self.max_daily_trades)

    def may_execute(self) -> bool:
        return self.check().approved

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def record_execution(self) -> None:
        """거래 시도 기록 (타임스탬프 + 오늘 카운트)."""
        with self._lock:
            self._record_locked(self._clock())

    def try_reserve(self) -> GateDecision:
        """Check and record as one critical section.

        No other caller can be admitted between this check and its record.
        """
        with self._lock:
            now = self._clock()
            decision = self._check_locked(now)
            if decision.approved:
                self._record_locked(now)
                return GateDecision(
                    approved=True,
                    trades_today=decision.trades_today + 1,
                )
            return _warn_if_capped(decision, self.max_daily_trades)

    def reset(self) -> None:
        """수동 리셋."""
        with self._lock:
            self._last_execution = None
            self._daily_counts.clear()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _check_locked(self, now: float) -> GateDecision:
        self._prune(now)
        today_count = self._daily_counts.get(_local_day(now), 0)

        if self._last_execution is not None:
            elapsed = now - self._last_execution
            if elapsed < self.cooldown_seconds:
                return GateDecision(
                    approved=False,
                    block=GateBlock.COOLDOWN,
                    remaining_seconds=self.cooldown_seconds - elapsed,
                    trades_today=today_count,
                )

        if today_count >= self.max_daily_trades:
            return GateDecision(
                approved=False,
                block=GateBlock.DAILY_LIMIT,
                trades_today=today_count,
            )

        return GateDecision(approved=True, trades_today=today_count)

    def _record_locked(self, now: float) -> None:
        self._last_execution = now
        today = _local_day(now)
        self._daily_counts[today] = self._daily_counts.get(today, 0) + 1
        logger.info(
            "Execution recorded: %d/%d today, cooldown %ds",
            self._daily_counts[today], self.max_daily_trades, self.cooldown_seconds,
        )

    def _prune(self, now: float) -> None:
        """하루 이상 지난 날짜 제거."""
        cutoff = _local_day(now) - timedelta(days=1)
        for day in [d for d in self._daily_counts if d < cutoff]:
            del self._daily_counts[day]

    def stats(self) -> dict:
        """상태 스냅샷. 로그 없음."""
        with self._lock:
            decision = self._check_locked(self._clock())
        return {
            "in_cooldown": decision.block is GateBlock.COOLDOWN,
            "cooldown_remaining": round(decision.remaining_seconds, 1),
            "trades_today": decision.trades_today,
            "max_daily_trades": self.max_daily_trades,
        }


def _warn_if_capped(decision: GateDecision, max_daily_trades: int) -> GateDecision:
    if decision.block is GateBlock.DAILY_LIMIT:
        logger.warning(
            "Daily trade limit reached: %d/%d", decision.trades_today, max_daily_trades,
        )
    return decision
