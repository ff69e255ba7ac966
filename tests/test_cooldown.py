"""Tests for CooldownGate — global cooldown + daily trade quota."""

from __future__ import annotations

import logging
import threading
from datetime import datetime

from raysignal.risk.cooldown import CooldownGate, GateBlock


class FakeClock:
    def __init__(self, start: float):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def local_ts(year: int, month: int, day: int, hour: int = 0, minute: int = 0) -> float:
    """로컬 시간대 기준 unix 타임스탬프."""
    return datetime(year, month, day, hour, minute).timestamp()


class TestCooldown:
    def test_fresh_gate_admits(self):
        gate = CooldownGate(clock=FakeClock(local_ts(2024, 6, 12, 9)))
        assert gate.may_execute()
        assert gate.remaining_cooldown() == 0.0

    def test_blocks_within_window(self):
        clock = FakeClock(local_ts(2024, 6, 12, 9))
        gate = CooldownGate(cooldown_seconds=300, clock=clock)
        gate.record_execution()

        clock.advance(120)
        decision = gate.check()
        assert not decision.approved
        assert decision.block is GateBlock.COOLDOWN
        assert decision.remaining_seconds == 180
        assert gate.remaining_cooldown() == 180

    def test_admits_after_window(self):
        clock = FakeClock(local_ts(2024, 6, 12, 9))
        gate = CooldownGate(cooldown_seconds=300, clock=clock)
        gate.record_execution()
        clock.advance(300)
        assert gate.may_execute()

    def test_cooldown_is_global(self):
        """One execution blocks every subsequent one regardless of token."""
        clock = FakeClock(local_ts(2024, 6, 12, 9))
        gate = CooldownGate(cooldown_seconds=60, clock=clock)
        assert gate.try_reserve().approved
        assert not gate.try_reserve().approved

    def test_zero_cooldown(self):
        gate = CooldownGate(cooldown_seconds=0, clock=FakeClock(local_ts(2024, 6, 12, 9)))
        assert gate.try_reserve().approved
        assert gate.try_reserve().approved


class TestDailyLimit:
    def test_eleventh_trade_blocked(self):
        clock = FakeClock(local_ts(2024, 6, 12, 8))
        gate = CooldownGate(cooldown_seconds=300, max_daily_trades=10, clock=clock)
        for n in range(1, 11):
            decision = gate.try_reserve()
            assert decision.approved
            assert decision.trades_today == n
            clock.advance(301)

        decision = gate.try_reserve()
        assert not decision.approved
        assert decision.block is GateBlock.DAILY_LIMIT
        assert decision.trades_today == 10
        assert gate.trades_today() == 10

    def test_cooldown_checked_before_daily_limit(self):
        clock = FakeClock(local_ts(2024, 6, 12, 8))
        gate = CooldownGate(cooldown_seconds=300, max_daily_trades=1, clock=clock)
        gate.record_execution()
        assert gate.check().block is GateBlock.COOLDOWN

    def test_quota_resets_next_day(self):
        clock = FakeClock(local_ts(2024, 6, 12, 23, 50))
        gate = CooldownGate(cooldown_seconds=0, max_daily_trades=1, clock=clock)
        assert gate.try_reserve().approved
        assert not gate.try_reserve().approved

        clock.now = local_ts(2024, 6, 13, 0, 5)
        assert gate.try_reserve().approved
        assert gate.trades_today() == 1

    def test_old_days_pruned(self):
        clock = FakeClock(local_ts(2024, 6, 10, 12))
        gate = CooldownGate(cooldown_seconds=0, clock=clock)
        gate.record_execution()
        clock.now = local_ts(2024, 6, 13, 12)
        gate.check()
        assert len(gate._daily_counts) == 0


class TestTryReserve:
    def test_rejection_does_not_record(self):
        clock = FakeClock(local_ts(2024, 6, 12, 9))
        gate = CooldownGate(cooldown_seconds=300, clock=clock)
        gate.try_reserve()
        clock.advance(10)
        gate.try_reserve()
        # 거부된 시도는 쿨다운을 연장하지 않음
        assert gate.remaining_cooldown() == 290

    def test_concurrent_reservations_admit_one(self):
        gate = CooldownGate(cooldown_seconds=300, clock=FakeClock(local_ts(2024, 6, 12, 9)))
        results: list[bool] = []
        lock = threading.Lock()

        def worker():
            approved = gate.try_reserve().approved
            with lock:
                results.append(approved)

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert gate.trades_today() == 1

    def test_reset(self):
        gate = CooldownGate(clock=FakeClock(local_ts(2024, 6, 12, 9)))
        gate.record_execution()
        gate.reset()
        assert gate.may_execute()
        assert gate.trades_today() == 0

    def test_stats(self):
        gate = CooldownGate(cooldown_seconds=300, clock=FakeClock(local_ts(2024, 6, 12, 9)))
        gate.record_execution()
        stats = gate.stats()
        assert stats["in_cooldown"] is True
        assert stats["trades_today"] == 1
        assert stats["max_daily_trades"] == 10

    def test_stats_at_daily_limit_does_not_log(self, caplog):
        clock = FakeClock(local_ts(2024, 6, 12, 9))
        gate = CooldownGate(cooldown_seconds=0, max_daily_trades=1, clock=clock)
        gate.record_execution()
        caplog.clear()
        with caplog.at_level(logging.WARNING, logger="raysignal.risk.cooldown"):
            stats = gate.stats()
            gate.stats()
        assert stats["trades_today"] == 1
        assert stats["in_cooldown"] is False
        assert "Daily trade limit reached" not in caplog.text

    def test_daily_limit_rejection_logs(self, caplog):
        gate = CooldownGate(cooldown_seconds=0, max_daily_trades=1,
                            clock=FakeClock(local_ts(2024, 6, 12, 9)))
        gate.record_execution()
        with caplog.at_level(logging.WARNING, logger="raysignal.risk.cooldown"):
            assert gate.try_reserve().block is GateBlock.DAILY_LIMIT
        assert "Daily trade limit reached: 1/1" in caplog.text
