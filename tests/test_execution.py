"""Tests for order sizing, dry-run executor and kill switch."""

from __future__ import annotations

import time

import pytest

from raysignal.execution.executor import ExecutionStatus, SimulatedExecutor
from raysignal.execution.kill_switch import KillSwitch
from raysignal.execution.order_builder import (
    FEE_RESERVE_LAMPORTS,
    InsufficientBalanceError,
    TradeOrder,
    TradeOrderBuilder,
)
from raysignal.models import LAMPORTS_PER_SOL, Opportunity, RiskAssessment, Signal
from tests.factories import make_event


def signal_for(liquidity_sol: float) -> Signal:
    opp = Opportunity.from_event(make_event(liquidity_sol=liquidity_sol))
    assessment = RiskAssessment(
        factor_scores={}, score=9, raw_score=9.0, liquidity_sol=opp.liquidity_sol,
    )
    return Signal(opportunity=opp, assessment=assessment)


# ===========================================================================
# TradeOrderBuilder
# ===========================================================================


class TestComputeAmount:
    def test_capped_by_max_trade_amount(self):
        builder = TradeOrderBuilder(max_trade_amount=0.1)
        amount = builder.compute_amount(10 * LAMPORTS_PER_SOL, 200 * LAMPORTS_PER_SOL)
        assert amount == 100_000_000

    def test_capped_by_balance(self):
        builder = TradeOrderBuilder(max_trade_amount=1.0)
        balance = 110_000_000  # 0.11 SOL
        amount = builder.compute_amount(balance, 200 * LAMPORTS_PER_SOL)
        assert amount == int((balance - FEE_RESERVE_LAMPORTS) * 0.9)

    def test_capped_by_liquidity(self):
        builder = TradeOrderBuilder(max_trade_amount=1.0)
        amount = builder.compute_amount(100 * LAMPORTS_PER_SOL, 10 * LAMPORTS_PER_SOL)
        assert amount == int(0.5 * LAMPORTS_PER_SOL)

    def test_balance_below_reserve(self):
        builder = TradeOrderBuilder()
        assert builder.compute_amount(5_000_000, 200 * LAMPORTS_PER_SOL) == 0


class TestBuild:
    def test_order_fields(self):
        builder = TradeOrderBuilder(max_trade_amount=0.1, max_slippage_pct=3, deadline_seconds=60)
        signal = signal_for(200)
        before = int(time.time())
        order = builder.build(signal, 10 * LAMPORTS_PER_SOL)
        assert order.pool_id == signal.opportunity.pool_id
        assert order.token_mint == signal.opportunity.base_mint
        assert order.amount_in == 100_000_000
        assert order.amount_sol == pytest.approx(0.1)
        assert order.max_slippage_pct == 3
        assert before + 60 <= order.deadline <= int(time.time()) + 60

    def test_below_floor_raises(self):
        builder = TradeOrderBuilder()
        with pytest.raises(InsufficientBalanceError, match="Insufficient balance"):
            builder.build(signal_for(200), 10_500_000)

    def test_tiny_pool_raises(self):
        builder = TradeOrderBuilder()
        # 0.01 SOL 유동성의 5% = 0.0005 SOL < 0.001 SOL
        with pytest.raises(InsufficientBalanceError):
            builder.build(signal_for(0.01), 10 * LAMPORTS_PER_SOL)

    def test_payload_keys(self):
        order = TradeOrder("pool", "mint", 1_500_000, 5, 1_700_000_000)
        assert order.to_payload() == {
            "poolId": "pool",
            "tokenMint": "mint",
            "amountIn": "1500000",
            "maxSlippagePercent": 5,
            "deadline": 1_700_000_000,
        }


# ===========================================================================
# SimulatedExecutor
# ===========================================================================


class TestSimulatedExecutor:
    async def test_fill_deducts_balance(self):
        executor = SimulatedExecutor(balance_lamports=LAMPORTS_PER_SOL)
        order = TradeOrder("pool", "mint", 100_000_000, 5, 0)
        result = await executor.execute(order)
        assert result.success
        assert result.signature == "dryrun-1"
        assert result.executed_amount == 100_000_000
        assert await executor.get_balance() == 900_000_000

    async def test_signatures_increment(self):
        executor = SimulatedExecutor(balance_lamports=LAMPORTS_PER_SOL)
        order = TradeOrder("pool", "mint", 1_000_000, 5, 0)
        await executor.execute(order)
        result = await executor.execute(order)
        assert result.signature == "dryrun-2"

    async def test_insufficient_simulated_balance(self):
        executor = SimulatedExecutor(balance_lamports=1_000)
        result = await executor.execute(TradeOrder("pool", "mint", 1_000_000, 5, 0))
        assert result.status is ExecutionStatus.FAILED
        assert "too low" in result.error
        assert await executor.get_balance() == 1_000


# ===========================================================================
# KillSwitch
# ===========================================================================


class TestKillSwitchBasic:
    def test_inactive_by_default(self, tmp_path):
        ks = KillSwitch(kill_file=str(tmp_path / "KILL"))
        assert not ks.is_active
        assert ks.reason == ""

    def test_active_at_startup(self, tmp_path):
        ks = KillSwitch(kill_file=str(tmp_path / "KILL"), active=True)
        assert ks.is_active
        assert "EMERGENCY_STOP" in ks.reason

    def test_activate_and_deactivate(self, tmp_path):
        ks = KillSwitch(kill_file=str(tmp_path / "KILL"))
        ks.activate("Test activation")
        assert ks.is_active
        assert ks.reason == "Test activation"
        ks.deactivate()
        assert not ks.is_active
        assert ks.reason == ""


class TestKillSwitchFile:
    def test_file_triggers_kill(self, tmp_path):
        kill_file = tmp_path / "KILL"
        kill_file.write_text("stop!")
        ks = KillSwitch(kill_file=str(kill_file))
        assert ks.is_active
        assert "Kill file" in ks.reason

    def test_activate_creates_file(self, tmp_path):
        kill_file = tmp_path / "nested" / "KILL"
        ks = KillSwitch(kill_file=str(kill_file))
        ks.activate("Emergency")
        assert kill_file.exists()
        assert "Emergency" in kill_file.read_text()

    def test_deactivate_removes_file(self, tmp_path):
        kill_file = tmp_path / "KILL"
        ks = KillSwitch(kill_file=str(kill_file))
        ks.activate("Test")
        ks.deactivate()
        assert not kill_file.exists()

    def test_status(self, tmp_path):
        ks = KillSwitch(kill_file=str(tmp_path / "KILL"))
        assert ks.status()["active"] is False
        ks.activate("halt")
        status = ks.status()
        assert status["active"] is True
        assert status["reason"] == "halt"
        assert status["activation_time"] is not None
