"""Decision pipeline — dedupe → score → decide → execute-or-skip → notify.

풀 생성 이벤트 하나당 한 번의 결정과 한 번의 알림.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from raysignal.analysis.scorer import RiskScorer
from raysignal.config import BotConfig
from raysignal.errors import ValidationError
from raysignal.execution.executor import (
    ExecutionResult,
    ExecutionStatus,
    TradeExecutor,
)
from raysignal.execution.kill_switch import KillSwitch
from raysignal.execution.order_builder import (
    InsufficientBalanceError,
    TradeOrder,
    TradeOrderBuilder,
)
from raysignal.intake.dedup import EventDeduplicator
from raysignal.intake.source import END_OF_STREAM
from raysignal.models.opportunity import LAMPORTS_PER_SOL, Opportunity
from raysignal.models.signal import Signal
from raysignal.notify.formatter import (
    EMERGENCY_STOP_MESSAGE,
    STARTUP_MESSAGE,
    format_signal,
)
from raysignal.notify.limiter import NotificationLimiter, SendOutcome
from raysignal.risk.cooldown import CooldownGate, GateBlock

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# States / results
# ---------------------------------------------------------------------------


class PipelineState(Enum):
    """이벤트 처리 최종 상태."""

    DUPLICATE = "duplicate"
    INVALID = "invalid"
    EXECUTED = "executed"
    SKIPPED_AUTO_TRADE_DISABLED = "skipped_auto_trade_disabled"
    SKIPPED_HALTED = "skipped_halted"
    SKIPPED_TEST_MODE = "skipped_test_mode"
    SKIPPED_LOW_SCORE = "skipped_low_score"
    SKIPPED_LOW_LIQUIDITY = "skipped_low_liquidity"
    SKIPPED_SCAM = "skipped_scam"
    SKIPPED_COOLDOWN = "skipped_cooldown"
    SKIPPED_DAILY_LIMIT = "skipped_daily_limit"
    EXECUTION_FAILED = "execution_failed"

    @property
    def scored(self) -> bool:
        """점수 산출 이후 상태인지 (알림 대상)."""
        return self not in (PipelineState.DUPLICATE, PipelineState.INVALID)

    @property
    def skipped(self) -> bool:
        return self.value.startswith("skipped_")


_GATE_STATES = {
    GateBlock.COOLDOWN: PipelineState.SKIPPED_COOLDOWN,
    GateBlock.DAILY_LIMIT: PipelineState.SKIPPED_DAILY_LIMIT,
}

_SKIP_LABELS = {
    PipelineState.SKIPPED_AUTO_TRADE_DISABLED: "signal only",
    PipelineState.SKIPPED_HALTED: "trading halted",
    PipelineState.SKIPPED_TEST_MODE: "test mode",
    PipelineState.SKIPPED_LOW_SCORE: "low score",
    PipelineState.SKIPPED_LOW_LIQUIDITY: "low liquidity",
    PipelineState.SKIPPED_SCAM: "scam flag",
    PipelineState.SKIPPED_COOLDOWN: "cooldown",
    PipelineState.SKIPPED_DAILY_LIMIT: "daily limit",
}


@dataclass
class PipelineResult:
    """단일 이벤트 처리 결과."""

    state: PipelineState
    event_id: str = ""
    signal: Optional[Signal] = None
    order: Optional[TradeOrder] = None
    execution: Optional[ExecutionResult] = None
    notification: Optional[SendOutcome] = None
    reason: str = ""

    @property
    def opportunity(self) -> Optional[Opportunity]:
        return self.signal.opportunity if self.signal else None


@dataclass
class SessionSummary:
    """세션 전체 요약."""

    received: int = 0
    duplicates: int = 0
    invalid: int = 0
    scored: int = 0
    executed: int = 0
    execution_failures: int = 0
    errors: int = 0
    skipped: dict[str, int] = field(default_factory=dict)
    notifications: dict[str, int] = field(default_factory=dict)
    traded_volume_sol: float = 0.0

    @property
    def total_skipped(self) -> int:
        return sum(self.skipped.values())

    @property
    def success_rate(self) -> float:
        """실행 성공률 (%). 시도가 없으면 0."""
        attempts = self.executed + self.execution_failures
        return self.executed / attempts * 100 if attempts else 0.0

    def __str__(self) -> str:
        lines = [
            "═" * 50,
            "  Session Summary",
            "═" * 50,
            f"  Events received: {self.received}",
            f"  Duplicates: {self.duplicates}",
            f"  Invalid: {self.invalid}",
            f"  Scored: {self.scored}",
            f"  Executed: {self.executed}",
            f"  Execution failures: {self.execution_failures}",
            f"  Skipped: {self.total_skipped}",
        ]
        for reason, count in sorted(self.skipped.items()):
            lines.append(f"    {reason}: {count}")
        if self.notifications:
            sent = ", ".join(f"{k}={v}" for k, v in sorted(self.notifications.items()))
            lines.append(f"  Notifications: {sent}")
        lines.extend([
            f"  Traded volume: {self.traded_volume_sol:.4f} SOL",
            f"  Success rate: {self.success_rate:.1f}%",
            "═" * 50,
        ])
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


class DecisionPipeline:
    """Orchestrate one Opportunity from raw event to notification.

    Args:
        config: 검증된 BotConfig.
        scorer: RiskScorer.
        executor: 거래 실행기 (TradeExecutor).
        notifier: 알림 limiter. None이면 알림 비활성.
        deduplicator / gate / order_builder / kill_switch: 주입용, 없으면 config로 생성.
    """

    def __init__(
        self,
        config: BotConfig,
        scorer: RiskScorer,
        executor: TradeExecutor,
        notifier: Optional[NotificationLimiter] = None,
        deduplicator: Optional[EventDeduplicator] = None,
        gate: Optional[CooldownGate] = None,
        order_builder: Optional[TradeOrderBuilder] = None,
        kill_switch: Optional[KillSwitch] = None,
    ):
        self.config = config
        self.scorer = scorer
        self.executor = executor
        self.notifier = notifier
        self.deduplicator = deduplicator or EventDeduplicator()
        self.gate = gate or CooldownGate(
            cooldown_seconds=config.cooldown_period,
            max_daily_trades=config.max_daily_trades,
        )
        self.order_builder = order_builder or TradeOrderBuilder(
            max_trade_amount=config.max_trade_amount,
            max_slippage_pct=config.max_slippage,
        )
        self.kill_switch = kill_switch or KillSwitch(
            kill_file=config.kill_file, active=config.emergency_stop,
        )
        self._summary = SessionSummary()
        # deadline 초과 후에도 끝까지 진행 중인 실행
        self._inflight: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def process(self, event: dict) -> PipelineResult:
        """단일 이벤트 처리.

        Returns:
            PipelineResult (절대 예외를 던지지 않음).
        """
        self._summary.received += 1
        try:
            result = await self._process(event)
        except Exception as exc:
            logger.exception("Unexpected error processing event")
            self._summary.errors += 1
            result = PipelineResult(state=PipelineState.INVALID, reason=str(exc))
        return result

    async def run(self, queue: asyncio.Queue, workers: Optional[int] = None) -> SessionSummary:
        """큐 소비. END_OF_STREAM을 받으면 모든 워커 종료."""
        count = workers or self.config.pipeline_workers
        logger.info("Pipeline started with %d worker(s)", count)
        await asyncio.gather(*(self._worker(queue, i) for i in range(count)))
        logger.info("Pipeline drained: %d event(s) received", self._summary.received)
        return self.session_summary()

    async def announce_startup(self) -> Optional[SendOutcome]:
        """시작 알림 (STARTUP_NOTIFICATIONS)."""
        if self.notifier is None or not self.config.startup_notifications:
            return None
        return self._count_notification(await self.notifier.send(STARTUP_MESSAGE))

    async def emergency_stop(self, reason: str = "Manual emergency stop") -> Optional[SendOutcome]:
        """거래 즉시 중단 + 알림. 모니터링/알림은 계속."""
        self.kill_switch.activate(reason)
        if self.notifier is None:
            return None
        return self._count_notification(await self.notifier.send(EMERGENCY_STOP_MESSAGE))

    def session_summary(self) -> SessionSummary:
        s = self._summary
        return SessionSummary(
            received=s.received,
            duplicates=s.duplicates,
            invalid=s.invalid,
            scored=s.scored,
            executed=s.executed,
            execution_failures=s.execution_failures,
            errors=s.errors,
            skipped=dict(s.skipped),
            notifications=dict(s.notifications),
            traded_volume_sol=s.traded_volume_sol,
        )

    @property
    def stats(self) -> dict:
        summary = self.session_summary()
        return {
            "received": summary.received,
            "duplicates": summary.duplicates,
            "invalid": summary.invalid,
            "scored": summary.scored,
            "executed": summary.executed,
            "execution_failures": summary.execution_failures,
            "errors": summary.errors,
            "skipped": summary.skipped,
            "notifications": summary.notifications,
            "traded_volume_sol": round(summary.traded_volume_sol, 6),
            "success_rate": round(summary.success_rate, 1),
            "dedup": self.deduplicator.stats,
            "gate": self.gate.stats(),
            "kill_switch": self.kill_switch.status(),
            "notifier": self.notifier.stats() if self.notifier else None,
        }

    # ------------------------------------------------------------------
    # Internal: stages
    # ------------------------------------------------------------------

    async def _worker(self, queue: asyncio.Queue, worker_id: int) -> None:
        while True:
            event = await queue.get()
            try:
                if event is END_OF_STREAM:
                    # 다른 워커도 종료하도록 다시 넣음
                    await queue.put(END_OF_STREAM)
                    logger.debug("Worker %d stopping", worker_id)
                    return
                await self.process(event)
            finally:
                queue.task_done()

    async def _process(self, event: dict) -> PipelineResult:
        # 1) 파싱/검증
        try:
            opp = Opportunity.from_event(event)
        except ValidationError as exc:
            self._summary.invalid += 1
            logger.warning("Dropped invalid event %s: %s", exc.event_id or "?", exc)
            return PipelineResult(
                state=PipelineState.INVALID, event_id=exc.event_id or "", reason=str(exc),
            )

        # 2) 중복 제거
        if not self.deduplicator.observe(opp.signature):
            self._summary.duplicates += 1
            logger.debug("Duplicate event %s", opp.signature)
            return PipelineResult(state=PipelineState.DUPLICATE, event_id=opp.signature)

        # 3) 밈코인 페어 필터
        if not opp.is_memecoin_pair:
            self._summary.invalid += 1
            logger.info("Skipping non-memecoin pair in pool %s", opp.pool_id)
            return PipelineResult(
                state=PipelineState.INVALID, event_id=opp.signature, reason="non-memecoin pair",
            )

        # 4) 리스크 점수
        assessment = await self.scorer.score(opp)
        signal = Signal(opportunity=opp, assessment=assessment)
        self._summary.scored += 1
        logger.info(
            "Signal %s: score %d/10, liquidity %.2f SOL%s",
            opp.pool_id, signal.score, signal.liquidity_sol,
            " [SCAM]" if signal.is_scam else "",
        )

        # 5) 결정 + 실행
        result = await self._decide(signal)
        signal.processed = True
        self._record(result)

        # 6) 알림 (Scored 이후 상태마다 정확히 한 번)
        if self.notifier is not None:
            text = format_signal(signal, self._decision_text(result))
            result.notification = self._count_notification(await self.notifier.send(text))
        return result

    async def _decide(self, signal: Signal) -> PipelineResult:
        """조건을 순서대로 평가, 첫 실패에서 skip."""
        cfg = self.config
        opp = signal.opportunity

        def skip(state: PipelineState, reason: str) -> PipelineResult:
            logger.info("Skipped %s: %s", opp.pool_id, reason)
            return PipelineResult(state=state, event_id=opp.signature, signal=signal, reason=reason)

        if not cfg.auto_trade_enabled:
            return skip(PipelineState.SKIPPED_AUTO_TRADE_DISABLED, "auto-trade disabled")
        if self.kill_switch.is_active:
            return skip(PipelineState.SKIPPED_HALTED, self.kill_switch.reason)
        if cfg.test_mode:
            return skip(PipelineState.SKIPPED_TEST_MODE, "test mode")
        if signal.score < cfg.risk_threshold:
            return skip(
                PipelineState.SKIPPED_LOW_SCORE,
                f"score {signal.score} < {cfg.risk_threshold}",
            )
        if signal.liquidity_sol < cfg.min_liquidity:
            return skip(
                PipelineState.SKIPPED_LOW_LIQUIDITY,
                f"liquidity {signal.liquidity_sol:.2f} < {cfg.min_liquidity:.2f} SOL",
            )
        if signal.is_scam:
            return skip(PipelineState.SKIPPED_SCAM, "flagged as scam")

        # check + record: 실행 전에 쿨다운/카운트 예약
        decision = self.gate.try_reserve()
        if not decision.approved:
            if decision.block is GateBlock.COOLDOWN:
                reason = f"cooldown {decision.remaining_seconds:.0f}s remaining"
            else:
                reason = f"daily limit {decision.trades_today}/{self.gate.max_daily_trades}"
            return skip(_GATE_STATES[decision.block], reason)

        return await self._execute(signal)

    async def _execute(self, signal: Signal) -> PipelineResult:
        opp = signal.opportunity
        order: Optional[TradeOrder] = None
        try:
            balance = await asyncio.wait_for(
                self.executor.get_balance(), timeout=self.config.lookup_timeout,
            )
            order = self.order_builder.build(signal, balance)
            execution = await self._execute_with_deadline(order)
        except InsufficientBalanceError as exc:
            logger.warning("Execution refused for %s: %s", opp.pool_id, exc)
            execution = ExecutionResult.failed(str(exc))
        except asyncio.TimeoutError:
            logger.error("Balance lookup timed out for %s", opp.pool_id)
            execution = ExecutionResult(
                status=ExecutionStatus.TIMEOUT, error="balance lookup timed out",
            )
        except Exception as exc:
            logger.error("Execution error for %s: %s", opp.pool_id, exc)
            execution = ExecutionResult.failed(str(exc), order)

        state = PipelineState.EXECUTED if execution.success else PipelineState.EXECUTION_FAILED
        if execution.success:
            logger.info(
                "Trade executed: %s (%.4f SOL) sig=%s",
                opp.pool_id, execution.executed_amount / LAMPORTS_PER_SOL, execution.signature,
            )
        return PipelineResult(
            state=state,
            event_id=opp.signature,
            signal=signal,
            order=order,
            execution=execution,
            reason=execution.error or "",
        )

    async def _execute_with_deadline(self, order: TradeOrder) -> ExecutionResult:
        """Deadline 초과 시 이 Signal만 실패 처리. 실행 자체는 취소하지 않음."""
        task = asyncio.ensure_future(self.executor.execute(order))
        try:
            return await asyncio.wait_for(
                asyncio.shield(task), timeout=self.config.execution_timeout,
            )
        except asyncio.TimeoutError:
            self._inflight.add(task)
            task.add_done_callback(self._late_execution_done)
            logger.error(
                "Execution for %s exceeded %.0fs deadline", order.pool_id,
                self.config.execution_timeout,
            )
            return ExecutionResult(
                status=ExecutionStatus.TIMEOUT, order=order,
                error=f"execution timed out after {self.config.execution_timeout:.0f}s",
            )

    def _late_execution_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Late execution failed: %s", exc)
        else:
            logger.warning("Late execution finished after deadline: %s", task.result())

    # ------------------------------------------------------------------
    # Internal: bookkeeping
    # ------------------------------------------------------------------

    def _record(self, result: PipelineResult) -> None:
        if result.state is PipelineState.EXECUTED and result.execution is not None:
            self._summary.executed += 1
            self._summary.traded_volume_sol += result.execution.executed_amount / LAMPORTS_PER_SOL
        elif result.state is PipelineState.EXECUTION_FAILED:
            self._summary.execution_failures += 1
        elif result.state.skipped:
            key = result.state.value.removeprefix("skipped_")
            self._summary.skipped[key] = self._summary.skipped.get(key, 0) + 1

    def _count_notification(self, outcome: SendOutcome) -> SendOutcome:
        self._summary.notifications[outcome.value] = (
            self._summary.notifications.get(outcome.value, 0) + 1
        )
        return outcome

    @staticmethod
    def _decision_text(result: PipelineResult) -> str:
        if result.state is PipelineState.EXECUTED and result.execution is not None:
            return f"BOUGHT {result.execution.executed_amount / LAMPORTS_PER_SOL:.4f} SOL"
        if result.state is PipelineState.EXECUTION_FAILED:
            return "EXECUTION FAILED"
        return f"SKIPPED ({_SKIP_LABELS.get(result.state, result.state.value)})"
