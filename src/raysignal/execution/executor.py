"""Trade executor interface and dry-run implementation.

Swap-instruction construction and signing live outside this package; a
live executor only has to satisfy ``TradeExecutor``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from raysignal.execution.order_builder import TradeOrder
from raysignal.models.opportunity import LAMPORTS_PER_SOL

logger = logging.getLogger(__name__)


class ExecutionStatus(Enum):
    """주문 실행 결과 상태."""

    SUCCESS = "success"
    FAILED = "failed"
    TIMEOUT = "timeout"


@dataclass(frozen=True)
class ExecutionResult:
    """주문 실행 결과."""

    status: ExecutionStatus
    order: Optional[TradeOrder] = None
    signature: Optional[str] = None
    executed_amount: int = 0     # lamports
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.status is ExecutionStatus.SUCCESS

    @classmethod
    def failed(cls, reason: str, order: Optional[TradeOrder] = None) -> ExecutionResult:
        return cls(status=ExecutionStatus.FAILED, order=order, error=reason)


class TradeExecutor(Protocol):
    """Outbound trade collaborator."""

    async def get_balance(self) -> int:
        """지갑 잔고 (lamports)."""
        ...

    async def execute(self, order: TradeOrder) -> ExecutionResult:
        """Submit the swap and wait for confirmation."""
        ...


class SimulatedExecutor:
    """Dry-run executor: fills every order in full without touching the chain.

    Args:
        balance_lamports: 시뮬레이션 지갑 잔고.
    """

    def __init__(self, balance_lamports: int = 1 * LAMPORTS_PER_SOL):
        self._balance = balance_lamports
        self._fills: int = 0

    async def get_balance(self) -> int:
        return self._balance

    async def execute(self, order: TradeOrder) -> ExecutionResult:
        """시뮬레이션 실행. 잔고 차감."""
        if order.amount_in > self._balance:
            return ExecutionResult.failed(
                f"Simulated balance too low: {self._balance} < {order.amount_in}", order,
            )
        self._balance -= order.amount_in
        self._fills += 1
        logger.info(
            "[DRY RUN] Would swap %.4f SOL into %s (pool %s)",
            order.amount_sol, order.token_mint, order.pool_id,
        )
        return ExecutionResult(
            status=ExecutionStatus.SUCCESS,
            order=order,
            signature=f"dryrun-{self._fills}",
            executed_amount=order.amount_in,
        )
