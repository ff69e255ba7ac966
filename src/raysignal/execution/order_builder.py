"""Trade order builder — Signal → TradeOrder (swap request).

매수 금액 = min(설정 최대치, 가용 잔고의 90%, 풀 유동성의 5%).
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass

from raysignal.models.opportunity import LAMPORTS_PER_SOL
from raysignal.models.signal import Signal

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# 수수료용 잔고 예비분 (0.01 SOL)
FEE_RESERVE_LAMPORTS = 10_000_000

# 최소 거래 금액 (0.001 SOL)
MIN_TRADE_LAMPORTS = 1_000_000

BALANCE_FRACTION = 0.9
LIQUIDITY_FRACTION = 0.05

# Swap deadline: 5 minutes
DEFAULT_DEADLINE_SECONDS = 300


@dataclass(frozen=True)
class TradeOrder:
    """Swap request handed to the executor."""

    pool_id: str
    token_mint: str
    amount_in: int           # lamports
    max_slippage_pct: int
    deadline: int            # unix seconds

    @property
    def amount_sol(self) -> float:
        return self.amount_in / LAMPORTS_PER_SOL

    def to_payload(self) -> dict:
        return {
            "poolId": self.pool_id,
            "tokenMint": self.token_mint,
            "amountIn": str(self.amount_in),
            "maxSlippagePercent": self.max_slippage_pct,
            "deadline": self.deadline,
        }


class InsufficientBalanceError(ValueError):
    """Computed trade amount is below the absolute floor."""


class TradeOrderBuilder:
    """Size and build a TradeOrder for a Signal.

    Args:
        max_trade_amount: 최대 거래 금액 (SOL).
        max_slippage_pct: 최대 슬리피지 (%).
        deadline_seconds: swap deadline (초).
    """

    def __init__(
        self,
        max_trade_amount: float = 0.1,
        max_slippage_pct: int = 5,
        deadline_seconds: int = DEFAULT_DEADLINE_SECONDS,
    ):
        self.max_trade_lamports = int(max_trade_amount * LAMPORTS_PER_SOL)
        self.max_slippage_pct = max_slippage_pct
        self.deadline_seconds = deadline_seconds

    def compute_amount(self, wallet_balance: int, liquidity_lamports: int) -> int:
        """매수 금액 계산 (lamports)."""
        available = max(0, wallet_balance - FEE_RESERVE_LAMPORTS)
        return int(min(
            self.max_trade_lamports,
            available * BALANCE_FRACTION,
            liquidity_lamports * LIQUIDITY_FRACTION,
        ))

    def build(self, signal: Signal, wallet_balance: int) -> TradeOrder:
        """Signal → TradeOrder.

        Raises:
            InsufficientBalanceError: 금액이 0.001 SOL 미만.
        """
        opp = signal.opportunity
        amount = self.compute_amount(wallet_balance, opp.liquidity_lamports)
        if amount < MIN_TRADE_LAMPORTS:
            raise InsufficientBalanceError(
                f"Insufficient balance for trade: {amount / LAMPORTS_PER_SOL:.6f} SOL "
                f"< {MIN_TRADE_LAMPORTS / LAMPORTS_PER_SOL:.3f} SOL"
            )

        order = TradeOrder(
            pool_id=opp.pool_id,
            token_mint=opp.base_mint,
            amount_in=amount,
            max_slippage_pct=self.max_slippage_pct,
            deadline=int(time.time()) + self.deadline_seconds,
        )
        logger.info(
            "Built order: %.4f SOL into %s (pool %s, slippage %d%%)",
            order.amount_sol, order.token_mint, order.pool_id, order.max_slippage_pct,
        )
        return order
