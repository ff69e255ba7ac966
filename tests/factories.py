"""Test data builders shared across test modules."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from raysignal.models.opportunity import LAMPORTS_PER_SOL

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"

# 수요일 15:00 UTC (high-visibility window, weekday)
WEEKDAY_PEAK = datetime(2024, 6, 12, 15, 0, tzinfo=timezone.utc)


def make_event(
    signature: str = "sig_1",
    liquidity_sol: float = 200.0,
    age: timedelta = timedelta(days=10),
    **overrides,
) -> dict:
    """Raw pool event as emitted by the chain monitor (camelCase keys)."""
    event = {
        "signature": signature,
        "poolId": "PooL1111111111111111111111111111111111111111",
        "coinMint": "MemE2222222222222222222222222222222222222222",
        "pcMint": SOL_MINT,
        "deployer": "DepL3333333333333333333333333333333333333333",
        "blockTime": int((WEEKDAY_PEAK - age).timestamp()),
        "type": "AMM_V4",
        "slot": 250_000_000,
        "liquidity": int(liquidity_sol * LAMPORTS_PER_SOL),
    }
    event.update(overrides)
    return event
