"""Opportunity and PoolType data models."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from raysignal.errors import ValidationError

logger = logging.getLogger(__name__)

LAMPORTS_PER_SOL = 1_000_000_000

# 메이저 토큰 페어: 밈코인 풀이 아님
NON_MEMECOIN_MINTS: frozenset[str] = frozenset({
    "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",  # USDC
    "Es9vMFrzaCERmJfrF4H2FYD4KCoNkY11McCe8BenwNYB",  # USDT
    "7vfCXTUXx5WJV5JADk17DUJ4ksgau7utNKj4b963voxs",  # ETH (Wormhole)
    "9n4nbM75f5Ui33ZbPYXn59EwSgE8CGsHtAeTH5YFeJ9E",  # BTC (Sollet)
})


class PoolType(Enum):
    """풀 유형."""

    AMM_V4 = "AMM_V4"  # constant-product
    CLMM = "CLMM"      # concentrated liquidity


@dataclass(frozen=True)
class Opportunity:
    """A single detected pool-creation event.

    ``signature`` is the dedup key: the same pool seen under a new
    signature is a new opportunity.
    """

    signature: str
    pool_id: str
    base_mint: str
    quote_mint: str
    deployer: str
    block_time: int              # unix seconds
    pool_type: PoolType
    slot: int = 0
    liquidity_lamports: int = 0  # 풀 생성 시 공급된 SOL 유동성

    @property
    def liquidity_sol(self) -> float:
        """유동성 (SOL 단위)."""
        return self.liquidity_lamports / LAMPORTS_PER_SOL

    @property
    def created_at(self) -> datetime:
        return datetime.fromtimestamp(self.block_time, tz=timezone.utc)

    def age_hours(self, now: Optional[datetime] = None) -> float:
        """블록 시간 기준 풀 나이 (시간)."""
        now = now or datetime.now(tz=timezone.utc)
        return (now - self.created_at).total_seconds() / 3600.0

    @property
    def is_memecoin_pair(self) -> bool:
        """스테이블/메이저 토큰이 낀 페어면 False."""
        return (
            self.base_mint not in NON_MEMECOIN_MINTS
            and self.quote_mint not in NON_MEMECOIN_MINTS
        )

    @staticmethod
    def from_event(raw: dict) -> Opportunity:
        """Raw pool event dict → Opportunity.

        Accepts both snake_case keys and the camelCase keys emitted by the
        chain monitor (``poolId``, ``coinMint``, ``pcMint``, ``blockTime``).

        Raises:
            ValidationError: 필수 필드 누락 또는 타입 오류.
        """
        if not isinstance(raw, dict):
            raise ValidationError(f"Event must be a mapping, got {type(raw).__name__}")

        def pick(*keys: str):
            for key in keys:
                value = raw.get(key)
                if value not in (None, ""):
                    return value
            return None

        signature = pick("signature", "id")
        fields = {
            "pool_id": pick("pool_id", "poolId"),
            "base_mint": pick("base_mint", "coinMint", "baseMint"),
            "quote_mint": pick("quote_mint", "pcMint", "quoteMint"),
            "deployer": pick("deployer"),
            "block_time": pick("block_time", "blockTime"),
            "pool_type": pick("pool_type", "type"),
        }
        if not signature:
            raise ValidationError("Missing required field: signature")
        missing = [name for name, value in fields.items() if value is None]
        if missing:
            raise ValidationError(
                f"Missing required field(s): {', '.join(missing)}",
                event_id=str(signature),
            )

        try:
            pool_type = PoolType(str(fields["pool_type"]).upper())
        except ValueError:
            raise ValidationError(
                f"Unknown pool type: {fields['pool_type']!r}", event_id=str(signature),
            ) from None

        try:
            block_time = int(fields["block_time"])
            slot = int(raw.get("slot") or 0)
            liquidity = int(pick("liquidity_lamports", "liquidity") or 0)
        except (TypeError, ValueError) as exc:
            raise ValidationError(
                f"Bad numeric field: {exc}", event_id=str(signature),
            ) from None

        if block_time <= 0:
            raise ValidationError(f"Invalid block time: {block_time}", event_id=str(signature))
        if liquidity < 0:
            raise ValidationError(f"Negative liquidity: {liquidity}", event_id=str(signature))

        return Opportunity(
            signature=str(signature),
            pool_id=str(fields["pool_id"]),
            base_mint=str(fields["base_mint"]),
            quote_mint=str(fields["quote_mint"]),
            deployer=str(fields["deployer"]),
            block_time=block_time,
            pool_type=pool_type,
            slot=slot,
            liquidity_lamports=liquidity,
        )
