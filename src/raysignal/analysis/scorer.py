"""Risk scorer — six weighted factors → composite 1–10 score.

Factors run concurrently and fail independently. A factor that raises or
times out is left out of both the weighted sum and the total weight.

Weights (sum 100):
    liquidity 25 · token supply 20 · contract/metadata 20
    social 15 · market timing 10 · deployer 10
"""

from __future__ import annotations

import asyncio
import logging
import math
from datetime import datetime, timezone
from typing import Awaitable, Callable, Iterable, Mapping, Optional, Protocol

from raysignal.config import SUSPICIOUS_NAME_WORDS
from raysignal.lookups.metadata_cache import MetadataCache
from raysignal.models.opportunity import LAMPORTS_PER_SOL, Opportunity
from raysignal.models.signal import FACTOR_WEIGHTS, RiskAssessment, RiskFactor
from raysignal.models.token import MintInfo, TokenMetadata

logger = logging.getLogger(__name__)

DEFAULT_LOOKUP_TIMEOUT = 5.0

# UTC 시간대: 미국 장중 (09–17 EST)
HIGH_VISIBILITY_HOURS = (13, 21)
EXTENDED_HOURS = (9, 23)

# 팩터 점수 4 미만이면 태그 부여
_LOW_FACTOR_TAGS: dict[RiskFactor, str] = {
    RiskFactor.LIQUIDITY: "Low liquidity",
    RiskFactor.TOKEN_SUPPLY: "Concerning token supply",
    RiskFactor.CONTRACT_SECURITY: "Security concerns",
    RiskFactor.SOCIAL_SIGNALS: "Limited social presence",
    RiskFactor.TEAM_CREDIBILITY: "Unknown team/deployer",
}


class ChainReader(Protocol):
    """Read-only chain lookups the scorer depends on."""

    async def get_mint_info(self, mint: str) -> Optional[MintInfo]: ...

    async def get_balance(self, address: str) -> int: ...

    async def get_token_metadata(self, mint: str) -> Optional[TokenMetadata]: ...


class MarketCapSource(Protocol):
    async def estimate_market_cap(self, mint: str) -> float: ...


# ---------------------------------------------------------------------------
# Factor rubrics (pure)
# ---------------------------------------------------------------------------


def _clamp(score: int) -> int:
    return max(1, min(10, score))


def liquidity_score(liquidity_sol: float) -> int:
    """SOL 유동성 구간 점수."""
    if liquidity_sol >= 100:
        return 10
    if liquidity_sol >= 50:
        return 8
    if liquidity_sol >= 20:
        return 6
    if liquidity_sol >= 10:
        return 4
    if liquidity_sol >= 5:
        return 2
    return 1


def supply_score(mint_info: Optional[MintInfo]) -> int:
    """Mint/freeze authority 및 공급량 자릿수 점수. mint 계정 없으면 1."""
    if mint_info is None:
        return 1
    score = 5
    score += 3 if not mint_info.mint_authority else -2
    score += 2 if not mint_info.freeze_authority else -1
    if 9 <= len(str(mint_info.supply)) <= 12:
        score += 1
    return _clamp(score)


def contract_score(
    metadata: Optional[TokenMetadata],
    age_hours: float,
    suspicious_words: Iterable[str] = SUSPICIOUS_NAME_WORDS,
) -> int:
    """메타데이터 신뢰도 + 풀 나이 보정."""
    score = 5
    if metadata is not None:
        if metadata.has_identity:
            score += 2
        name = metadata.name.lower()
        if name and any(word in name for word in suspicious_words):
            score -= 3

    if age_hours < 1:
        score -= 2
    elif age_hours < 24:
        score -= 1
    elif age_hours > 168:
        score += 1
    return _clamp(score)


def social_score(metadata: Optional[TokenMetadata]) -> int:
    """외부 링크/소셜 attribute 하나당 +1."""
    score = 5
    if metadata is not None:
        score += metadata.social_link_count()
    return _clamp(score)


def timing_score(now: datetime) -> int:
    """UTC 시간대 + 평일 보너스."""
    utc = now.astimezone(timezone.utc)
    score = 5
    if HIGH_VISIBILITY_HOURS[0] <= utc.hour <= HIGH_VISIBILITY_HOURS[1]:
        score += 2
    elif EXTENDED_HOURS[0] <= utc.hour <= EXTENDED_HOURS[1]:
        score += 1
    if utc.weekday() < 5:
        score += 1
    return _clamp(score)


def deployer_score(balance_lamports: int) -> int:
    """배포자 SOL 잔고 점수."""
    score = 5
    if balance_lamports > 1 * LAMPORTS_PER_SOL:
        score += 1
    if balance_lamports > 10 * LAMPORTS_PER_SOL:
        score += 1
    return _clamp(score)


def weighted_composite(scores: Mapping[RiskFactor, int]) -> tuple[int, float]:
    """성공한 팩터만으로 가중 평균.

    Returns:
        (rounded, raw). 팩터가 하나도 없으면 (0, 0.0).
    """
    total_weight = sum(FACTOR_WEIGHTS[f] for f in scores)
    if total_weight == 0:
        return 0, 0.0
    raw = sum(scores[f] * FACTOR_WEIGHTS[f] for f in scores) / total_weight
    # half-up rounding (5.5 → 6)
    return int(math.floor(raw + 0.5)), raw


def identify_risk_factors(
    scores: Mapping[RiskFactor, int],
    metadata: Optional[TokenMetadata],
    blacklisted: bool,
) -> list[str]:
    """사람이 읽을 수 있는 리스크 태그."""
    if not scores:
        tags = ["Analysis failed"]
    else:
        tags = [
            tag for factor, tag in _LOW_FACTOR_TAGS.items()
            if factor in scores and scores[factor] < 4
        ]
    if metadata is None or not metadata.name:
        tags.append("No token metadata")
    if blacklisted:
        tags.append("Blacklisted token")
    return tags


# ---------------------------------------------------------------------------
# Scorer
# ---------------------------------------------------------------------------


class RiskScorer:
    """Compute a RiskAssessment for an Opportunity. Never raises.

    Args:
        chain: 온체인 조회 (mint, 잔고, 메타데이터).
        market_data: 시가총액 조회 (best-effort). None이면 0.
        blacklist: 차단 mint/배포자 주소.
        blacklist_enabled: False면 블랙리스트 무시.
        lookup_timeout: 팩터별 타임아웃 (초).
        metadata_cache: 메타데이터 TTL 캐시.
        now: 현재 시각 함수 (테스트 주입용).
    """

    def __init__(
        self,
        chain: ChainReader,
        market_data: Optional[MarketCapSource] = None,
        blacklist: Iterable[str] = (),
        blacklist_enabled: bool = True,
        lookup_timeout: float = DEFAULT_LOOKUP_TIMEOUT,
        metadata_cache: Optional[MetadataCache] = None,
        now: Callable[[], datetime] = lambda: datetime.now(tz=timezone.utc),
    ):
        self.chain = chain
        self.market_data = market_data
        self.blacklist: set[str] = {addr.strip() for addr in blacklist if addr.strip()}
        self.blacklist_enabled = blacklist_enabled
        self.lookup_timeout = lookup_timeout
        self.metadata_cache = metadata_cache if metadata_cache is not None else MetadataCache()
        self._now = now
        self._analyses: int = 0
        self._factor_failures: dict[RiskFactor, int] = {f: 0 for f in RiskFactor}

    def is_blacklisted(self, *addresses: str) -> bool:
        if not self.blacklist_enabled:
            return False
        return any(addr in self.blacklist for addr in addresses)

    async def score(self, opportunity: Opportunity) -> RiskAssessment:
        """전체 리스크 분석. 실패해도 예외 없이 score=0 결과 반환."""
        try:
            return await self._score(opportunity)
        except Exception:
            logger.exception("Error analyzing pool %s", opportunity.pool_id)
            return RiskAssessment(
                factor_scores={},
                score=0,
                raw_score=0.0,
                risk_factors=("Analysis failed",),
                is_scam=True,
                liquidity_sol=opportunity.liquidity_sol,
            )

    async def _score(self, opp: Opportunity) -> RiskAssessment:
        logger.info("Analyzing pool: %s", opp.pool_id)
        now = self._now()

        # 메타데이터는 한 번만 조회해서 두 팩터가 공유
        metadata_task = asyncio.ensure_future(
            self._with_timeout(self._metadata(opp.base_mint))
        )

        factor_coros: dict[RiskFactor, Awaitable[int]] = {
            RiskFactor.LIQUIDITY: self._liquidity(opp),
            RiskFactor.TOKEN_SUPPLY: self._token_supply(opp),
            RiskFactor.CONTRACT_SECURITY: self._contract_security(opp, metadata_task, now),
            RiskFactor.SOCIAL_SIGNALS: self._social_signals(metadata_task),
            RiskFactor.MARKET_TIMING: self._market_timing(now),
            RiskFactor.TEAM_CREDIBILITY: self._team_credibility(opp),
        }
        try:
            results = await asyncio.gather(
                *(self._with_timeout(c) for c in factor_coros.values()),
                self._market_cap(opp),
                return_exceptions=True,
            )
        finally:
            if not metadata_task.done():
                metadata_task.cancel()

        scores: dict[RiskFactor, int] = {}
        for factor, result in zip(factor_coros, results[:-1]):
            if isinstance(result, BaseException):
                self._factor_failures[factor] += 1
                logger.warning(
                    "Factor %s failed for %s: %s",
                    factor.value, opp.pool_id, result or type(result).__name__,
                )
                continue
            scores[factor] = result

        market_cap = results[-1] if isinstance(results[-1], (int, float)) else 0.0
        metadata = self._task_value(metadata_task)

        composite, raw = weighted_composite(scores)
        blacklisted = self.is_blacklisted(opp.base_mint, opp.deployer)
        self._analyses += 1

        assessment = RiskAssessment(
            factor_scores=dict(scores),
            score=composite,
            raw_score=raw,
            risk_factors=tuple(identify_risk_factors(scores, metadata, blacklisted)),
            is_scam=blacklisted or raw < 3,
            liquidity_sol=opp.liquidity_sol,
            market_cap_usd=float(market_cap),
            metadata=metadata,
            analyzed_at=now,
        )
        logger.info(
            "Analysis complete for %s. Risk Score: %d/10 (%d/%d factors)",
            opp.pool_id, assessment.score, len(scores), len(RiskFactor),
        )
        return assessment

    # ------------------------------------------------------------------
    # Factors
    # ------------------------------------------------------------------

    async def _liquidity(self, opp: Opportunity) -> int:
        return liquidity_score(opp.liquidity_sol)

    async def _token_supply(self, opp: Opportunity) -> int:
        return supply_score(await self.chain.get_mint_info(opp.base_mint))

    async def _contract_security(
        self, opp: Opportunity, metadata_task: asyncio.Future, now: datetime,
    ) -> int:
        metadata = await asyncio.shield(metadata_task)
        return contract_score(metadata, opp.age_hours(now))

    async def _social_signals(self, metadata_task: asyncio.Future) -> int:
        metadata = await asyncio.shield(metadata_task)
        return social_score(metadata)

    async def _market_timing(self, now: datetime) -> int:
        return timing_score(now)

    async def _team_credibility(self, opp: Opportunity) -> int:
        return deployer_score(await self.chain.get_balance(opp.deployer))

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _metadata(self, mint: str) -> Optional[TokenMetadata]:
        """TTL 캐시 경유 메타데이터 조회.

        찾은 메타데이터만 캐시. 실패나 None은 다음 점수 계산 때 다시 조회.
        """
        if mint in self.metadata_cache:
            return self.metadata_cache.get(mint)
        metadata = await self.chain.get_token_metadata(mint)
        if metadata is not None:
            self.metadata_cache.put(mint, metadata)
        return metadata

    async def _market_cap(self, opp: Opportunity) -> float:
        """시가총액 추정. 실패 시 0 (분석 전체를 실패시키지 않음)."""
        if self.market_data is None:
            return 0.0
        try:
            return float(await self._with_timeout(
                self.market_data.estimate_market_cap(opp.base_mint)
            ))
        except Exception as exc:
            logger.debug("Market cap estimate failed for %s: %s", opp.base_mint, exc)
            return 0.0

    async def _with_timeout(self, coro: Awaitable):
        return await asyncio.wait_for(coro, timeout=self.lookup_timeout)

    @staticmethod
    def _task_value(task: asyncio.Future) -> Optional[TokenMetadata]:
        if not task.done() or task.cancelled() or task.exception() is not None:
            return None
        return task.result()

    def stats(self) -> dict:
        return {
            "analyses": self._analyses,
            "blacklist_size": len(self.blacklist),
            "blacklist_enabled": self.blacklist_enabled,
            "factor_failures": {f.value: n for f, n in self._factor_failures.items()},
            "metadata_cache": self.metadata_cache.stats,
            "weights": {f.value: w for f, w in FACTOR_WEIGHTS.items()},
        }
