"""RiskAssessment and Signal data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional

from raysignal.models.opportunity import Opportunity
from raysignal.models.token import TokenMetadata


class RiskFactor(Enum):
    """리스크 팩터 이름."""

    LIQUIDITY = "liquidity"
    TOKEN_SUPPLY = "token_supply"
    CONTRACT_SECURITY = "contract_security"
    SOCIAL_SIGNALS = "social_signals"
    MARKET_TIMING = "market_timing"
    TEAM_CREDIBILITY = "team_credibility"


# 가중치 합계 = 100
FACTOR_WEIGHTS: Mapping[RiskFactor, int] = MappingProxyType({
    RiskFactor.LIQUIDITY: 25,
    RiskFactor.TOKEN_SUPPLY: 20,
    RiskFactor.CONTRACT_SECURITY: 20,
    RiskFactor.SOCIAL_SIGNALS: 15,
    RiskFactor.MARKET_TIMING: 10,
    RiskFactor.TEAM_CREDIBILITY: 10,
})


@dataclass(frozen=True)
class RiskAssessment:
    """Scoring result for one Opportunity.

    ``factor_scores`` only holds factors that computed; a failed factor is
    absent rather than zero.
    """

    factor_scores: Mapping[RiskFactor, int]
    score: int                       # composite, 0 only on total failure
    raw_score: float
    risk_factors: tuple[str, ...] = ()
    is_scam: bool = False
    liquidity_sol: float = 0.0
    market_cap_usd: float = 0.0
    metadata: Optional[TokenMetadata] = None
    analyzed_at: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))

    @property
    def failed_factors(self) -> list[RiskFactor]:
        return [f for f in RiskFactor if f not in self.factor_scores]

    @property
    def symbol(self) -> str:
        return self.metadata.symbol if self.metadata else ""


@dataclass
class Signal:
    """Opportunity + its assessment: the unit handed to gate and notifier."""

    opportunity: Opportunity
    assessment: RiskAssessment
    timestamp: datetime = field(default_factory=lambda: datetime.now(tz=timezone.utc))
    processed: bool = False

    @property
    def score(self) -> int:
        return self.assessment.score

    @property
    def liquidity_sol(self) -> float:
        return self.assessment.liquidity_sol

    @property
    def is_scam(self) -> bool:
        return self.assessment.is_scam
