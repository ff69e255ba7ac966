"""Data models for raysignal."""

from raysignal.models.opportunity import LAMPORTS_PER_SOL, Opportunity, PoolType
from raysignal.models.signal import FACTOR_WEIGHTS, RiskAssessment, RiskFactor, Signal
from raysignal.models.token import MintInfo, TokenMetadata

__all__ = [
    "LAMPORTS_PER_SOL",
    "Opportunity",
    "PoolType",
    "FACTOR_WEIGHTS",
    "RiskAssessment",
    "RiskFactor",
    "Signal",
    "MintInfo",
    "TokenMetadata",
]
