"""Signal → notification text (≤ 280 chars)."""

from __future__ import annotations

from raysignal.models.signal import Signal
from raysignal.notify.limiter import MAX_NOTIFICATION_LENGTH, truncate

HASHTAGS = "#Solana #Memecoin #DeFi #Raydium"
DISCLAIMER = "⚠️ DYOR - High Risk Investment"

STARTUP_MESSAGE = (
    "🤖 Solana Memecoin Signal Bot is now LIVE!\n\n"
    "Monitoring Raydium for new memecoin deployments...\n\n"
    "#Solana #Memecoin #TradingBot"
)

EMERGENCY_STOP_MESSAGE = (
    "🚨 EMERGENCY STOP ACTIVATED\n\n"
    "All trading has been halted for safety.\n\n"
    "Bot will resume monitoring only."
)


def score_tier(score: int) -> tuple[str, str]:
    """점수 → (emoji, label)."""
    if score >= 8:
        return "🚀", "HIGH"
    if score >= 6:
        return "🔍", "MEDIUM"
    return "⚠️", "LOW"


def short_id(address: str, head: int = 8, tail: int = 4) -> str:
    """'abcdefgh...wxyz' 형태로 축약."""
    if len(address) <= head + tail + 3:
        return address
    return f"{address[:head]}...{address[-tail:]}"


def format_market_cap(market_cap_usd: float) -> str:
    """USD 시가총액 → '$150k'. 추정값이 없으면 '$N/A'."""
    if market_cap_usd <= 0:
        return "$N/A"
    return f"${market_cap_usd / 1000:.0f}k"


def format_signal(signal: Signal, decision: str) -> str:
    """Signal + 결정 결과 → 알림 본문."""
    opp = signal.opportunity
    assessment = signal.assessment
    emoji, label = score_tier(assessment.score)

    lines = [f"{emoji} NEW MEMECOIN ALERT {emoji}", ""]

    metadata = assessment.metadata
    if metadata is not None and metadata.symbol:
        token = f"${metadata.symbol}"
        if metadata.name:
            token += f" ({metadata.name})"
        lines.append(token)

    lines.append(f"📊 Risk Score: {assessment.score}/10 ({label})")
    lines.append(f"💧 Liquidity: {assessment.liquidity_sol:.2f} SOL")
    lines.append(f"🏷️ Market Cap: {format_market_cap(assessment.market_cap_usd)}")
    lines.append(f"🏊 Pool: {short_id(opp.pool_id)}")
    lines.append(f"📄 Contract: {short_id(opp.base_mint)}")
    lines.append(f"🤖 Decision: {decision}")

    if assessment.risk_factors:
        lines.append("⚠️ " + ", ".join(assessment.risk_factors[:2]))

    lines.extend(["", HASHTAGS, DISCLAIMER])
    return truncate("\n".join(lines), MAX_NOTIFICATION_LENGTH)
