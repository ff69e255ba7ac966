"""DexScreener market data — best-effort market cap estimate.

New pools are usually not indexed yet, so a miss is normal and returns 0.
"""

from __future__ import annotations

import logging
from typing import Optional

import aiohttp

logger = logging.getLogger(__name__)

DEXSCREENER_API_URL = "https://api.dexscreener.com/latest/dex/tokens"
DEFAULT_TIMEOUT = 5  # seconds


class MarketDataClient:
    """Async DexScreener client. 모든 실패는 0 / None으로 흡수.

    Usage:
        async with MarketDataClient() as client:
            mcap = await client.estimate_market_cap(mint)
    """

    def __init__(self, base_url: str = DEXSCREENER_API_URL, timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None

    async def open(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> MarketDataClient:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch_pairs(self, mint: str) -> list[dict]:
        """GET /tokens/{mint} → pairs 리스트. 실패 시 빈 리스트."""
        await self.open()
        url = f"{self.base_url}/{mint}"
        try:
            async with self._session.get(url) as resp:
                if resp.status != 200:
                    logger.debug("DexScreener %s returned %d", mint, resp.status)
                    return []
                data = await resp.json()
        except Exception as exc:
            logger.debug("DexScreener lookup failed for %s: %s", mint, exc)
            return []
        pairs = data.get("pairs") if isinstance(data, dict) else None
        return [p for p in pairs if isinstance(p, dict)] if isinstance(pairs, list) else []

    async def estimate_market_cap(self, mint: str) -> float:
        """시가총액 (USD). marketCap → fdv 순으로 사용, 없으면 0."""
        best = 0.0
        for pair in await self.fetch_pairs(mint):
            for key in ("marketCap", "fdv"):
                try:
                    value = float(pair.get(key) or 0)
                except (TypeError, ValueError):
                    continue
                if value > 0:
                    best = max(best, value)
                    break
        return best
