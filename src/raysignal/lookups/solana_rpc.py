"""Solana JSON-RPC reader with retry and error handling.

Read-only lookups used by the risk scorer: mint accounts, SOL balances,
token supply and DAS ``getAsset`` metadata. Unlike the best-effort market
data client, failures raise ``LookupFailed`` so the scorer can drop the
affected factor instead of scoring it.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Optional

import aiohttp

from raysignal.errors import LookupFailed
from raysignal.models.token import MintInfo, TokenMetadata

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 5  # seconds
DEFAULT_MAX_RETRIES = 2

# JSON-RPC "method not found": DAS 미지원 RPC
METHOD_NOT_FOUND = -32601


class SolanaRpcClient:
    """Async JSON-RPC client for a Solana RPC endpoint.

    Usage:
        async with SolanaRpcClient(url) as rpc:
            lamports = await rpc.get_balance(address)
    """

    def __init__(
        self,
        rpc_url: str,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        commitment: str = "confirmed",
    ):
        self.rpc_url = rpc_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.max_retries = max_retries
        self.commitment = commitment
        self._session: Optional[aiohttp.ClientSession] = None
        self._ids = itertools.count(1)

    async def open(self) -> None:
        """Open aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)

    async def close(self) -> None:
        """Close aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> SolanaRpcClient:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def get_balance(self, address: str) -> int:
        """SOL 잔고 (lamports). 계정 없으면 0."""
        result = await self._call("getBalance", [address, {"commitment": self.commitment}])
        try:
            return int(result["value"])
        except (KeyError, TypeError, ValueError):
            raise LookupFailed("getBalance", f"unexpected result: {result!r}") from None

    async def get_mint_info(self, mint: str) -> Optional[MintInfo]:
        """SPL mint 계정 파싱. 계정이 없거나 mint가 아니면 None."""
        result = await self._call(
            "getAccountInfo",
            [mint, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )
        value = (result or {}).get("value")
        if not value:
            return None
        data = value.get("data")
        if not isinstance(data, dict):
            return None
        info = (data.get("parsed") or {}).get("info")
        if not isinstance(info, dict) or "supply" not in info:
            return None
        try:
            return MintInfo(
                supply=int(info["supply"]),
                decimals=int(info.get("decimals", 0)),
                mint_authority=info.get("mintAuthority"),
                freeze_authority=info.get("freezeAuthority"),
            )
        except (TypeError, ValueError):
            return None

    async def get_token_metadata(self, mint: str) -> Optional[TokenMetadata]:
        """DAS getAsset → TokenMetadata. DAS 미지원 또는 자산 없음이면 None."""
        try:
            result = await self._call("getAsset", {"id": mint})
        except LookupFailed as exc:
            if str(METHOD_NOT_FOUND) in exc.reason:
                logger.debug("RPC does not support DAS getAsset; metadata unavailable")
                return None
            raise
        if not isinstance(result, dict):
            return None
        return TokenMetadata.from_das_asset(result)

    # ------------------------------------------------------------------
    # JSON-RPC helper with retry
    # ------------------------------------------------------------------

    async def _call(self, method: str, params: Any) -> Any:
        """POST JSON-RPC. 429/5xx/네트워크 에러는 재시도, 마지막 실패 시 LookupFailed."""
        await self.open()
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._ids),
            "method": method,
            "params": params,
        }
        last_error = "no attempt made"

        for attempt in range(1, self.max_retries + 1):
            try:
                async with self._session.post(self.rpc_url, json=payload) as resp:
                    if resp.status == 200:
                        body = await resp.json()
                        if not isinstance(body, dict):
                            raise LookupFailed(method, "non-object response")
                        if body.get("error"):
                            err = body["error"]
                            code = err.get("code") if isinstance(err, dict) else None
                            message = err.get("message") if isinstance(err, dict) else err
                            # RPC 레벨 에러는 재시도해도 동일
                            raise LookupFailed(method, f"rpc error {code}: {message}")
                        return body.get("result")
                    last_error = f"HTTP {resp.status}"
                    if resp.status == 429:
                        wait = 0.5 * (2 ** (attempt - 1))
                        logger.warning(
                            "RPC 429 rate limit %s (attempt %d/%d), backing off %.1fs",
                            method, attempt, self.max_retries, wait,
                        )
                        await asyncio.sleep(wait)
                        continue
                    logger.warning(
                        "RPC %s returned %d (attempt %d/%d)",
                        method, resp.status, attempt, self.max_retries,
                    )
            except LookupFailed:
                raise
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                last_error = str(exc) or type(exc).__name__
                logger.warning(
                    "RPC %s error (attempt %d/%d): %s",
                    method, attempt, self.max_retries, last_error,
                )

            if attempt < self.max_retries:
                await asyncio.sleep(0.1 * (2 ** (attempt - 1)))

        raise LookupFailed(method, last_error)
