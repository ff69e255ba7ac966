"""Twitter API v2 poster.

POST /2/tweets with an OAuth 2.0 user-context bearer token. 실패는
NotificationError로 올려서 NotificationLimiter가 재시도하게 함.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

import aiohttp

from raysignal.errors import NotificationError, RateLimitedError

logger = logging.getLogger(__name__)

TWITTER_API_URL = "https://api.twitter.com/2/tweets"
DEFAULT_TIMEOUT = 10  # seconds


class TwitterPoster:
    """Async tweet poster.

    Args:
        bearer_token: OAuth 2.0 user-context 토큰 (tweet.write scope).
        api_url: 엔드포인트 (테스트용 override).
    """

    def __init__(
        self,
        bearer_token: str,
        api_url: str = TWITTER_API_URL,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._bearer_token = bearer_token
        self.api_url = api_url
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: Optional[aiohttp.ClientSession] = None
        self._posted: int = 0

    async def open(self) -> None:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=self.timeout,
                headers={"Authorization": f"Bearer {self._bearer_token}"},
            )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> TwitterPoster:
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def post(self, text: str) -> Optional[str]:
        """트윗 게시 → tweet id. 중복 트윗은 건너뛰고 None.

        Raises:
            RateLimitedError: HTTP 429.
            NotificationError: 그 외 실패.
        """
        await self.open()
        try:
            async with self._session.post(self.api_url, json={"text": text}) as resp:
                if resp.status in (200, 201):
                    body = await resp.json(content_type=None)
                    tweet_id = (body.get("data") or {}).get("id") if isinstance(body, dict) else None
                    self._posted += 1
                    logger.info("Tweet posted successfully: %s", tweet_id)
                    return tweet_id

                detail = (await resp.text())[:200]
                if resp.status == 429:
                    retry_after = resp.headers.get("retry-after")
                    raise RateLimitedError(
                        f"Twitter 429: {detail}",
                        retry_after=float(retry_after) if retry_after else None,
                    )
                if resp.status == 403 and "duplicate" in detail.lower():
                    logger.warning("Duplicate tweet detected, skipping")
                    return None
                raise NotificationError(f"Twitter API {resp.status}: {detail}")
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise NotificationError(f"Twitter request failed: {exc}") from exc

    @property
    def posted(self) -> int:
        return self._posted
