"""Telegram Bot API poster.

트위터 대신 Telegram 채팅으로 시그널 전송.
봇 토큰 미설정 시 post()는 no-op (크래시 없음).
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Optional

import aiohttp

from raysignal.errors import NotificationError, RateLimitedError

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org"
DEFAULT_TIMEOUT = 10  # seconds


class TelegramPoster:
    """Telegram 메시지 발송기.

    Args:
        bot_token: Telegram Bot API 토큰. None이면 비활성.
        chat_id: 메시지 대상 채팅 ID. None이면 비활성.
    """

    def __init__(
        self,
        bot_token: str | None = None,
        chat_id: str | None = None,
        parse_mode: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self._bot_token = bot_token
        self._chat_id = chat_id
        self.parse_mode = parse_mode
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    @property
    def enabled(self) -> bool:
        """토큰과 chat_id 모두 설정됐을 때만 활성."""
        return bool(self._bot_token and self._chat_id)

    async def post(self, text: str) -> None:
        """메시지 전송. 실패 시 NotificationError (limiter가 재시도)."""
        if not self.enabled:
            return
        try:
            await self._send_message(text)
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise NotificationError(f"Telegram request failed: {exc}") from exc

    async def _send_message(self, text: str) -> None:
        """Telegram sendMessage API 호출."""
        url = f"{TELEGRAM_API_URL}/bot{self._bot_token}/sendMessage"
        payload = {
            "chat_id": self._chat_id,
            "text": text,
            "disable_web_page_preview": True,
        }
        if self.parse_mode:
            payload["parse_mode"] = self.parse_mode
        async with aiohttp.ClientSession(timeout=self.timeout) as session:
            async with session.post(url, json=payload) as resp:
                if resp.status == 200:
                    return
                body = await resp.text()
                logger.warning("Telegram API %d: %s", resp.status, body[:200])
                if resp.status == 429:
                    raise RateLimitedError(
                        f"Telegram 429: {body[:200]}", retry_after=_retry_after(body),
                    )
                raise NotificationError(f"Telegram API {resp.status}")


def _retry_after(body: str) -> Optional[float]:
    """429 응답의 parameters.retry_after (초). 없으면 None."""
    try:
        data = json.loads(body)
        return float(data["parameters"]["retry_after"])
    except (ValueError, TypeError, KeyError):
        return None
