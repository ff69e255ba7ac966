"""Bot configuration — env-based config, validation, blacklist."""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, field
from urllib.parse import urlparse

from raysignal.errors import ConfigError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 의심 토큰명 (대소문자 무시 부분 일치)
# ---------------------------------------------------------------------------

SUSPICIOUS_NAME_WORDS: list[str] = [
    "test",
    "fake",
    "scam",
    "rug",
    "moon",
    "pump",
]

NOTIFIERS: tuple[str, ...] = ("twitter", "telegram", "none")

SECRET_FIELDS: frozenset[str] = frozenset({
    "twitter_bearer_token",
    "telegram_bot_token",
})


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("true", "1", "yes", "on")


def _env_list(name: str) -> list[str]:
    raw = os.environ.get(name, "")
    return [item.strip() for item in raw.split(",") if item.strip()]


# ---------------------------------------------------------------------------
# BotConfig: 환경변수 기반 설정
# ---------------------------------------------------------------------------


@dataclass
class BotConfig:
    """봇 전체 설정. 환경변수 또는 기본값.

    Amounts are in SOL, periods in seconds.
    """

    # Trading gates
    max_trade_amount: float = 0.1
    min_liquidity: float = 10.0
    max_slippage: int = 5
    risk_threshold: int = 7
    cooldown_period: int = 300
    auto_trade_enabled: bool = False
    test_mode: bool = False
    max_daily_trades: int = 10
    blacklist_enabled: bool = False
    blacklist_tokens: list[str] = field(default_factory=list)
    emergency_stop: bool = False
    kill_file: str = "data/KILL_SWITCH"

    # Chain lookups
    solana_rpc_url: str = ""
    solana_ws_url: str = ""
    lookup_timeout: float = 5.0
    execution_timeout: float = 300.0

    # Notifications
    notifier: str = "twitter"
    twitter_bearer_token: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    notify_min_interval: float = 60.0
    notify_window_capacity: int = 300
    startup_notifications: bool = True

    # Runtime
    pipeline_workers: int = 4
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> BotConfig:
        """환경변수에서 설정 로드. 없으면 안전한 기본값.

        Raises:
            ConfigError: 숫자 필드 파싱 실패.
        """
        errors: list[str] = []

        def num(name: str, default: str, cast):
            raw = os.environ.get(name, default)
            try:
                return cast(raw)
            except (TypeError, ValueError):
                errors.append(f"{name} must be a number, got {raw!r}")
                return cast(default)

        cfg = cls(
            max_trade_amount=num("MAX_TRADE_AMOUNT", "0.1", float),
            min_liquidity=num("MIN_LIQUIDITY", "10", float),
            max_slippage=num("MAX_SLIPPAGE", "5", int),
            risk_threshold=num("RISK_THRESHOLD", "7", int),
            cooldown_period=num("COOLDOWN_PERIOD", "300", int),
            auto_trade_enabled=_env_bool("AUTO_TRADE_ENABLED", False),
            test_mode=_env_bool("TEST_MODE", False),
            max_daily_trades=num("MAX_DAILY_TRADES", "10", int),
            blacklist_enabled=_env_bool("BLACKLIST_ENABLED", False),
            blacklist_tokens=_env_list("BLACKLIST_TOKENS"),
            emergency_stop=_env_bool("EMERGENCY_STOP", False),
            kill_file=os.environ.get("KILL_FILE", "data/KILL_SWITCH"),
            solana_rpc_url=os.environ.get("SOLANA_RPC_URL", ""),
            solana_ws_url=os.environ.get("SOLANA_WS_URL", ""),
            lookup_timeout=num("LOOKUP_TIMEOUT", "5", float),
            execution_timeout=num("EXECUTION_TIMEOUT", "300", float),
            notifier=os.environ.get("NOTIFIER", "twitter").strip().lower(),
            twitter_bearer_token=os.environ.get("TWITTER_BEARER_TOKEN", ""),
            telegram_bot_token=os.environ.get("TELEGRAM_BOT_TOKEN", ""),
            telegram_chat_id=os.environ.get("TELEGRAM_CHAT_ID", ""),
            notify_min_interval=num("NOTIFY_MIN_INTERVAL", "60", float),
            notify_window_capacity=num("NOTIFY_WINDOW_CAPACITY", "300", int),
            startup_notifications=_env_bool("STARTUP_NOTIFICATIONS", True),
            pipeline_workers=num("PIPELINE_WORKERS", "4", int),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
        if errors:
            raise ConfigError(errors)
        return cfg

    @property
    def should_trade(self) -> bool:
        """자동매매 켜짐 + 테스트 모드 아님 + 긴급정지 아님."""
        return self.auto_trade_enabled and not self.test_mode and not self.emergency_stop

    def validate(self) -> list[str]:
        """설정 검증. 에러가 하나라도 있으면 ConfigError.

        Returns:
            경고 메시지 목록 (로그로도 남김).
        """
        errors: list[str] = []
        warnings: list[str] = []

        if not self.solana_rpc_url:
            errors.append("SOLANA_RPC_URL is required")
        elif urlparse(self.solana_rpc_url).scheme not in ("http", "https"):
            errors.append("SOLANA_RPC_URL must be a valid HTTP/HTTPS URL")
        if self.solana_ws_url and urlparse(self.solana_ws_url).scheme not in ("ws", "wss"):
            errors.append("SOLANA_WS_URL must be a valid WebSocket URL")

        if self.notifier not in NOTIFIERS:
            errors.append(f"NOTIFIER must be one of {', '.join(NOTIFIERS)}")
        elif self.notifier == "twitter" and not self.twitter_bearer_token:
            errors.append("TWITTER_BEARER_TOKEN is required for Twitter notifications")
        elif self.notifier == "telegram" and not (self.telegram_bot_token and self.telegram_chat_id):
            errors.append("TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID are required for Telegram notifications")

        if self.max_trade_amount <= 0 or self.max_trade_amount > 100:
            errors.append("MAX_TRADE_AMOUNT must be between 0 and 100 SOL")
        if self.min_liquidity < 0:
            errors.append("MIN_LIQUIDITY cannot be negative")
        if self.max_slippage < 1 or self.max_slippage > 50:
            errors.append("MAX_SLIPPAGE must be between 1% and 50%")
        if self.risk_threshold < 1 or self.risk_threshold > 10:
            errors.append("RISK_THRESHOLD must be between 1 and 10")
        if self.cooldown_period < 0:
            errors.append("COOLDOWN_PERIOD cannot be negative")
        if self.max_daily_trades < 1:
            errors.append("MAX_DAILY_TRADES must be at least 1")
        if self.lookup_timeout <= 0 or self.execution_timeout <= 0:
            errors.append("LOOKUP_TIMEOUT and EXECUTION_TIMEOUT must be positive")
        if self.notify_min_interval < 0 or self.notify_window_capacity < 1:
            errors.append("NOTIFY_MIN_INTERVAL must be >= 0 and NOTIFY_WINDOW_CAPACITY >= 1")
        if self.pipeline_workers < 1:
            errors.append("PIPELINE_WORKERS must be at least 1")

        if self.auto_trade_enabled and self.test_mode:
            warnings.append("AUTO_TRADE_ENABLED is true but TEST_MODE is also enabled")
        if self.max_trade_amount > 1 and not self.test_mode:
            warnings.append("MAX_TRADE_AMOUNT > 1 SOL outside TEST_MODE - ensure this is intentional")
        if not self.blacklist_enabled:
            warnings.append("Blacklist is disabled - this may increase risk exposure")

        for w in warnings:
            logger.warning("CONFIG WARNING: %s", w)

        if errors:
            for e in errors:
                logger.error("CONFIG ERROR: %s", e)
            raise ConfigError(errors)

        logger.info("Configuration validation passed (%d warnings)", len(warnings))
        return warnings

    def public_view(self) -> dict:
        """민감 정보 제외한 설정 dict."""
        view = asdict(self)
        for name in SECRET_FIELDS:
            if view.get(name):
                view[name] = "***"
        return view
