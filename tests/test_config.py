"""Tests for BotConfig — env loading, validation, secret masking."""

from __future__ import annotations

import logging

import pytest

from raysignal.config import BotConfig
from raysignal.errors import ConfigError

ENV_KEYS = [
    "MAX_TRADE_AMOUNT", "MIN_LIQUIDITY", "MAX_SLIPPAGE", "RISK_THRESHOLD",
    "COOLDOWN_PERIOD", "AUTO_TRADE_ENABLED", "TEST_MODE", "MAX_DAILY_TRADES",
    "BLACKLIST_ENABLED", "BLACKLIST_TOKENS", "EMERGENCY_STOP", "KILL_FILE",
    "SOLANA_RPC_URL", "SOLANA_WS_URL", "LOOKUP_TIMEOUT", "EXECUTION_TIMEOUT",
    "NOTIFIER", "TWITTER_BEARER_TOKEN", "TELEGRAM_BOT_TOKEN", "TELEGRAM_CHAT_ID",
    "NOTIFY_MIN_INTERVAL", "NOTIFY_WINDOW_CAPACITY", "STARTUP_NOTIFICATIONS",
    "PIPELINE_WORKERS", "LOG_LEVEL",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def valid_config(**overrides) -> BotConfig:
    fields = {
        "solana_rpc_url": "https://api.mainnet-beta.solana.com",
        "notifier": "none",
        "blacklist_enabled": True,
    }
    fields.update(overrides)
    return BotConfig(**fields)


class TestFromEnv:
    def test_defaults(self):
        cfg = BotConfig.from_env()
        assert cfg.max_trade_amount == 0.1
        assert cfg.min_liquidity == 10.0
        assert cfg.max_slippage == 5
        assert cfg.risk_threshold == 7
        assert cfg.cooldown_period == 300
        assert cfg.auto_trade_enabled is False
        assert cfg.test_mode is False
        assert cfg.max_daily_trades == 10
        assert cfg.blacklist_enabled is False
        assert cfg.notifier == "twitter"
        assert cfg.pipeline_workers == 4
        assert cfg.startup_notifications is True
        assert cfg.kill_file == "data/KILL_SWITCH"

    def test_reads_env(self, monkeypatch):
        monkeypatch.setenv("MAX_TRADE_AMOUNT", "0.5")
        monkeypatch.setenv("RISK_THRESHOLD", "8")
        monkeypatch.setenv("AUTO_TRADE_ENABLED", "true")
        monkeypatch.setenv("TEST_MODE", "1")
        monkeypatch.setenv("BLACKLIST_TOKENS", "mintA, mintB,,")
        monkeypatch.setenv("NOTIFIER", " Telegram ")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        cfg = BotConfig.from_env()
        assert cfg.max_trade_amount == 0.5
        assert cfg.risk_threshold == 8
        assert cfg.auto_trade_enabled is True
        assert cfg.test_mode is True
        assert cfg.blacklist_tokens == ["mintA", "mintB"]
        assert cfg.notifier == "telegram"
        assert cfg.log_level == "DEBUG"

    def test_blank_bool_uses_default(self, monkeypatch):
        monkeypatch.setenv("STARTUP_NOTIFICATIONS", "  ")
        assert BotConfig.from_env().startup_notifications is True

    def test_bad_number_raises_config_error(self, monkeypatch):
        monkeypatch.setenv("MAX_DAILY_TRADES", "ten")
        monkeypatch.setenv("MIN_LIQUIDITY", "lots")
        with pytest.raises(ConfigError) as exc_info:
            BotConfig.from_env()
        assert len(exc_info.value.errors) == 2
        assert any("MAX_DAILY_TRADES" in e for e in exc_info.value.errors)


class TestShouldTrade:
    def test_auto_trade_live(self):
        assert valid_config(auto_trade_enabled=True).should_trade

    def test_test_mode_blocks(self):
        assert not valid_config(auto_trade_enabled=True, test_mode=True).should_trade

    def test_emergency_stop_blocks(self):
        assert not valid_config(auto_trade_enabled=True, emergency_stop=True).should_trade


class TestValidate:
    def test_valid_config_passes(self):
        assert valid_config().validate() == []

    def test_missing_rpc_url(self):
        with pytest.raises(ConfigError, match="SOLANA_RPC_URL is required"):
            valid_config(solana_rpc_url="").validate()

    def test_rpc_url_scheme(self):
        with pytest.raises(ConfigError, match="HTTP/HTTPS"):
            valid_config(solana_rpc_url="ftp://rpc").validate()

    def test_ws_url_scheme(self):
        with pytest.raises(ConfigError, match="WebSocket"):
            valid_config(solana_ws_url="https://not-ws").validate()
        valid_config(solana_ws_url="wss://rpc.example").validate()

    def test_twitter_requires_token(self):
        with pytest.raises(ConfigError, match="TWITTER_BEARER_TOKEN"):
            valid_config(notifier="twitter").validate()
        valid_config(notifier="twitter", twitter_bearer_token="tok").validate()

    def test_telegram_requires_token_and_chat(self):
        with pytest.raises(ConfigError, match="TELEGRAM_BOT_TOKEN"):
            valid_config(notifier="telegram", telegram_bot_token="tok").validate()

    def test_unknown_notifier(self):
        with pytest.raises(ConfigError, match="NOTIFIER"):
            valid_config(notifier="discord").validate()

    @pytest.mark.parametrize("field,value", [
        ("max_trade_amount", 0),
        ("max_trade_amount", 101),
        ("min_liquidity", -1),
        ("max_slippage", 0),
        ("max_slippage", 51),
        ("risk_threshold", 0),
        ("risk_threshold", 11),
        ("cooldown_period", -1),
        ("max_daily_trades", 0),
        ("lookup_timeout", 0),
        ("pipeline_workers", 0),
    ])
    def test_range_errors(self, field, value):
        with pytest.raises(ConfigError):
            valid_config(**{field: value}).validate()

    def test_collects_all_errors(self):
        cfg = valid_config(solana_rpc_url="", risk_threshold=0, max_slippage=99)
        with pytest.raises(ConfigError) as exc_info:
            cfg.validate()
        assert len(exc_info.value.errors) == 3

    def test_warnings(self, caplog):
        cfg = valid_config(
            auto_trade_enabled=True, test_mode=False, max_trade_amount=2.0,
            blacklist_enabled=False,
        )
        with caplog.at_level(logging.WARNING, logger="raysignal.config"):
            warnings = cfg.validate()
        assert len(warnings) == 2
        assert any("1 SOL" in w for w in warnings)
        assert any("Blacklist" in w for w in warnings)
        assert "CONFIG WARNING" in caplog.text

    def test_auto_trade_with_test_mode_warns(self):
        warnings = valid_config(auto_trade_enabled=True, test_mode=True).validate()
        assert any("TEST_MODE" in w for w in warnings)


class TestPublicView:
    def test_masks_secrets(self):
        cfg = valid_config(twitter_bearer_token="secret", telegram_bot_token="")
        view = cfg.public_view()
        assert view["twitter_bearer_token"] == "***"
        assert view["telegram_bot_token"] == ""
        assert view["solana_rpc_url"] == "https://api.mainnet-beta.solana.com"
