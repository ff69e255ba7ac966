"""Shared test fixtures for raysignal."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from raysignal.config import BotConfig
from raysignal.models.opportunity import LAMPORTS_PER_SOL, Opportunity
from raysignal.models.token import MintInfo, TokenMetadata

from tests.factories import make_event


@pytest.fixture
def raw_event() -> dict:
    return make_event()


@pytest.fixture
def opportunity(raw_event) -> Opportunity:
    return Opportunity.from_event(raw_event)


@pytest.fixture
def good_metadata() -> TokenMetadata:
    """name/symbol + 3 social links."""
    return TokenMetadata(
        name="Good Token",
        symbol="GOOD",
        external_url="https://good.example",
        links={"twitter": "https://x.com/good", "telegram": "https://t.me/good"},
    )


@pytest.fixture
def good_chain(good_metadata) -> AsyncMock:
    """ChainReader mock: revoked authorities, rich deployer, full metadata."""
    chain = AsyncMock()
    chain.get_mint_info.return_value = MintInfo(
        supply=999_999_999_999,
        decimals=6,
        mint_authority=None,
        freeze_authority=None,
    )
    chain.get_balance.return_value = 20 * LAMPORTS_PER_SOL
    chain.get_token_metadata.return_value = good_metadata
    return chain


@pytest.fixture
def trading_config(tmp_path) -> BotConfig:
    """Auto-trade enabled, live (non-test) mode, no notifier."""
    return BotConfig(
        auto_trade_enabled=True,
        test_mode=False,
        notifier="none",
        solana_rpc_url="https://rpc.example",
        kill_file=str(tmp_path / "KILL_SWITCH"),
        lookup_timeout=1.0,
        execution_timeout=1.0,
    )
