"""raysignal CLI — replay pool events through the decision pipeline.

Usage:
    python -m raysignal --events events.jsonl
    cat events.jsonl | python -m raysignal --events - --no-notify
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
from typing import Optional, Union

from raysignal.analysis.scorer import RiskScorer
from raysignal.config import BotConfig
from raysignal.errors import ConfigError
from raysignal.execution.executor import SimulatedExecutor
from raysignal.intake.source import END_OF_STREAM, JsonlOpportunitySource
from raysignal.lookups.market_data import MarketDataClient
from raysignal.lookups.metadata_cache import MetadataCache
from raysignal.lookups.solana_rpc import SolanaRpcClient
from raysignal.models.opportunity import LAMPORTS_PER_SOL
from raysignal.notify.limiter import NotificationLimiter
from raysignal.notify.telegram import TelegramPoster
from raysignal.notify.twitter import TwitterPoster
from raysignal.pipeline import DecisionPipeline, SessionSummary

logger = logging.getLogger(__name__)

BANNER = r"""
 ____             ____  _                   _
|  _ \ __ _ _   _/ ___|(_) __ _ _ __   __ _| |
| |_) / _` | | | \___ \| |/ _` | '_ \ / _` | |
|  _ < (_| | |_| |___) | | (_| | | | | (_| | |
|_| \_\__,_|\__, |____/|_|\__, |_| |_|\__,_|_|
            |___/         |___/
  Raydium new-pool signal bot
"""

# 설정 오류 시 종료 코드
EXIT_CONFIG_ERROR = 2

Poster = Union[TwitterPoster, TelegramPoster]


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """커맨드라인 인자 파싱."""
    parser = argparse.ArgumentParser(
        prog="raysignal",
        description="Raydium new-pool signal bot (event replay)",
    )
    parser.add_argument(
        "--events", type=str, required=True,
        help="JSON-lines file of raw pool events, or '-' for stdin",
    )
    parser.add_argument(
        "--balance", type=float, default=1.0,
        help="Simulated wallet balance in SOL (default: 1.0)",
    )
    parser.add_argument(
        "--no-notify", action="store_true", default=False,
        help="Disable outbound notifications",
    )
    parser.add_argument(
        "--workers", type=int, default=None,
        help="Pipeline workers (default: PIPELINE_WORKERS)",
    )
    return parser.parse_args(argv)


def build_poster(config: BotConfig) -> Optional[Poster]:
    """NOTIFIER 설정 → poster. 'none'이면 None."""
    if config.notifier == "twitter":
        return TwitterPoster(config.twitter_bearer_token)
    if config.notifier == "telegram":
        return TelegramPoster(config.telegram_bot_token, config.telegram_chat_id)
    return None


# ---------------------------------------------------------------------------
# Replay
# ---------------------------------------------------------------------------


async def replay(config: BotConfig, args: argparse.Namespace) -> SessionSummary:
    """이벤트 파일을 파이프라인에 흘려보내고 세션 요약 반환."""
    rpc = SolanaRpcClient(config.solana_rpc_url, timeout=config.lookup_timeout)
    market_data = MarketDataClient(timeout=config.lookup_timeout)
    poster = build_poster(config)

    limiter: Optional[NotificationLimiter] = None
    if poster is not None:
        limiter = NotificationLimiter(
            poster.post,
            min_interval=config.notify_min_interval,
            window_capacity=config.notify_window_capacity,
        )

    scorer = RiskScorer(
        chain=rpc,
        market_data=market_data,
        blacklist=config.blacklist_tokens,
        blacklist_enabled=config.blacklist_enabled,
        lookup_timeout=config.lookup_timeout,
        metadata_cache=MetadataCache(),
    )
    executor = SimulatedExecutor(balance_lamports=int(args.balance * LAMPORTS_PER_SOL))
    pipeline = DecisionPipeline(config, scorer, executor, notifier=limiter)

    queue: asyncio.Queue = asyncio.Queue(maxsize=1000)
    source = JsonlOpportunitySource(args.events)
    feeder = asyncio.create_task(source.feed(queue, close=False))
    drain = asyncio.create_task(limiter.run()) if limiter else None

    def _handle_signal():
        print("\n⚡ Shutting down gracefully...")
        feeder.cancel()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _handle_signal)
        except NotImplementedError:
            pass  # Windows

    try:
        await pipeline.announce_startup()
        consumer = asyncio.create_task(pipeline.run(queue, workers=args.workers))
        try:
            await feeder
        except asyncio.CancelledError:
            logger.warning("Event feed interrupted")
        await queue.put(END_OF_STREAM)
        summary = await consumer

        if limiter is not None and drain is not None:
            limiter.stop()
            await drain
            sent = await limiter.flush()
            if sent:
                logger.info("Flushed %d queued notification(s)", sent)
    finally:
        await rpc.close()
        await market_data.close()
        if isinstance(poster, TwitterPoster):
            await poster.close()

    logger.info("Source stats: %s", source.stats)
    return summary


def cli_main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    args = parse_args(argv)

    try:
        config = BotConfig.from_env()
    except ConfigError as exc:
        logging.basicConfig(level=logging.INFO)
        logger.error("%s", exc)
        sys.exit(EXIT_CONFIG_ERROR)

    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    if args.no_notify:
        config.notifier = "none"
    if args.workers is not None:
        config.pipeline_workers = args.workers

    try:
        config.validate()
    except ConfigError as exc:
        for error in exc.errors:
            print(f"  ✗ {error}", file=sys.stderr)
        sys.exit(EXIT_CONFIG_ERROR)

    print(BANNER)
    print(f"Mode: {'AUTO-TRADE (simulated)' if config.should_trade else 'SIGNAL ONLY'}")
    print(f"Notifier: {config.notifier}")
    print(f"Risk threshold: {config.risk_threshold}/10, min liquidity {config.min_liquidity} SOL")
    print("-" * 60)

    summary = asyncio.run(replay(config, args))
    print(summary)


if __name__ == "__main__":
    cli_main()
