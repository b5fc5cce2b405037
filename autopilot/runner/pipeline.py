"""Process entry point: assembles components and schedules trading ticks."""

import argparse
import asyncio
import logging
import signal
import sys
from typing import Any

import httpx
import structlog

from ..config.settings import AppSettings, load_settings
from ..core.errors import AutopilotError, ConfigError
from ..core.types import Position
from ..data.dexscreener import DexScreenerGateway
from ..data.http import TokenBucket
from ..exec.jupiter import JupiterExecutor
from ..exec.paper import DryRunExecutor
from ..exec.senders import RpcClient
from ..exec.signers import KeypairSigner
from ..filters.safety import SafetyScanner
from ..filters.screening import ScreeningEngine
from ..monitor.position_monitor import PositionMonitor
from ..monitor.registry import MonitorRegistry
from ..persist.storage import SQLitePositionStore
from ..risk.manager import DailyTradeCounter
from .cycle import TradingCycle

logger = structlog.get_logger(__name__)


def configure_logging(level: str = "INFO", json_logs: bool = False) -> None:
    """Configure structlog for the process."""
    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping().get(level.upper(), logging.INFO)
        ),
        cache_logger_on_first_use=False,
    )


class TradingPipeline:
    """Main trading loop: ticks on a fixed schedule and supervises monitors."""

    def __init__(self, settings: AppSettings) -> None:
        """Initialize trading pipeline with assembled components."""
        self.settings = settings
        self.running = False
        self._stopped = False
        self._stop_event = asyncio.Event()

        if not settings.dry_run:
            self._log_live_trading_banner(settings)

        self.components = self._assemble(settings)

        logger.info(
            "Trading pipeline initialized",
            dry_run=settings.dry_run,
            wallet=self.components["signer"].pubkey_base58(),
        )

    def _log_live_trading_banner(self, settings: AppSettings) -> None:
        if settings.slippage_bps > 1000:  # 10%
            logger.warning(
                "High slippage configured for live trading",
                slippage_bps=settings.slippage_bps,
            )
        logger.critical(
            "🚨 LIVE TRADING MODE ENABLED 🚨",
            rpc_endpoint=settings.rpc_endpoint,
            buy_amount=settings.buy_amount,
            max_daily_trades=settings.trading.max_daily_trades,
            slippage_bps=settings.slippage_bps,
        )

    def _assemble(self, settings: AppSettings) -> dict[str, Any]:
        """Assemble all trading components from settings.

        Raises:
            ConfigError: If the wallet secret cannot be decoded
        """
        components: dict[str, Any] = {}
        params = settings.trading

        signer = KeypairSigner.from_secret(settings.private_key)
        components["signer"] = signer

        session = httpx.AsyncClient(
            limits=httpx.Limits(max_connections=20, max_keepalive_connections=10)
        )
        components["session"] = session
        rate_limiter = TokenBucket.per_minute(settings.rate_limit_per_minute)

        sender = RpcClient(rpc_url=settings.rpc_endpoint, client=session)
        components["sender"] = sender

        feed = DexScreenerGateway(
            base_url=settings.dexscreener_base,
            session=session,
            min_liquidity=params.min_liquidity,
            min_volume=params.min_volume,
            candidates_path=settings.candidates_path,
            timeout=settings.feed_timeout,
            max_attempts=settings.feed_max_attempts,
            retry_delay=settings.feed_retry_delay,
            rate_limiter=rate_limiter,
        )
        components["feed"] = feed

        scanner = SafetyScanner(
            session=session,
            rugcheck_base=settings.rugcheck_base,
            honeypot_base=settings.honeypot_base,
            max_risk_score=params.max_risk_score,
            timeout=settings.safety_timeout,
            rate_limiter=rate_limiter,
        )
        components["screening"] = ScreeningEngine(params, scanner)

        if settings.dry_run:
            components["executor"] = DryRunExecutor()
            logger.info("Using dry-run executor")
        else:
            components["executor"] = JupiterExecutor(
                base_url=settings.jupiter_base,
                max_slippage_bps=settings.slippage_bps,
                signer=signer,
                sender=sender,
                session=session,
                priority_fee_microlamports=settings.priority_fee_microlamports,
                confirm_timeout=settings.confirm_timeout,
            )
            logger.info("Using Jupiter executor (live mode)")

        store = SQLitePositionStore(db_path=settings.database_path)
        components["store"] = store

        def monitor_factory(position: Position) -> PositionMonitor:
            return PositionMonitor(
                pair_address=position.pair_address,
                entry_price=position.entry_price,
                feed=feed,
                executor=components["executor"],
                store=store,
                stop_loss_percent=params.stop_loss_percent,
                take_profit_percent=params.take_profit_percent,
                interval=settings.monitor_interval,
            )

        components["monitors"] = MonitorRegistry(monitor_factory)
        components["trade_counter"] = DailyTradeCounter(params.max_daily_trades)
        components["cycle"] = TradingCycle(
            feed=feed,
            screening=components["screening"],
            executor=components["executor"],
            store=store,
            monitors=components["monitors"],
            balance_source=sender,
            wallet_pubkey=signer.pubkey_base58(),
            params=params,
            buy_amount=settings.buy_amount,
            trade_counter=components["trade_counter"],
        )
        return components

    async def start(self) -> None:
        """Prepare storage and restore state left by a previous run."""
        store = self.components["store"]
        await store.initialize()
        await self.components["trade_counter"].load(store)
        await self.components["monitors"].rehydrate(store)

    async def run_once(self) -> int:
        """Execute one trading tick."""
        return await self.components["cycle"].run_tick()

    async def run_forever(self) -> None:
        """Run ticks until stopped. Each tick starts check_interval after the last."""
        logger.info("Starting trading pipeline", dry_run=self.settings.dry_run)
        loop = asyncio.get_running_loop()
        cycle_count = 0
        start_time = loop.time()

        try:
            await self.start()
            self.running = not self._stop_event.is_set()

            while self.running:
                tick_started = loop.time()
                await self.run_once()

                cycle_count += 1
                if cycle_count % 10 == 0:
                    uptime = loop.time() - start_time
                    logger.info(
                        "Pipeline metrics",
                        cycles=cycle_count,
                        uptime_seconds=uptime,
                        active_monitors=len(self.components["monitors"]),
                    )

                delay = max(
                    0.0, self.settings.check_interval - (loop.time() - tick_started)
                )
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
                except TimeoutError:
                    pass

        except asyncio.CancelledError:
            logger.info("Pipeline cancelled")
        finally:
            await self.stop()

    def request_stop(self) -> None:
        """Ask the loop to finish after the current tick."""
        logger.info("Shutdown requested")
        self.running = False
        self._stop_event.set()

    async def stop(self) -> None:
        """Stop the trading pipeline."""
        if self._stopped:
            return
        self._stopped = True
        logger.info("Stopping trading pipeline")
        self.running = False
        self._stop_event.set()

        await self.components["monitors"].shutdown(
            wait_for_exits=self.settings.wait_for_exits_on_shutdown
        )
        await self.components["store"].close()
        await self.components["session"].aclose()


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Solana meme-coin autopilot")
    parser.add_argument("--config", default=None, help="Optional YAML configuration file")
    parser.add_argument(
        "--profile",
        default="dev",
        choices=["dev", "paper", "prod"],
        help="Configuration profile",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    """Main entry point for the trading bot."""
    args = _parse_args(argv)
    configure_logging()

    try:
        settings = load_settings(args.profile, args.config)
        configure_logging(settings.log_level, settings.log_json)
        pipeline = TradingPipeline(settings)
    except ConfigError as e:
        logger.critical("Critical error: invalid configuration", error=str(e))
        sys.exit(1)

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, pipeline.request_stop)

    try:
        await pipeline.run_forever()
    except AutopilotError as e:
        logger.critical("Fatal error", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


def cli() -> None:
    """Console script wrapper."""
    asyncio.run(main())


if __name__ == "__main__":
    cli()
