# src/marketsync/app.py
"""
Application Entry Point - Wiring and Event Loop

This module serves as the composition root for MarketSync. It wires the
cache store, providers, synchronizers and scheduler, then runs the event
loop until interrupted, logging a health summary periodically.

The host delivers visibility events as signals (where the platform has them):
- SIGUSR1: app came to the foreground
- SIGUSR2: app went to the background

Files that USE this module:
- the ``marketsync`` console script
- python -m marketsync.app

Files that this module USES:
- marketsync.shared.logging_conf (setup_logging for logging configuration)
- marketsync.config (settings for configuration management)
- marketsync.adapters.* (CacheStore, CoinGeckoProvider, ExchangeRateProvider)
- marketsync.application.* (synchronizers, scheduler, health checker)
"""

from __future__ import annotations

import asyncio
import logging
import signal
from typing import Optional

from marketsync.adapters.persistence import CacheStore
from marketsync.adapters.providers import CoinGeckoProvider, ExchangeRateProvider
from marketsync.application import (
    HealthChecker,
    HistorySynchronizer,
    PriceSynchronizer,
    RatesSynchronizer,
    SyncScheduler,
)
from marketsync.config import Settings, settings
from marketsync.shared.logging_conf import setup_logging

log = logging.getLogger(__name__)

HEALTH_LOG_INTERVAL_SECONDS = 300


def build_scheduler(cfg: Settings, store: Optional[CacheStore] = None) -> SyncScheduler:
    """Wire providers and synchronizers from settings."""
    store = store or CacheStore(cfg.cache_dir)

    price_provider = CoinGeckoProvider(
        api_key=cfg.coingecko_key,
        base_url=cfg.coingecko_base_url,
        timeout=cfg.price_timeout_seconds,
    )
    history_provider = CoinGeckoProvider(
        api_key=cfg.coingecko_key,
        base_url=cfg.coingecko_base_url,
        timeout=cfg.history_timeout_seconds,
    )
    rates_provider = ExchangeRateProvider(
        api_key=cfg.exchangerate_key,
        base_url=cfg.exchangerate_base_url,
        timeout=cfg.rates_timeout_seconds,
    )

    price = PriceSynchronizer(
        price_provider,
        store=store,
        timeout=cfg.price_timeout_seconds,
        visibility_ttl=cfg.price_visibility_ttl,
    )
    rates = RatesSynchronizer(
        rates_provider,
        ttl=cfg.rates_ttl,
        timeout=cfg.rates_timeout_seconds,
    )
    history = HistorySynchronizer(
        history_provider,
        store=store,
        days=cfg.history_days,
        ttl=cfg.history_ttl,
        timeout=cfg.history_timeout_seconds,
        fallback_base_price=cfg.fallback_base_price,
        fallback_jitter=cfg.fallback_jitter,
    )
    return SyncScheduler(
        price,
        rates,
        history,
        price_interval=cfg.price_interval_seconds,
        rates_interval=cfg.rates_interval_seconds,
        history_interval=cfg.history_interval_seconds,
    )


def _install_visibility_signals(loop: asyncio.AbstractEventLoop, scheduler: SyncScheduler) -> None:
    def deliver(visible: bool) -> None:
        loop.create_task(scheduler.on_visibility_change(visible))

    for signum, visible in (("SIGUSR1", True), ("SIGUSR2", False)):
        sig = getattr(signal, signum, None)
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, deliver, visible)
        except (NotImplementedError, RuntimeError):
            log.debug("Signal %s not supported on this platform", signum)
            return


async def run(cfg: Settings) -> None:
    """Start the scheduler and log health until cancelled."""
    scheduler = build_scheduler(cfg)
    health = HealthChecker(scheduler.price, scheduler.rates, scheduler.history)
    _install_visibility_signals(asyncio.get_running_loop(), scheduler)

    await scheduler.start()
    try:
        while True:
            log.info("%s", health.format_summary())
            await asyncio.sleep(HEALTH_LOG_INTERVAL_SECONDS)
    finally:
        await scheduler.stop()


def main() -> None:
    """
    Initialize and run the market data synchronizer.

    This function:
    1. Sets up logging from settings
    2. Wires cache store, providers, synchronizers and scheduler
    3. Runs until interrupted (Ctrl+C)
    """
    setup_logging(
        level=settings.log_level,
        log_file=settings.log_file,
        log_dir=settings.log_dir,
        max_bytes=settings.log_max_bytes,
        backup_count=settings.log_backup_count,
    )
    log.info(
        "Starting MarketSync: price every %ds, rates every %ds, history every %d minutes, cache at %s",
        settings.price_interval_seconds,
        settings.rates_interval_seconds,
        settings.history_interval_minutes,
        settings.cache_dir,
    )

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        log.info("MarketSync stopped by user (KeyboardInterrupt)")
    except Exception as e:
        log.exception("Unexpected error during operation: %s (type: %s)", e, type(e).__name__)
        raise


if __name__ == "__main__":
    main()
