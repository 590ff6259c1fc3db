#!/usr/bin/env python3
"""
Main entry point for URL shortener service.

Concurrency: requests are served as concurrent tasks on one event loop
(FastAPI + asyncpg connection pool). The local cache and the subnet rate
limits live in this process, so WORKERS > 1 gives each worker its own,
uncoordinated copy of both.

Usage:
    python app.py

Environment variables:
    DATABASE_URL - PostgreSQL connection URL
    LINKS_TABLE - Table holding the short links
    DATABASE_CREATE_TABLES - Set to 1 to create the table on startup
    BASE_URL - Base URL for short links
    PORT - Port to listen on
    MAX_PER_SUBNET - Short links per subnet per day
    COOLDOWN_HOURS - Lockout after a subnet reaches its limit
    EXPIRY_DAYS - Days a short link stays valid
    LOG_LEVEL - Logging level
"""

import signal
import sys
from contextlib import asynccontextmanager
from datetime import timedelta

import uvicorn
from fastapi import FastAPI

from config import Config, load_config
from shortener.cleanup import CleanupScheduler
from shortener.database.cache import LinkCache
from shortener.database.postgres import PostgresLinkStore
from shortener.rate_limit import SubnetRateLimiter
from shortener.service import ShortLinkService
from shortener.shortcode import ShortCodeGenerator
from shortener.common.logging_config import setup_logging
from web_app import create_app


def build_components(config: Config, logger):
    """Wire store, cache, rate limiter, cleanup scheduler and service.

    Returns:
        Tuple of (service, cleanup scheduler)
    """
    store = PostgresLinkStore(
        db_config=config.database_url,
        table=config.links_table,
        pool_max_size=config.database_pool_size,
        query_timeout_seconds=config.store_query_timeout,
        bulk_timeout_seconds=config.store_bulk_timeout,
        create_tables=config.database_create_tables,
        logger=logger,
    )
    cache = LinkCache()
    rate_limiter = SubnetRateLimiter(
        store,
        max_per_subnet=config.max_per_subnet,
        cooldown=config.cooldown,
        # Seed query plus every insert attempt
        reservation_timeout=timedelta(
            seconds=config.store_query_timeout * (config.max_collision_retries + 2)
        ),
        logger=logger,
    )
    cleanup = CleanupScheduler(
        store,
        cache,
        rate_limiter,
        interval=config.cleanup_interval,
        logger=logger,
    )
    service = ShortLinkService(
        store=store,
        cache=cache,
        rate_limiter=rate_limiter,
        short_code_generator=ShortCodeGenerator(default_length=config.short_code_length),
        logger=logger,
        expiry_days=config.expiry_days,
        max_collision_retries=config.max_collision_retries,
        cleanup=cleanup,
    )
    return service, cleanup


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown.

    An unreachable database aborts startup: the exception propagates and
    uvicorn exits without serving.
    """
    config = app.state.config
    logger = app.state.logger

    logger.info("Starting URL shortener service...")

    service, cleanup = build_components(config, logger)
    await service.store.connect()

    # Initial pass removes expired links before the cache is seeded from the rest
    await cleanup.run_once()
    await service.warm_cache()
    cleanup.start(run_immediately=False)

    app.state.service = service
    app.state.cleanup = cleanup

    logger.info(f"Rate limit: {config.max_per_subnet} URLs per subnet per day")
    logger.info("Service started successfully")

    yield

    logger.info("Shutting down URL shortener service...")

    await cleanup.stop()
    await service.close()

    logger.info("Service stopped")


def main():
    """Main entry point."""
    config = load_config()

    logger = setup_logging(
        level=config.log_level,
        log_file=config.log_file,
        json_format=config.log_json,
    )

    logger.info("URL Shortener Service")
    logger.info(f"Configuration: {config.safe_dump()}")

    app = create_app(
        service_instance=None,  # Will be set in lifespan
        config=config,
        lifespan=lifespan,
    )
    app.state.logger = logger

    uvicorn_config = uvicorn.Config(
        app,
        host=config.host,
        port=config.port,
        workers=config.workers,
        log_level=config.log_level.lower(),
        access_log=True,
    )

    server = uvicorn.Server(uvicorn_config)

    def handle_signal(signum, frame):
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        server.should_exit = True

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        logger.info(f"Starting server on {config.host}:{config.port}")
        server.run()
    except Exception as e:
        logger.error(f"Server error: {e}")
        sys.exit(1)

    # uvicorn returns normally when startup fails
    if not server.started:
        logger.error("Server failed to start")
        sys.exit(1)


if __name__ == "__main__":
    main()
