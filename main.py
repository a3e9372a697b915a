"""
Command-line entry point for the Nexra dashboard core.

Loads a player's dashboard the way the web client does (identity, first
match page, aggregate stats), optionally pages further, and prints the
resulting state as JSON.
"""

import argparse
import asyncio
import json
import logging
import sys
from dataclasses import dataclass

from nexra.adapters import MemoryStorage, NexraGateway, RedisStorage
from nexra.config.settings import get_settings
from nexra.core.observability import configure_logging, set_correlation_id
from nexra.core.ports import StoragePort
from nexra.core.services import (
    AnalysisJobController,
    CacheManager,
    DashboardService,
    IdentityResolver,
    LiveStatusPoller,
    MatchFeedLoader,
)


@dataclass
class Services:
    gateway: NexraGateway
    cache: CacheManager
    resolver: IdentityResolver
    dashboard: DashboardService
    durable_store: StoragePort


async def build_services() -> Services:
    """Wire gateway, stores and services from settings."""
    settings = get_settings()
    gateway = NexraGateway()

    durable_store: StoragePort
    if settings.durable_store_backend == "redis":
        redis_store = RedisStorage()
        await redis_store.connect()
        durable_store = redis_store
    else:
        durable_store = MemoryStorage()

    cache = CacheManager(MemoryStorage(), durable_store)
    resolver = IdentityResolver(gateway, cache)
    loader = MatchFeedLoader(resolver, gateway, cache)
    controller = AnalysisJobController(gateway, gateway, cache)
    dashboard = DashboardService(resolver, loader, controller, cache)
    return Services(
        gateway=gateway,
        cache=cache,
        resolver=resolver,
        dashboard=dashboard,
        durable_store=durable_store,
    )


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Load a Nexra player dashboard")
    parser.add_argument("riot_id", help="Player handle, e.g. 'Faker#KR1'")
    parser.add_argument("region", nargs="?", default="euw1", help="Platform region (default euw1)")
    parser.add_argument("--pages", type=int, default=0, help="Extra pages to load after the first")
    parser.add_argument("--force", action="store_true", help="Bypass the session snapshot")
    parser.add_argument("--live", action="store_true", help="Also check live game status once")
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    """Main async entry point."""
    args = parse_args(argv)
    settings = get_settings()
    configure_logging(settings.app_log_level)
    set_correlation_id()
    logger = logging.getLogger(__name__)

    services = await build_services()
    try:
        state = await services.dashboard.load_dashboard(args.riot_id, args.region, force=args.force)
        for _ in range(max(args.pages, 0)):
            if state.error is not None or not state.has_more:
                break
            state = await services.dashboard.load_more(args.riot_id, args.region)

        output = state.model_dump(mode="json", by_alias=True)
        if args.live and state.snapshot is not None:
            identity = await services.resolver.lookup(args.riot_id, args.region)
            if identity is not None:
                poller = LiveStatusPoller(services.gateway, identity)
                await poller.poll_once()
                output["live"] = {
                    "inGame": poller.is_live,
                    "elapsedSeconds": poller.elapsed_seconds,
                    "lastCheck": poller.last_check.isoformat() if poller.last_check else None,
                    "error": poller.last_error,
                }

        print(json.dumps(output, indent=2, ensure_ascii=False))
        if state.error is not None:
            logger.error(f"Dashboard load failed: {state.error.kind}: {state.error.message}")
            return 1
        return 0
    finally:
        await services.gateway.close()
        if isinstance(services.durable_store, RedisStorage):
            await services.durable_store.disconnect()


if __name__ == "__main__":
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        print("\nStopped by user.")
