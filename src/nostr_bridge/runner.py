"""Process entry point: load config, connect, run until stopped."""
from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import List, Optional

import discord
import uvicorn

from .bridge import Bridge
from .config import BridgeConfig, load_config
from .discord_client import BridgeClient
from .errors import ConfigError, RelayConnectionError
from .relay import RelayPublisher
from .server import create_app

logger = logging.getLogger("nostr_bridge")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Forward a Discord channel to a Nostr relay.")
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to the YAML config (default: $NOSTR_BRIDGE_CONFIG or config.yml)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Override logging.level from the config (e.g. DEBUG)",
    )
    parser.add_argument(
        "--status",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Enable or disable the HTTP status server (default: from config)",
    )
    return parser


def _install_signal_handlers(loop: asyncio.AbstractEventLoop, stop: asyncio.Event) -> None:
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop.set)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - Windows
            pass


async def run(cfg: BridgeConfig) -> None:
    publisher = RelayPublisher(
        cfg.nostr.relay_url,
        open_timeout=cfg.relay.open_timeout,
        response_timeout=cfg.relay.response_timeout,
    )
    bridge = Bridge(cfg, publisher)
    bridge.check_keys()

    try:
        await publisher.connect()
    except RelayConnectionError as e:
        # Not fatal: the first message will try again.
        logger.warning("Initial relay connection failed, will retry on first message: %s", e)

    stop = asyncio.Event()
    _install_signal_handlers(asyncio.get_running_loop(), stop)

    client = BridgeClient(bridge)
    tasks = {asyncio.create_task(client.start(cfg.discord.token.get_secret_value()), name="discord")}
    if cfg.status.enabled:
        server = uvicorn.Server(
            uvicorn.Config(
                create_app(bridge, cfg),
                host=cfg.status.host,
                port=cfg.status.port,
                log_level=cfg.logging.level.lower(),
            )
        )
        tasks.add(asyncio.create_task(server.serve(), name="status"))
    stopper = asyncio.create_task(stop.wait(), name="signal")

    logger.info("Bridge is now running. Press CTRL+C to exit.")
    try:
        done, _ = await asyncio.wait(tasks | {stopper}, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if task is not stopper and not task.cancelled() and task.exception() is not None:
                raise task.exception()
    finally:
        logger.info("Shutting down bridge.")
        await client.close()
        for task in tasks | {stopper}:
            task.cancel()
        await asyncio.gather(*tasks, stopper, return_exceptions=True)
        await publisher.close()
        logger.info("Final stats: %s", bridge.stats.as_dict())


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config)
    except ConfigError as e:
        logging.basicConfig(level=logging.INFO)
        logger.error("Error loading config: %s", e)
        return 2

    if args.status is not None:
        cfg.status.enabled = args.status
    level = (args.log_level or cfg.logging.level).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        asyncio.run(run(cfg))
    except discord.LoginFailure as e:
        logger.error("Error opening Discord session: %s", e)
        return 1
    except KeyboardInterrupt:
        pass
    return 0
