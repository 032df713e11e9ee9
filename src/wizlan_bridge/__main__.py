"""WiZ LAN bridge -- entry point.

Usage::

    python -m wizlan_bridge [--config PATH] [--bind-to ADDR] [--no-api] [--log-level LEVEL]

Startup sequence:
    1. Parse CLI arguments
    2. Load configuration from YAML (or defaults) and environment
    3. Pick the network interface identity
    4. Initialise the event bus and the discovery engine
    5. Create the FastAPI application with dependency injection
    6. Start discovery
    7. Serve the API with uvicorn, or idle until the engine ends
    8. On shutdown signal: end the engine
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Any

import uvicorn

from wizlan_bridge.app import create_app  # noqa: F401 -- patched in tests
from wizlan_bridge.errors import NoInterfaceError
from wizlan_bridge.network.interfaces import select_identity  # noqa: F401 -- patched in tests

logger = logging.getLogger("wizlan_bridge")


# ---------------------------------------------------------------------------
# Integration seams -- thin wrappers around real subsystem constructors.
# These are module-level names so tests can patch them individually.
# ---------------------------------------------------------------------------


def load_config(config_path: str | None) -> dict[str, Any]:
    """Load configuration from a YAML file or return defaults.

    Wraps the real config loader, converting the pydantic Settings model
    into a plain dict for downstream consumption.
    """
    from wizlan_bridge.config import load_settings

    path = Path(config_path) if config_path else None
    settings = load_settings(config_path=path)
    return settings.model_dump()


def create_event_bus() -> Any:
    """Create the in-memory event bus."""
    from wizlan_bridge.events.bus import EventBus

    return EventBus()


def create_engine(config: dict[str, Any], identity: Any, event_bus: Any) -> Any:
    """Create the discovery engine with a transport built from *config*."""
    from wizlan_bridge.engine import DiscoveryEngine
    from wizlan_bridge.transport.udp import UdpTransport

    net = config.get("network", {})
    transport = UdpTransport(
        identity,
        listen_port=net.get("listen_port", 38900),
        broadcast_port=net.get("broadcast_port", 38899),
        device_port=net.get("device_port", 38899),
        broadcast_address=net.get("broadcast_address", "255.255.255.255"),
        addr_in_use_retry_delay=net.get("addr_in_use_retry_delay", 15.0),
        reopen_delay=net.get("reopen_delay", 1.0),
        bind_poll_interval=net.get("bind_poll_interval", 1.0),
    )
    return DiscoveryEngine(
        identity,
        event_bus=event_bus,
        transport=transport,
        registration_interval=net.get("registration_interval", 24.0),
    )


async def wait_for_shutdown(engine: Any) -> None:
    """Block until the engine is ended or the task is cancelled."""
    await engine.ended.wait()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Parameters
    ----------
    argv:
        Argument list.  Defaults to ``sys.argv[1:]`` when ``None``.
    """
    parser = argparse.ArgumentParser(
        prog="wizlan_bridge",
        description="Discover and control WiZ lights on the local network",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to YAML configuration file",
    )
    parser.add_argument(
        "--bind-to",
        type=str,
        default=None,
        help="IPv4 address of the interface to use (default: first non-loopback)",
    )
    parser.add_argument(
        "--no-api",
        action="store_true",
        default=False,
        help="Run discovery only, without the HTTP control API",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        help="Logging level (default: from config, INFO)",
    )
    return parser.parse_args(argv)


# ---------------------------------------------------------------------------
# Main run coroutine
# ---------------------------------------------------------------------------


async def run_bridge(
    config_path: str | None = None,
    bind_to: str | None = None,
    no_api: bool = False,
    log_level: str | None = None,
) -> None:
    """Start the bridge and run until cancelled.

    This is the top-level coroutine that wires all subsystems together.
    It is designed to be called from ``main()`` or directly in tests.
    """
    # 1. Load config, CLI flags win
    config: dict[str, Any] = load_config(config_path)
    config.setdefault("network", {})
    config.setdefault("api", {})
    config.setdefault("logging", {})
    if bind_to:
        config["network"]["bind_to"] = bind_to
    if no_api:
        config["api"]["enabled"] = False
    if log_level:
        config["logging"]["level"] = log_level

    logging.getLogger().setLevel(str(config["logging"].get("level", "INFO")).upper())

    # 2. Interface identity
    identity = select_identity(config["network"].get("bind_to"))

    # 3. Event bus and engine
    event_bus = create_event_bus()
    engine = create_engine(config=config, identity=identity, event_bus=event_bus)

    # 4. FastAPI app
    server = None
    if config["api"].get("enabled", True):
        app = create_app(config=config)

        from wizlan_bridge.api.deps import (
            get_config as _get_config_dep,
            get_engine as _get_engine_dep,
            get_event_bus as _get_event_bus_dep,
        )

        async def _prod_get_engine():
            return engine

        async def _prod_get_config():
            return config

        async def _prod_get_event_bus():
            return event_bus

        app.dependency_overrides[_get_engine_dep] = _prod_get_engine
        app.dependency_overrides[_get_config_dep] = _prod_get_config
        app.dependency_overrides[_get_event_bus_dep] = _prod_get_event_bus

        uvicorn_config = uvicorn.Config(
            app=app,
            host=config["api"].get("host", "127.0.0.1"),
            port=config["api"].get("port", 8480),
            log_level="info",
        )
        server = uvicorn.Server(uvicorn_config)

    # 5. Start discovery. WebSocket fan-out is subscribed after start because
    # start(clear=True) would drop it.
    await engine.start()

    if server is not None:
        from wizlan_bridge.api.ws import broadcast_event

        async def _ws_broadcast(event: dict) -> None:
            await broadcast_event(
                seq=event["seq"],
                event_type=event["event_type"],
                payload=event["payload"],
            )

        event_bus.subscribe(["*"], _ws_broadcast)

    try:
        if server is not None:
            await server.serve()
        else:
            await wait_for_shutdown(engine)
    except asyncio.CancelledError:
        logger.info("Shutdown signal received -- stopping bridge")
    finally:
        logger.info("Ending discovery...")
        await engine.end()
        logger.info("Bridge shutdown complete")


# ---------------------------------------------------------------------------
# Script entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Parse CLI args and run the bridge."""
    args = parse_args()

    logging.basicConfig(
        level=(args.log_level or "INFO").upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        asyncio.run(
            run_bridge(
                config_path=args.config,
                bind_to=args.bind_to,
                no_api=args.no_api,
                log_level=args.log_level,
            )
        )
    except NoInterfaceError as exc:
        logger.error("%s", exc)
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(0)


if __name__ == "__main__":
    main()
