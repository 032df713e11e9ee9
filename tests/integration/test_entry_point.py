"""Integration tests for the bridge entry point (__main__.py).

Every external subsystem is mocked so the test exercises the wiring and
startup/shutdown orchestration without requiring network access or a
running uvicorn server.
"""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import yaml

from wizlan_bridge.errors import NoInterfaceError
from wizlan_bridge.network.interfaces import NetworkIdentity


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config_file(tmp_path: Path) -> Path:
    """Write a minimal YAML config to a temporary file."""
    config = {
        "network": {"bind_to": "192.168.1.10"},
        "api": {"port": 9480},
    }
    config_path = tmp_path / "config.yaml"
    config_path.write_text(yaml.dump(config))
    return config_path


@pytest.fixture()
def mock_subsystems() -> dict[str, Any]:
    """Patch all subsystems and return the mocks for assertion."""
    mocks: dict[str, Any] = {}

    mocks["load_config"] = MagicMock(return_value={
        "network": {"bind_to": None},
        "api": {"enabled": True, "host": "127.0.0.1", "port": 8480},
        "logging": {"level": "INFO"},
    })

    identity = NetworkIdentity(address="192.168.1.10", hardware_id="AABBCCDDEE01")
    mocks["identity"] = identity
    mocks["select_identity"] = MagicMock(return_value=identity)

    mock_event_bus = MagicMock()
    mocks["event_bus"] = mock_event_bus
    mocks["create_event_bus"] = MagicMock(return_value=mock_event_bus)

    mock_engine = MagicMock()
    mock_engine.start = AsyncMock()
    mock_engine.end = AsyncMock()
    mocks["engine"] = mock_engine
    mocks["create_engine"] = MagicMock(return_value=mock_engine)

    mocks["wait_for_shutdown"] = AsyncMock()

    mock_app = MagicMock()
    mock_app.dependency_overrides = {}
    mocks["app"] = mock_app
    mocks["create_app"] = MagicMock(return_value=mock_app)

    mock_server = MagicMock()
    mock_server.serve = AsyncMock()
    mocks["uvicorn_server"] = mock_server
    mocks["uvicorn_server_cls"] = MagicMock(return_value=mock_server)

    return mocks


@pytest.fixture()
def patched(mock_subsystems: dict[str, Any]):
    """Apply all subsystem patches for the duration of a test."""
    names = [
        "load_config",
        "select_identity",
        "create_event_bus",
        "create_engine",
        "wait_for_shutdown",
        "create_app",
    ]
    with contextlib.ExitStack() as stack:
        for name in names:
            stack.enter_context(
                patch(f"wizlan_bridge.__main__.{name}", mock_subsystems[name])
            )
        stack.enter_context(
            patch(
                "wizlan_bridge.__main__.uvicorn.Server",
                mock_subsystems["uvicorn_server_cls"],
            )
        )
        yield


# ---------------------------------------------------------------------------
# Startup tests
# ---------------------------------------------------------------------------


class TestEntryPointStartup:
    """Bridge startup wires all components correctly."""

    @pytest.mark.asyncio
    async def test_loads_config_from_cli_arg(
        self,
        config_file: Path,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        await run_bridge(config_path=str(config_file))

        mock_subsystems["load_config"].assert_called_once_with(str(config_file))

    @pytest.mark.asyncio
    async def test_bind_to_flag_selects_interface(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        await run_bridge(bind_to="10.0.0.7")

        mock_subsystems["select_identity"].assert_called_once_with("10.0.0.7")

    @pytest.mark.asyncio
    async def test_creates_engine_with_identity_and_bus(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        await run_bridge()

        kwargs = mock_subsystems["create_engine"].call_args.kwargs
        assert kwargs["identity"] is mock_subsystems["identity"]
        assert kwargs["event_bus"] is mock_subsystems["event_bus"]
        mock_subsystems["engine"].start.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_wires_dependency_overrides(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge
        from wizlan_bridge.api.deps import get_config, get_engine, get_event_bus

        await run_bridge()

        overrides = mock_subsystems["app"].dependency_overrides
        assert await overrides[get_engine]() is mock_subsystems["engine"]
        assert await overrides[get_event_bus]() is mock_subsystems["event_bus"]
        assert (await overrides[get_config]())["api"]["port"] == 8480

    @pytest.mark.asyncio
    async def test_subscribes_websocket_fanout(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        await run_bridge()

        mock_subsystems["event_bus"].subscribe.assert_called_once()
        assert mock_subsystems["event_bus"].subscribe.call_args.args[0] == ["*"]

    @pytest.mark.asyncio
    async def test_serves_api(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        await run_bridge()

        mock_subsystems["uvicorn_server"].serve.assert_awaited_once()
        mock_subsystems["wait_for_shutdown"].assert_not_called()

    @pytest.mark.asyncio
    async def test_no_api_skips_server(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        await run_bridge(no_api=True)

        mock_subsystems["create_app"].assert_not_called()
        mock_subsystems["uvicorn_server_cls"].assert_not_called()
        mock_subsystems["event_bus"].subscribe.assert_not_called()
        mock_subsystems["wait_for_shutdown"].assert_awaited_once_with(
            mock_subsystems["engine"]
        )


# ---------------------------------------------------------------------------
# Shutdown tests
# ---------------------------------------------------------------------------


class TestEntryPointShutdown:
    """Graceful shutdown ends the engine."""

    @pytest.mark.asyncio
    async def test_cancel_ends_engine(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        mock_subsystems["uvicorn_server"].serve.side_effect = asyncio.CancelledError

        await run_bridge()

        mock_subsystems["engine"].end.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_normal_exit_ends_engine(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        await run_bridge(no_api=True)

        mock_subsystems["engine"].end.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_interface_propagates(
        self,
        mock_subsystems: dict[str, Any],
        patched: None,
    ) -> None:
        from wizlan_bridge.__main__ import run_bridge

        mock_subsystems["select_identity"].side_effect = NoInterfaceError("none")

        with pytest.raises(NoInterfaceError):
            await run_bridge()

        mock_subsystems["create_engine"].assert_not_called()


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------


class TestParseArgs:

    def test_defaults(self) -> None:
        from wizlan_bridge.__main__ import parse_args

        args = parse_args([])
        assert args.config is None
        assert args.bind_to is None
        assert args.no_api is False
        assert args.log_level is None

    def test_all_flags(self) -> None:
        from wizlan_bridge.__main__ import parse_args

        args = parse_args([
            "--config", "/etc/wizlan.yaml",
            "--bind-to", "192.168.1.10",
            "--no-api",
            "--log-level", "debug",
        ])
        assert args.config == "/etc/wizlan.yaml"
        assert args.bind_to == "192.168.1.10"
        assert args.no_api is True
        assert args.log_level == "debug"


class TestMain:

    def test_no_interface_exits_1(self) -> None:
        from wizlan_bridge import __main__ as entry

        with patch.object(entry, "parse_args", return_value=entry.parse_args([])), \
                patch.object(entry, "run_bridge", AsyncMock(side_effect=NoInterfaceError("none"))):
            with pytest.raises(SystemExit) as exc_info:
                entry.main()
        assert exc_info.value.code == 1

    def test_keyboard_interrupt_exits_0(self) -> None:
        from wizlan_bridge import __main__ as entry

        with patch.object(entry, "parse_args", return_value=entry.parse_args([])), \
                patch.object(entry, "run_bridge", AsyncMock(side_effect=KeyboardInterrupt)):
            with pytest.raises(SystemExit) as exc_info:
                entry.main()
        assert exc_info.value.code == 0


class TestCreateEngine:
    """The real engine factory honours network settings."""

    def test_transport_built_from_config(self) -> None:
        from wizlan_bridge.__main__ import create_engine
        from wizlan_bridge.events.bus import EventBus
        from wizlan_bridge.transport.udp import SocketRole

        identity = NetworkIdentity(address="192.168.1.10", hardware_id="AABBCCDDEE01")
        config = {"network": {"listen_port": 40000, "registration_interval": 5.0}}

        engine = create_engine(config=config, identity=identity, event_bus=EventBus())

        assert engine.identity == identity
        assert engine._transport._ports[SocketRole.LISTEN] == 40000
        assert engine._heartbeat.interval == 5.0
