"""FastAPI dependency injection providers."""
from __future__ import annotations


async def get_engine():
    """Return the running DiscoveryEngine.

    In production, wired by ``__main__``. In tests, overridden.
    """
    raise NotImplementedError("Must be overridden via app.state or dependency_overrides")


async def get_event_bus():
    """Return the EventBus instance the engine publishes to.

    In production, wired by ``__main__``. In tests, overridden.
    """
    raise NotImplementedError("Must be overridden via app.state or dependency_overrides")


async def get_config() -> dict:
    """Return the bridge configuration dict.

    In production, loaded at startup. In tests, overridden.
    """
    raise NotImplementedError("Must be overridden via app.state or dependency_overrides")
