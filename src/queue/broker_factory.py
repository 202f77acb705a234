# src/queue/broker_factory.py — v1
"""Factory for job broker instantiation."""

from __future__ import annotations

from linklore.config.settings import Settings
from linklore.queue.broker import BaseBroker


def create_broker(settings: Settings | None = None) -> BaseBroker | None:
    """Instantiate the configured broker.

    No connection is made here; RedisBroker connects on first use.

    Args:
        settings: Application settings. Defaults to the in-memory broker.

    Returns:
        Configured broker, or None when BROKER_ENABLED is false.
    """
    if settings is None:
        from linklore.queue.broker import InMemoryBroker
        return InMemoryBroker()

    if not settings.broker_enabled:
        return None

    if settings.broker_backend == "memory":
        from linklore.queue.broker import InMemoryBroker
        return InMemoryBroker()

    if settings.broker_backend == "redis":
        from linklore.queue.redis_broker import RedisBroker
        return RedisBroker(
            redis_url=settings.redis_url,
            namespace=settings.queue_name,
            connect_timeout_s=settings.broker_connect_timeout_s,
        )

    raise ValueError(f"Unsupported broker backend: {settings.broker_backend!r}")
