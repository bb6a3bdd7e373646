"""
Relay bootstrap.

Builds the store, notifier, engine, ingress service and scheduler once at
process start. The FastAPI lifespan keeps the instance on app.state.relay;
routes reach it through get_relay().
"""

from typing import Optional

from fastapi import Request

from relay.engine import ReconciliationEngine
from relay.ingress import IngressService
from relay.notifier import Notifier
from relay.scheduler import ReconciliationScheduler
from relay.store import Clock

from .config import RelayConfig, get_config


class RelayBootstrap:
    """
    Explicitly constructed relay object graph.

    Tests pass their own store/notifier/clock; production reads everything
    from the environment.
    """

    def __init__(
        self,
        config: Optional[RelayConfig] = None,
        store=None,
        notifier: Optional[Notifier] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize bootstrap with configuration."""
        self.config = config or get_config()
        self.store = store if store is not None else self.config.create_store(clock)
        self.notifier = notifier if notifier is not None else self.config.create_notifier()
        self.payloads = self.config.create_payloads()

        self.engine = ReconciliationEngine(
            store=self.store,
            message_log=self.store,
            notifier=self.notifier,
            payloads=self.payloads,
            settings=self.config.engine_settings(),
        )
        self.ingress = IngressService(
            store=self.store,
            message_log=self.store,
            notifier=self.notifier,
            payloads=self.payloads,
            settings=self.config.ingress_settings(),
        )
        self.scheduler = ReconciliationScheduler(
            self.engine,
            interval=self.config.tick_interval_seconds,
        )

    async def start(self) -> None:
        self.scheduler.start()

    async def shutdown(self) -> None:
        await self.scheduler.stop()
        close = getattr(self.store, "close", None)
        if close is not None:
            close()

    def __repr__(self) -> str:
        """String representation showing configured backends."""
        return (
            f"RelayBootstrap(store={self.config.store_backend}, "
            f"notifier={self.config.notifier_backend}, "
            f"grace={self.config.grace_window_seconds:g}s, "
            f"interval={self.config.tick_interval_seconds:g}s)"
        )


def get_relay(request: Request) -> RelayBootstrap:
    """FastAPI dependency: the relay built by the application lifespan."""
    return request.app.state.relay
