"""Background job that resolves checkout intents left open.

An intent stays open when the process died between creating the order and
settling payment, when a customer abandoned a PayPal popup or wallet sheet,
or when a compensating cancel failed.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class ReconcilerConfig:
    """Configuration for the checkout reconciler."""

    interval_seconds: int = 300
    intent_timeout_seconds: int = 1800
    enabled: bool = True

    @classmethod
    def from_settings(cls) -> "ReconcilerConfig":
        """Create config from application settings."""
        from src.core.config import get_settings
        settings = get_settings()
        return cls(
            interval_seconds=settings.checkout_reconcile_interval_seconds,
            intent_timeout_seconds=settings.checkout_intent_timeout_seconds,
            enabled=settings.checkout_reconcile_interval_seconds > 0,
        )


class CheckoutReconciler:
    """Periodically hands stale checkout intents to the checkout service."""

    def __init__(
        self,
        config: ReconcilerConfig | None = None,
        service_factory: Callable | None = None,
    ) -> None:
        self.config = config or ReconcilerConfig()
        self._service_factory = service_factory
        self._task: asyncio.Task | None = None
        self.last_run: dict[str, int] = {}

    def _service(self):
        if self._service_factory is None:
            from src.services.checkout_service import CheckoutService
            self._service_factory = CheckoutService
        return self._service_factory()

    async def start(self) -> None:
        """Start the background reconciliation task."""
        if not self.config.enabled:
            logger.info("Checkout reconciliation disabled")
            return
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info("Checkout reconciliation task started")

    async def stop(self) -> None:
        """Stop the background reconciliation task."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Checkout reconciliation task stopped")

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.interval_seconds)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Checkout reconciliation run failed")

    async def run_once(self) -> dict[str, int]:
        """Resolve all currently stale intents once.

        Returns:
            dict: Count of intents per resulting state.
        """
        self.last_run = await self._service().reconcile_stale(self.config.intent_timeout_seconds)
        return self.last_run


_reconciler: CheckoutReconciler | None = None


def get_checkout_reconciler() -> CheckoutReconciler:
    """Get or create the global checkout reconciler."""
    global _reconciler
    if _reconciler is None:
        _reconciler = CheckoutReconciler(ReconcilerConfig.from_settings())
    return _reconciler


async def init_checkout_reconciler() -> CheckoutReconciler:
    """Initialize the reconciler task. Call at app startup."""
    reconciler = get_checkout_reconciler()
    await reconciler.start()
    return reconciler


async def shutdown_checkout_reconciler() -> None:
    """Stop the reconciler task. Call at app shutdown."""
    if _reconciler:
        await _reconciler.stop()
