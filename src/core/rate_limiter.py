"""In-memory sliding-window limiter for checkout and payment submissions."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from threading import Lock

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for checkout attempt limiting."""

    max_attempts_guest: int = 5
    max_attempts_customer: int = 10
    window_seconds: int = 60
    cleanup_interval_seconds: int = 300

    @classmethod
    def from_settings(cls) -> "RateLimitConfig":
        """Create config from application settings."""
        from src.core.config import get_settings
        settings = get_settings()
        return cls(
            max_attempts_guest=settings.checkout_rate_limit_guest,
            max_attempts_customer=settings.checkout_rate_limit_customer,
            window_seconds=settings.checkout_rate_limit_window_seconds,
        )


@dataclass
class AttemptRecord:
    """Timestamps of recent attempts for one key."""

    timestamps: list[float] = field(default_factory=list)

    def prune_old(self, window_seconds: int) -> None:
        """Remove timestamps older than the window."""
        cutoff = time.time() - window_seconds
        self.timestamps = [ts for ts in self.timestamps if ts > cutoff]

    def seconds_until_available(self, window_seconds: int, max_attempts: int) -> int:
        """Calculate seconds until a new attempt slot is available."""
        if len(self.timestamps) < max_attempts:
            return 0
        oldest_in_window = sorted(self.timestamps)[-max_attempts]
        return max(0, int(oldest_in_window + window_seconds - time.time()) + 1)


class CheckoutRateLimiter:
    """Thread-safe in-memory limiter keyed by cart session or customer."""

    def __init__(self, config: RateLimitConfig | None = None) -> None:
        self.config = config or RateLimitConfig()
        self._storage: dict[str, AttemptRecord] = defaultdict(AttemptRecord)
        self._lock = Lock()
        self._cleanup_task: asyncio.Task | None = None

    async def start_cleanup_task(self) -> None:
        """Start background cleanup task."""
        if self._cleanup_task is None:
            self._cleanup_task = asyncio.create_task(self._cleanup_loop())
            logger.info("Checkout rate limiter cleanup task started")

    async def stop_cleanup_task(self) -> None:
        """Stop background cleanup task."""
        if self._cleanup_task:
            self._cleanup_task.cancel()
            try:
                await self._cleanup_task
            except asyncio.CancelledError:
                pass
            self._cleanup_task = None
            logger.info("Checkout rate limiter cleanup task stopped")

    async def _cleanup_loop(self) -> None:
        while True:
            await asyncio.sleep(self.config.cleanup_interval_seconds)
            count = self.cleanup()
            if count > 0:
                logger.debug("Checkout rate limiter cleaned up %d idle keys", count)

    def check_and_record(self, key: str, authenticated: bool = False) -> tuple[bool, int]:
        """Record an attempt if the key is under its limit.

        Args:
            key: Cart session token or customer ID.
            authenticated: Whether the caller is a signed-in customer.

        Returns:
            Tuple of (allowed, retry_after_seconds).
        """
        max_attempts = self.config.max_attempts_customer if authenticated else self.config.max_attempts_guest
        window = self.config.window_seconds

        with self._lock:
            record = self._storage[key]
            record.prune_old(window)
            if len(record.timestamps) >= max_attempts:
                return False, record.seconds_until_available(window, max_attempts)
            record.timestamps.append(time.time())
            return True, 0

    def cleanup(self) -> int:
        """Remove keys with no attempts inside the window."""
        with self._lock:
            idle = []
            for key, record in self._storage.items():
                record.prune_old(self.config.window_seconds)
                if not record.timestamps:
                    idle.append(key)
            for key in idle:
                del self._storage[key]
            return len(idle)


_rate_limiter: CheckoutRateLimiter | None = None


def get_rate_limiter() -> CheckoutRateLimiter:
    """Get or create the global checkout rate limiter."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = CheckoutRateLimiter(RateLimitConfig.from_settings())
    return _rate_limiter


async def init_rate_limiter() -> CheckoutRateLimiter:
    """Initialize rate limiter with cleanup task. Call at app startup."""
    limiter = get_rate_limiter()
    await limiter.start_cleanup_task()
    return limiter


async def shutdown_rate_limiter() -> None:
    """Shutdown rate limiter cleanup task. Call at app shutdown."""
    if _rate_limiter:
        await _rate_limiter.stop_cleanup_task()
