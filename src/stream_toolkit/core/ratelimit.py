"""Process-wide admission control for resolver invocations."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..config.constants import DEFAULT_RATE_BURST, DEFAULT_RATE_CAPACITY, DEFAULT_RATE_PERIOD_SECONDS

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from ..config.settings import RateLimitConfig

LOG = logging.getLogger(__name__)


@dataclass(frozen=True)
class Permit:
    """Proof that a caller was admitted by the gate."""

    granted_at: float
    waited: float = 0.0


class RateGate:
    """
    Token bucket refilled smoothly (GCRA).

    One token becomes available every ``period / capacity`` seconds and up to
    ``burst`` tokens may be banked, so any window of ``period`` seconds admits
    at most ``capacity + burst - 1`` requests. Requests are never rejected,
    only delayed. Waiters are not queued: whichever waiter polls first after a
    token is due gets it.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_RATE_CAPACITY,
        period: float = DEFAULT_RATE_PERIOD_SECONDS,
        *,
        burst: int = DEFAULT_RATE_BURST,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ) -> None:
        """
        Initialize the gate.

        Args:
            capacity: Tokens issued per period
            period: Seconds over which ``capacity`` tokens are issued
            burst: Requests that may pass back-to-back, at most ``capacity``
            clock: Monotonic time source
            sleep: Coroutine used to wait for the next token

        """
        if capacity < 1:
            msg = f"Rate gate capacity must be at least 1, got {capacity}"
            raise ValueError(msg)
        if period <= 0:
            msg = f"Rate gate period must be positive, got {period}"
            raise ValueError(msg)
        if not 1 <= burst <= capacity:
            msg = f"Rate gate burst must be between 1 and {capacity}, got {burst}"
            raise ValueError(msg)

        self.capacity = capacity
        self.period = period
        self.burst = burst
        self.emission_interval = period / capacity
        self.tolerance = self.emission_interval * (burst - 1)
        self._clock = clock
        self._sleep = sleep
        self._tat: float | None = None  # theoretical arrival time of the next request
        self._lock = threading.Lock()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> RateGate:
        """Create the gate from the rate_limit config section."""
        return cls(config.capacity, config.period_seconds, burst=config.burst)

    def check(self) -> float:
        """
        Try to take a token without waiting.

        Returns:
            0.0 if a token was taken, otherwise the seconds until one is due

        """
        with self._lock:
            now = self._clock()
            tat = now if self._tat is None else max(self._tat, now)
            allow_at = tat - self.tolerance
            if now >= allow_at:
                self._tat = tat + self.emission_interval
                return 0.0
            return allow_at - now

    async def acquire(self) -> Permit:
        """Wait until a token is available and take it."""
        started = self._clock()
        while True:
            wait = self.check()
            if wait <= 0:
                now = self._clock()
                return Permit(granted_at=now, waited=now - started)
            LOG.debug("Rate gate exhausted, retrying in %.3fs", wait)
            await self._sleep(wait)
