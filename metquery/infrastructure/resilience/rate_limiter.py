"""Fixed-cadence pacing of outbound paid calls.

Every paid call makes the x402 signer hit a Solana RPC node, which rate
limits across calls in a way no single response reveals. Spacing call starts
by a fixed interval keeps the aggregate rate under that limit.
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from metquery.domain.events.api_events import CallThrottled, dispatch_event

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 5.0


class ThrottledSequencer:
    """Enforces a minimum interval between the starts of successive calls.

    The wait is unconditional: it does not depend on whether the previous
    call succeeded, failed or is still running.
    """

    def __init__(
        self,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """Initializes the sequencer.

        Args:
            interval: Minimum seconds between two call starts.
            clock: Monotonic clock, injectable for tests.
            sleep: Async sleep function, injectable for tests.
        """
        if interval < 0:
            raise ValueError(f"interval must be non-negative, got {interval}")
        self.interval = interval
        self._clock = clock
        self._sleep = sleep
        self._last_start: Optional[float] = None
        self._lock = asyncio.Lock()
        self.calls_started = 0
        logger.info(f"ThrottledSequencer initialized: {interval}s between calls")

    def get_wait_time(self) -> float:
        """Seconds the next call would have to wait if started now."""
        if self._last_start is None:
            return 0.0
        elapsed = self._clock() - self._last_start
        return max(0.0, self.interval - elapsed)

    async def wait_for_permission(self) -> None:
        """Waits until the next call may start, then marks it as started."""
        async with self._lock:
            wait_time = self.get_wait_time()
            if wait_time > 0:
                logger.info(f"[throttle] waiting {wait_time:.1f}s before next call...")
                dispatch_event(CallThrottled(wait_time_seconds=wait_time))
                await self._sleep(wait_time)
            self._last_start = self._clock()
            self.calls_started += 1
