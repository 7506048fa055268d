"""Deadline-bounded polling for eventually-consistent remote state."""

import time
from typing import Callable, Optional, TypeVar

from rolling_deploy.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class Poller:
    """Polls a condition at a fixed interval until it holds or a deadline passes.

    The number of attempts is unbounded; only wall-clock time is limited. The
    condition is always checked once more before giving up, so a zero timeout
    still performs a single check.
    """

    def __init__(
        self,
        interval: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep
    ):
        """Initialize poller.

        Args:
            interval: Seconds between attempts
            clock: Monotonic clock returning seconds
            sleep: Function used to wait between attempts
        """
        if interval <= 0:
            raise ValueError(f"Poll interval must be positive, got {interval}")
        self.interval = interval
        self.clock = clock
        self.sleep = sleep

    def wait_until(
        self,
        condition: Callable[[], Optional[T]],
        timeout: float,
        on_timeout: Callable[[float], Exception],
        description: str = 'condition'
    ) -> T:
        """Block until ``condition`` returns a truthy value.

        ``condition`` may raise to abort the wait early (for example when a
        deployment reports a terminal failure).

        Args:
            condition: Callable returning a truthy value once satisfied
            timeout: Overall deadline in seconds
            on_timeout: Builds the exception to raise; receives elapsed seconds
            description: Human-readable description for debug logs

        Returns:
            The truthy value returned by ``condition``

        Raises:
            The exception built by ``on_timeout`` once the deadline passes
        """
        start = self.clock()
        deadline = start + timeout
        attempt = 0

        while True:
            attempt += 1
            result = condition()
            if result:
                return result

            now = self.clock()
            if now >= deadline:
                elapsed = now - start
                logger.debug(f"Gave up waiting for {description} after {attempt} attempts ({elapsed:.1f}s)")
                raise on_timeout(elapsed)

            logger.debug(f"Waiting for {description} (attempt {attempt})...")
            self.sleep(min(self.interval, deadline - now))
