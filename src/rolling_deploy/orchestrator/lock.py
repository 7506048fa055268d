"""Cluster-wide mutual exclusion for rolling deploys.

If two or more rolling deploys were to execute simultaneously, all instances
could end up detached from a load balancer at the same time. Each deploy
checks that other instances remain attached before detaching, but two deploys
running on each instance of a pair can both see the other instance attached
and both detach. The load balancer is then left with nothing to route to.

Holding a shared deploy lock for the whole rolling deploy forces deploys to
run one after another, so only one batch is ever detached at a time.
"""

import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional, TypeVar

from rolling_deploy.config.models import DEFAULT_LOCK_WAIT
from rolling_deploy.orchestrator.events import EventEmitter, ProgressEvent
from rolling_deploy.services.base import LockBackend
from rolling_deploy.utils.errors import DeploymentError, ErrorContext, LockTimeoutError
from rolling_deploy.utils.logging import get_logger

logger = get_logger(__name__)

T = TypeVar('T')


class DistributedLock:
    """Bounded-wait named mutex shared by every orchestrator invocation."""

    def __init__(
        self,
        backend: Optional[LockBackend],
        emitter: Optional[EventEmitter] = None
    ):
        """Initialize distributed lock.

        Args:
            backend: Lock backend, or None to run without locking
            emitter: Progress event emitter
        """
        self.backend = backend
        self.emitter = emitter or EventEmitter()

    @property
    def enabled(self) -> bool:
        """Whether a lock backend is configured."""
        return self.backend is not None

    @contextmanager
    def hold(self, name: str, max_wait: float = DEFAULT_LOCK_WAIT) -> Iterator[None]:
        """Hold ``name`` for the duration of the ``with`` block.

        Args:
            name: Lock name
            max_wait: Seconds to wait for the lock before giving up

        Raises:
            LockTimeoutError: If the lock was not acquired within ``max_wait``;
                the block never runs
            DeploymentError: If the release fails after the block succeeded.
                When the block raised, its exception wins and the release
                failure is logged
        """
        if self.backend is None:
            logger.warning(
                f"No lock backend available, running without deploy lock '{name}'. "
                "Concurrent deploys could detach every instance from a load balancer!"
            )
            yield
            return

        self.emitter.emit(
            ProgressEvent.LOCK_WAITING,
            f"Waiting for deploy lock '{name}' (up to {max_wait:.0f}s)...",
            lock_name=name,
        )

        start = time.monotonic()
        token = self.backend.acquire(name, max_wait)
        waited = time.monotonic() - start

        if token is None:
            self.emitter.emit(
                ProgressEvent.LOCK_TIMEOUT,
                f"Could not get deploy lock '{name}' within {max_wait:.0f} seconds",
                lock_name=name,
                duration=waited,
            )
            raise LockTimeoutError(
                f"could not get deploy lock '{name}' within {max_wait:.0f} seconds",
                context=ErrorContext(operation='acquire_lock'),
            )

        self.emitter.emit(
            ProgressEvent.LOCK_ACQUIRED,
            f"Got deploy lock '{name}' after {waited:.1f}s. Running deploy...",
            lock_name=name,
            duration=waited,
        )

        try:
            yield
        except BaseException:
            # The body's error must surface; a failing release is only logged
            try:
                self._release(name, token)
            except DeploymentError as release_error:
                logger.error(
                    f"Releasing deploy lock '{name}' after a failed deploy also failed: "
                    f"{release_error.message}",
                    exc_info=True,
                )
            raise
        else:
            self._release(name, token)

    def _release(self, name: str, token: Any) -> None:
        logger.info(f"Releasing deploy lock '{name}'...")
        self.backend.release(token)
        self.emitter.emit(
            ProgressEvent.LOCK_RELEASED,
            f"Deploy lock '{name}' released",
            lock_name=name,
        )

    def with_lock(
        self,
        name: str,
        max_wait: float,
        body: Callable[..., T],
        *args: Any,
        **kwargs: Any
    ) -> T:
        """Run ``body`` while holding ``name``.

        The lock is released whether ``body`` returns or raises.

        Args:
            name: Lock name
            max_wait: Seconds to wait for the lock
            body: Callable to run exclusively
            *args: Positional arguments for ``body``
            **kwargs: Keyword arguments for ``body``

        Returns:
            Whatever ``body`` returns

        Raises:
            LockTimeoutError: If the lock was not acquired; ``body`` never runs
        """
        with self.hold(name, max_wait):
            return body(*args, **kwargs)
