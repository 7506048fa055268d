"""Progress events emitted during a rolling deploy."""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from rolling_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ProgressEvent(Enum):
    """Progress milestones, in the order they usually occur."""
    LOCK_WAITING = "lock-waiting"
    LOCK_ACQUIRED = "lock-acquired"
    LOCK_TIMEOUT = "lock-timeout"
    BATCH_STARTED = "batch-started"
    DETACHED_FROM = "detached-from"
    NO_LOAD_BALANCERS_FOUND = "no-load-balancers-found"
    DEPLOY_STARTED = "deploy-started"
    DEPLOY_COMPLETED = "deploy-completed"
    REATTACHED_TO = "reattached-to"
    BATCH_DONE = "batch-done"
    DEPLOY_ALL_COMPLETE = "deploy-all-complete"
    LOCK_RELEASED = "lock-released"


# Receives the event and its details (batch, load_balancer, instance_ids, ...)
ProgressCallback = Callable[[ProgressEvent, Dict[str, Any]], None]


class EventEmitter:
    """Logs progress events and forwards them to an optional observer."""

    LEVELS = {
        ProgressEvent.LOCK_TIMEOUT: logging.ERROR,
        ProgressEvent.NO_LOAD_BALANCERS_FOUND: logging.WARNING,
    }

    def __init__(self, callback: Optional[ProgressCallback] = None):
        self.callback = callback

    def emit(self, event: ProgressEvent, message: str, **details: Any) -> None:
        """Log ``message`` and notify the observer.

        Args:
            event: Event being emitted
            message: Human-readable log message
            **details: Structured fields attached to the log record and callback
        """
        level = self.LEVELS.get(event, logging.INFO)
        logger.log(level, message, extra={'event': event.value, **details})

        if self.callback is not None:
            self.callback(event, details)
