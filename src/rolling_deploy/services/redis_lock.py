"""Redis-backed deploy lock."""

from typing import Any, Optional

from .base import LockBackend
from rolling_deploy.config.models import LockConfig
from rolling_deploy.utils.errors import DeploymentError, ErrorCategory, ErrorContext, ErrorSeverity
from rolling_deploy.utils.logging import get_logger

logger = get_logger(__name__)

KEY_PREFIX = 'rolling-deploy:lock:'


class RedisLockBackend(LockBackend):
    """Named mutex on top of redis-py's ``Lock``."""

    def __init__(self, client, lease_timeout: Optional[float] = None):
        """Initialize Redis lock backend.

        Args:
            client: ``redis.Redis`` client
            lease_timeout: Seconds after which a held lock expires; None holds it until released
        """
        self.client = client
        self.lease_timeout = lease_timeout

    def acquire(self, name: str, max_wait: float) -> Optional[Any]:
        lock = self.client.lock(
            KEY_PREFIX + name,
            timeout=self.lease_timeout,
            blocking=True,
            blocking_timeout=max_wait,
        )
        if lock.acquire():
            return lock
        return None

    def release(self, token: Any) -> None:
        from redis.exceptions import LockError

        try:
            token.release()
        except LockError as e:
            raise DeploymentError(
                f"Could not release deploy lock {token.name}: {e}",
                category=ErrorCategory.LOCK,
                severity=ErrorSeverity.WARNING,
                context=ErrorContext(operation='release_lock'),
                cause=e,
                suggestions=[
                    'The lock lease expired while the deploy was running; raise lock.lease_timeout',
                ],
            ) from e


def build_lock_backend(config: Optional[LockConfig]) -> Optional[LockBackend]:
    """Resolve the lock backend once, from configuration.

    Returns None, after logging a warning, when no lock is configured or the
    ``redis`` package is not installed. Deploys then run without locking.

    Args:
        config: Lock configuration, or None

    Returns:
        RedisLockBackend or None
    """
    if config is None:
        logger.warning(
            "No lock configured, will attempt to deploy without locking. "
            "WARNING: this could cause undefined behavior if two or more deploys "
            "are run simultaneously! It is recommended that you configure a "
            "'lock' section pointing at a Redis server."
        )
        return None

    try:
        import redis
    except ImportError as e:
        logger.warning(
            f"Lock configured but redis is not installed ({e}), will attempt to "
            "deploy without locking. WARNING: this could cause undefined behavior "
            "if two or more deploys are run simultaneously! Install the 'lock' "
            "extra: pip install 'opsworks-rolling-deploy[lock]'."
        )
        return None

    client = redis.Redis(
        host=config.host,
        port=config.port,
        db=config.db,
        password=config.password,
    )
    logger.debug(f"Using Redis deploy lock at {config.host}:{config.port}/{config.db}")
    return RedisLockBackend(client, lease_timeout=config.lease_timeout)
