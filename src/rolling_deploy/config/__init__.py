"""Configuration management for rolling deploys."""

from .models import (
    AWSConfig,
    LockConfig,
    DeployTargetConfig,
    RollingDeployConfig,
    DEFAULT_LOCK_NAME,
    DEFAULT_LOCK_WAIT,
    DEFAULT_DEPLOY_TIMEOUT,
    DEFAULT_LOAD_BALANCER_TIMEOUT,
    DEFAULT_POLL_INTERVAL,
)
from .parser import Config, ConfigValidationError

__all__ = [
    "AWSConfig",
    "LockConfig",
    "DeployTargetConfig",
    "RollingDeployConfig",
    "DEFAULT_LOCK_NAME",
    "DEFAULT_LOCK_WAIT",
    "DEFAULT_DEPLOY_TIMEOUT",
    "DEFAULT_LOAD_BALANCER_TIMEOUT",
    "DEFAULT_POLL_INTERVAL",
    "Config",
    "ConfigValidationError",
]
