"""Utility modules for logging, AWS client management, errors and polling."""

from rolling_deploy.utils.aws_client import AWSClientManager, OPSWORKS_REGION
from rolling_deploy.utils.polling import Poller
from rolling_deploy.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    CredentialError,
    NetworkError,
    ValidationError,
    InvalidArgumentError,
    LockTimeoutError,
    DeployTimeoutError,
    DeployFailedError,
    LoadBalancerWaitTimeoutError,
    ErrorHandler,
    error_handler
)
from rolling_deploy.utils.logging import get_logger, setup_logging, log_context

__all__ = [
    # AWS Client
    'AWSClientManager',
    'OPSWORKS_REGION',

    # Polling
    'Poller',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'CredentialError',
    'NetworkError',
    'ValidationError',
    'InvalidArgumentError',
    'LockTimeoutError',
    'DeployTimeoutError',
    'DeployFailedError',
    'LoadBalancerWaitTimeoutError',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',
    'log_context',
]
