"""Error handling framework for rolling deploy operations."""

from typing import Optional, Dict, Any, List
from enum import Enum
from dataclasses import dataclass, field
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError
from rolling_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors that can occur during a rolling deploy."""
    CONFIGURATION = "configuration"
    AWS = "aws"
    NETWORK = "network"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    LOCK = "lock"
    LOAD_BALANCER = "load_balancer"
    DEPLOYMENT = "deployment"
    VALIDATION = "validation"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Deploy cannot continue
    ERROR = "error"  # Step failed
    WARNING = "warning"  # Non-fatal issue
    INFO = "info"  # Informational message


@dataclass
class ErrorContext:
    """Context information for an error."""
    operation: Optional[str] = None
    batch_number: Optional[int] = None
    load_balancer: Optional[str] = None
    instance_ids: List[str] = field(default_factory=list)
    deployment_id: Optional[str] = None
    aws_service: Optional[str] = None
    aws_operation: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class DeploymentError(Exception):
    """Base exception for rolling deploy errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize deployment error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = []

        lines.append(f"❌ {self.severity.value.upper()} [{type(self).__name__}]: {self.message}")

        if self.context.batch_number is not None:
            lines.append(f"   Batch: {self.context.batch_number}")
        if self.context.load_balancer:
            lines.append(f"   Load balancer: {self.context.load_balancer}")
        if self.context.instance_ids:
            lines.append(f"   Instances: {', '.join(self.context.instance_ids)}")
        if self.context.deployment_id:
            lines.append(f"   Deployment: {self.context.deployment_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error
        """
        return {
            'type': type(self).__name__,
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'operation': self.context.operation,
                'batch_number': self.context.batch_number,
                'load_balancer': self.context.load_balancer,
                'instance_ids': list(self.context.instance_ids),
                'deployment_id': self.context.deployment_id,
                'aws_service': self.context.aws_service,
                'aws_operation': self.context.aws_operation,
                'request_id': self.context.request_id,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class CredentialError(DeploymentError):
    """Error related to AWS credentials."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CREDENTIAL,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class NetworkError(DeploymentError):
    """Network-related error."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.NETWORK,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class ValidationError(DeploymentError):
    """Error during input validation."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.VALIDATION,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class InvalidArgumentError(ValidationError):
    """Wrong entity kind passed to a load balancer operation.

    Raised before any remote call is made. This is a programmer error and is
    never retried.
    """


class LockTimeoutError(DeploymentError):
    """The deploy lock could not be acquired within the wait window."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('suggestions', [
            'Another rolling deploy is probably still running; wait for it to finish',
            'Re-run the deploy once the lock holder has released it',
        ])
        super().__init__(
            message,
            category=ErrorCategory.LOCK,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class DeployTimeoutError(DeploymentError):
    """A deployment did not reach success before its deadline."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('suggestions', [
            'Check the deployment log in the OpsWorks console',
            'Increase the deploy timeout if deploys are legitimately slow',
        ])
        super().__init__(
            message,
            category=ErrorCategory.DEPLOYMENT,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class DeployFailedError(DeploymentError):
    """A deployment reached the terminal ``failed`` status."""

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('suggestions', [
            'Check the deployment log in the OpsWorks console',
            'Fix the failing recipe or migration and re-run the deploy',
        ])
        super().__init__(
            message,
            category=ErrorCategory.DEPLOYMENT,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class LoadBalancerWaitTimeoutError(DeploymentError):
    """Deregistration or registration was not confirmed in time.

    The load balancer may be left partially transitioned and need manual
    attention.
    """

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('suggestions', [
            'Inspect the instance health of the load balancer in the EC2 console',
            'Re-register any instances left out of service manually',
        ])
        super().__init__(
            message,
            category=ErrorCategory.LOAD_BALANCER,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ErrorHandler:
    """Handles and categorizes errors from AWS and other sources."""

    # Mapping of AWS error codes to error categories and suggestions
    AWS_ERROR_MAPPING = {
        # Credential errors
        'InvalidClientTokenId': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS credentials are invalid or expired',
            'suggestions': [
                'Check that your AWS credentials are correctly configured',
                'Verify credentials using: aws sts get-caller-identity',
                'Update credentials if they have expired'
            ]
        },
        'ExpiredToken': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS session token has expired',
            'suggestions': [
                'Refresh your AWS session credentials',
                'Re-authenticate with your identity provider'
            ]
        },

        # Permission errors
        'AccessDenied': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to your user/role',
                'The deploy user needs opsworks:CreateDeployment, opsworks:DescribeDeployments '
                'and opsworks:DescribeInstances',
                'The deploy user needs elasticloadbalancing:DescribeLoadBalancers, '
                'DescribeInstanceHealth, RegisterInstancesWithLoadBalancer and '
                'DeregisterInstancesFromLoadBalancer'
            ]
        },
        'AccessDeniedException': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to your user/role',
                'Verify the user has OpsWorks permissions on the stack'
            ]
        },

        # Throttling
        'Throttling': {
            'category': ErrorCategory.AWS,
            'message': 'API rate limit exceeded',
            'suggestions': [
                'Increase the poll interval',
                'Avoid running other tooling against the same account during deploys'
            ]
        },

        # Resource errors
        'ResourceNotFoundException': {
            'category': ErrorCategory.DEPLOYMENT,
            'message': 'OpsWorks resource not found',
            'suggestions': [
                'Verify the stack, layer and app ids',
                'OpsWorks endpoints are in us-east-1; check the configured region'
            ]
        },
        'LoadBalancerNotFound': {
            'category': ErrorCategory.LOAD_BALANCER,
            'message': 'Load balancer not found',
            'suggestions': [
                'Verify the load balancer still exists',
                'Check the configured load balancer region'
            ]
        },
        'InvalidInstance': {
            'category': ErrorCategory.LOAD_BALANCER,
            'message': 'Instance is not valid for this load balancer',
            'suggestions': [
                'Verify the instance is running and in the load balancer VPC'
            ]
        },

        # Validation errors
        'ValidationException': {
            'category': ErrorCategory.VALIDATION,
            'message': 'Invalid parameter or configuration',
            'suggestions': [
                'Review the error message for specific validation failures',
                'Verify all required parameters are provided'
            ]
        },

        # Network errors
        'RequestTimeout': {
            'category': ErrorCategory.NETWORK,
            'message': 'Request timed out',
            'suggestions': [
                'Check your network connectivity',
                'Retry the operation'
            ]
        },
        'ServiceUnavailable': {
            'category': ErrorCategory.NETWORK,
            'message': 'AWS service temporarily unavailable',
            'suggestions': [
                'Wait a few moments and retry',
                'Check AWS Service Health Dashboard'
            ]
        }
    }

    def __init__(self):
        """Initialize error handler."""
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DeploymentError:
        """Handle an exception and convert to DeploymentError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            DeploymentError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, DeploymentError):
            return error

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return self._handle_credential_error(error, context)

        if isinstance(error, (ConnectionError, TimeoutError)):
            return NetworkError(
                message=f'Network error: {str(error)}',
                context=context,
                cause=error,
                suggestions=[
                    'Check your internet connection',
                    'Verify network firewall rules allow AWS API access'
                ]
            )

        return DeploymentError(
            message=str(error),
            category=ErrorCategory.UNKNOWN,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def _handle_aws_error(
        self,
        error: ClientError,
        context: ErrorContext
    ) -> DeploymentError:
        """Handle AWS ClientError.

        Args:
            error: The ClientError
            context: Error context

        Returns:
            Categorized DeploymentError
        """
        error_code = error.response.get('Error', {}).get('Code', 'Unknown')
        error_message = error.response.get('Error', {}).get('Message', str(error))
        request_id = error.response.get('ResponseMetadata', {}).get('RequestId')

        context.request_id = request_id
        context.aws_operation = context.aws_operation or error.operation_name

        error_info = self.AWS_ERROR_MAPPING.get(error_code)

        if error_info:
            return DeploymentError(
                message=f"{error_info['message']}: {error_message}",
                category=error_info['category'],
                severity=ErrorSeverity.ERROR,
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return DeploymentError(
            message=f"AWS Error ({error_code}): {error_message}",
            category=ErrorCategory.AWS,
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=[
                'Check AWS documentation for this error code',
                f'AWS Request ID: {request_id}'
            ]
        )

    def _handle_credential_error(
        self,
        error: Exception,
        context: ErrorContext
    ) -> CredentialError:
        """Handle credential-related errors.

        Args:
            error: The credential error
            context: Error context

        Returns:
            CredentialError
        """
        if isinstance(error, NoCredentialsError):
            return CredentialError(
                message='No AWS credentials found',
                context=context,
                cause=error,
                suggestions=[
                    'Set aws.access_key_id and aws.secret_access_key in the config file',
                    'Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables',
                    'Specify a profile with aws.profile'
                ]
            )

        return CredentialError(
            message='Incomplete AWS credentials',
            context=context,
            cause=error,
            suggestions=[
                'Ensure both access key ID and secret access key are provided'
            ]
        )

    def log_error(self, error: DeploymentError):
        """Log an error with appropriate level.

        Args:
            error: The error to log
        """
        log_message = error.to_user_message()

        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            self.logger.error(log_message)
        elif error.severity == ErrorSeverity.WARNING:
            self.logger.warning(log_message)
        else:
            self.logger.info(log_message)

        self.logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
