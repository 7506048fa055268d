"""Safe rolling deploys for OpsWorks layers behind Classic load balancers."""

__version__ = "0.1.0"

from rolling_deploy.models import (
    Batch,
    BatchResult,
    DeploymentRequest,
    DeploymentResult,
    DeploymentStatus,
    Instance,
    InstanceHealth,
    InstanceStatus,
    LoadBalancer,
    RegistrationResult,
    RollingDeployResult,
)
from rolling_deploy.orchestrator import (
    DeploymentDriver,
    DistributedLock,
    InstanceBatcher,
    LoadBalancerManager,
    ProgressEvent,
    RollingDeployOrchestrator,
)
from rolling_deploy.utils.errors import (
    DeployFailedError,
    DeployTimeoutError,
    DeploymentError,
    InvalidArgumentError,
    LoadBalancerWaitTimeoutError,
    LockTimeoutError,
)

__all__ = [
    "Batch",
    "BatchResult",
    "DeploymentRequest",
    "DeploymentResult",
    "DeploymentStatus",
    "Instance",
    "InstanceHealth",
    "InstanceStatus",
    "LoadBalancer",
    "RegistrationResult",
    "RollingDeployResult",
    "DeploymentDriver",
    "DistributedLock",
    "InstanceBatcher",
    "LoadBalancerManager",
    "ProgressEvent",
    "RollingDeployOrchestrator",
    "DeployFailedError",
    "DeployTimeoutError",
    "DeploymentError",
    "InvalidArgumentError",
    "LoadBalancerWaitTimeoutError",
    "LockTimeoutError",
]
