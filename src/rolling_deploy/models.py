"""Data models for rolling deploys."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple


class InstanceStatus(Enum):
    """OpsWorks instance lifecycle status."""
    ONLINE = "online"
    BOOTING = "booting"
    REQUESTED = "requested"
    PENDING = "pending"
    RUNNING_SETUP = "running_setup"
    SETUP_FAILED = "setup_failed"
    START_FAILED = "start_failed"
    STOPPING = "stopping"
    STOPPED = "stopped"
    SHUTTING_DOWN = "shutting_down"
    TERMINATING = "terminating"
    TERMINATED = "terminated"
    REBOOTING = "rebooting"
    CONNECTION_LOST = "connection_lost"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: Optional[str]) -> "InstanceStatus":
        """Map a raw status string, falling back to UNKNOWN."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class DeploymentStatus(Enum):
    """Status of a remote deployment."""
    RUNNING = "running"
    SUCCESSFUL = "successful"
    FAILED = "failed"
    TIMED_OUT = "timed-out"


class InstanceHealth(Enum):
    """State of one instance as seen by a load balancer."""
    IN_SERVICE = "in-service"
    OUT_OF_SERVICE = "out-of-service"
    NOT_REGISTERED = "not-registered"
    UNKNOWN = "unknown"

    def is_deregistered(self) -> bool:
        """Whether the load balancer no longer routes traffic to the instance."""
        return self in (InstanceHealth.OUT_OF_SERVICE, InstanceHealth.NOT_REGISTERED)


@dataclass(frozen=True)
class Instance:
    """Read-only snapshot of a compute instance."""

    instance_id: str
    hostname: str
    status: InstanceStatus
    ec2_instance_id: Optional[str] = None

    @property
    def load_balancer_id(self) -> str:
        """Identifier load balancers know this instance by."""
        return self.ec2_instance_id or self.instance_id

    def is_eligible(self) -> bool:
        """Only online instances are deployed to."""
        return self.status is InstanceStatus.ONLINE


@dataclass(frozen=True)
class LoadBalancer:
    """Snapshot of a load balancer and the instances attached to it."""

    name: str
    instance_ids: FrozenSet[str] = frozenset()

    def attached(self, instances: List[Instance]) -> List[Instance]:
        """Instances from ``instances`` currently attached to this load balancer."""
        return [i for i in instances if i.load_balancer_id in self.instance_ids]


@dataclass(frozen=True)
class Batch:
    """A contiguous, ordered group of eligible instances deployed together."""

    number: int
    instances: Tuple[Instance, ...]

    @property
    def instance_ids(self) -> List[str]:
        return [i.instance_id for i in self.instances]

    @property
    def hostnames(self) -> List[str]:
        return [i.hostname for i in self.instances]

    def __len__(self) -> int:
        return len(self.instances)


@dataclass(frozen=True)
class DeployCommand:
    """OpsWorks deployment command."""

    name: str = "deploy"
    args: Tuple[Tuple[str, Tuple[str, ...]], ...] = (("migrate", ("true",)),)

    def to_api(self) -> Dict[str, Any]:
        """Render in the shape CreateDeployment expects."""
        return {
            "Name": self.name,
            "Args": {key: list(values) for key, values in self.args},
        }


@dataclass(frozen=True)
class DeploymentRequest:
    """Immutable description of a deployment to issue."""

    stack_id: str
    app_id: str
    instance_ids: Tuple[str, ...]
    command: DeployCommand = field(default_factory=DeployCommand)


@dataclass
class DeploymentResult:
    """Outcome of a deployment."""

    deployment_id: str
    status: DeploymentStatus
    instance_ids: List[str] = field(default_factory=list)
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        """Check if deployment was successful."""
        return self.status == DeploymentStatus.SUCCESSFUL


@dataclass
class RegistrationResult:
    """Outcome of registering instances with one load balancer."""

    load_balancer: str
    instance_ids: List[str] = field(default_factory=list)


@dataclass
class BatchResult:
    """Result of deploying a single batch."""

    batch_number: int
    instance_ids: List[str]
    hostnames: List[str]
    load_balancers: List[str] = field(default_factory=list)
    deployment: Optional[DeploymentResult] = None
    registrations: Dict[str, RegistrationResult] = field(default_factory=dict)
    duration: float = 0.0  # seconds


class RollingDeployStatus(Enum):
    """Aggregate status of a rolling deploy."""
    SUCCESS = "success"
    NO_INSTANCES = "no_instances"


@dataclass
class RollingDeployResult:
    """Aggregate result of a rolling deploy invocation."""

    app_id: str
    status: RollingDeployStatus
    batch_results: List[BatchResult] = field(default_factory=list)
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        """A completed invocation is always a success; failures raise."""
        return self.status in (RollingDeployStatus.SUCCESS, RollingDeployStatus.NO_INSTANCES)

    @property
    def deployed_instance_ids(self) -> List[str]:
        return [i for batch in self.batch_results for i in batch.instance_ids]
