"""Interfaces of the remote services a rolling deploy talks to."""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from rolling_deploy.models import (
    DeploymentRequest,
    DeploymentStatus,
    Instance,
    InstanceHealth,
    LoadBalancer,
)


class ComputeService(ABC):
    """Compute orchestration service (OpsWorks in production)."""

    @abstractmethod
    def list_instances(self, layer_id: str) -> List[Instance]:
        """List the instances of a layer, in the service's order.

        Args:
            layer_id: Layer identifier

        Returns:
            Instance snapshots
        """
        pass

    @abstractmethod
    def create_deployment(self, request: DeploymentRequest) -> str:
        """Issue a deployment.

        Args:
            request: Deployment to issue

        Returns:
            Deployment id
        """
        pass

    @abstractmethod
    def poll_deployment(self, deployment_id: str) -> DeploymentStatus:
        """Fetch the current status of a deployment.

        Args:
            deployment_id: Id returned by ``create_deployment``

        Returns:
            Current deployment status
        """
        pass


class LoadBalancerService(ABC):
    """Load balancer service (Classic ELB in production)."""

    @abstractmethod
    def list_load_balancers(self) -> List[LoadBalancer]:
        """Fetch a fresh snapshot of every load balancer."""
        pass

    @abstractmethod
    def deregister(self, load_balancer_name: str, instance_ids: List[str]) -> List[str]:
        """Deregister instances.

        Returns:
            Instance ids still registered after the call
        """
        pass

    @abstractmethod
    def register(self, load_balancer_name: str, instance_ids: List[str]) -> List[str]:
        """Register instances.

        Returns:
            Instance ids registered after the call
        """
        pass

    @abstractmethod
    def poll_instance_state(self, load_balancer_name: str, instance_id: str) -> InstanceHealth:
        """Fetch the load balancer's view of one instance."""
        pass


class LockBackend(ABC):
    """Backend providing named cluster-wide mutexes."""

    @abstractmethod
    def acquire(self, name: str, max_wait: float) -> Optional[Any]:
        """Block up to ``max_wait`` seconds trying to acquire ``name``.

        Returns:
            An opaque token for ``release``, or None if the wait elapsed
        """
        pass

    @abstractmethod
    def release(self, token: Any) -> None:
        """Release a lock previously returned by ``acquire``."""
        pass
