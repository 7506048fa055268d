"""Orchestrator module for locking, batching and rolling deploy execution."""

from rolling_deploy.orchestrator.events import EventEmitter, ProgressCallback, ProgressEvent
from rolling_deploy.orchestrator.lock import DistributedLock
from rolling_deploy.orchestrator.batcher import InstanceBatcher
from rolling_deploy.orchestrator.load_balancer import LoadBalancerManager
from rolling_deploy.orchestrator.deployer import DeploymentDriver
from rolling_deploy.orchestrator.orchestrator import RollingDeployOrchestrator

__all__ = [
    # Events
    'EventEmitter',
    'ProgressCallback',
    'ProgressEvent',

    # Components
    'DistributedLock',
    'InstanceBatcher',
    'LoadBalancerManager',
    'DeploymentDriver',

    # Main orchestrator
    'RollingDeployOrchestrator',
]
