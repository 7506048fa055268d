"""Remote service interfaces and their AWS/Redis adapters."""

from .base import ComputeService, LoadBalancerService, LockBackend
from .opsworks import OpsWorksComputeService
from .elb import ClassicLoadBalancerService
from .redis_lock import RedisLockBackend, build_lock_backend

__all__ = [
    "ComputeService",
    "LoadBalancerService",
    "LockBackend",
    "OpsWorksComputeService",
    "ClassicLoadBalancerService",
    "RedisLockBackend",
    "build_lock_backend",
]
