"""
Unit tests for the OpsWorks, ELB and Redis service adapters.
"""

import sys
import unittest
from unittest.mock import MagicMock, patch

from botocore.exceptions import ClientError

from rolling_deploy.config.models import LockConfig
from rolling_deploy.models import (
    DeploymentRequest,
    DeploymentStatus,
    InstanceHealth,
    InstanceStatus,
)
from rolling_deploy.services import (
    ClassicLoadBalancerService,
    OpsWorksComputeService,
    RedisLockBackend,
    build_lock_backend,
)
from rolling_deploy.services.redis_lock import KEY_PREFIX
from rolling_deploy.utils.errors import DeploymentError, ErrorCategory


def client_error(code, operation="Operation", message="error"):
    return ClientError(
        {"Error": {"Code": code, "Message": message}, "ResponseMetadata": {"RequestId": "req-1"}},
        operation,
    )


class TestOpsWorksComputeService(unittest.TestCase):
    """Test OpsWorksComputeService against a mocked client."""

    def setUp(self):
        self.client = MagicMock()
        self.service = OpsWorksComputeService(self.client)

    def test_list_instances(self):
        """Test instances are mapped from DescribeInstances."""
        self.client.describe_instances.return_value = {
            "Instances": [
                {"InstanceId": "ops-1", "Hostname": "web1", "Status": "online", "Ec2InstanceId": "i-1"},
                {"InstanceId": "ops-2", "Hostname": "web2", "Status": "stopped"},
                {"InstanceId": "ops-3", "Status": "something-new"},
            ]
        }

        instances = self.service.list_instances("layer-1")

        self.client.describe_instances.assert_called_once_with(LayerId="layer-1")
        self.assertEqual([i.instance_id for i in instances], ["ops-1", "ops-2", "ops-3"])
        self.assertEqual(instances[0].load_balancer_id, "i-1")
        self.assertTrue(instances[0].is_eligible())
        self.assertEqual(instances[1].status, InstanceStatus.STOPPED)
        self.assertEqual(instances[2].status, InstanceStatus.UNKNOWN)
        self.assertEqual(instances[2].hostname, "ops-3")

    def test_create_deployment(self):
        """Test CreateDeployment receives the deploy command."""
        self.client.create_deployment.return_value = {"DeploymentId": "dep-1"}
        request = DeploymentRequest(stack_id="stack-1", app_id="app-1", instance_ids=("ops-1",))

        self.assertEqual(self.service.create_deployment(request), "dep-1")
        self.client.create_deployment.assert_called_once_with(
            StackId="stack-1",
            AppId="app-1",
            InstanceIds=["ops-1"],
            Command={"Name": "deploy", "Args": {"migrate": ["true"]}},
        )

    def test_poll_deployment(self):
        """Test deployment statuses are mapped."""
        for raw, expected in (
            ("running", DeploymentStatus.RUNNING),
            ("successful", DeploymentStatus.SUCCESSFUL),
            ("failed", DeploymentStatus.FAILED),
        ):
            with self.subTest(status=raw):
                self.client.describe_deployments.return_value = {"Deployments": [{"Status": raw}]}
                self.assertEqual(self.service.poll_deployment("dep-1"), expected)

    def test_poll_missing_deployment_is_running(self):
        """Test a deployment not yet visible counts as running."""
        self.client.describe_deployments.return_value = {"Deployments": []}

        self.assertEqual(self.service.poll_deployment("dep-1"), DeploymentStatus.RUNNING)

    def test_client_errors_are_translated(self):
        """Test AWS errors become DeploymentError with context."""
        self.client.describe_deployments.side_effect = client_error(
            "ResourceNotFoundException", "DescribeDeployments"
        )

        with self.assertRaises(DeploymentError) as ctx:
            self.service.poll_deployment("dep-1")

        error = ctx.exception
        self.assertEqual(error.category, ErrorCategory.DEPLOYMENT)
        self.assertEqual(error.context.aws_service, "opsworks")
        self.assertEqual(error.context.deployment_id, "dep-1")
        self.assertEqual(error.context.request_id, "req-1")


class TestClassicLoadBalancerService(unittest.TestCase):
    """Test ClassicLoadBalancerService against a mocked client."""

    def setUp(self):
        self.client = MagicMock()
        self.service = ClassicLoadBalancerService(self.client)

    def test_list_load_balancers_paginates(self):
        """Test every page of descriptions is read."""
        paginator = self.client.get_paginator.return_value
        paginator.paginate.return_value = [
            {"LoadBalancerDescriptions": [
                {"LoadBalancerName": "web-lb", "Instances": [{"InstanceId": "i-1"}, {"InstanceId": "i-2"}]},
            ]},
            {"LoadBalancerDescriptions": [
                {"LoadBalancerName": "api-lb", "Instances": []},
            ]},
        ]

        load_balancers = self.service.list_load_balancers()

        self.client.get_paginator.assert_called_once_with("describe_load_balancers")
        self.assertEqual([lb.name for lb in load_balancers], ["web-lb", "api-lb"])
        self.assertEqual(load_balancers[0].instance_ids, frozenset({"i-1", "i-2"}))
        self.assertEqual(load_balancers[1].instance_ids, frozenset())

    def test_deregister_returns_remaining(self):
        """Test deregister returns instances still registered."""
        self.client.deregister_instances_from_load_balancer.return_value = {
            "Instances": [{"InstanceId": "i-2"}]
        }

        remaining = self.service.deregister("web-lb", ["i-1"])

        self.assertEqual(remaining, ["i-2"])
        self.client.deregister_instances_from_load_balancer.assert_called_once_with(
            LoadBalancerName="web-lb",
            Instances=[{"InstanceId": "i-1"}],
        )

    def test_register(self):
        """Test register sends instance ids."""
        self.client.register_instances_with_load_balancer.return_value = {
            "Instances": [{"InstanceId": "i-1"}, {"InstanceId": "i-2"}]
        }

        self.assertEqual(self.service.register("web-lb", ["i-1"]), ["i-1", "i-2"])

    def test_poll_instance_state(self):
        """Test health states are mapped."""
        for raw, expected in (
            ("InService", InstanceHealth.IN_SERVICE),
            ("OutOfService", InstanceHealth.OUT_OF_SERVICE),
            ("Unknown", InstanceHealth.UNKNOWN),
        ):
            with self.subTest(state=raw):
                self.client.describe_instance_health.return_value = {
                    "InstanceStates": [{"InstanceId": "i-1", "State": raw}]
                }
                self.assertEqual(self.service.poll_instance_state("web-lb", "i-1"), expected)

    def test_invalid_instance_means_not_registered(self):
        """Test an InvalidInstance error is read as not registered."""
        self.client.describe_instance_health.side_effect = client_error("InvalidInstance")

        self.assertEqual(
            self.service.poll_instance_state("web-lb", "i-1"),
            InstanceHealth.NOT_REGISTERED,
        )

    def test_other_errors_are_translated(self):
        """Test other AWS errors carry the load balancer in their context."""
        self.client.describe_instance_health.side_effect = client_error("AccessDenied")

        with self.assertRaises(DeploymentError) as ctx:
            self.service.poll_instance_state("web-lb", "i-1")

        self.assertEqual(ctx.exception.context.load_balancer, "web-lb")
        self.assertEqual(ctx.exception.category, ErrorCategory.PERMISSION)


class TestRedisLockBackend(unittest.TestCase):
    """Test RedisLockBackend against a mocked Redis client."""

    def setUp(self):
        self.client = MagicMock()
        self.backend = RedisLockBackend(self.client, lease_timeout=3600)

    def test_acquire_returns_lock(self):
        """Test a granted lock is returned as the token."""
        lock = self.client.lock.return_value
        lock.acquire.return_value = True

        token = self.backend.acquire("deploy", 600)

        self.assertIs(token, lock)
        self.client.lock.assert_called_once_with(
            KEY_PREFIX + "deploy",
            timeout=3600,
            blocking=True,
            blocking_timeout=600,
        )

    def test_acquire_timeout_returns_none(self):
        """Test a lock not granted in time returns None."""
        self.client.lock.return_value.acquire.return_value = False

        self.assertIsNone(self.backend.acquire("deploy", 1))

    def test_release_error_is_wrapped(self):
        """Test a lost lock is reported as a lock error."""
        from redis.exceptions import LockError

        token = MagicMock()
        token.release.side_effect = LockError("not owned")

        with self.assertRaises(DeploymentError) as ctx:
            self.backend.release(token)

        self.assertEqual(ctx.exception.category, ErrorCategory.LOCK)


class TestBuildLockBackend(unittest.TestCase):
    """Test resolving the lock backend from configuration."""

    def test_no_config_runs_unlocked(self):
        """Test a missing lock section yields no backend."""
        with self.assertLogs("rolling_deploy.services.redis_lock", level="WARNING"):
            self.assertIsNone(build_lock_backend(None))

    def test_builds_redis_backend(self):
        """Test a lock section builds a Redis-backed lock."""
        config = LockConfig(host="redis.internal", port=6380, db=2, password="pw", lease_timeout=900)

        with patch("redis.Redis") as redis_cls:
            backend = build_lock_backend(config)

        redis_cls.assert_called_once_with(host="redis.internal", port=6380, db=2, password="pw")
        self.assertIsInstance(backend, RedisLockBackend)
        self.assertIs(backend.client, redis_cls.return_value)
        self.assertEqual(backend.lease_timeout, 900)

    def test_missing_redis_package_runs_unlocked(self):
        """Test a missing redis package falls back to no lock with a warning."""
        with patch.dict(sys.modules, {"redis": None}):
            with self.assertLogs("rolling_deploy.services.redis_lock", level="WARNING") as logs:
                self.assertIsNone(build_lock_backend(LockConfig()))

        self.assertIn("redis is not installed", logs.output[0])


if __name__ == "__main__":
    unittest.main()
