"""
Unit tests for the deployment driver.
"""

import unittest
from unittest.mock import MagicMock

from rolling_deploy.models import DeploymentStatus
from rolling_deploy.orchestrator.deployer import DeploymentDriver
from rolling_deploy.orchestrator.events import EventEmitter, ProgressEvent
from rolling_deploy.utils.errors import DeployFailedError, DeployTimeoutError, ValidationError
from tests.unit_tests.fakes import FakeComputeService, fake_poller


class TestDeploymentDriver(unittest.TestCase):
    """Test DeploymentDriver.deploy."""

    def make_driver(self, service, timeout=1800):
        self.callback = MagicMock()
        return DeploymentDriver(
            service,
            poller=fake_poller(),
            default_timeout=timeout,
            emitter=EventEmitter(self.callback),
        )

    def test_deploy_waits_for_success(self):
        """Test deploy returns once the deployment is successful."""
        service = FakeComputeService([], polls_until_done=3)
        driver = self.make_driver(service)

        result = driver.deploy("stack-1", "app-1", ["i-1", "i-2"])

        self.assertTrue(result.is_success())
        self.assertEqual(result.deployment_id, "deployment-1")
        self.assertEqual(result.instance_ids, ["i-1", "i-2"])
        self.assertEqual(service.polls["deployment-1"], 3)
        self.assertEqual(
            [c.args[0] for c in self.callback.call_args_list],
            [ProgressEvent.DEPLOY_STARTED, ProgressEvent.DEPLOY_COMPLETED],
        )

    def test_deploy_sends_migrate_command(self):
        """Test the request targets the batch and runs migrations."""
        service = FakeComputeService([])
        driver = self.make_driver(service)

        driver.deploy("stack-1", "app-1", ["i-1"])

        request = service.requests[0]
        self.assertEqual(request.stack_id, "stack-1")
        self.assertEqual(request.app_id, "app-1")
        self.assertEqual(request.instance_ids, ("i-1",))
        self.assertEqual(request.command.to_api(), {"Name": "deploy", "Args": {"migrate": ["true"]}})

    def test_failed_deployment_raises(self):
        """Test a failed status stops waiting immediately."""
        service = FakeComputeService([], final_status=DeploymentStatus.FAILED)
        driver = self.make_driver(service)

        with self.assertRaises(DeployFailedError) as ctx:
            driver.deploy("stack-1", "app-1", ["i-1"])

        self.assertEqual(ctx.exception.context.deployment_id, "deployment-1")
        self.assertEqual(service.polls["deployment-1"], 1)

    def test_timeout_raises(self):
        """Test a deployment still running at the deadline times out."""
        service = FakeComputeService([], polls_until_done=1000)
        driver = self.make_driver(service, timeout=60)

        with self.assertRaises(DeployTimeoutError) as ctx:
            driver.deploy("stack-1", "app-1", ["i-1"])

        self.assertEqual(ctx.exception.context.additional_info, {"status": "timed-out"})

    def test_explicit_timeout_overrides_default(self):
        """Test a per-call timeout is used instead of the default."""
        service = FakeComputeService([], polls_until_done=3)
        driver = self.make_driver(service, timeout=10)

        result = driver.deploy("stack-1", "app-1", ["i-1"], timeout=600)

        self.assertTrue(result.is_success())

    def test_empty_instance_ids_rejected(self):
        """Test deploying to nothing is refused before any remote call."""
        service = FakeComputeService([])
        driver = self.make_driver(service)

        with self.assertRaises(ValidationError):
            driver.deploy("stack-1", "app-1", [])

        self.assertEqual(service.requests, [])


if __name__ == "__main__":
    unittest.main()
