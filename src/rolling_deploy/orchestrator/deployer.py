"""Triggering deployments and waiting for them to finish."""

import time
from typing import List, Optional, Sequence

from rolling_deploy.config.models import DEFAULT_DEPLOY_TIMEOUT
from rolling_deploy.models import DeploymentRequest, DeploymentResult, DeploymentStatus
from rolling_deploy.orchestrator.events import EventEmitter, ProgressEvent
from rolling_deploy.services.base import ComputeService
from rolling_deploy.utils.errors import (
    DeployFailedError,
    DeployTimeoutError,
    ErrorContext,
    ValidationError,
)
from rolling_deploy.utils.logging import get_logger
from rolling_deploy.utils.polling import Poller

logger = get_logger(__name__)


class DeploymentDriver:
    """Issues deploy-and-migrate commands and blocks until they succeed."""

    def __init__(
        self,
        service: ComputeService,
        poller: Optional[Poller] = None,
        default_timeout: float = DEFAULT_DEPLOY_TIMEOUT,
        emitter: Optional[EventEmitter] = None
    ):
        """Initialize deployment driver.

        Args:
            service: Compute orchestration service
            poller: Poller used while waiting for completion
            default_timeout: Deploy timeout used when ``deploy`` gets none
            emitter: Progress event emitter
        """
        self.service = service
        self.poller = poller or Poller()
        self.default_timeout = default_timeout
        self.emitter = emitter or EventEmitter()

    def deploy(
        self,
        stack_id: str,
        app_id: str,
        instance_ids: Sequence[str],
        timeout: Optional[float] = None
    ) -> DeploymentResult:
        """Deploy ``app_id`` in ``stack_id`` on exactly ``instance_ids``.

        Runs the ``deploy`` command with migrations enabled, then blocks until
        the deployment succeeds.

        Args:
            stack_id: Stack identifier
            app_id: App identifier
            instance_ids: Compute instance ids to deploy to
            timeout: Seconds to wait for success (defaults to ``default_timeout``)

        Returns:
            DeploymentResult with status SUCCESSFUL

        Raises:
            ValidationError: If ``instance_ids`` is empty
            DeployFailedError: If the deployment reports failure
            DeployTimeoutError: If it has not succeeded when the timeout elapses
        """
        instance_ids = list(instance_ids)
        if not instance_ids:
            raise ValidationError("instance_ids must not be empty")

        timeout = self.default_timeout if timeout is None else timeout
        request = DeploymentRequest(
            stack_id=stack_id,
            app_id=app_id,
            instance_ids=tuple(instance_ids),
        )

        start = time.monotonic()
        deployment_id = self.service.create_deployment(request)

        self.emitter.emit(
            ProgressEvent.DEPLOY_STARTED,
            f"Deploy process running (id: {deployment_id})...",
            deployment_id=deployment_id,
            instance_ids=instance_ids,
        )

        self._wait_until_deploy_completion(deployment_id, instance_ids, timeout)

        result = DeploymentResult(
            deployment_id=deployment_id,
            status=DeploymentStatus.SUCCESSFUL,
            instance_ids=instance_ids,
            duration=time.monotonic() - start,
        )

        self.emitter.emit(
            ProgressEvent.DEPLOY_COMPLETED,
            f"✓ deploy completed ({result.duration:.0f}s)",
            deployment_id=deployment_id,
            duration=result.duration,
        )

        return result

    def _wait_until_deploy_completion(
        self,
        deployment_id: str,
        instance_ids: List[str],
        timeout: float
    ) -> None:
        """Poll the deployment for ``timeout`` seconds until it succeeds."""

        def succeeded() -> bool:
            status = self.service.poll_deployment(deployment_id)
            if status is DeploymentStatus.FAILED:
                raise DeployFailedError(
                    f"deployment {deployment_id} failed",
                    context=ErrorContext(
                        operation='deploy',
                        deployment_id=deployment_id,
                        instance_ids=instance_ids,
                    ),
                )
            return status is DeploymentStatus.SUCCESSFUL

        def timed_out(elapsed: float) -> DeployTimeoutError:
            return DeployTimeoutError(
                f"deployment {deployment_id} did not succeed within {elapsed:.0f}s",
                context=ErrorContext(
                    operation='deploy',
                    deployment_id=deployment_id,
                    instance_ids=instance_ids,
                    additional_info={'status': DeploymentStatus.TIMED_OUT.value},
                ),
            )

        self.poller.wait_until(
            succeeded,
            timeout,
            timed_out,
            description=f"deployment ({deployment_id}) to finish",
        )
