"""Main orchestrator that sequences a rolling deploy.

For every batch of online instances in the layer:

1. Deregister the batch from its load balancers and wait for AWS to confirm
2. Deploy and run migrations on the batch
3. Register the batch back and wait until AWS reports it healthy

The whole sequence runs under the cluster-wide deploy lock.
"""

import time
from datetime import datetime
from typing import List, Optional

from rolling_deploy.config.models import (
    DEFAULT_LOCK_NAME,
    DEFAULT_LOCK_WAIT,
    RollingDeployConfig,
)
from rolling_deploy.models import (
    Batch,
    BatchResult,
    LoadBalancer,
    RollingDeployResult,
    RollingDeployStatus,
)
from rolling_deploy.orchestrator.batcher import InstanceBatcher
from rolling_deploy.orchestrator.deployer import DeploymentDriver
from rolling_deploy.orchestrator.events import EventEmitter, ProgressCallback, ProgressEvent
from rolling_deploy.orchestrator.load_balancer import LoadBalancerManager
from rolling_deploy.orchestrator.lock import DistributedLock
from rolling_deploy.services import (
    ClassicLoadBalancerService,
    ComputeService,
    OpsWorksComputeService,
    build_lock_backend,
)
from rolling_deploy.utils.aws_client import AWSClientManager
from rolling_deploy.utils.errors import DeploymentError
from rolling_deploy.utils.logging import get_logger, log_context
from rolling_deploy.utils.polling import Poller

logger = get_logger(__name__)


class RollingDeployOrchestrator:
    """Coordinates locking, batching, draining and deploying."""

    def __init__(
        self,
        compute: ComputeService,
        load_balancer_manager: LoadBalancerManager,
        driver: DeploymentDriver,
        lock: DistributedLock,
        lock_name: str = DEFAULT_LOCK_NAME,
        lock_wait: float = DEFAULT_LOCK_WAIT,
        emitter: Optional[EventEmitter] = None
    ):
        """Initialize rolling deploy orchestrator.

        Args:
            compute: Compute orchestration service used to list instances
            load_balancer_manager: Detaches and re-attaches batches
            driver: Runs deployments
            lock: Deploy lock shared with other invocations
            lock_name: Name of the deploy lock
            lock_wait: Seconds to wait for the deploy lock
            emitter: Progress event emitter
        """
        self.compute = compute
        self.load_balancer_manager = load_balancer_manager
        self.driver = driver
        self.lock = lock
        self.lock_name = lock_name
        self.lock_wait = lock_wait
        self.emitter = emitter or EventEmitter()

    @classmethod
    def from_config(
        cls,
        config: RollingDeployConfig,
        client_manager: Optional[AWSClientManager] = None,
        progress_callback: Optional[ProgressCallback] = None,
        poller: Optional[Poller] = None
    ) -> "RollingDeployOrchestrator":
        """Wire an orchestrator against OpsWorks, Classic ELB and Redis.

        Args:
            config: Validated configuration
            client_manager: AWS client manager (built from ``config.aws`` if omitted)
            progress_callback: Observer for progress events
            poller: Poller for remote-state waits (built from ``config.poll_interval`` if omitted)

        Returns:
            Configured orchestrator
        """
        client_manager = client_manager or AWSClientManager(config.aws)
        emitter = EventEmitter(progress_callback)
        poller = poller or Poller(interval=config.poll_interval)

        compute = OpsWorksComputeService(client_manager.opsworks_client())
        load_balancers = ClassicLoadBalancerService(client_manager.elb_client())

        return cls(
            compute=compute,
            load_balancer_manager=LoadBalancerManager(
                load_balancers,
                poller=poller,
                timeout=config.load_balancer_timeout,
                emitter=emitter,
            ),
            driver=DeploymentDriver(
                compute,
                poller=poller,
                default_timeout=config.deploy_timeout,
                emitter=emitter,
            ),
            lock=DistributedLock(build_lock_backend(config.lock), emitter=emitter),
            lock_name=config.lock.name if config.lock else DEFAULT_LOCK_NAME,
            lock_wait=config.lock.max_wait if config.lock else DEFAULT_LOCK_WAIT,
            emitter=emitter,
        )

    def rolling_deploy(
        self,
        stack_id: str,
        layer_id: str,
        app_id: str,
        percent: Optional[float] = None,
        deploy_timeout: Optional[float] = None
    ) -> RollingDeployResult:
        """Run a rolling deploy while holding the deploy lock.

        If another rolling deploy is running, waits for it to finish first.

        Args:
            stack_id: Stack identifier
            layer_id: Layer whose online instances are deployed
            app_id: App identifier
            percent: Fraction of instances per batch, or None for a single batch
            deploy_timeout: Seconds each batch's deployment may take

        Returns:
            RollingDeployResult

        Raises:
            LockTimeoutError: If the lock is not acquired in time; nothing is touched
            DeploymentError: The first batch failure, after its instances are re-attached
        """
        return self.lock.with_lock(
            self.lock_name,
            self.lock_wait,
            self.rolling_deploy_without_lock,
            stack_id=stack_id,
            layer_id=layer_id,
            app_id=app_id,
            percent=percent,
            deploy_timeout=deploy_timeout,
        )

    def rolling_deploy_without_lock(
        self,
        stack_id: str,
        layer_id: str,
        app_id: str,
        percent: Optional[float] = None,
        deploy_timeout: Optional[float] = None
    ) -> RollingDeployResult:
        """Run a rolling deploy without taking the deploy lock.

        Only safe when the caller already serializes deploys.
        """
        logger.info(f"Starting opsworks deploy for app {app_id}")

        start_time = datetime.utcnow()
        started = time.monotonic()

        batches = self.plan(layer_id, percent)
        result = RollingDeployResult(
            app_id=app_id,
            status=RollingDeployStatus.SUCCESS if batches else RollingDeployStatus.NO_INSTANCES,
            start_time=start_time,
        )

        if not batches:
            logger.warning(f"No online instances in layer {layer_id}, nothing to deploy")

        for batch in batches:
            result.batch_results.append(
                self._deploy_batch(batch, stack_id, app_id, deploy_timeout)
            )

        result.end_time = datetime.utcnow()
        result.duration = time.monotonic() - started

        self.emitter.emit(
            ProgressEvent.DEPLOY_ALL_COMPLETE,
            f"SUCCESS: completed opsworks deploy for all instances on app {app_id}",
            instance_ids=result.deployed_instance_ids,
            duration=result.duration,
        )

        return result

    def plan(self, layer_id: str, percent: Optional[float] = None) -> List[Batch]:
        """Work out the batches a rolling deploy would use, touching nothing.

        Args:
            layer_id: Layer identifier
            percent: Fraction of instances per batch, or None

        Returns:
            Ordered batches of online instances
        """
        batcher = InstanceBatcher(percent)
        instances = [i for i in self.compute.list_instances(layer_id) if i.is_eligible()]

        batches = batcher.batches(instances)
        logger.info(
            f"{len(instances)} online instances in layer {layer_id}, "
            f"{len(batches)} batch(es) of up to {batcher.batch_size(len(instances))}"
        )
        return batches

    def _deploy_batch(
        self,
        batch: Batch,
        stack_id: str,
        app_id: str,
        deploy_timeout: Optional[float]
    ) -> BatchResult:
        """Detach, deploy and re-attach one batch.

        Once the detach has returned, the re-attach runs whether or not the
        deploy succeeds.
        """
        hostnames = ', '.join(batch.hostnames)
        result = BatchResult(
            batch_number=batch.number,
            instance_ids=batch.instance_ids,
            hostnames=batch.hostnames,
        )
        started = time.monotonic()

        self.emitter.emit(
            ProgressEvent.BATCH_STARTED,
            f"=== Starting deploy for {hostnames} ===",
            batch=batch.number,
            instance_ids=batch.instance_ids,
        )

        try:
            with log_context(batch=batch.number):
                load_balancers = self.load_balancer_manager.detach(batch.instances)
                result.load_balancers = [lb.name for lb in load_balancers]

                try:
                    result.deployment = self.driver.deploy(
                        stack_id,
                        app_id,
                        batch.instance_ids,
                        deploy_timeout,
                    )
                except BaseException:
                    self._reattach_after_failure(batch, load_balancers)
                    raise

                result.registrations = self.load_balancer_manager.attach(
                    batch.instances,
                    load_balancers,
                )
        except DeploymentError as e:
            if e.context.batch_number is None:
                e.context.batch_number = batch.number
            raise
        finally:
            result.duration = time.monotonic() - started
            self.emitter.emit(
                ProgressEvent.BATCH_DONE,
                f"=== Done deploying on {hostnames} ===",
                batch=batch.number,
                duration=result.duration,
            )

        return result

    def _reattach_after_failure(self, batch: Batch, load_balancers: List[LoadBalancer]) -> None:
        """Re-attach a batch whose deploy failed.

        The deploy error is the one that must surface, so a failing re-attach
        is logged rather than raised.
        """
        try:
            self.load_balancer_manager.attach(batch.instances, load_balancers)
        except DeploymentError as attach_error:
            logger.error(
                f"Re-attaching {', '.join(batch.hostnames)} after a failed deploy also failed: "
                f"{attach_error.message}. Manual intervention is required.",
                exc_info=True,
            )
