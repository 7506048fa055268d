"""Detaching and re-attaching instances from load balancers."""

from typing import Callable, Dict, Iterable, List, Optional, Tuple

from rolling_deploy.config.models import DEFAULT_LOAD_BALANCER_TIMEOUT
from rolling_deploy.models import Instance, InstanceHealth, LoadBalancer, RegistrationResult
from rolling_deploy.orchestrator.events import EventEmitter, ProgressEvent
from rolling_deploy.services.base import LoadBalancerService
from rolling_deploy.utils.errors import ErrorContext, InvalidArgumentError, LoadBalancerWaitTimeoutError
from rolling_deploy.utils.logging import get_logger
from rolling_deploy.utils.polling import Poller

logger = get_logger(__name__)


class LoadBalancerManager:
    """Drains instances from load balancers and restores them afterwards.

    Every transition blocks until the load balancer confirms it.
    """

    def __init__(
        self,
        service: LoadBalancerService,
        poller: Optional[Poller] = None,
        timeout: float = DEFAULT_LOAD_BALANCER_TIMEOUT,
        emitter: Optional[EventEmitter] = None
    ):
        """Initialize load balancer manager.

        Args:
            service: Load balancer service
            poller: Poller used for confirmation waits
            timeout: Seconds to wait for each load balancer to confirm a transition
            emitter: Progress event emitter
        """
        self.service = service
        self.poller = poller or Poller()
        self.timeout = timeout
        self.emitter = emitter or EventEmitter()

    def detach(self, instances: Iterable[Instance]) -> List[LoadBalancer]:
        """Detach ``instances`` from every load balancer that can spare them.

        Blocks until each targeted load balancer lists the instances as
        deregistered. A load balancer is skipped when the instances are all it
        has attached, since detaching them would leave it with nothing to
        route to.

        Args:
            instances: Instances to detach

        Returns:
            Pre-detach snapshots of the load balancers detached from (possibly empty)

        Raises:
            InvalidArgumentError: If ``instances`` is empty or holds anything but Instance
            LoadBalancerWaitTimeoutError: If deregistration is not confirmed in time
        """
        instances = self._check_instances(instances)
        ids = ', '.join(i.load_balancer_id for i in instances)

        targets = self.detachable(self.service.list_load_balancers(), instances)

        for lb, matched in targets:
            matched_ids = [i.load_balancer_id for i in matched]
            remaining = self.service.deregister(lb.name, matched_ids)
            logger.info(
                f"Will detach {', '.join(matched_ids)} from {lb.name} "
                f"(remaining attached instances: {', '.join(remaining)})",
                extra={'load_balancer': lb.name, 'instance_ids': matched_ids},
            )

        for lb, matched in targets:
            matched_ids = [i.load_balancer_id for i in matched]
            self._wait_for(
                lb.name,
                matched_ids,
                InstanceHealth.is_deregistered,
                'deregistration',
            )
            self.emitter.emit(
                ProgressEvent.DETACHED_FROM,
                f"✓ detached from {lb.name}",
                load_balancer=lb.name,
                instance_ids=matched_ids,
            )

        if not targets:
            self.emitter.emit(
                ProgressEvent.NO_LOAD_BALANCERS_FOUND,
                f"No load balancers found for instances {ids}",
                instance_ids=[i.load_balancer_id for i in instances],
            )

        return [lb for lb, _ in targets]

    def detachable(
        self,
        load_balancers: List[LoadBalancer],
        instances: List[Instance]
    ) -> List[Tuple[LoadBalancer, List[Instance]]]:
        """Select the load balancers ``instances`` can safely be detached from.

        A load balancer qualifies when some of ``instances`` are attached to
        it and at least one other instance stays attached.

        Args:
            load_balancers: Fresh load balancer snapshots
            instances: Instances about to be detached

        Returns:
            Pairs of load balancer and the instances attached to it
        """
        selected = []
        for lb in load_balancers:
            matched = lb.attached(instances)
            if not matched:
                continue

            if len(lb.instance_ids) > len(matched):
                selected.append((lb, matched))
            else:
                logger.warning(
                    f"Will not detach {', '.join(i.load_balancer_id for i in matched)} "
                    f"from load balancer {lb.name} because they are the only "
                    "instances connected",
                    extra={'load_balancer': lb.name},
                )

        return selected

    def attach(
        self,
        instances: Iterable[Instance],
        load_balancers: Iterable[LoadBalancer]
    ) -> Dict[str, RegistrationResult]:
        """Attach ``instances`` to ``load_balancers``.

        Registers the instances each load balancer had attached before the
        detach (all of ``instances`` if it had none of them), then blocks
        until each load balancer reports them in service.

        Args:
            instances: Instances to attach
            load_balancers: Load balancers returned by ``detach``

        Returns:
            Registration outcome per load balancer name; empty if there were
            no load balancers

        Raises:
            InvalidArgumentError: On wrong argument kinds, before any remote call
            LoadBalancerWaitTimeoutError: If registration is not confirmed in time
        """
        instances = self._check_instances(instances)
        load_balancers = self._check_load_balancers(load_balancers)

        if not load_balancers:
            logger.info("No load balancers to attach to")
            return {}

        registrations: Dict[str, RegistrationResult] = {}
        pending: List[Tuple[LoadBalancer, List[str]]] = []

        for lb in load_balancers:
            ids = [i.load_balancer_id for i in (lb.attached(instances) or instances)]
            registered = self.service.register(lb.name, ids)
            registrations[lb.name] = RegistrationResult(load_balancer=lb.name, instance_ids=registered)
            pending.append((lb, ids))

        logger.info(
            f"Re-attaching instances {', '.join(i.load_balancer_id for i in instances)} "
            "to all load balancers"
        )

        for lb, ids in pending:
            self._wait_for(
                lb.name,
                ids,
                lambda health: health is InstanceHealth.IN_SERVICE,
                'registration',
            )
            self.emitter.emit(
                ProgressEvent.REATTACHED_TO,
                f"✓ re-attached to {lb.name}",
                load_balancer=lb.name,
                instance_ids=ids,
            )

        return registrations

    def _wait_for(
        self,
        load_balancer_name: str,
        instance_ids: List[str],
        settled: Callable[[InstanceHealth], bool],
        transition: str
    ) -> None:
        """Poll until every instance is settled on the load balancer."""
        pending = list(instance_ids)

        def all_settled() -> bool:
            pending[:] = [
                i for i in pending
                if not settled(self.service.poll_instance_state(load_balancer_name, i))
            ]
            return not pending

        def timed_out(elapsed: float) -> LoadBalancerWaitTimeoutError:
            return LoadBalancerWaitTimeoutError(
                f"{load_balancer_name} did not confirm {transition} of "
                f"{', '.join(pending)} within {elapsed:.0f}s",
                context=ErrorContext(
                    operation=transition,
                    load_balancer=load_balancer_name,
                    instance_ids=list(pending),
                ),
            )

        self.poller.wait_until(
            all_settled,
            self.timeout,
            timed_out,
            description=f"{transition} on {load_balancer_name}",
        )

    @staticmethod
    def _check_instances(instances: Iterable[Instance]) -> List[Instance]:
        """Fail unless ``instances`` is a non-empty collection of Instance."""
        if isinstance(instances, (str, bytes, Instance)) or not hasattr(instances, '__iter__'):
            raise InvalidArgumentError("instances must be a collection of Instance objects")

        instances = list(instances)
        if not instances:
            raise InvalidArgumentError("instances must not be empty")
        if not all(isinstance(i, Instance) for i in instances):
            raise InvalidArgumentError("instances must be a collection of Instance objects")
        return instances

    @staticmethod
    def _check_load_balancers(load_balancers: Iterable[LoadBalancer]) -> List[LoadBalancer]:
        """Fail unless ``load_balancers`` is a collection of LoadBalancer."""
        if isinstance(load_balancers, (str, bytes, LoadBalancer)) or not hasattr(load_balancers, '__iter__'):
            raise InvalidArgumentError("load_balancers must be a collection of LoadBalancer objects")

        load_balancers = list(load_balancers)
        if not all(isinstance(lb, LoadBalancer) for lb in load_balancers):
            raise InvalidArgumentError("load_balancers must be a collection of LoadBalancer objects")
        return load_balancers
