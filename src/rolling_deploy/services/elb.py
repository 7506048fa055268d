"""Classic Elastic Load Balancing service adapter."""

from typing import List

from botocore.exceptions import BotoCoreError, ClientError

from .base import LoadBalancerService
from rolling_deploy.models import InstanceHealth, LoadBalancer
from rolling_deploy.utils.errors import ErrorContext, error_handler
from rolling_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class ClassicLoadBalancerService(LoadBalancerService):
    """Registers and deregisters EC2 instances with Classic ELBs."""

    STATE_MAPPING = {
        'InService': InstanceHealth.IN_SERVICE,
        'OutOfService': InstanceHealth.OUT_OF_SERVICE,
        'Unknown': InstanceHealth.UNKNOWN,
    }

    def __init__(self, elb_client):
        """Initialize ELB service.

        Args:
            elb_client: boto3 ``elb`` client
        """
        self.client = elb_client

    def list_load_balancers(self) -> List[LoadBalancer]:
        load_balancers = []
        try:
            paginator = self.client.get_paginator('describe_load_balancers')
            for page in paginator.paginate():
                for description in page.get('LoadBalancerDescriptions', []):
                    load_balancers.append(LoadBalancer(
                        name=description['LoadBalancerName'],
                        instance_ids=frozenset(
                            i['InstanceId'] for i in description.get('Instances', [])
                        ),
                    ))
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, 'describe_load_balancers') from e

        return load_balancers

    def deregister(self, load_balancer_name: str, instance_ids: List[str]) -> List[str]:
        response = self._call(
            'deregister_instances_from_load_balancer',
            load_balancer_name,
            instance_ids,
        )
        return [i['InstanceId'] for i in response.get('Instances', [])]

    def register(self, load_balancer_name: str, instance_ids: List[str]) -> List[str]:
        response = self._call(
            'register_instances_with_load_balancer',
            load_balancer_name,
            instance_ids,
        )
        return [i['InstanceId'] for i in response.get('Instances', [])]

    def poll_instance_state(self, load_balancer_name: str, instance_id: str) -> InstanceHealth:
        try:
            response = self.client.describe_instance_health(
                LoadBalancerName=load_balancer_name,
                Instances=[{'InstanceId': instance_id}],
            )
        except ClientError as e:
            # Deregistered instances are rejected outright by DescribeInstanceHealth
            if e.response.get('Error', {}).get('Code') == 'InvalidInstance':
                return InstanceHealth.NOT_REGISTERED
            raise self._translate(e, 'describe_instance_health', load_balancer_name, [instance_id]) from e
        except BotoCoreError as e:
            raise self._translate(e, 'describe_instance_health', load_balancer_name, [instance_id]) from e

        states = response.get('InstanceStates', [])
        if not states:
            return InstanceHealth.NOT_REGISTERED
        return self.STATE_MAPPING.get(states[0].get('State'), InstanceHealth.UNKNOWN)

    def _call(self, operation: str, load_balancer_name: str, instance_ids: List[str]):
        try:
            return getattr(self.client, operation)(
                LoadBalancerName=load_balancer_name,
                Instances=[{'InstanceId': i} for i in instance_ids],
            )
        except (ClientError, BotoCoreError) as e:
            raise self._translate(e, operation, load_balancer_name, instance_ids) from e

    def _translate(self, error, operation, load_balancer_name=None, instance_ids=None):
        context = ErrorContext(
            operation=operation,
            aws_service='elb',
            aws_operation=operation,
            load_balancer=load_balancer_name,
            instance_ids=list(instance_ids or []),
        )
        return error_handler.handle_exception(error, context)
