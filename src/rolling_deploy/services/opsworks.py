"""OpsWorks compute service adapter."""

from typing import List

from botocore.exceptions import BotoCoreError, ClientError

from .base import ComputeService
from rolling_deploy.models import DeploymentRequest, DeploymentStatus, Instance, InstanceStatus
from rolling_deploy.utils.errors import ErrorContext, error_handler
from rolling_deploy.utils.logging import get_logger

logger = get_logger(__name__)


class OpsWorksComputeService(ComputeService):
    """Lists layer instances and drives deployments through the OpsWorks API."""

    STATUS_MAPPING = {
        'running': DeploymentStatus.RUNNING,
        'successful': DeploymentStatus.SUCCESSFUL,
        'failed': DeploymentStatus.FAILED,
    }

    def __init__(self, opsworks_client):
        """Initialize OpsWorks service.

        Args:
            opsworks_client: boto3 OpsWorks client (region us-east-1)
        """
        self.client = opsworks_client

    def list_instances(self, layer_id: str) -> List[Instance]:
        response = self._call('describe_instances', LayerId=layer_id)

        return [
            Instance(
                instance_id=item['InstanceId'],
                hostname=item.get('Hostname', item['InstanceId']),
                status=InstanceStatus.parse(item.get('Status')),
                ec2_instance_id=item.get('Ec2InstanceId'),
            )
            for item in response.get('Instances', [])
        ]

    def create_deployment(self, request: DeploymentRequest) -> str:
        response = self._call(
            'create_deployment',
            StackId=request.stack_id,
            AppId=request.app_id,
            InstanceIds=list(request.instance_ids),
            Command=request.command.to_api(),
        )
        return response['DeploymentId']

    def poll_deployment(self, deployment_id: str) -> DeploymentStatus:
        response = self._call('describe_deployments', DeploymentIds=[deployment_id])
        deployments = response.get('Deployments', [])
        if not deployments:
            # Newly created deployments can lag behind in DescribeDeployments
            return DeploymentStatus.RUNNING

        status = deployments[0].get('Status', 'running')
        return self.STATUS_MAPPING.get(status, DeploymentStatus.RUNNING)

    def _call(self, operation: str, **kwargs):
        """Invoke a client operation, translating AWS errors.

        Raises:
            DeploymentError: Categorized error wrapping the AWS failure
        """
        try:
            return getattr(self.client, operation)(**kwargs)
        except (ClientError, BotoCoreError) as e:
            context = ErrorContext(
                operation=operation,
                aws_service='opsworks',
                aws_operation=operation,
                deployment_id=(kwargs.get('DeploymentIds') or [None])[0],
                instance_ids=list(kwargs.get('InstanceIds', [])),
            )
            raise error_handler.handle_exception(e, context) from e
