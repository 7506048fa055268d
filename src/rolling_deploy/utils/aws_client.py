"""AWS client management and session handling."""

import os
import boto3
from botocore.config import Config
from typing import Optional, Dict, Any
from rolling_deploy.config.models import AWSConfig
from rolling_deploy.utils.logging import get_logger

logger = get_logger(__name__)

# All OpsWorks endpoints are in us-east-1, see:
# http://docs.aws.amazon.com/opsworks/latest/userguide/cli-examples.html
OPSWORKS_REGION = 'us-east-1'


class AWSClientManager:
    """Manages boto3 sessions and clients from explicit configuration."""

    def __init__(self, config: Optional[AWSConfig] = None, max_pool_connections: int = 10):
        """Initialize AWS client manager.

        Args:
            config: AWS configuration (credentials, profile, regions)
            max_pool_connections: Maximum number of connections in the connection pool
        """
        self.config = config or AWSConfig()
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}

        self._boto_config = Config(
            max_pool_connections=max_pool_connections,
            retries={
                'mode': 'adaptive',
                'max_attempts': 5
            },
            connect_timeout=10,
            read_timeout=60
        )

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session.

        Returns:
            Configured boto3 session
        """
        if self._session is None:
            kwargs = {}
            if self.config.profile:
                kwargs['profile_name'] = self.config.profile
            if self.config.access_key_id and self.config.secret_access_key:
                kwargs['aws_access_key_id'] = self.config.access_key_id
                kwargs['aws_secret_access_key'] = self.config.secret_access_key

            self._session = boto3.Session(**kwargs)
            logger.info(f"Created AWS session - Profile: {self.config.profile or 'default'}")

        return self._session

    @property
    def load_balancer_region(self) -> str:
        """Region of the load balancers: config, then AWS_REGION, then us-east-1."""
        return self.config.region or os.environ.get('AWS_REGION') or OPSWORKS_REGION

    def get_client(self, service_name: str, region: str):
        """Get boto3 client for a service in a region.

        Args:
            service_name: AWS service name (e.g., 'opsworks', 'elb')
            region: AWS region name

        Returns:
            Boto3 client for the service
        """
        cache_key = f"{service_name}:{region}"

        if cache_key in self._clients:
            return self._clients[cache_key]

        client = self.session.client(service_name, region_name=region, config=self._boto_config)
        self._clients[cache_key] = client

        logger.debug(f"Created {service_name} client (cached: {cache_key})")

        return client

    def opsworks_client(self):
        """OpsWorks client, always in the OpsWorks endpoint region."""
        return self.get_client('opsworks', OPSWORKS_REGION)

    def elb_client(self):
        """Classic ELB client in the load balancer region."""
        return self.get_client('elb', self.load_balancer_region)

    def clear_cache(self):
        """Clear cached clients and sessions."""
        self._clients.clear()
        self._session = None
        logger.debug("Cleared AWS client cache")
