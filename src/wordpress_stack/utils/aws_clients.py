"""AWS client management."""
import os
import boto3
import logging
from typing import Any

from wordpress_stack.settings import get_settings

logger = logging.getLogger(__name__)


class AWSClientManager:
    """Singleton manager for AWS service clients."""
    _instance = None
    _clients = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(AWSClientManager, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize the client manager with settings."""
        self.settings = get_settings()

        self.region = self.settings.aws_region
        self.endpoint_url = self.settings.aws_endpoint_url

        logger.debug(f"Initializing AWSClientManager (region={self.region}, endpoint={self.endpoint_url})")

    @classmethod
    def reset(cls):
        """Drop the singleton so the next use re-reads settings."""
        cls._clients.clear()
        cls._instance = None

    def get_client(self, service_name: str) -> Any:
        """Get or create an AWS service client."""
        if service_name in self._clients:
            return self._clients[service_name]

        client_kwargs = {
            'region_name': self.region
        }
        if self.endpoint_url:
            client_kwargs['endpoint_url'] = self.endpoint_url

        # Named profile (e.g. SSO) when one is configured
        aws_profile = os.environ.get('AWS_PROFILE')
        if aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            client = session.client(service_name, **client_kwargs)
            logger.debug(f"Created {service_name} client using profile: {aws_profile}")
        else:
            client = boto3.client(service_name, **client_kwargs)
            logger.debug(f"Created {service_name} client")

        self._clients[service_name] = client
        return client


def get_cloudformation_client():
    """Get the CloudFormation client."""
    return AWSClientManager().get_client('cloudformation')

def get_ecs_client():
    """Get the ECS client."""
    return AWSClientManager().get_client('ecs')

def get_rds_client():
    """Get the RDS client."""
    return AWSClientManager().get_client('rds')

def get_elbv2_client():
    """Get the Elastic Load Balancing v2 client."""
    return AWSClientManager().get_client('elbv2')

def get_cloudfront_client():
    """Get the CloudFront client."""
    return AWSClientManager().get_client('cloudfront')
