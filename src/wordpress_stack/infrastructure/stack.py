"""Three-tier WordPress stack: CloudFront -> ALB/Fargate -> RDS MySQL."""
import logging
from typing import Optional

from aws_cdk import CfnOutput, Stack, Tags
from constructs import Construct

from wordpress_stack.infrastructure.cdn import CdnTier
from wordpress_stack.infrastructure.database import DatabaseTier
from wordpress_stack.infrastructure.network import NetworkTier
from wordpress_stack.infrastructure.service import ServiceTier
from wordpress_stack.settings import Settings, get_settings

logger = logging.getLogger(__name__)

# Stack output keys
LOAD_BALANCER_DNS_OUTPUT = "LoadBalancerDNS"
CLOUDFRONT_DOMAIN_OUTPUT = "CloudFrontDomainName"
DATABASE_ENDPOINT_OUTPUT = "DatabaseEndpoint"
STACK_OUTPUTS = (LOAD_BALANCER_DNS_OUTPUT, CLOUDFRONT_DOMAIN_OUTPUT, DATABASE_ENDPOINT_OUTPUT)


class WordpressThreeTierStack(Stack):
    """Network, database, container service and CDN for a WordPress site."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        settings: Optional[Settings] = None,
        **kwargs,
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.settings = settings or get_settings()

        self.network = NetworkTier(self, "Network", settings=self.settings)

        self.database = DatabaseTier(
            self,
            "Database",
            settings=self.settings,
            vpc=self.network.vpc,
            security_group=self.network.database_security_group,
        )

        self.service = ServiceTier(
            self,
            "Service",
            settings=self.settings,
            vpc=self.network.vpc,
            alb_security_group=self.network.alb_security_group,
            service_security_group=self.network.service_security_group,
            database=self.database,
        )

        self.cdn = CdnTier(
            self,
            "Cdn",
            settings=self.settings,
            load_balancer=self.service.load_balancer,
        )

        for key, value in self.settings.resource_tags.items():
            Tags.of(self).add(key, value)

        CfnOutput(
            self,
            LOAD_BALANCER_DNS_OUTPUT,
            value=self.service.load_balancer.load_balancer_dns_name,
            description="ALB DNS Name",
        )
        CfnOutput(
            self,
            CLOUDFRONT_DOMAIN_OUTPUT,
            value=self.cdn.distribution.distribution_domain_name,
            description="CloudFront Domain Name",
        )
        CfnOutput(
            self,
            DATABASE_ENDPOINT_OUTPUT,
            value=self.database.endpoint_address,
            description="RDS Database Endpoint",
        )

        logger.info(f"Declared stack {construct_id} ({self.settings.environment})")
