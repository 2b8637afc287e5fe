"""VPC network and per-tier security groups."""
import logging

from aws_cdk import Tags, aws_ec2 as ec2
from constructs import Construct

from wordpress_stack.settings import Settings

logger = logging.getLogger(__name__)

HTTP_PORT = 80
HTTPS_PORT = 443

# Security groups carry a Tier tag so synthesized templates can be checked
TIER_TAG = "Tier"
ALB_TIER = "alb"
SERVICE_TIER = "service"
DATABASE_TIER = "database"


class NetworkTier(Construct):
    """VPC spanning two AZs plus the ALB, service and database security groups."""

    def __init__(self, scope: Construct, construct_id: str, *, settings: Settings) -> None:
        super().__init__(scope, construct_id)

        self.vpc = ec2.Vpc(
            self,
            "WordpressVPC",
            max_azs=settings.max_azs,
            nat_gateways=settings.nat_gateways,
        )

        self.alb_security_group = self._security_group(
            "AlbSecurityGroup", "Security group for ALB", ALB_TIER
        )
        self.alb_security_group.add_ingress_rule(
            ec2.Peer.any_ipv4(), ec2.Port.tcp(HTTP_PORT), "Allow HTTP traffic"
        )
        self.alb_security_group.add_ingress_rule(
            ec2.Peer.any_ipv4(), ec2.Port.tcp(HTTPS_PORT), "Allow HTTPS traffic"
        )

        self.service_security_group = self._security_group(
            "EcsSecurityGroup", "Security group for ECS", SERVICE_TIER
        )
        self.service_security_group.add_ingress_rule(
            self.alb_security_group,
            ec2.Port.tcp(settings.container_port),
            "Allow traffic from ALB",
        )

        self.database_security_group = self._security_group(
            "DbSecurityGroup", "Security group for RDS", DATABASE_TIER
        )
        self.database_security_group.add_ingress_rule(
            self.service_security_group,
            ec2.Port.tcp(settings.db_port),
            "Allow MySQL traffic from ECS",
        )

        logger.debug(
            f"Declared VPC with {settings.max_azs} AZs and {settings.nat_gateways} NAT gateway(s)"
        )

    def _security_group(self, construct_id: str, description: str, tier: str) -> ec2.SecurityGroup:
        security_group = ec2.SecurityGroup(
            self,
            construct_id,
            vpc=self.vpc,
            description=description,
            allow_all_outbound=True,
        )
        Tags.of(security_group).add(TIER_TAG, tier)
        return security_group
