"""Fargate service behind an internet-facing Application Load Balancer."""
import logging

from aws_cdk import (
    Duration,
    aws_ec2 as ec2,
    aws_ecs as ecs,
    aws_elasticloadbalancingv2 as elbv2,
    aws_iam as iam,
)
from constructs import Construct

from wordpress_stack.infrastructure.database import DatabaseTier
from wordpress_stack.infrastructure.network import HTTP_PORT
from wordpress_stack.settings import Settings

logger = logging.getLogger(__name__)

CONTAINER_NAME = "WordpressContainer"
LOG_STREAM_PREFIX = "wordpress"


class ServiceTier(Construct):
    """ECS cluster, ALB, task definition, service and CPU autoscaling."""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        settings: Settings,
        vpc: ec2.IVpc,
        alb_security_group: ec2.ISecurityGroup,
        service_security_group: ec2.ISecurityGroup,
        database: DatabaseTier,
    ) -> None:
        super().__init__(scope, construct_id)
        self.settings = settings

        self.cluster = ecs.Cluster(
            self,
            "WordpressCluster",
            vpc=vpc,
            container_insights_v2=ecs.ContainerInsights.ENABLED,
        )

        self.load_balancer = elbv2.ApplicationLoadBalancer(
            self,
            "WordpressALB",
            vpc=vpc,
            internet_facing=True,
            security_group=alb_security_group,
        )
        self.http_listener = self.load_balancer.add_listener(
            "HttpListener",
            port=HTTP_PORT,
            open=True,
        )

        self.task_definition = self._build_task_definition(database)

        self.service = ecs.FargateService(
            self,
            "WordpressService",
            cluster=self.cluster,
            task_definition=self.task_definition,
            desired_count=settings.desired_count,
            security_groups=[service_security_group],
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            assign_public_ip=False,
            health_check_grace_period=Duration.seconds(settings.health_check_grace_seconds),
        )

        self.target_group = elbv2.ApplicationTargetGroup(
            self,
            "WordpressTargetGroup",
            vpc=vpc,
            port=settings.container_port,
            protocol=elbv2.ApplicationProtocol.HTTP,
            target_type=elbv2.TargetType.IP,
            health_check=elbv2.HealthCheck(
                path=settings.health_check_path,
                interval=Duration.seconds(settings.health_check_interval_seconds),
            ),
        )
        self.service.attach_to_application_target_group(self.target_group)
        self.http_listener.add_target_groups(
            "WordpressTargetGroup",
            target_groups=[self.target_group],
        )

        self._configure_auto_scaling()

    def _build_task_definition(self, database: DatabaseTier) -> ecs.FargateTaskDefinition:
        """Task definition with the WordPress container wired to the database."""
        settings = self.settings

        task_role = iam.Role(
            self,
            "WordpressTaskRole",
            assumed_by=iam.ServicePrincipal("ecs-tasks.amazonaws.com"),
        )

        task_definition = ecs.FargateTaskDefinition(
            self,
            "WordpressTaskDef",
            memory_limit_mib=settings.task_memory_mib,
            cpu=settings.task_cpu,
            task_role=task_role,
        )

        container = task_definition.add_container(
            CONTAINER_NAME,
            image=ecs.ContainerImage.from_registry(settings.container_image),
            logging=ecs.LogDrivers.aws_logs(stream_prefix=LOG_STREAM_PREFIX),
            environment={
                "WORDPRESS_DB_HOST": database.endpoint_address,
                "WORDPRESS_DB_NAME": settings.db_name,
                "WORDPRESS_DB_USER": settings.db_username,
            },
            secrets={
                "WORDPRESS_DB_PASSWORD": ecs.Secret.from_secrets_manager(database.secret, "password"),
            },
        )
        container.add_port_mappings(ecs.PortMapping(container_port=settings.container_port))

        return task_definition

    def _configure_auto_scaling(self) -> None:
        settings = self.settings
        scaling = self.service.auto_scale_task_count(
            min_capacity=settings.min_capacity,
            max_capacity=settings.max_capacity,
        )
        scaling.scale_on_cpu_utilization(
            "CpuScaling",
            target_utilization_percent=settings.cpu_target_percent,
            scale_in_cooldown=Duration.seconds(settings.scale_cooldown_seconds),
            scale_out_cooldown=Duration.seconds(settings.scale_cooldown_seconds),
        )
        logger.debug(
            f"Task count scales {settings.min_capacity}-{settings.max_capacity} "
            f"at {settings.cpu_target_percent}% CPU"
        )
