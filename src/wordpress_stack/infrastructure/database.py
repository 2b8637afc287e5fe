"""Managed MySQL instance and its credential secret."""
import json
import logging

from aws_cdk import Duration, aws_ec2 as ec2, aws_rds as rds, aws_secretsmanager as secretsmanager
from constructs import Construct

from wordpress_stack.settings import Settings

logger = logging.getLogger(__name__)


class DatabaseTier(Construct):
    """RDS MySQL 8.0 in private subnets, credentials held in Secrets Manager.

    The secret is a JSON document with ``username`` and ``password`` keys so
    RDS can read the master credentials from it and the container can
    reference the ``password`` field alone.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        settings: Settings,
        vpc: ec2.IVpc,
        security_group: ec2.ISecurityGroup,
    ) -> None:
        super().__init__(scope, construct_id)

        self.secret = secretsmanager.Secret(
            self,
            "DBPassword",
            secret_name=settings.db_secret_name,
            generate_secret_string=secretsmanager.SecretStringGenerator(
                secret_string_template=json.dumps({"username": settings.db_username}),
                generate_string_key="password",
                exclude_punctuation=True,
                password_length=settings.db_password_length,
            ),
        )

        self.instance = rds.DatabaseInstance(
            self,
            "WordpressDatabase",
            engine=rds.DatabaseInstanceEngine.mysql(version=rds.MysqlEngineVersion.VER_8_0),
            instance_type=ec2.InstanceType(settings.db_instance_type),
            vpc=vpc,
            vpc_subnets=ec2.SubnetSelection(subnet_type=ec2.SubnetType.PRIVATE_WITH_EGRESS),
            security_groups=[security_group],
            port=settings.db_port,
            database_name=settings.db_name,
            credentials=rds.Credentials.from_secret(self.secret),
            backup_retention=Duration.days(settings.db_backup_retention_days),
            deletion_protection=settings.database_deletion_protection,
            storage_encrypted=True,
        )

        if settings.database_deletion_protection:
            logger.info("Database deletion protection enabled")

    @property
    def endpoint_address(self) -> str:
        return self.instance.db_instance_endpoint_address
