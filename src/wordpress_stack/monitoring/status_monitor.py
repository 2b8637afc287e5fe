"""
Deployment status checking and health monitoring.

Reads the deployed stack's outputs and checks the health of the resources
it owns: the CloudFormation stack itself, the ECS service, the RDS
instance, the load balancer targets and the CloudFront distribution.
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional, Any
from botocore.exceptions import ClientError, NoCredentialsError

from wordpress_stack.exceptions import DeploymentError, StackNotFoundError
from wordpress_stack.settings import Settings, get_settings
from wordpress_stack.utils.aws_clients import (
    get_cloudformation_client,
    get_cloudfront_client,
    get_ecs_client,
    get_elbv2_client,
    get_rds_client,
)

logger = logging.getLogger(__name__)

HEALTHY = 'healthy'
DEGRADED = 'degraded'
UNHEALTHY = 'unhealthy'
WARNING = 'warning'


class StatusMonitor:
    """Monitor deployment health and status of the stack's resources."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.stack_name = self.settings.stack_name
        self.cloudformation_client = None
        self.ecs_client = None
        self.rds_client = None
        self.elbv2_client = None
        self.cloudfront_client = None

    def _init_clients(self):
        """Initialize AWS clients lazily."""
        if not self.cloudformation_client:
            self.cloudformation_client = get_cloudformation_client()
        if not self.ecs_client:
            self.ecs_client = get_ecs_client()
        if not self.rds_client:
            self.rds_client = get_rds_client()
        if not self.elbv2_client:
            self.elbv2_client = get_elbv2_client()
        if not self.cloudfront_client:
            self.cloudfront_client = get_cloudfront_client()

    def describe_stack(self) -> Dict[str, Any]:
        """Describe the stack, raising StackNotFoundError if it is absent."""
        self._init_clients()
        try:
            response = self.cloudformation_client.describe_stacks(StackName=self.stack_name)
        except ClientError as e:
            if 'does not exist' in e.response['Error'].get('Message', ''):
                raise StackNotFoundError(self.stack_name) from e
            logger.error(f"Failed to describe stack {self.stack_name}: {e}")
            raise DeploymentError(f"Failed to describe stack {self.stack_name}: {e}") from e
        except NoCredentialsError as e:
            logger.error(f"No AWS credentials available: {e}")
            raise DeploymentError(f"No AWS credentials available: {e}") from e
        return response['Stacks'][0]

    def get_stack_outputs(self) -> Dict[str, str]:
        """Stack outputs keyed by output name."""
        stack = self.describe_stack()
        return {
            output['OutputKey']: output['OutputValue']
            for output in stack.get('Outputs', [])
        }

    def get_stack_resources(self) -> Dict[str, List[str]]:
        """Physical resource IDs grouped by resource type."""
        self._init_clients()
        resources: Dict[str, List[str]] = {}
        paginator = self.cloudformation_client.get_paginator('list_stack_resources')
        try:
            for page in paginator.paginate(StackName=self.stack_name):
                for summary in page.get('StackResourceSummaries', []):
                    physical_id = summary.get('PhysicalResourceId')
                    if physical_id:
                        resources.setdefault(summary['ResourceType'], []).append(physical_id)
        except (ClientError, NoCredentialsError) as e:
            logger.error(f"Failed to list resources of {self.stack_name}: {e}")
            raise DeploymentError(f"Failed to list resources of {self.stack_name}: {e}") from e
        return resources

    def check_deployment_health(self) -> Dict[str, Any]:
        """
        Check overall deployment health across all components.

        Returns:
            Dict containing health status of all components
        """
        self._init_clients()

        health_report = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'stack_name': self.stack_name,
            'overall_status': HEALTHY,
            'components': {},
            'warnings': [],
            'errors': []
        }

        try:
            stack = self.describe_stack()
        except StackNotFoundError as e:
            health_report['overall_status'] = UNHEALTHY
            health_report['errors'].append(str(e))
            return health_report

        stack_status = self._check_stack(stack)
        health_report['components']['stack'] = stack_status
        self._merge_component(health_report, 'stack', stack_status)

        resources = self.get_stack_resources()
        checks = [
            ('ecs', lambda: self._check_ecs_services(resources)),
            ('database', lambda: self._check_database(resources)),
            ('load_balancer', lambda: self._check_target_health(resources)),
            ('cdn', lambda: self._check_distribution(resources)),
        ]

        for name, check in checks:
            try:
                component_status = check()
            except Exception as e:
                logger.error(f"{name} health check failed: {e}")
                health_report['components'][name] = {'status': 'error', 'error': str(e)}
                health_report['overall_status'] = UNHEALTHY
                health_report['errors'].append(f"{name} health check failed: {e}")
                continue

            health_report['components'][name] = component_status
            self._merge_component(health_report, name, component_status)

        return health_report

    @staticmethod
    def _merge_component(health_report: Dict[str, Any], name: str, status: Dict[str, Any]) -> None:
        if status['status'] != HEALTHY and health_report['overall_status'] == HEALTHY:
            health_report['overall_status'] = DEGRADED
        health_report['warnings'].extend(status.get('warnings', []))
        health_report['errors'].extend(status.get('errors', []))

    def _check_stack(self, stack: Dict[str, Any]) -> Dict[str, Any]:
        """Check the CloudFormation stack status."""
        status = stack['StackStatus']
        result = {'status': HEALTHY, 'stack_status': status}

        if status.endswith('_IN_PROGRESS'):
            result['status'] = WARNING
            result['warnings'] = [f"Stack operation in progress: {status}"]
        elif status.endswith('_FAILED') or 'ROLLBACK' in status or status.startswith('DELETE'):
            result['status'] = UNHEALTHY
            result['errors'] = [f"Stack is in state {status}"]
            if stack.get('StackStatusReason'):
                result['reason'] = stack['StackStatusReason']

        return result

    def _check_ecs_services(self, resources: Dict[str, List[str]]) -> Dict[str, Any]:
        """Check ECS service health."""
        clusters = resources.get('AWS::ECS::Cluster', [])
        service_arns = resources.get('AWS::ECS::Service', [])

        if not clusters or not service_arns:
            return {
                'status': WARNING,
                'message': 'No ECS services found',
                'services': [],
                'warnings': ['No ECS services found in stack']
            }

        describe_response = self.ecs_client.describe_services(
            cluster=clusters[0],
            services=service_arns
        )

        services_status = []
        errors = []
        warnings = []

        for service in describe_response.get('services', []):
            service_name = service['serviceName']
            desired_count = service['desiredCount']
            running_count = service['runningCount']

            service_health = {
                'name': service_name,
                'status': service['status'],
                'desired': desired_count,
                'running': running_count,
                'pending': service.get('pendingCount', 0),
                'healthy': running_count >= desired_count and service['status'] == 'ACTIVE'
            }
            services_status.append(service_health)

            if running_count == 0 and desired_count > 0:
                errors.append(f"Service {service_name} has no running tasks")
            elif not service_health['healthy']:
                warnings.append(
                    f"Service {service_name} running {running_count}/{desired_count} tasks"
                )

        if errors:
            status = UNHEALTHY
        elif warnings:
            status = WARNING
        else:
            status = HEALTHY

        return {
            'status': status,
            'services': services_status,
            'warnings': warnings,
            'errors': errors
        }

    def _check_database(self, resources: Dict[str, List[str]]) -> Dict[str, Any]:
        """Check RDS instance status."""
        instance_ids = resources.get('AWS::RDS::DBInstance', [])
        if not instance_ids:
            return {'status': WARNING, 'warnings': ['No database instance found in stack']}

        instances = []
        errors = []
        warnings = []
        for instance_id in instance_ids:
            response = self.rds_client.describe_db_instances(DBInstanceIdentifier=instance_id)
            for instance in response.get('DBInstances', []):
                db_status = instance['DBInstanceStatus']
                instances.append({
                    'identifier': instance['DBInstanceIdentifier'],
                    'status': db_status,
                    'engine': instance.get('Engine'),
                    'multi_az': instance.get('MultiAZ', False),
                    'encrypted': instance.get('StorageEncrypted', False)
                })
                if db_status in ('failed', 'incompatible-parameters', 'incompatible-network', 'stopped'):
                    errors.append(f"Database {instance_id} is {db_status}")
                elif db_status != 'available':
                    warnings.append(f"Database {instance_id} is {db_status}")

        return {
            'status': UNHEALTHY if errors else WARNING if warnings else HEALTHY,
            'instances': instances,
            'warnings': warnings,
            'errors': errors
        }

    def _check_target_health(self, resources: Dict[str, List[str]]) -> Dict[str, Any]:
        """Check load balancer target group health."""
        target_groups = resources.get('AWS::ElasticLoadBalancingV2::TargetGroup', [])
        if not target_groups:
            return {'status': WARNING, 'warnings': ['No target groups found in stack']}

        groups = []
        errors = []
        warnings = []
        for target_group_arn in target_groups:
            response = self.elbv2_client.describe_target_health(TargetGroupArn=target_group_arn)
            states = [
                description['TargetHealth']['State']
                for description in response.get('TargetHealthDescriptions', [])
            ]
            healthy_count = states.count('healthy')
            groups.append({
                'arn': target_group_arn,
                'targets': len(states),
                'healthy': healthy_count
            })

            if healthy_count == 0:
                errors.append(f"Target group {target_group_arn} has no healthy targets")
            elif healthy_count < len(states):
                warnings.append(
                    f"Target group {target_group_arn} has {healthy_count}/{len(states)} healthy targets"
                )

        return {
            'status': UNHEALTHY if errors else WARNING if warnings else HEALTHY,
            'target_groups': groups,
            'warnings': warnings,
            'errors': errors
        }

    def _check_distribution(self, resources: Dict[str, List[str]]) -> Dict[str, Any]:
        """Check CloudFront distribution deployment status."""
        distribution_ids = resources.get('AWS::CloudFront::Distribution', [])
        if not distribution_ids:
            return {'status': WARNING, 'warnings': ['No CloudFront distribution found in stack']}

        distributions = []
        warnings = []
        for distribution_id in distribution_ids:
            distribution = self.cloudfront_client.get_distribution(Id=distribution_id)['Distribution']
            enabled = distribution.get('DistributionConfig', {}).get('Enabled', True)
            distributions.append({
                'id': distribution_id,
                'status': distribution['Status'],
                'domain_name': distribution.get('DomainName'),
                'enabled': enabled
            })
            if distribution['Status'] != 'Deployed':
                warnings.append(f"Distribution {distribution_id} is {distribution['Status']}")
            if not enabled:
                warnings.append(f"Distribution {distribution_id} is disabled")

        return {
            'status': WARNING if warnings else HEALTHY,
            'distributions': distributions,
            'warnings': warnings
        }
