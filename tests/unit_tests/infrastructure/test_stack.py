import json

from aws_cdk.assertions import Match

from tests.helpers import resources_of_type, security_group_id, synth_template


def test_vpc_spans_two_azs_with_single_nat(default_template):
    default_template.resource_count_is("AWS::EC2::VPC", 1)
    default_template.resource_count_is("AWS::EC2::NatGateway", 1)
    # public + private subnet per AZ
    default_template.resource_count_is("AWS::EC2::Subnet", 4)


def test_one_security_group_per_tier(default_template):
    default_template.resource_count_is("AWS::EC2::SecurityGroup", 3)
    for tier in ("alb", "service", "database"):
        default_template.has_resource_properties("AWS::EC2::SecurityGroup", {
            "Tags": Match.array_with([{"Key": "Tier", "Value": tier}]),
        })


def test_alb_security_group_open_on_http_and_https(default_template):
    for port in (80, 443):
        default_template.has_resource_properties("AWS::EC2::SecurityGroup", {
            "GroupDescription": "Security group for ALB",
            "SecurityGroupIngress": Match.array_with([
                Match.object_like({
                    "CidrIp": "0.0.0.0/0",
                    "IpProtocol": "tcp",
                    "FromPort": port,
                    "ToPort": port,
                }),
            ]),
        })


def test_database_only_reachable_from_service_on_mysql_port(default_template):
    default_template.has_resource_properties("AWS::EC2::SecurityGroupIngress", {
        "IpProtocol": "tcp",
        "FromPort": 3306,
        "ToPort": 3306,
        "Description": "Allow MySQL traffic from ECS",
    })
    default_template.has_resource_properties("AWS::EC2::SecurityGroup", {
        "GroupDescription": "Security group for RDS",
        "SecurityGroupIngress": Match.absent(),
    })


def test_database_secret_generates_password_field(default_template):
    default_template.has_resource_properties("AWS::SecretsManager::Secret", {
        "Name": "wordpress-db-password",
        "GenerateSecretString": {
            "ExcludePunctuation": True,
            "PasswordLength": 16,
            "GenerateStringKey": "password",
            "SecretStringTemplate": json.dumps({"username": "admin"}),
        },
    })


def test_mysql_instance(default_template):
    default_template.resource_count_is("AWS::RDS::DBInstance", 1)
    default_template.has_resource_properties("AWS::RDS::DBInstance", {
        "Engine": "mysql",
        "EngineVersion": "8.0",
        "DBInstanceClass": "db.t3.small",
        "DBName": "wordpress",
        "BackupRetentionPeriod": 7,
        "StorageEncrypted": True,
        "DeletionProtection": False,
    })


def test_prod_enables_deletion_protection():
    template = synth_template(environment="prod")
    template.has_resource_properties("AWS::RDS::DBInstance", {
        "DeletionProtection": True,
    })


def test_cluster_has_container_insights(default_template):
    default_template.has_resource_properties("AWS::ECS::Cluster", {
        "ClusterSettings": [{"Name": "containerInsights", "Value": "enabled"}],
    })


def test_task_definition(default_template):
    default_template.has_resource_properties("AWS::ECS::TaskDefinition", {
        "Cpu": "1024",
        "Memory": "2048",
        "NetworkMode": "awsvpc",
        "RequiresCompatibilities": ["FARGATE"],
        "ContainerDefinitions": [
            Match.object_like({
                "Name": "WordpressContainer",
                "Image": "wordpress:latest",
                "PortMappings": Match.array_with([Match.object_like({"ContainerPort": 80})]),
                "Environment": Match.array_with([
                    {"Name": "WORDPRESS_DB_NAME", "Value": "wordpress"},
                    {"Name": "WORDPRESS_DB_USER", "Value": "admin"},
                ]),
                "Secrets": [Match.object_like({"Name": "WORDPRESS_DB_PASSWORD"})],
                "LogConfiguration": {
                    "LogDriver": "awslogs",
                    "Options": Match.object_like({"awslogs-stream-prefix": "wordpress"}),
                },
            }),
        ],
    })


def test_task_role_assumed_by_ecs_tasks(default_template):
    default_template.has_resource_properties("AWS::IAM::Role", {
        "AssumeRolePolicyDocument": {
            "Statement": Match.array_with([
                Match.object_like({
                    "Action": "sts:AssumeRole",
                    "Principal": {"Service": "ecs-tasks.amazonaws.com"},
                }),
            ]),
        },
    })


def test_fargate_service_in_private_subnets(default_template):
    default_template.has_resource_properties("AWS::ECS::Service", {
        "DesiredCount": 2,
        "LaunchType": "FARGATE",
        "HealthCheckGracePeriodSeconds": 60,
        "NetworkConfiguration": {
            "AwsvpcConfiguration": {"AssignPublicIp": "DISABLED"},
        },
    })


def test_internet_facing_load_balancer(default_template):
    default_template.has_resource_properties("AWS::ElasticLoadBalancingV2::LoadBalancer", {
        "Scheme": "internet-facing",
        "Type": "application",
    })
    default_template.has_resource_properties("AWS::ElasticLoadBalancingV2::Listener", {
        "Port": 80,
        "Protocol": "HTTP",
    })
    default_template.has_resource_properties("AWS::ElasticLoadBalancingV2::TargetGroup", {
        "Port": 80,
        "Protocol": "HTTP",
        "TargetType": "ip",
        "HealthCheckPath": "/",
        "HealthCheckIntervalSeconds": 30,
    })


def test_cpu_autoscaling(default_template):
    default_template.has_resource_properties("AWS::ApplicationAutoScaling::ScalableTarget", {
        "MinCapacity": 2,
        "MaxCapacity": 10,
        "ScalableDimension": "ecs:service:DesiredCount",
        "ServiceNamespace": "ecs",
    })
    default_template.has_resource_properties("AWS::ApplicationAutoScaling::ScalingPolicy", {
        "PolicyType": "TargetTrackingScaling",
        "TargetTrackingScalingPolicyConfiguration": {
            "TargetValue": 70,
            "ScaleInCooldown": 60,
            "ScaleOutCooldown": 60,
            "PredefinedMetricSpecification": {
                "PredefinedMetricType": "ECSServiceAverageCPUUtilization",
            },
        },
    })


def test_cloudfront_distribution(default_template):
    default_template.resource_count_is("AWS::CloudFront::Distribution", 1)
    default_template.has_resource_properties("AWS::CloudFront::Distribution", {
        "DistributionConfig": {
            "PriceClass": "PriceClass_100",
            "DefaultCacheBehavior": {
                "ViewerProtocolPolicy": "redirect-to-https",
                "Compress": True,
                # Managed-CachingOptimized
                "CachePolicyId": "658327ea-f89d-4fab-a63d-7e88639e58f6",
                "AllowedMethods": Match.array_with(["PUT", "POST", "DELETE"]),
            },
            "Origins": [
                Match.object_like({
                    "CustomOriginConfig": Match.object_like({"OriginProtocolPolicy": "http-only"}),
                }),
            ],
        },
    })


def test_endpoint_outputs(default_template):
    default_template.has_output("LoadBalancerDNS", {"Description": "ALB DNS Name"})
    default_template.has_output("CloudFrontDomainName", {"Description": "CloudFront Domain Name"})
    default_template.has_output("DatabaseEndpoint", {"Description": "RDS Database Endpoint"})


def test_resources_tagged_with_project_and_environment(default_template):
    default_template.has_resource_properties("AWS::EC2::VPC", {
        "Tags": Match.array_with([
            {"Key": "Environment", "Value": "dev"},
            {"Key": "Project", "Value": "wordpress"},
        ]),
    })


def test_settings_drive_sizes_and_thresholds():
    template = synth_template(
        container_image="wordpress:6.5-apache",
        task_cpu=2048,
        task_memory_mib=4096,
        desired_count=3,
        min_capacity=3,
        max_capacity=6,
        cpu_target_percent=50,
        db_instance_type="t3.medium",
        cdn_price_class="PriceClass_All",
    )
    template.has_resource_properties("AWS::ECS::TaskDefinition", {
        "Cpu": "2048",
        "Memory": "4096",
        "ContainerDefinitions": [Match.object_like({"Image": "wordpress:6.5-apache"})],
    })
    template.has_resource_properties("AWS::ECS::Service", {"DesiredCount": 3})
    template.has_resource_properties("AWS::ApplicationAutoScaling::ScalableTarget", {
        "MinCapacity": 3,
        "MaxCapacity": 6,
    })
    template.has_resource_properties("AWS::ApplicationAutoScaling::ScalingPolicy", {
        "TargetTrackingScalingPolicyConfiguration": Match.object_like({"TargetValue": 50}),
    })
    template.has_resource_properties("AWS::RDS::DBInstance", {"DBInstanceClass": "db.t3.medium"})
    template.has_resource_properties("AWS::CloudFront::Distribution", {
        "DistributionConfig": Match.object_like({"PriceClass": "PriceClass_All"}),
    })


def _container_definition(template_json):
    (task_definition,) = resources_of_type(template_json, "AWS::ECS::TaskDefinition").values()
    (container,) = task_definition["Properties"]["ContainerDefinitions"]
    return container


def test_container_db_host_is_database_endpoint(template_json):
    (db_id,) = resources_of_type(template_json, "AWS::RDS::DBInstance")
    environment = {
        item["Name"]: item["Value"] for item in _container_definition(template_json)["Environment"]
    }

    assert environment["WORDPRESS_DB_HOST"] == {"Fn::GetAtt": [db_id, "Endpoint.Address"]}


def test_container_password_reads_password_field(template_json):
    secret_ids = set(resources_of_type(template_json, "AWS::SecretsManager::Secret"))
    secret_ids |= set(resources_of_type(template_json, "AWS::SecretsManager::SecretTargetAttachment"))
    (secret,) = _container_definition(template_json)["Secrets"]
    value_from = json.dumps(secret["ValueFrom"])

    assert secret["Name"] == "WORDPRESS_DB_PASSWORD"
    assert value_from.endswith(':password::"]]}')
    assert any(f'{{"Ref": "{logical_id}"}}' in value_from for logical_id in secret_ids)


def test_service_uses_service_tier_security_group(template_json):
    service_sg = security_group_id(template_json, "service")
    (service,) = resources_of_type(template_json, "AWS::ECS::Service").values()

    network = service["Properties"]["NetworkConfiguration"]["AwsvpcConfiguration"]
    assert network["SecurityGroups"] == [{"Fn::GetAtt": [service_sg, "GroupId"]}]


def test_cloudfront_forwards_all_viewer_headers(default_template):
    default_template.has_resource_properties("AWS::CloudFront::Distribution", {
        "DistributionConfig": {
            "DefaultCacheBehavior": Match.object_like({
                # Managed-AllViewer
                "OriginRequestPolicyId": "216adef6-5c7f-47e4-b989-5492eafa07d3",
            }),
        },
    })
