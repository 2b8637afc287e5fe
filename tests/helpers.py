import aws_cdk as cdk
from aws_cdk.assertions import Template

from tests.consts import TEST_REGION, TEST_STACK_NAME
from wordpress_stack.infrastructure import WordpressThreeTierStack
from wordpress_stack.settings import Settings


def make_settings(**overrides) -> Settings:
    """Settings with test defaults; explicit kwargs win over the environment."""
    values = {
        "stack_name": TEST_STACK_NAME,
        "environment": "dev",
        "aws_region": TEST_REGION,
        "aws_account_id": None,
        "aws_endpoint_url": None,
    }
    values.update(overrides)
    return Settings(**values)


def synth_template(**overrides) -> Template:
    settings = make_settings(**overrides)
    stack = WordpressThreeTierStack(cdk.App(), settings.stack_name, settings=settings)
    return Template.from_stack(stack)


def resources_of_type(template_json, resource_type):
    return {
        logical_id: resource
        for logical_id, resource in template_json["Resources"].items()
        if resource["Type"] == resource_type
    }


def security_group_id(template_json, tier):
    """Logical ID of the security group tagged with the given tier."""
    for logical_id, resource in resources_of_type(template_json, "AWS::EC2::SecurityGroup").items():
        tags = resource["Properties"].get("Tags", [])
        if {"Key": "Tier", "Value": tier} in tags:
            return logical_id
    raise KeyError(tier)


def subnet_ids(template_json, subnet_type):
    ids = []
    for logical_id, resource in resources_of_type(template_json, "AWS::EC2::Subnet").items():
        tags = resource["Properties"].get("Tags", [])
        if {"Key": "aws-cdk:subnet-type", "Value": subnet_type} in tags:
            ids.append(logical_id)
    return sorted(ids)
