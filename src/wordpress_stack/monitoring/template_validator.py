"""
Synthesized template validation.

Checks that the resource relationships declared in the CloudFormation
template are consistent with the three-tier layout before anything is
handed to CloudFormation: who may talk to whom, and which subnets each
tier lives in.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Set

from wordpress_stack.exceptions import TemplateValidationError
from wordpress_stack.infrastructure.network import (
    ALB_TIER,
    DATABASE_TIER,
    HTTP_PORT,
    HTTPS_PORT,
    SERVICE_TIER,
    TIER_TAG,
)
from wordpress_stack.infrastructure.stack import STACK_OUTPUTS
from wordpress_stack.settings import Settings, get_settings

logger = logging.getLogger(__name__)

ANY_IPV4 = "0.0.0.0/0"
ANY_IPV6 = "::/0"
SUBNET_TYPE_TAG = "aws-cdk:subnet-type"
PUBLIC_SUBNET_TYPES = {"Public"}
PRIVATE_SUBNET_TYPES = {"Private", "Isolated"}


@dataclass(frozen=True)
class IngressRule:
    """One ingress permission: traffic from ``source`` into ``target``."""
    target: str
    source: str
    from_port: int
    to_port: int
    protocol: str = "tcp"

    def __str__(self):
        ports = str(self.from_port) if self.from_port == self.to_port else f"{self.from_port}-{self.to_port}"
        return f"{self.source} -> {self.target} {self.protocol}/{ports}"


@dataclass(frozen=True)
class Finding:
    check: str
    resource: str
    message: str

    def __str__(self):
        return f"[{self.check}] {self.resource}: {self.message}"


class TemplateValidator:
    """Validate tier relationships in a synthesized CloudFormation template."""

    def __init__(self, template: Dict[str, Any], settings: Optional[Settings] = None):
        self.settings = settings or get_settings()
        self.template = template
        self.resources = template.get("Resources", {})

    def validate(self) -> List[Finding]:
        """Run every check and return the findings (empty when consistent)."""
        findings = []
        findings.extend(self.check_firewall_pairs())
        findings.extend(self.check_subnet_placement())
        findings.extend(self.check_service_network())
        findings.extend(self.check_database_encryption())
        findings.extend(self.check_outputs())

        for finding in findings:
            logger.warning(str(finding))
        if not findings:
            logger.info("Template validation passed")
        return findings

    def raise_for_findings(self) -> None:
        findings = self.validate()
        if findings:
            raise TemplateValidationError(findings)

    # Firewall rules

    def required_ingress(self) -> Set[IngressRule]:
        """The exact set of ingress permissions the three tiers need."""
        return {
            IngressRule(ALB_TIER, ANY_IPV4, HTTP_PORT, HTTP_PORT),
            IngressRule(ALB_TIER, ANY_IPV4, HTTPS_PORT, HTTPS_PORT),
            IngressRule(SERVICE_TIER, ALB_TIER, self.settings.container_port, self.settings.container_port),
            IngressRule(DATABASE_TIER, SERVICE_TIER, self.settings.db_port, self.settings.db_port),
        }

    def security_group_tiers(self) -> Dict[str, Optional[str]]:
        """Map security group logical IDs to their Tier tag (None if untagged)."""
        tiers = {}
        for logical_id, resource in self._resources_of_type("AWS::EC2::SecurityGroup"):
            tiers[logical_id] = self._tag_value(resource, TIER_TAG)
        return tiers

    def ingress_rules(self) -> Set[IngressRule]:
        """Collect inline and standalone ingress rules, resolved to tiers."""
        tiers = self.security_group_tiers()
        rules = set()

        for logical_id, resource in self._resources_of_type("AWS::EC2::SecurityGroup"):
            target = tiers.get(logical_id) or logical_id
            for entry in resource.get("Properties", {}).get("SecurityGroupIngress", []):
                rules.add(self._ingress_rule(target, entry, tiers))

        for logical_id, resource in self._resources_of_type("AWS::EC2::SecurityGroupIngress"):
            properties = resource.get("Properties", {})
            group_id = self._referenced_id(properties.get("GroupId"))
            target = tiers.get(group_id) or group_id or logical_id
            rules.add(self._ingress_rule(target, properties, tiers))

        return rules

    def check_firewall_pairs(self) -> List[Finding]:
        findings = []

        for logical_id, tier in self.security_group_tiers().items():
            if tier is None:
                findings.append(Finding("firewall", logical_id, f"security group has no {TIER_TAG} tag"))

        actual = self.ingress_rules()
        required = self.required_ingress()

        for rule in sorted(required - actual, key=str):
            findings.append(Finding("firewall", rule.target, f"missing ingress {rule}"))
        for rule in sorted(actual - required, key=str):
            findings.append(Finding("firewall", rule.target, f"unexpected ingress {rule}"))

        return findings

    def _ingress_rule(self, target: str, entry: Dict[str, Any], tiers: Dict[str, Optional[str]]) -> IngressRule:
        if "CidrIp" in entry:
            source = entry["CidrIp"]
        elif "CidrIpv6" in entry:
            source = entry["CidrIpv6"]
        elif "SourceSecurityGroupId" in entry:
            group_id = self._referenced_id(entry["SourceSecurityGroupId"])
            source = tiers.get(group_id) or group_id or "unknown"
        elif "SourcePrefixListId" in entry:
            source = f"prefix-list:{entry['SourcePrefixListId']}"
        else:
            source = "unknown"

        protocol = str(entry.get("IpProtocol", "tcp"))
        # Protocol -1 means all traffic
        from_port = int(entry.get("FromPort", 0 if protocol == "-1" else -1))
        to_port = int(entry.get("ToPort", 65535 if protocol == "-1" else -1))
        return IngressRule(target, source, from_port, to_port, protocol)

    # Subnet placement

    def subnet_types(self) -> Dict[str, Optional[str]]:
        return {
            logical_id: self._tag_value(resource, SUBNET_TYPE_TAG)
            for logical_id, resource in self._resources_of_type("AWS::EC2::Subnet")
        }

    def check_subnet_placement(self) -> List[Finding]:
        findings = []
        subnet_types = self.subnet_types()

        for logical_id, resource in self._resources_of_type("AWS::ECS::Service"):
            awsvpc = (resource.get("Properties", {})
                      .get("NetworkConfiguration", {})
                      .get("AwsvpcConfiguration", {}))
            findings.extend(self._check_subnets(
                logical_id, awsvpc.get("Subnets", []), PRIVATE_SUBNET_TYPES, subnet_types
            ))

        for logical_id, resource in self._resources_of_type("AWS::RDS::DBSubnetGroup"):
            findings.extend(self._check_subnets(
                logical_id, resource.get("Properties", {}).get("SubnetIds", []),
                PRIVATE_SUBNET_TYPES, subnet_types
            ))

        for logical_id, resource in self._resources_of_type("AWS::ElasticLoadBalancingV2::LoadBalancer"):
            properties = resource.get("Properties", {})
            allowed = PUBLIC_SUBNET_TYPES if properties.get("Scheme") == "internet-facing" else PRIVATE_SUBNET_TYPES
            findings.extend(self._check_subnets(
                logical_id, properties.get("Subnets", []), allowed, subnet_types
            ))

        return findings

    def _check_subnets(self, logical_id: str, subnets: List[Any], allowed: Set[str],
                       subnet_types: Dict[str, Optional[str]]) -> List[Finding]:
        findings = []
        if not subnets:
            findings.append(Finding("subnets", logical_id, "no subnets declared"))
            return findings

        for subnet in subnets:
            subnet_id = self._referenced_id(subnet)
            subnet_type = subnet_types.get(subnet_id)
            if subnet_type not in allowed:
                findings.append(Finding(
                    "subnets", logical_id,
                    f"placed in {subnet_type or 'unknown'} subnet {subnet_id or subnet}, "
                    f"expected {'/'.join(sorted(allowed))}"
                ))
        return findings

    # Individual resource settings

    def check_service_network(self) -> List[Finding]:
        findings = []
        for logical_id, resource in self._resources_of_type("AWS::ECS::Service"):
            awsvpc = (resource.get("Properties", {})
                      .get("NetworkConfiguration", {})
                      .get("AwsvpcConfiguration", {}))
            if awsvpc.get("AssignPublicIp", "DISABLED") != "DISABLED":
                findings.append(Finding("service", logical_id, "tasks are assigned public IPs"))
        return findings

    def check_database_encryption(self) -> List[Finding]:
        findings = []
        instances = list(self._resources_of_type("AWS::RDS::DBInstance"))
        if not instances:
            findings.append(Finding("database", "template", "no database instance declared"))
        for logical_id, resource in instances:
            if resource.get("Properties", {}).get("StorageEncrypted") is not True:
                findings.append(Finding("database", logical_id, "storage is not encrypted"))
        return findings

    def check_outputs(self) -> List[Finding]:
        outputs = self.template.get("Outputs", {})
        return [
            Finding("outputs", name, "output is not declared")
            for name in STACK_OUTPUTS if name not in outputs
        ]

    # Helpers

    def _resources_of_type(self, resource_type: str):
        for logical_id, resource in self.resources.items():
            if resource.get("Type") == resource_type:
                yield logical_id, resource

    @staticmethod
    def _tag_value(resource: Dict[str, Any], key: str) -> Optional[str]:
        for tag in resource.get("Properties", {}).get("Tags", []):
            if tag.get("Key") == key:
                return tag.get("Value")
        return None

    @staticmethod
    def _referenced_id(value: Any) -> Optional[str]:
        """Logical ID behind a Ref or Fn::GetAtt, None for literals."""
        if isinstance(value, dict):
            if "Ref" in value:
                return value["Ref"]
            if "Fn::GetAtt" in value:
                return value["Fn::GetAtt"][0]
        return None


def synthesize_template(settings: Optional[Settings] = None) -> Dict[str, Any]:
    """Synthesize the app in-process and return the stack template."""
    from wordpress_stack.app import build_app

    settings = settings or get_settings()
    assembly = build_app(settings).synth()
    return assembly.get_stack_by_name(settings.stack_name).template


def validate_stack(settings: Optional[Settings] = None) -> List[Finding]:
    """Synthesize the stack and validate its template."""
    settings = settings or get_settings()
    return TemplateValidator(synthesize_template(settings), settings).validate()
