"""
CDK constructs for the three-tier WordPress deployment.

- network: VPC and per-tier security groups
- database: RDS MySQL instance and credential secret
- service: ECS Fargate service, load balancer and autoscaling
- cdn: CloudFront distribution
- stack: the stack wiring the tiers together
"""

from .stack import WordpressThreeTierStack

__all__ = ["WordpressThreeTierStack"]
