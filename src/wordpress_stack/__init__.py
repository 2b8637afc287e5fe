"""
Three-tier WordPress deployment on AWS.

- infrastructure: CDK constructs for network, database, service and CDN
- monitoring: template validation and post-deployment health checks
- orchestration: CDK toolkit wrapper
- utils: AWS client management
"""
