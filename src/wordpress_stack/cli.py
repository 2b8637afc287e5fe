# cli.py
import json
import logging
import sys
from dataclasses import asdict

import click

from wordpress_stack.exceptions import DeploymentError
from wordpress_stack.settings import get_settings, get_settings_with_env_file

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool) -> None:
    settings = get_settings()
    level = logging.DEBUG if verbose else settings.log_level
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


@click.group()
@click.option("--env-file", default=None, help="Load settings from this .env file")
@click.option("--verbose", is_flag=True, help="Verbose logging")
@click.option("--project-dir", default=None, type=click.Path(file_okay=False),
              help="Directory containing cdk.json (default: current directory)")
@click.pass_context
def cli(ctx, env_file, verbose, project_dir):
    """Deploy and inspect the three-tier WordPress stack"""
    ctx.ensure_object(dict)
    ctx.obj["project_dir"] = project_dir
    if env_file:
        get_settings_with_env_file(env_file)
    _configure_logging(verbose)


@cli.command()
def show_config():
    """Show current configuration"""
    settings = get_settings()

    print("Current Configuration:")
    print(f"  Stack: {settings.stack_name} ({settings.environment})")
    print(f"  AWS Region: {settings.aws_region}")
    print(f"  AWS Account: {settings.aws_account_id or 'environment-agnostic'}")
    print(f"  VPC: {settings.max_azs} AZs, {settings.nat_gateways} NAT gateway(s)")
    print(f"  Database: MySQL 8.0 db.{settings.db_instance_type}, "
          f"backups {settings.db_backup_retention_days} days, "
          f"deletion protection {'on' if settings.database_deletion_protection else 'off'}")
    print(f"  Container: {settings.container_image} on port {settings.container_port} "
          f"({settings.task_cpu} CPU / {settings.task_memory_mib} MiB)")
    print(f"  Scaling: {settings.min_capacity}-{settings.max_capacity} tasks "
          f"(desired {settings.desired_count}) at {settings.cpu_target_percent}% CPU")
    print(f"  CDN Price Class: {settings.cdn_price_class}")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output findings as JSON")
def validate(as_json):
    """Synthesize in-process and check tier relationships"""
    from wordpress_stack.monitoring.template_validator import validate_stack

    findings = validate_stack(get_settings())

    if as_json:
        print(json.dumps([asdict(finding) for finding in findings], indent=2))
    elif findings:
        print(f"❌ {len(findings)} finding(s):")
        for finding in findings:
            print(f"  {finding}")
    else:
        print("✅ Template is consistent")

    if findings:
        sys.exit(1)


def _deployer():
    from wordpress_stack.orchestration.deploy_stack import CdkDeployer
    project_dir = click.get_current_context().obj.get("project_dir")
    return CdkDeployer(get_settings(), project_dir=project_dir)


@cli.command()
def synth():
    """Synthesize the CloudFormation template with the CDK toolkit"""
    try:
        _deployer().synth()
    except DeploymentError as e:
        print(f"❌ Synth failed: {e}")
        sys.exit(e.returncode or 1)


@cli.command()
def diff():
    """Show changes against the deployed stack"""
    try:
        _deployer().diff()
    except DeploymentError as e:
        print(f"❌ Diff failed: {e}")
        sys.exit(e.returncode or 1)


@cli.command()
@click.option("--skip-validation", is_flag=True, help="Deploy without checking the template first")
@click.option("--export-config", default=None, help="Write stack outputs to this env file")
def deploy(skip_validation, export_config):
    """Validate, then deploy the stack"""
    from wordpress_stack.monitoring.template_validator import validate_stack
    from wordpress_stack.orchestration.deploy_stack import export_stack_outputs

    settings = get_settings()

    if not skip_validation:
        findings = validate_stack(settings)
        if findings:
            print(f"❌ Template validation failed with {len(findings)} finding(s):")
            for finding in findings:
                print(f"  {finding}")
            sys.exit(1)

    try:
        outputs = _deployer().deploy()
    except DeploymentError as e:
        print(f"❌ Deployment failed: {e}")
        sys.exit(e.returncode or 1)

    print("✅ Deployment completed")
    for key, value in outputs.items():
        print(f"  {key}: {value}")

    if export_config:
        export_stack_outputs(outputs, export_config, settings)
        print(f"Outputs exported to: {export_config}")


@cli.command()
@click.confirmation_option(prompt="Destroy the stack and all its resources?")
def destroy():
    """Delete the stack"""
    try:
        _deployer().destroy()
    except DeploymentError as e:
        print(f"❌ Destroy failed: {e}")
        sys.exit(e.returncode or 1)
    print("✅ Stack destroyed")


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option("--export-config", default=None, help="Write outputs to this env file")
def outputs(as_json, export_config):
    """Show the deployed stack's endpoint outputs"""
    from wordpress_stack.monitoring.status_monitor import StatusMonitor
    from wordpress_stack.orchestration.deploy_stack import export_stack_outputs

    try:
        stack_outputs = StatusMonitor(get_settings()).get_stack_outputs()
    except DeploymentError as e:
        print(f"❌ {e}")
        sys.exit(1)

    if as_json:
        print(json.dumps(stack_outputs, indent=2))
    else:
        for key, value in stack_outputs.items():
            print(f"{key}: {value}")

    if export_config:
        export_stack_outputs(stack_outputs, export_config)


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def status(as_json):
    """Check health of the deployed resources"""
    from wordpress_stack.monitoring.status_monitor import StatusMonitor, HEALTHY

    try:
        report = StatusMonitor(get_settings()).check_deployment_health()
    except DeploymentError as e:
        print(f"❌ Status check failed: {e}")
        sys.exit(1)

    if as_json:
        print(json.dumps(report, indent=2, default=str))
    else:
        print(f"Stack {report['stack_name']}: {report['overall_status']}")
        for name, component in report['components'].items():
            print(f"  {name}: {component.get('status')}")
        for warning in report['warnings']:
            print(f"  ⚠️  {warning}")
        for error in report['errors']:
            print(f"  ❌ {error}")

    if report['overall_status'] != HEALTHY:
        sys.exit(1)


if __name__ == "__main__":
    cli()
