"""Drive the CDK toolkit to synthesize, diff, deploy and destroy the stack."""
import json
import logging
import os
import shlex
import shutil
import subprocess
import time
from functools import wraps
from pathlib import Path
from typing import Dict, List, Optional

from wordpress_stack.exceptions import DeploymentError, ToolNotFoundError
from wordpress_stack.settings import Settings, get_settings

logger = logging.getLogger(__name__)

DEFAULT_OUTPUTS_FILE = "cdk-outputs.json"


def log_operation(description: str):
    """Decorator for timing and logging deployment operations."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            logger.info(f"Starting: {description}")
            start_time = time.time()
            try:
                result = func(*args, **kwargs)
                duration = time.time() - start_time
                logger.info(f"Completed: {description} in {duration:.2f}s")
                return result
            except Exception as e:
                duration = time.time() - start_time
                logger.error(f"Failed: {description} after {duration:.2f}s - {str(e)}")
                raise
        return wrapper
    return decorator


class CdkDeployer:
    """Thin wrapper around the ``cdk`` command line toolkit."""

    def __init__(self, settings: Optional[Settings] = None, project_dir: Optional[Path] = None):
        self.settings = settings or get_settings()
        # directory holding cdk.json
        self.project_dir = Path(project_dir) if project_dir else Path.cwd()
        self._command = None

    @property
    def command(self) -> List[str]:
        if self._command is None:
            self._command = self._find_cdk_command()
        return self._command

    def _find_cdk_command(self) -> List[str]:
        """Locate the CDK toolkit: configured binary, then PATH, then npx."""
        if self.settings.cdk_binary:
            return shlex.split(self.settings.cdk_binary)

        cdk_path = shutil.which("cdk")
        if cdk_path:
            return [cdk_path]

        npx_path = shutil.which("npx")
        if npx_path:
            logger.debug("cdk not on PATH, falling back to npx")
            return [npx_path, "--yes", "aws-cdk"]

        raise ToolNotFoundError(
            "Could not find the AWS CDK toolkit. Install it with 'npm install -g aws-cdk' "
            "or set CDK_BINARY"
        )

    def _run(self, args: List[str]) -> subprocess.CompletedProcess:
        cmd = self.command + args
        env = os.environ.copy()
        env.update(self.settings.get_environment_dict())

        logger.debug(f"Running: {' '.join(cmd)}")
        result = subprocess.run(cmd, cwd=self.project_dir, env=env, check=False)
        if result.returncode != 0:
            raise DeploymentError(
                f"'{' '.join(['cdk'] + args)}' exited with status {result.returncode}",
                returncode=result.returncode
            )
        return result

    @log_operation("CDK synth")
    def synth(self) -> None:
        self._run(["synth", self.settings.stack_name, "--quiet"])

    @log_operation("CDK diff")
    def diff(self) -> None:
        self._run(["diff", self.settings.stack_name])

    @log_operation("CDK deploy")
    def deploy(self, outputs_file: str = DEFAULT_OUTPUTS_FILE) -> Dict[str, str]:
        """Deploy without an approval prompt and return the stack outputs."""
        outputs_path = self.project_dir / outputs_file
        self._run([
            "deploy", self.settings.stack_name,
            "--require-approval", "never",
            "--outputs-file", str(outputs_path),
        ])
        return self.read_outputs_file(outputs_path)

    @log_operation("CDK destroy")
    def destroy(self) -> None:
        self._run(["destroy", self.settings.stack_name, "--force"])

    def read_outputs_file(self, outputs_path: Path) -> Dict[str, str]:
        """Outputs of this stack from a ``--outputs-file`` document."""
        if not outputs_path.exists():
            logger.warning(f"Outputs file not found: {outputs_path}")
            return {}
        with open(outputs_path, 'r') as f:
            all_outputs = json.load(f)
        return all_outputs.get(self.settings.stack_name, {})


def export_stack_outputs(outputs: Dict[str, str], export_file: str,
                         settings: Optional[Settings] = None) -> None:
    """Export stack outputs as KEY=value lines for shell or docker-compose use."""
    settings = settings or get_settings()

    config_lines = [
        f"# {settings.stack_name} outputs",
        f"# Region: {settings.aws_region}, environment: {settings.environment}",
        "",
    ]
    for key in sorted(outputs):
        config_lines.append(f"{_env_key(key)}={outputs[key]}")

    with open(export_file, 'w') as f:
        f.write('\n'.join(config_lines) + '\n')

    logger.info(f"Stack outputs exported to: {export_file}")


def _env_key(output_key: str) -> str:
    """LoadBalancerDNS -> LOAD_BALANCER_DNS."""
    chars = []
    for i, char in enumerate(output_key):
        if char.isupper() and i > 0:
            prev = output_key[i - 1]
            following = output_key[i + 1] if i + 1 < len(output_key) else ''
            if prev.islower() or (prev.isupper() and following.islower()):
                chars.append('_')
        chars.append(char.upper())
    return ''.join(chars)
