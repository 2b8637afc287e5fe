"""Errors raised by the deployment tooling."""
from typing import List, Optional


class DeploymentError(Exception):
    """A deployment step failed."""

    def __init__(self, message: str, returncode: Optional[int] = None):
        super().__init__(message)
        self.returncode = returncode


class ToolNotFoundError(DeploymentError):
    """The CDK toolkit could not be located."""


class StackNotFoundError(DeploymentError):
    """The CloudFormation stack does not exist (yet)."""

    def __init__(self, stack_name: str):
        super().__init__(f"Stack {stack_name} does not exist")
        self.stack_name = stack_name


class TemplateValidationError(DeploymentError):
    """The synthesized template violates the declared tier relationships."""

    def __init__(self, findings: List):
        self.findings = list(findings)
        summary = "; ".join(str(finding) for finding in self.findings)
        super().__init__(f"Template validation failed ({len(self.findings)} findings): {summary}")
