"""Shared fixtures: isolated settings, cached CDK template, mocked AWS."""
import copy

import pytest
from moto import mock_aws

from tests.consts import TEST_REGION, TEST_STACK_NAME
from tests.helpers import synth_template
from wordpress_stack.settings import Settings, get_settings
from wordpress_stack.utils.aws_clients import AWSClientManager

SETTINGS_ENV_VARS = [
    (field.alias or name).upper() for name, field in Settings.model_fields.items()
] + ["AWS_PROFILE", "CDK_DEFAULT_REGION"]


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for var in SETTINGS_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    get_settings.cache_clear()
    AWSClientManager.reset()
    yield
    get_settings.cache_clear()
    AWSClientManager.reset()


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("STACK_NAME", TEST_STACK_NAME)
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)
    get_settings.cache_clear()
    return get_settings()


@pytest.fixture(scope="session")
def default_template():
    """Template of the stack with default settings (synthesized once)."""
    return synth_template()


@pytest.fixture
def template_json(default_template):
    return copy.deepcopy(default_template.to_json())


@pytest.fixture
def aws_credentials(monkeypatch):
    """Mocked AWS credentials for moto."""
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_SECURITY_TOKEN", "testing")
    monkeypatch.setenv("AWS_SESSION_TOKEN", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", TEST_REGION)


@pytest.fixture
def mocked_aws(aws_credentials):
    with mock_aws():
        AWSClientManager.reset()
        yield
