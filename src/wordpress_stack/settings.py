# src/wordpress_stack/settings.py
from pathlib import Path
from typing import Optional, Dict
from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


# Memory sizes (MiB) Fargate accepts for each CPU unit value
FARGATE_MEMORY_BY_CPU = {
    256: [512, 1024, 2048],
    512: list(range(1024, 4096 + 1, 1024)),
    1024: list(range(2048, 8192 + 1, 1024)),
    2048: list(range(4096, 16384 + 1, 1024)),
    4096: list(range(8192, 30720 + 1, 1024)),
    8192: list(range(16384, 61440 + 1, 4096)),
    16384: list(range(32768, 122880 + 1, 8192)),
}

CDN_PRICE_CLASSES = ["PriceClass_100", "PriceClass_200", "PriceClass_All"]


class Settings(BaseSettings):
    """
    Single source of truth for the stack configuration.

    Configuration precedence:
    1. Environment variables (highest priority)
    2. .env file (if exists)
    3. Default values in this class (lowest priority)

    Usage:
        from wordpress_stack.settings import get_settings
        settings = get_settings()
        desired = settings.desired_count
    """

    # Application Settings
    app_name: str = Field(
        default="wordpress",
        description="Application name, used for tags and resource prefixes"
    )

    environment: str = Field(
        default="dev",
        description="Target environment: dev or prod"
    )

    stack_name: str = Field(
        default="WordpressThreeTierStack",
        description="CloudFormation stack name"
    )

    # AWS Core Settings
    aws_region: str = Field(
        default="us-east-1",
        alias="AWS_DEFAULT_REGION"
    )

    aws_account_id: Optional[str] = Field(
        default=None,
        alias="CDK_DEFAULT_ACCOUNT",
        description="AWS Account ID (environment-agnostic stack if not provided)"
    )

    aws_endpoint_url: Optional[str] = Field(
        default=None,
        alias="AWS_ENDPOINT_URL"
    )

    # Network Configuration
    max_azs: int = Field(default=2, description="Availability zones spanned by the VPC")
    nat_gateways: int = Field(default=1, description="NAT gateways for private subnet egress")

    # Database Configuration
    db_name: str = Field(default="wordpress")
    db_username: str = Field(default="admin")
    db_port: int = Field(default=3306)
    db_instance_type: str = Field(
        default="t3.small",
        description="RDS instance type without the 'db.' prefix"
    )
    db_secret_name: str = Field(default="wordpress-db-password")
    db_password_length: int = Field(default=16)
    db_backup_retention_days: int = Field(default=7)
    db_deletion_protection: Optional[bool] = Field(
        default=None,
        description="Explicit deletion protection; defaults to on for prod only"
    )

    # Container Configuration
    container_image: str = Field(default="wordpress:latest")
    container_port: int = Field(default=80)
    task_cpu: int = Field(default=1024, description="Fargate CPU units")
    task_memory_mib: int = Field(default=2048, description="Fargate task memory")
    desired_count: int = Field(default=2)
    health_check_grace_seconds: int = Field(default=60)
    health_check_path: str = Field(default="/")
    health_check_interval_seconds: int = Field(default=30)

    # Scaling Configuration
    min_capacity: int = Field(default=2)
    max_capacity: int = Field(default=10)
    cpu_target_percent: int = Field(default=70)
    scale_cooldown_seconds: int = Field(default=60)

    # CDN Configuration
    cdn_price_class: str = Field(default="PriceClass_100")

    # Tooling
    cdk_binary: Optional[str] = Field(
        default=None,
        description="Command used to invoke the CDK toolkit (auto-detected if not set)"
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level"
    )

    @field_validator('environment', mode='before')
    @classmethod
    def normalize_environment(cls, v):
        """Normalize environment names for backwards compatibility."""
        if v:
            env_mapping = {
                "development": "dev",
                "local-dev": "dev",
                "production": "prod",
                "aws-prod": "prod",
            }
            v = str(v).lower()
            return env_mapping.get(v, v)
        return v

    @field_validator('environment')
    @classmethod
    def validate_environment(cls, v):
        valid_environments = ["dev", "prod"]
        if v not in valid_environments:
            raise ValueError(f"Invalid environment: {v}. Must be one of {valid_environments}")
        return v

    @field_validator('container_port', 'db_port')
    @classmethod
    def validate_port(cls, v):
        if not 0 < v < 65536:
            raise ValueError(f"Invalid port: {v}")
        return v

    @field_validator('cpu_target_percent')
    @classmethod
    def validate_cpu_target(cls, v):
        if not 0 < v <= 100:
            raise ValueError(f"cpu_target_percent must be in (0, 100], got {v}")
        return v

    @field_validator('cdn_price_class')
    @classmethod
    def validate_price_class(cls, v):
        if v not in CDN_PRICE_CLASSES:
            raise ValueError(f"Invalid cdn_price_class: {v}. Must be one of {CDN_PRICE_CLASSES}")
        return v

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v):
        return v.upper()

    @model_validator(mode='after')
    def validate_capacity(self):
        """Scaling bounds must contain the initial desired count."""
        if self.min_capacity < 0:
            raise ValueError("min_capacity must not be negative")
        if self.min_capacity > self.max_capacity:
            raise ValueError(
                f"min_capacity ({self.min_capacity}) exceeds max_capacity ({self.max_capacity})"
            )
        if not self.min_capacity <= self.desired_count <= self.max_capacity:
            raise ValueError(
                f"desired_count ({self.desired_count}) must be between "
                f"{self.min_capacity} and {self.max_capacity}"
            )
        return self

    @model_validator(mode='after')
    def validate_fargate_size(self):
        """Reject CPU/memory combinations Fargate does not offer."""
        allowed = FARGATE_MEMORY_BY_CPU.get(self.task_cpu)
        if allowed is None:
            raise ValueError(
                f"Unsupported task_cpu: {self.task_cpu}. "
                f"Must be one of {sorted(FARGATE_MEMORY_BY_CPU)}"
            )
        if self.task_memory_mib not in allowed:
            raise ValueError(
                f"task_memory_mib {self.task_memory_mib} is not valid for task_cpu {self.task_cpu}"
            )
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "prod"

    @property
    def database_deletion_protection(self) -> bool:
        """Deletion protection, on by default for prod."""
        if self.db_deletion_protection is not None:
            return self.db_deletion_protection
        return self.is_production

    @property
    def resource_tags(self) -> Dict[str, str]:
        """Tags applied to every resource in the stack."""
        return {
            "Project": self.app_name,
            "Environment": self.environment,
        }

    def get_environment_dict(self) -> Dict[str, str]:
        """Get configuration as environment variables for a subprocess.

        The CDK toolkit re-imports the app in a child process; passing the
        resolved settings through the environment keeps both sides in sync.

        Returns:
            Dictionary of environment variables
        """
        env_dict = {}
        for name, field in type(self).model_fields.items():
            value = getattr(self, name)
            if value is None:
                continue
            key = (field.alias or name).upper()
            if isinstance(value, bool):
                value = str(value).lower()
            env_dict[key] = str(value)

        env_dict['CDK_DEFAULT_REGION'] = self.aws_region
        return env_dict

    model_config = SettingsConfigDict(
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached settings instance.
    This ensures we only create one Settings instance per process.
    """
    return Settings()


def get_settings_with_env_file(env_file: str = None) -> Settings:
    """
    Reload settings, optionally from a specific .env file.

    Args:
        env_file: Path to .env file (e.g., '.env.prod')

    Returns:
        Settings instance with loaded environment
    """
    if env_file:
        env_path = Path(env_file)
        if not env_path.exists():
            raise FileNotFoundError(f"Environment file not found: {env_path}")
        load_dotenv(env_path, override=True)

    # Clear the settings cache and return fresh instance
    get_settings.cache_clear()
    return get_settings()
