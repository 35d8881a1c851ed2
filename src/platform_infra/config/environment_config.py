"""
Environment configuration for platform infrastructure
Maps a stage name to a complete, immutable configuration record
"""
import ipaddress
import logging
import os
import re
from dataclasses import dataclass, replace
from typing import Dict, Optional

import aws_cdk as cdk

from platform_infra.errors import ConfigurationError, InstanceClassFormatError

logger = logging.getLogger(__name__)

DEFAULT_STAGE = "dev"

# Stacks without a concrete account cannot look up zones and get two
ENV_AGNOSTIC_AZS = 2

_INSTANCE_CLASS_PART = re.compile(r"^[a-z0-9-]+$")


@dataclass(frozen=True)
class VpcConfig:
    cidr: str
    max_azs: int
    nat_gateways: int


@dataclass(frozen=True)
class DatabaseConfig:
    port: int
    instance_class: str
    allocated_storage: int  # GiB
    multi_az: bool
    deletion_protection: bool
    removal_policy: cdk.RemovalPolicy
    backup_retention_days: int
    preferred_backup_window: str
    performance_insights: bool


@dataclass(frozen=True)
class ComputeConfig:
    timeout: int  # seconds
    memory_size: int
    canary_deploy: bool
    tracing: bool
    insights: bool


@dataclass(frozen=True)
class MonitoringConfig:
    alert_email: str
    period_minutes: int
    evaluation_periods: int
    lambda_error_threshold: int
    api_5xx_threshold: int
    api_4xx_threshold: int
    api_latency_threshold_ms: int
    rds_cpu_threshold_percent: int


@dataclass(frozen=True)
class EnvironmentConfig:
    """Immutable configuration for one deployment environment"""

    stage: str
    region: str
    vpc: VpcConfig
    database: DatabaseConfig
    compute: ComputeConfig
    monitoring: MonitoringConfig
    account: Optional[str] = None

    @property
    def is_protected(self) -> bool:
        """True for tiers whose stateful resources must survive teardown"""
        return self.database.deletion_protection

    @property
    def cdk_environment(self) -> cdk.Environment:
        return cdk.Environment(account=self.account, region=self.region)


@dataclass(frozen=True)
class InstanceClassSpec:
    family: str
    size: str

    def __str__(self) -> str:
        return f"{self.family}.{self.size}"


def parse_instance_class(value: str) -> InstanceClassSpec:
    """
    Split a '<family>.<size>' instance class string

    Raises:
        InstanceClassFormatError: if the string has no single separator
            or either part is empty
    """
    parts = value.split(".") if isinstance(value, str) else []
    if len(parts) != 2 or not all(_INSTANCE_CLASS_PART.match(part) for part in parts):
        raise InstanceClassFormatError(str(value))
    return InstanceClassSpec(family=parts[0], size=parts[1])


def storage_ceiling(allocated_storage: int) -> int:
    """Storage autoscaling ceiling: exactly double the allocated storage"""
    return allocated_storage * 2


ENVIRONMENTS: Dict[str, EnvironmentConfig] = {
    "dev": EnvironmentConfig(
        stage="dev",
        region="eu-central-1",
        vpc=VpcConfig(
            cidr="10.0.0.0/16",
            max_azs=2,
            nat_gateways=1,
        ),
        database=DatabaseConfig(
            port=5432,
            instance_class="t4g.micro",
            allocated_storage=20,
            multi_az=False,
            deletion_protection=False,
            removal_policy=cdk.RemovalPolicy.DESTROY,
            backup_retention_days=1,
            preferred_backup_window="03:00-04:00",
            performance_insights=False,
        ),
        compute=ComputeConfig(
            timeout=30,
            memory_size=512,
            canary_deploy=False,
            tracing=False,
            insights=False,
        ),
        monitoring=MonitoringConfig(
            alert_email="platform-alerts@example.com",
            period_minutes=5,
            evaluation_periods=3,
            lambda_error_threshold=10,
            api_5xx_threshold=10,
            api_4xx_threshold=25,
            api_latency_threshold_ms=25000,
            rds_cpu_threshold_percent=90,
        ),
    ),
    "prod": EnvironmentConfig(
        stage="prod",
        region="eu-central-1",
        vpc=VpcConfig(
            cidr="10.1.0.0/16",
            max_azs=3,
            nat_gateways=2,
        ),
        database=DatabaseConfig(
            port=5445,
            instance_class="t4g.small",
            allocated_storage=100,
            multi_az=True,
            deletion_protection=True,
            removal_policy=cdk.RemovalPolicy.SNAPSHOT,
            backup_retention_days=14,
            preferred_backup_window="02:00-03:00",
            performance_insights=True,
        ),
        compute=ComputeConfig(
            timeout=60,
            memory_size=1024,
            canary_deploy=True,
            tracing=True,
            insights=True,
        ),
        monitoring=MonitoringConfig(
            alert_email="platform-oncall@example.com",
            period_minutes=1,
            evaluation_periods=3,
            lambda_error_threshold=5,
            api_5xx_threshold=5,
            api_4xx_threshold=10,
            api_latency_threshold_ms=25000,
            rds_cpu_threshold_percent=80,
        ),
    ),
}


def validate_environment(config: EnvironmentConfig) -> None:
    """
    Check one table entry for internal consistency

    Raises:
        ConfigurationError: on the first inconsistency found
    """
    name = config.stage
    try:
        ipaddress.ip_network(config.vpc.cidr)
    except ValueError as e:
        raise ConfigurationError(f"[{name}] invalid VPC CIDR '{config.vpc.cidr}': {e}") from e

    parse_instance_class(config.database.instance_class)

    if config.database.allocated_storage <= 0:
        raise ConfigurationError(f"[{name}] allocated storage must be positive")
    if not 0 < config.database.port < 65536:
        raise ConfigurationError(f"[{name}] database port {config.database.port} out of range")
    if config.database.deletion_protection and config.database.removal_policy == cdk.RemovalPolicy.DESTROY:
        raise ConfigurationError(
            f"[{name}] deletion protection requires a RETAIN or SNAPSHOT removal policy"
        )
    if config.compute.timeout <= 0:
        raise ConfigurationError(f"[{name}] compute timeout must be positive")
    if config.monitoring.api_4xx_threshold <= config.monitoring.api_5xx_threshold:
        raise ConfigurationError(f"[{name}] 4XX alarm threshold must exceed the 5XX threshold")
    if not config.monitoring.alert_email:
        raise ConfigurationError(f"[{name}] an alert email address is required")


def validate_environment_table(table: Dict[str, EnvironmentConfig]) -> None:
    """Validate every entry of a stage table, including the default entry"""
    if DEFAULT_STAGE not in table:
        raise ConfigurationError(f"Default stage '{DEFAULT_STAGE}' missing from environment table")
    for stage, config in table.items():
        if stage != config.stage:
            raise ConfigurationError(f"Table key '{stage}' does not match record stage '{config.stage}'")
        validate_environment(config)


validate_environment_table(ENVIRONMENTS)


def resolve_environment_config(
    stage_name: str,
    account: Optional[str] = None,
    region: Optional[str] = None,
) -> EnvironmentConfig:
    """
    Resolve the configuration record for a stage

    Lookup is exact and case-sensitive. Unknown stage names fall back to the
    default stage's record instead of failing.

    Args:
        stage_name: Stage identifier, e.g. 'dev' or 'prod'
        account: AWS account id (defaults to CDK_DEFAULT_ACCOUNT)
        region: AWS region (defaults to the stage's configured region)
    """
    config = ENVIRONMENTS.get(stage_name)
    if config is None:
        logger.warning(f"Unknown stage '{stage_name}', falling back to '{DEFAULT_STAGE}'")
        config = ENVIRONMENTS[DEFAULT_STAGE]

    if account is None:
        account = os.environ.get("CDK_DEFAULT_ACCOUNT")
    if account is None and config.vpc.max_azs > ENV_AGNOSTIC_AZS:
        logger.warning(
            f"No account set for stage '{config.stage}': environment-agnostic stacks span "
            f"{ENV_AGNOSTIC_AZS} availability zones, not the configured {config.vpc.max_azs}"
        )

    return replace(config, account=account, region=region or config.region)
