from platform_infra.config.environment_config import (
    DEFAULT_STAGE,
    ENVIRONMENTS,
    ComputeConfig,
    DatabaseConfig,
    EnvironmentConfig,
    InstanceClassSpec,
    MonitoringConfig,
    VpcConfig,
    parse_instance_class,
    resolve_environment_config,
    storage_ceiling,
)

__all__ = [
    "DEFAULT_STAGE",
    "ENVIRONMENTS",
    "ComputeConfig",
    "DatabaseConfig",
    "EnvironmentConfig",
    "InstanceClassSpec",
    "MonitoringConfig",
    "VpcConfig",
    "parse_instance_class",
    "resolve_environment_config",
    "storage_ceiling",
]
