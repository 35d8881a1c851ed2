from platform_infra.resources.docker_lambda import DockerLambda, WorkloadImage
from platform_infra.resources.monitoring import ResourceMonitoring
from platform_infra.resources.network import NetworkTopology
from platform_infra.resources.postgres_db import DatabaseOverrides, PostgresDb

__all__ = [
    "DatabaseOverrides",
    "DockerLambda",
    "NetworkTopology",
    "PostgresDb",
    "ResourceMonitoring",
    "WorkloadImage",
]
