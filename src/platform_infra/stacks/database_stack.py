"""
Database Stack
PostgreSQL instance and its generated credentials
"""
from dataclasses import dataclass
from typing import Optional

from aws_cdk import Stack
from constructs import Construct

from platform_infra.config import EnvironmentConfig
from platform_infra.orchestration import output_registry as outputs
from platform_infra.orchestration.output_registry import OutputRegistry
from platform_infra.resources.postgres_db import DatabaseOverrides, PostgresDb
from platform_infra.stacks.network_stack import NetworkOutputs


@dataclass(frozen=True)
class DatabaseOutputs:
    database: PostgresDb

    @property
    def endpoint_address(self) -> str:
        return self.database.endpoint_address

    @property
    def secret_arn(self) -> str:
        return self.database.secret.secret_arn


class DatabaseStack(Stack):
    """
    Stateful stack. Removal policy and deletion protection follow the tier,
    so production data outlives a stack teardown.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: EnvironmentConfig,
        registry: OutputRegistry,
        network: NetworkOutputs,
        overrides: Optional[DatabaseOverrides] = None,
        alert_email: Optional[str] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        database = PostgresDb(
            self,
            "Primary",
            config=config,
            network=network.topology,
            overrides=overrides,
            alert_email=alert_email,
        )
        self.outputs = DatabaseOutputs(database=database)

        registry.export(
            self, construct_id, outputs.DATABASE_ENDPOINT,
            database.endpoint_address,
            "PostgreSQL endpoint address"
        )
        registry.export(
            self, construct_id, outputs.DATABASE_SECRET_ARN,
            database.secret.secret_arn,
            "ARN of the database credentials secret"
        )
