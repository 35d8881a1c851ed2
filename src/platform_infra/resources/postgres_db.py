"""
Managed PostgreSQL construct
RDS instance with a generated credential secret and its own monitoring
"""
from dataclasses import dataclass
from typing import Optional

from aws_cdk import (
    Duration,
    aws_ec2 as ec2,
    aws_rds as rds,
    aws_secretsmanager as secretsmanager,
)
from constructs import Construct

from platform_infra.config import EnvironmentConfig, parse_instance_class, storage_ceiling
from platform_infra.errors import ProtectionDowngradeError
from platform_infra.resources.monitoring import ResourceMonitoring
from platform_infra.resources.network import NetworkTopology

POSTGRES_VERSION = rds.PostgresEngineVersion.VER_15


@dataclass(frozen=True)
class DatabaseOverrides:
    """
    Per-database adjustments to the tier defaults.

    Overrides can only narrow: storage may shrink but not grow past the
    tier, multi-AZ may be switched on but never off. Deletion protection,
    removal policy and port always come from the tier.
    """

    db_name: Optional[str] = None
    db_user: Optional[str] = None
    allocated_storage: Optional[int] = None
    instance_class: Optional[str] = None
    multi_az: Optional[bool] = None

    def validate(self, config: EnvironmentConfig) -> None:
        tier = config.database
        if self.allocated_storage is not None:
            if self.allocated_storage <= 0:
                raise ProtectionDowngradeError("Allocated storage override must be positive")
            if self.allocated_storage > tier.allocated_storage:
                raise ProtectionDowngradeError(
                    f"Allocated storage override {self.allocated_storage} GiB exceeds "
                    f"the {config.stage} tier's {tier.allocated_storage} GiB"
                )
        if self.multi_az is False and tier.multi_az:
            raise ProtectionDowngradeError(
                f"Multi-AZ cannot be disabled on the {config.stage} tier"
            )
        if self.instance_class is not None:
            parse_instance_class(self.instance_class)


class PostgresDb(Construct):
    """PostgreSQL instance in the isolated database subnets"""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: EnvironmentConfig,
        network: NetworkTopology,
        overrides: Optional[DatabaseOverrides] = None,
        alert_email: Optional[str] = None,
    ) -> None:
        super().__init__(scope, construct_id)

        overrides = overrides or DatabaseOverrides()
        overrides.validate(config)
        tier = config.database

        self.port = tier.port
        self.allocated_storage = overrides.allocated_storage or tier.allocated_storage
        self.max_allocated_storage = storage_ceiling(self.allocated_storage)
        self.instance_class = parse_instance_class(overrides.instance_class or tier.instance_class)
        self.multi_az = tier.multi_az or bool(overrides.multi_az)
        self.db_name = overrides.db_name or "platform"
        self.security_group = network.database_security_group

        # rds.force_ssl defaults to 1 from Postgres 15; clients here connect without TLS
        self.parameter_group = rds.ParameterGroup(
            self,
            "Parameters",
            engine=rds.DatabaseInstanceEngine.postgres(version=POSTGRES_VERSION),
            parameters={
                "rds.force_ssl": "0",
            }
        )

        self.database = rds.DatabaseInstance(
            self,
            "Database",
            engine=rds.DatabaseInstanceEngine.postgres(version=POSTGRES_VERSION),
            instance_type=ec2.InstanceType(str(self.instance_class)),
            vpc=network.vpc,
            vpc_subnets=ec2.SubnetSelection(subnets=network.database_subnets.subnets),
            security_groups=[self.security_group],
            parameter_group=self.parameter_group,
            credentials=rds.Credentials.from_generated_secret(overrides.db_user or "platform"),
            database_name=self.db_name,
            port=self.port,
            multi_az=self.multi_az,
            allocated_storage=self.allocated_storage,
            max_allocated_storage=self.max_allocated_storage,
            storage_encrypted=True,
            backup_retention=Duration.days(tier.backup_retention_days),
            preferred_backup_window=tier.preferred_backup_window,
            deletion_protection=tier.deletion_protection,
            removal_policy=tier.removal_policy,
            enable_performance_insights=tier.performance_insights,
            cloudwatch_logs_exports=["postgresql"],
            publicly_accessible=False,
        )

        self.secret: secretsmanager.ISecret = self.database.secret

        self.monitoring = ResourceMonitoring(
            self,
            "Monitoring",
            config=config,
            alert_email=alert_email,
        )
        self.monitoring.add_rds_monitoring(self.database, self.allocated_storage)

    @property
    def endpoint_address(self) -> str:
        return self.database.db_instance_endpoint_address

    def allow_connections_from(self, peer: ec2.IConnectable) -> None:
        """Open this database's port, and only that port, to a peer"""
        self.database.connections.allow_from(
            peer,
            ec2.Port.tcp(self.port),
            "Compute access to PostgreSQL"
        )
