"""
Containerized compute endpoint construct
Container-image Lambda behind a live alias, fronted by API Gateway
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from aws_cdk import (
    Duration,
    aws_apigateway as apigateway,
    aws_codedeploy as codedeploy,
    aws_ec2 as ec2,
    aws_ecr as ecr,
    aws_lambda as _lambda,
)
from constructs import Construct

from platform_infra.config import EnvironmentConfig
from platform_infra.errors import MissingWorkloadImageError
from platform_infra.resources.monitoring import ResourceMonitoring
from platform_infra.resources.network import NetworkTopology
from platform_infra.resources.postgres_db import PostgresDb

logger = logging.getLogger(__name__)

LIVE_ALIAS = "live"
INSIGHTS_VERSION = _lambda.LambdaInsightsVersion.VERSION_1_0_404_0
DEFAULT_CORS_HEADERS = ["Content-Type", "Authorization"]


@dataclass(frozen=True)
class WorkloadImage:
    """Registry reference for the compute workload: a tag or a sha256 digest"""

    tag_or_digest: str
    repository_name: Optional[str] = None

    def __post_init__(self):
        if not self.tag_or_digest or not self.tag_or_digest.strip():
            raise MissingWorkloadImageError(
                "A container image tag or digest is required for the compute workload"
            )

    @property
    def is_digest(self) -> bool:
        return self.tag_or_digest.startswith("sha256:")


class DockerLambda(Construct):
    """
    Container-image function exposed through a REST API.

    The API integrates with the ``live`` alias rather than the function, so
    shifting traffic means repointing the alias, not redeploying the API.
    With a database attached, the function may read that database's secret
    and reach that database's port; nothing broader is granted.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        config: EnvironmentConfig,
        network: NetworkTopology,
        repository: ecr.IRepository,
        image: WorkloadImage,
        fn_name: str,
        database: Optional[PostgresDb] = None,
        canary_deploy: Optional[bool] = None,
        alert_email: Optional[str] = None,
        cors_allow_origins: Optional[List[str]] = None,
        cors_allow_headers: Optional[List[str]] = None,
    ) -> None:
        super().__init__(scope, construct_id)

        if image is None:
            raise MissingWorkloadImageError(
                "A container image tag or digest is required for the compute workload"
            )

        self.function_name = f"{config.stage}-{fn_name}"
        tracing = config.compute.tracing

        self.fn = _lambda.DockerImageFunction(
            self,
            "Fn",
            function_name=self.function_name,
            code=_lambda.DockerImageCode.from_ecr(
                repository,
                tag_or_digest=image.tag_or_digest
            ),
            architecture=_lambda.Architecture.X86_64,
            timeout=Duration.seconds(config.compute.timeout),
            memory_size=config.compute.memory_size,
            vpc=network.vpc,
            vpc_subnets=ec2.SubnetSelection(subnets=network.compute_subnets.subnets),
            security_groups=[network.compute_security_group],
            tracing=_lambda.Tracing.ACTIVE if tracing else _lambda.Tracing.DISABLED,
            # Image functions take no layers: the Insights agent ships in the image
            insights_version=INSIGHTS_VERSION if config.compute.insights else None,
            description=f"{fn_name} ({config.stage})"
        )

        if database is not None:
            self.fn.add_environment("DB_SECRET_NAME", database.secret.secret_name)
            self.fn.add_environment("DB_HOST", database.endpoint_address)
            self.fn.add_environment("DB_PORT", str(database.port))
            self.fn.add_environment("DB_NAME", database.db_name)

            database.secret.grant_read(self.fn)
            database.allow_connections_from(self.fn)

        self.alias = _lambda.Alias(
            self,
            "Alias",
            alias_name=LIVE_ALIAS,
            version=self.fn.current_version
        )

        self.api = apigateway.LambdaRestApi(
            self,
            "Api",
            handler=self.alias,
            rest_api_name=f"{self.function_name}-api",
            cloud_watch_role=True,
            deploy_options=apigateway.StageOptions(
                stage_name=config.stage,
                logging_level=(
                    apigateway.MethodLoggingLevel.ERROR if config.is_protected
                    else apigateway.MethodLoggingLevel.INFO
                ),
                metrics_enabled=True,
                tracing_enabled=tracing
            ),
            default_cors_preflight_options=apigateway.CorsOptions(
                allow_origins=cors_allow_origins or apigateway.Cors.ALL_ORIGINS,
                allow_methods=apigateway.Cors.ALL_METHODS,
                allow_headers=cors_allow_headers or DEFAULT_CORS_HEADERS
            )
        )

        self.monitoring = ResourceMonitoring(
            self,
            "Monitoring",
            config=config,
            alert_email=alert_email,
        )
        self.monitoring.add_lambda_monitoring(self.fn)
        self.monitoring.add_api_gateway_monitoring(self.api)

        if canary_deploy is None:
            canary_deploy = config.compute.canary_deploy

        self.deployment_group = None
        if canary_deploy:
            # Any alarm firing during the bake window rolls the alias back
            self.deployment_group = codedeploy.LambdaDeploymentGroup(
                self,
                "DeploymentGroup",
                alias=self.alias,
                deployment_config=codedeploy.LambdaDeploymentConfig.CANARY_10_PERCENT_5_MINUTES,
                alarms=list(self.monitoring.alarms)
            )

        logger.debug(
            f"Compute endpoint {self.function_name}: image {image.tag_or_digest}, "
            f"database={'yes' if database is not None else 'no'}, canary={canary_deploy}"
        )

    @property
    def api_url(self) -> str:
        return self.api.url
