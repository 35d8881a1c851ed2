"""
Compute Stack
Container-image Lambda and its REST API
"""
from dataclasses import dataclass
from typing import Optional

from aws_cdk import Stack, aws_ecr as ecr
from constructs import Construct

from platform_infra.config import EnvironmentConfig
from platform_infra.errors import ConfigurationError
from platform_infra.orchestration import output_registry as outputs
from platform_infra.orchestration.output_registry import OutputRegistry
from platform_infra.resources.docker_lambda import DockerLambda, WorkloadImage
from platform_infra.stacks.database_stack import DatabaseOutputs
from platform_infra.stacks.image_repo_stack import ImageRepoOutputs
from platform_infra.stacks.network_stack import NetworkOutputs

FUNCTION_NAME = "platform-api"


@dataclass(frozen=True)
class ComputeOutputs:
    endpoint: DockerLambda

    @property
    def api_url(self) -> str:
        return self.endpoint.api_url

    @property
    def function_name(self) -> str:
        return self.endpoint.fn.function_name


class ComputeStack(Stack):
    """
    Changes on every release. The image comes either from an external
    repository named in the workload reference or from the stage's own
    image repository stack.
    """

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: EnvironmentConfig,
        registry: OutputRegistry,
        network: NetworkOutputs,
        image: WorkloadImage,
        database: Optional[DatabaseOutputs] = None,
        image_repo: Optional[ImageRepoOutputs] = None,
        alert_email: Optional[str] = None,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        if image.repository_name:
            repository_name = image.repository_name
        elif image_repo is not None:
            repository_name = image_repo.repository_name
        else:
            raise ConfigurationError(
                "No image repository: pass a repository name or an image repository stack"
            )
        repository = ecr.Repository.from_repository_name(self, "Repository", repository_name)

        endpoint = DockerLambda(
            self,
            "Service",
            config=config,
            network=network.topology,
            repository=repository,
            image=image,
            fn_name=FUNCTION_NAME,
            database=database.database if database is not None else None,
            alert_email=alert_email,
        )
        self.outputs = ComputeOutputs(endpoint=endpoint)

        registry.export(
            self, construct_id, outputs.API_URL,
            endpoint.api_url,
            "API Gateway invocation URL"
        )
        registry.export(
            self, construct_id, outputs.FUNCTION_NAME,
            endpoint.fn.function_name,
            "Compute function name"
        )
