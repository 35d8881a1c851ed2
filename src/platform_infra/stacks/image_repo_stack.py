"""
Image Repository Stack
ECR repository the compute workload's container image is pulled from
"""
from dataclasses import dataclass

from aws_cdk import RemovalPolicy, Stack, aws_ecr as ecr
from constructs import Construct

from platform_infra.config import EnvironmentConfig
from platform_infra.orchestration import output_registry as outputs
from platform_infra.orchestration.output_registry import OutputRegistry

MAX_IMAGE_COUNT = 10


@dataclass(frozen=True)
class ImageRepoOutputs:
    repository: ecr.IRepository

    @property
    def repository_name(self) -> str:
        return self.repository.repository_name


class ImageRepoStack(Stack):
    """ECR repository with scan-on-push, keeping the last ten images"""

    def __init__(
        self,
        scope: Construct,
        construct_id: str,
        *,
        config: EnvironmentConfig,
        registry: OutputRegistry,
        **kwargs
    ) -> None:
        super().__init__(scope, construct_id, **kwargs)

        protected = config.is_protected
        repository = ecr.Repository(
            self,
            "LambdaRepository",
            repository_name=f"platform-lambda-{config.stage.lower()}",
            image_scan_on_push=True,
            lifecycle_rules=[
                ecr.LifecycleRule(
                    rule_priority=1,
                    max_image_count=MAX_IMAGE_COUNT
                )
            ],
            removal_policy=RemovalPolicy.RETAIN if protected else RemovalPolicy.DESTROY,
            empty_on_delete=not protected
        )
        self.outputs = ImageRepoOutputs(repository=repository)

        registry.export(
            self, construct_id, outputs.ECR_REPOSITORY_URI,
            repository.repository_uri,
            "ECR repository URI for the compute image"
        )
