"""
Standard platform topology
Network, ImageRepo, Database and Compute stacks wired for one or more stages
"""
import logging
import os
from typing import Iterable, List, Mapping, Optional

from constructs import Construct

from platform_infra.config import resolve_environment_config
from platform_infra.errors import MissingWorkloadImageError
from platform_infra.orchestration.orchestrator import BuildContext, PlatformStage, StackOrchestrator
from platform_infra.resources.docker_lambda import WorkloadImage
from platform_infra.stacks import ComputeStack, DatabaseStack, ImageRepoStack, NetworkStack

logger = logging.getLogger(__name__)

NETWORK = "Network"
IMAGE_REPO = "ImageRepo"
DATABASE = "Database"
COMPUTE = "Compute"


def _description(context: BuildContext, what: str) -> str:
    return f"{what} for the platform - {context.config.stage}"


def build_network_stack(scope: Construct, name: str, context: BuildContext) -> NetworkStack:
    return NetworkStack(
        scope,
        name,
        config=context.config,
        registry=context.registry,
        env=context.env,
        description=_description(context, "Network infrastructure")
    )


def build_image_repo_stack(scope: Construct, name: str, context: BuildContext) -> ImageRepoStack:
    return ImageRepoStack(
        scope,
        name,
        config=context.config,
        registry=context.registry,
        env=context.env,
        description=_description(context, "Container image repository")
    )


def build_database_stack(scope: Construct, name: str, context: BuildContext) -> DatabaseStack:
    return DatabaseStack(
        scope,
        name,
        config=context.config,
        registry=context.registry,
        network=context.outputs_of(NETWORK),
        overrides=context.option("database_overrides"),
        alert_email=context.option("alert_email"),
        env=context.env,
        description=_description(context, "Database infrastructure")
    )


def build_compute_stack(scope: Construct, name: str, context: BuildContext) -> ComputeStack:
    image = context.option("image")
    if image is None:
        raise MissingWorkloadImageError(
            "A container image tag or digest is required for the compute workload"
        )
    return ComputeStack(
        scope,
        name,
        config=context.config,
        registry=context.registry,
        network=context.outputs_of(NETWORK),
        database=context.outputs_of(DATABASE),
        image_repo=None if image.repository_name else context.outputs_of(IMAGE_REPO),
        image=image,
        alert_email=context.option("alert_email"),
        env=context.env,
        description=_description(context, "Compute infrastructure")
    )


def build_platform_orchestrator(app_name: str = "Platform") -> StackOrchestrator:
    """Declare the standard stacks and their dependency edges"""
    orchestrator = StackOrchestrator(app_name)

    # 1. Network (foundation - no dependencies)
    network = orchestrator.declare_stack(NETWORK, build_network_stack)
    # 2. Image repository (independent)
    image_repo = orchestrator.declare_stack(IMAGE_REPO, build_image_repo_stack)
    # 3. Database (depends on Network)
    database = orchestrator.declare_stack(DATABASE, build_database_stack, depends_on=[network])
    # 4. Compute (depends on Network, Database and ImageRepo)
    orchestrator.declare_stack(
        COMPUTE,
        build_compute_stack,
        depends_on=[network, database, image_repo]
    )
    return orchestrator


def resolve_workload_image(
    node_context: Mapping[str, Optional[str]],
    environ: Optional[Mapping[str, str]] = None,
) -> WorkloadImage:
    """
    Workload reference from CDK context, falling back to the environment

    Context keys ``image_tag`` / ``image_repository`` win over the
    IMAGE_TAG_OR_DIGEST / ECR_REPOSITORY environment variables.

    Raises:
        MissingWorkloadImageError: if no tag or digest is found
    """
    environ = os.environ if environ is None else environ
    tag = node_context.get("image_tag") or environ.get("IMAGE_TAG_OR_DIGEST")
    repository = node_context.get("image_repository") or environ.get("ECR_REPOSITORY")
    if not tag:
        raise MissingWorkloadImageError(
            "Set the image_tag context value or IMAGE_TAG_OR_DIGEST to the image tag or digest to deploy"
        )
    return WorkloadImage(tag_or_digest=tag, repository_name=repository or None)


def parse_stage_names(value: Optional[str], default: str = "dev") -> List[str]:
    """Split a comma-separated stage selector, keeping order and dropping blanks"""
    names = [name.strip() for name in (value or default).split(",")]
    return [name for name in names if name] or [default]


def compose_platform(
    scope: Construct,
    stage_names: Iterable[str],
    image: WorkloadImage,
    alert_email: Optional[str] = None,
    account: Optional[str] = None,
    orchestrator: Optional[StackOrchestrator] = None,
) -> List[PlatformStage]:
    """Resolve and compose one isolated stage per requested environment"""
    orchestrator = orchestrator or build_platform_orchestrator()
    stages = []
    for stage_name in stage_names:
        config = resolve_environment_config(stage_name, account=account)
        stage = orchestrator.compose_stage(
            scope,
            config,
            image=image,
            alert_email=alert_email,
        )
        logger.info(
            f"Stage {stage.node.id}: {' -> '.join(stage.build_order)}, "
            f"{len(stage.registry)} exports"
        )
        stages.append(stage)
    return stages
