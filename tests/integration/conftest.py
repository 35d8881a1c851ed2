"""
Pytest configuration for integration tests

These compose the complete platform (every stack of every stage) and
synthesize it, so they are slower than the construct-level unit tests.
"""
import aws_cdk as cdk
import pytest

from platform_infra.orchestration.platform import compose_platform
from platform_infra.resources.docker_lambda import WorkloadImage

ACCOUNT = "123456789012"


@pytest.fixture(scope="module")
def platform():
    """dev and prod composed side by side in one app"""
    app = cdk.App()
    stages = compose_platform(
        app,
        ["dev", "prod"],
        WorkloadImage(tag_or_digest="v1.0.0"),
        account=ACCOUNT,
    )
    return app, {stage.config.stage: stage for stage in stages}
