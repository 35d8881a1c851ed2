"""
Pytest configuration and fixtures for the platform infrastructure tests
"""
import os
import sys
from pathlib import Path

import pytest

# Add src directory to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "src"))

from platform_infra.config import resolve_environment_config  # noqa: E402
from platform_infra.resources.docker_lambda import WorkloadImage  # noqa: E402
from stack_helpers import make_network  # noqa: E402

TEST_ACCOUNT = "123456789012"


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests (may be slow)"
    )
    config.addinivalue_line(
        "markers", "slow: marks tests as slow running"
    )


@pytest.fixture(scope="session", autouse=True)
def setup_test_environment():
    """Keep ambient AWS settings from leaking into synthesized templates"""
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("AWS_DEFAULT_REGION", "eu-central-1")
    os.environ.pop("CDK_DEFAULT_ACCOUNT", None)


@pytest.fixture
def dev_config():
    return resolve_environment_config("dev", account=TEST_ACCOUNT)


@pytest.fixture
def prod_config():
    return resolve_environment_config("prod", account=TEST_ACCOUNT)


@pytest.fixture
def image():
    return WorkloadImage(tag_or_digest="v1.0.0", repository_name="platform-api")


@pytest.fixture
def network_factory():
    return make_network
