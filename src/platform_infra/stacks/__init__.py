from platform_infra.stacks.compute_stack import ComputeOutputs, ComputeStack
from platform_infra.stacks.database_stack import DatabaseOutputs, DatabaseStack
from platform_infra.stacks.image_repo_stack import ImageRepoOutputs, ImageRepoStack
from platform_infra.stacks.network_stack import NetworkOutputs, NetworkStack

__all__ = [
    "ComputeOutputs",
    "ComputeStack",
    "DatabaseOutputs",
    "DatabaseStack",
    "ImageRepoOutputs",
    "ImageRepoStack",
    "NetworkOutputs",
    "NetworkStack",
]
