from platform_infra.orchestration.dependency_graph import DependencyGraph
from platform_infra.orchestration.orchestrator import (
    BuildContext,
    PlatformStage,
    StackDeclaration,
    StackOrchestrator,
)
from platform_infra.orchestration.output_registry import (
    ExportedOutput,
    OutputRegistry,
    export_name,
    fetch_deployed_exports,
)

__all__ = [
    "BuildContext",
    "DependencyGraph",
    "ExportedOutput",
    "OutputRegistry",
    "PlatformStage",
    "StackDeclaration",
    "StackOrchestrator",
    "export_name",
    "fetch_deployed_exports",
]
