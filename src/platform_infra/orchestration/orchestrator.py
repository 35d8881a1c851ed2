"""
Stack / stage orchestrator
Declares stacks with explicit dependencies and composes them into a CDK stage
"""
import ipaddress
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Sequence, Union

import aws_cdk as cdk
from constructs import Construct

from platform_infra.config import EnvironmentConfig
from platform_infra.errors import (
    DependencyGraphError,
    StageIsolationError,
    UndeclaredDependencyError,
    UnknownStackError,
)
from platform_infra.orchestration.dependency_graph import DependencyGraph
from platform_infra.orchestration.output_registry import OutputRegistry

logger = logging.getLogger(__name__)


@dataclass
class BuildContext:
    """
    What a stack builder gets to see.

    Upstream outputs are only reachable through ``outputs_of``, and only for
    stacks the builder declared as dependencies.
    """

    stack_name: str
    config: EnvironmentConfig
    registry: OutputRegistry
    env: cdk.Environment
    options: Dict[str, Any] = field(default_factory=dict)
    _stage_stacks: frozenset = frozenset()
    _declared: frozenset = frozenset()
    _built: Dict[str, Any] = field(default_factory=dict)

    def outputs_of(self, stack_name: str) -> Any:
        """
        Typed outputs of an upstream stack

        Raises:
            UnknownStackError: if no such stack was built in this stage
            UndeclaredDependencyError: if the stack exists but is not a
                declared dependency of the caller
        """
        if stack_name not in self._stage_stacks:
            raise UnknownStackError(f"Stack '{stack_name}' is not part of this stage")
        if stack_name not in self._declared:
            raise UndeclaredDependencyError(self.stack_name, stack_name)
        return self._built[stack_name].outputs

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)


StackBuilder = Callable[[Construct, str, BuildContext], cdk.Stack]


@dataclass(frozen=True)
class StackDeclaration:
    name: str
    builder: StackBuilder = field(compare=False, repr=False)


class PlatformStage(cdk.Stage):
    """One complete deployment of one environment"""

    def __init__(self, scope: Construct, construct_id: str, *, config: EnvironmentConfig, **kwargs) -> None:
        super().__init__(scope, construct_id, **kwargs)
        self.config = config
        self.registry = OutputRegistry(config.stage)
        self.stacks: Dict[str, cdk.Stack] = {}
        self.build_order: List[str] = []


class StackOrchestrator:
    """
    Owns the stack dependency graph and composes stages from it.

    Stacks are built in dependency order and each builder receives its
    upstream outputs through a BuildContext. Every declared edge is also
    registered with CDK so the deploy engine honours the same order.
    """

    def __init__(self, app_name: str = "Platform"):
        self.app_name = app_name
        self.graph = DependencyGraph()
        self._declarations: Dict[str, StackDeclaration] = {}
        self._stages: Dict[str, PlatformStage] = {}

    def declare_stack(
        self,
        name: str,
        builder: StackBuilder,
        depends_on: Sequence[Union[str, StackDeclaration]] = (),
    ) -> StackDeclaration:
        """
        Declare a stack and the stacks it depends on

        Raises:
            DuplicateStackError: if the name is already declared
            UnknownStackError: if a dependency is not declared yet
            DependencyCycleError: if a dependency edge would close a cycle
        """
        dependencies = [_name_of(dep) for dep in depends_on]
        for dependency in dependencies:
            if dependency not in self.graph:
                raise UnknownStackError(
                    f"Stack '{name}' depends on undeclared stack '{dependency}'"
                )

        self.graph.add_node(name)
        declaration = StackDeclaration(name=name, builder=builder)
        self._declarations[name] = declaration
        for dependency in dependencies:
            self.graph.add_dependency(name, dependency)
        return declaration

    def add_dependency(
        self,
        dependent: Union[str, StackDeclaration],
        dependency: Union[str, StackDeclaration],
    ) -> None:
        self.graph.add_dependency(_name_of(dependent), _name_of(dependency))

    def build_order(self) -> List[str]:
        return self.graph.build_order()

    @property
    def stages(self) -> Dict[str, PlatformStage]:
        return dict(self._stages)

    def stage_id(self, config: EnvironmentConfig) -> str:
        return f"{self.app_name}-{config.stage}"

    def compose_stage(
        self,
        scope: Construct,
        config: EnvironmentConfig,
        **options: Any,
    ) -> PlatformStage:
        """
        Build every declared stack for one environment

        Keyword options are handed to builders through BuildContext.option.
        If any builder fails, the partially built stage is removed from the
        app before the error propagates, so nothing half-wired is synthesized.

        Raises:
            StageIsolationError: if the environment was already composed, or
                its network range or export names overlap another stage
        """
        self._check_isolation(config)

        stage_id = self.stage_id(config)
        stage = PlatformStage(scope, stage_id, config=config, env=config.cdk_environment)
        logger.info(f"Composing stage {stage_id}")

        try:
            self._build_stacks(stage, config, options)
            self._check_export_isolation(stage)
        except Exception:
            logger.error(f"Composition of stage {stage_id} failed; discarding it")
            scope.node.try_remove_child(stage_id)
            raise

        self._stages[config.stage] = stage
        return stage

    def _build_stacks(self, stage: PlatformStage, config: EnvironmentConfig, options: Dict[str, Any]) -> None:
        built: Dict[str, cdk.Stack] = {}
        order = self.graph.build_order()
        for name in order:
            declared = self.graph.dependencies_of(name)
            context = BuildContext(
                stack_name=name,
                config=config,
                registry=stage.registry,
                env=config.cdk_environment,
                options=options,
                _stage_stacks=frozenset(order),
                _declared=declared,
                _built=built,
            )
            stack = self._declarations[name].builder(stage, name, context)
            if not hasattr(stack, "outputs"):
                raise DependencyGraphError(f"Stack '{name}' does not publish typed outputs")

            for dependency in sorted(declared, key=order.index):
                stack.add_dependency(built[dependency])

            built[name] = stack
            logger.debug(f"Built stack {name} (depends on: {', '.join(sorted(declared)) or 'nothing'})")

        stage.stacks = built
        stage.build_order = order

    def _check_isolation(self, config: EnvironmentConfig) -> None:
        if config.stage in self._stages:
            raise StageIsolationError(f"Stage '{config.stage}' has already been composed")

        network = ipaddress.ip_network(config.vpc.cidr)
        for other in self._stages.values():
            other_network = ipaddress.ip_network(other.config.vpc.cidr)
            if network.overlaps(other_network):
                raise StageIsolationError(
                    f"VPC CIDR {config.vpc.cidr} of stage '{config.stage}' overlaps "
                    f"{other.config.vpc.cidr} of stage '{other.config.stage}'"
                )

    def _check_export_isolation(self, stage: PlatformStage) -> None:
        names = stage.registry.export_names()
        for other in self._stages.values():
            shared = names & other.registry.export_names()
            if shared:
                raise StageIsolationError(
                    f"Stages '{stage.config.stage}' and '{other.config.stage}' "
                    f"share export names: {', '.join(sorted(shared))}"
                )


def _name_of(stack: Union[str, StackDeclaration]) -> str:
    return stack.name if isinstance(stack, StackDeclaration) else stack
