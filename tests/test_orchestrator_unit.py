"""
Unit tests for the stack orchestrator
"""
from dataclasses import replace
from types import SimpleNamespace

import aws_cdk as cdk
import pytest
from aws_cdk import aws_sns as sns

from platform_infra.errors import (
    DependencyCycleError,
    DependencyGraphError,
    DuplicateStackError,
    StageIsolationError,
    UndeclaredDependencyError,
    UnknownStackError,
)
from platform_infra.orchestration import StackOrchestrator


class TopicStack(cdk.Stack):
    """Minimal stack publishing one topic and an export"""

    def __init__(self, scope, construct_id, *, context, upstream=(), **kwargs):
        super().__init__(scope, construct_id, env=context.env, **kwargs)
        topic = sns.Topic(self, "Topic")
        for index, other in enumerate(upstream):
            sns.Topic(self, f"Follower{index}", display_name=other.topic.topic_name)
        context.registry.export(self, construct_id, "TopicArn", topic.topic_arn, "Topic ARN")
        self.outputs = SimpleNamespace(topic=topic)


def topic_builder(*upstream_names):
    def build(scope, name, context):
        upstream = [context.outputs_of(n) for n in upstream_names]
        return TopicStack(scope, name, context=context, upstream=upstream)
    return build


@pytest.fixture
def chain_orchestrator():
    """A requires B, B requires C"""
    orchestrator = StackOrchestrator("Test")
    c = orchestrator.declare_stack("C", topic_builder())
    b = orchestrator.declare_stack("B", topic_builder("C"), depends_on=[c])
    orchestrator.declare_stack("A", topic_builder("B"), depends_on=[b])
    return orchestrator


@pytest.mark.unit
class TestDeclaration:
    """Declaring stacks and edges"""

    def test_build_order(self, chain_orchestrator):
        assert chain_orchestrator.build_order() == ["C", "B", "A"]
        assert chain_orchestrator.graph.teardown_order() == ["A", "B", "C"]

    def test_cycle_is_rejected(self, chain_orchestrator):
        with pytest.raises(DependencyCycleError):
            chain_orchestrator.add_dependency("C", "A")

    def test_unknown_dependency(self):
        orchestrator = StackOrchestrator("Test")

        with pytest.raises(UnknownStackError):
            orchestrator.declare_stack("A", topic_builder(), depends_on=["Missing"])
        assert "A" not in orchestrator.graph

    def test_duplicate_declaration(self, chain_orchestrator):
        with pytest.raises(DuplicateStackError):
            chain_orchestrator.declare_stack("A", topic_builder())


@pytest.mark.unit
class TestComposeStage:
    """Building a stage from declarations"""

    def test_stacks_built_and_wired(self, chain_orchestrator, dev_config):
        app = cdk.App()
        stage = chain_orchestrator.compose_stage(app, dev_config)

        assert stage.node.id == "Test-dev"
        assert stage.build_order == ["C", "B", "A"]
        assert [s.node.id for s in stage.stacks["A"].dependencies] == ["B"]
        assert [s.node.id for s in stage.stacks["B"].dependencies] == ["C"]
        assert stage.stacks["C"].dependencies == []
        assert chain_orchestrator.stages == {"dev": stage}

    def test_exports_named_per_stage(self, chain_orchestrator, dev_config):
        stage = chain_orchestrator.compose_stage(cdk.App(), dev_config)

        assert stage.registry.export_names() == frozenset({
            "dev-A-TopicArn", "dev-B-TopicArn", "dev-C-TopicArn"
        })

    def test_options_reach_builders(self, dev_config):
        seen = {}

        def build(scope, name, context):
            seen["flavour"] = context.option("flavour")
            seen["missing"] = context.option("missing", "fallback")
            return TopicStack(scope, name, context=context)

        orchestrator = StackOrchestrator("Test")
        orchestrator.declare_stack("Only", build)
        orchestrator.compose_stage(cdk.App(), dev_config, flavour="vanilla")

        assert seen == {"flavour": "vanilla", "missing": "fallback"}

    def test_undeclared_consumption_fails_and_discards_stage(self, dev_config):
        app = cdk.App()
        orchestrator = StackOrchestrator("Test")
        orchestrator.declare_stack("Producer", topic_builder())
        orchestrator.declare_stack("Consumer", topic_builder("Producer"))

        with pytest.raises(UndeclaredDependencyError) as exc_info:
            orchestrator.compose_stage(app, dev_config)

        assert exc_info.value.consumer == "Consumer"
        assert exc_info.value.producer == "Producer"
        assert app.node.try_find_child("Test-dev") is None
        assert orchestrator.stages == {}

    def test_consuming_unknown_stack(self, dev_config):
        orchestrator = StackOrchestrator("Test")
        orchestrator.declare_stack("Consumer", topic_builder("Ghost"))

        with pytest.raises(UnknownStackError):
            orchestrator.compose_stage(cdk.App(), dev_config)

    def test_stack_without_outputs(self, dev_config):
        orchestrator = StackOrchestrator("Test")
        orchestrator.declare_stack("Bare", lambda scope, name, context: cdk.Stack(scope, name))

        with pytest.raises(DependencyGraphError):
            orchestrator.compose_stage(cdk.App(), dev_config)

    def test_failed_stage_can_be_retried(self, dev_config):
        app = cdk.App()
        attempts = []

        def flaky(scope, name, context):
            attempts.append(name)
            if len(attempts) == 1:
                raise RuntimeError("transient")
            return TopicStack(scope, name, context=context)

        orchestrator = StackOrchestrator("Test")
        orchestrator.declare_stack("Flaky", flaky)
        with pytest.raises(RuntimeError):
            orchestrator.compose_stage(app, dev_config)

        stage = orchestrator.compose_stage(app, dev_config)
        assert stage.stacks["Flaky"] is not None


@pytest.mark.unit
class TestStageIsolation:
    """Stages must not share names, networks or exports"""

    def test_two_stages_side_by_side(self, chain_orchestrator, dev_config, prod_config):
        app = cdk.App()
        dev = chain_orchestrator.compose_stage(app, dev_config)
        prod = chain_orchestrator.compose_stage(app, prod_config)

        assert not dev.registry.export_names() & prod.registry.export_names()
        assert set(chain_orchestrator.stages) == {"dev", "prod"}

    def test_same_stage_twice(self, chain_orchestrator, dev_config):
        app = cdk.App()
        chain_orchestrator.compose_stage(app, dev_config)

        with pytest.raises(StageIsolationError):
            chain_orchestrator.compose_stage(app, dev_config)

    def test_overlapping_cidr(self, chain_orchestrator, dev_config, prod_config):
        app = cdk.App()
        chain_orchestrator.compose_stage(app, dev_config)
        overlapping = replace(prod_config, vpc=replace(prod_config.vpc, cidr="10.0.128.0/17"))

        with pytest.raises(StageIsolationError):
            chain_orchestrator.compose_stage(app, overlapping)
        assert app.node.try_find_child("Test-prod") is None
