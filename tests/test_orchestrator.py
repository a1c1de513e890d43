#!/usr/bin/env python3
"""
Test the investigation orchestrator end to end with scripted models.
"""

import asyncio

import pytest

from incidentprobe.core.orchestrator import InvestigationOrchestrator

from tests.fixtures import (
    SONNET_MODEL,
    FailingModel,
    ScriptedModel,
    make_tool,
    synthesis_response,
    text_response,
    tool_call_response,
)

ECS_QUERY = "ECS task OOM killed in checkout service"


def orchestrator_for(model, tools=(), tool_source=None):
    return InvestigationOrchestrator(model_factory=lambda config: model, tools=tools, tool_source=tool_source)


class StaticToolSource:
    def __init__(self, tools=(), error=None):
        self.tools = list(tools)
        self.error = error

    async def load_tools(self):
        if self.error is not None:
            raise self.error
        return self.tools


class QueryAwareModel(ScriptedModel):
    """Stateless model whose token usage depends on the query it sees."""

    async def stream(self, messages, tool_specs=None, system_prompt=None, **kwargs):
        await asyncio.sleep(0.01)
        text = messages[0]["content"][0]["text"]
        input_tokens = 1000 if "database" in text else 10
        # Only the synthesis agent is offered a tool here
        if tool_specs:
            turn = synthesis_response(input_tokens=input_tokens, output_tokens=0)
        else:
            turn = text_response("done", input_tokens, 0)
        for event in turn.stream_events():
            yield event


class TestInvestigationSuccess:
    """Test successful investigations."""

    @pytest.mark.asyncio
    async def test_end_to_end_investigation(self):
        """Test one agent with one tool, then synthesis."""
        describe = make_tool("aws_ecs__describe_tasks", result="stopCode=OutOfMemoryError")
        model = ScriptedModel(
            {"aws_ecs_expert": [
                tool_call_response(("aws_ecs__describe_tasks", {"cluster": "prod"})),
                text_response("Task hit its 512MiB memory limit."),
            ]},
            synthesis=synthesis_response(input_tokens=100, output_tokens=20),
        )
        orchestrator = orchestrator_for(model, tools=[describe])

        outcome = await orchestrator.investigate(ECS_QUERY, {"model": SONNET_MODEL})

        assert outcome.success is True
        assert outcome.failure is None
        result = outcome.result
        assert result.query == ECS_QUERY
        assert result.domains == ["aws_ecs_expert"]
        assert result.handoff_count == 1
        assert result.message_count == 3
        assert result.termination_reason == "completed"
        assert result.structured_summary.root_cause == "Database connection pool exhausted"
        assert result.structured_summary.agent_summaries["aws_ecs_expert"] == "Task hit its 512MiB memory limit."
        assert describe.invocations == [{"cluster": "prod"}]

        steps = result.trace.steps
        assert [s.type for s in steps] == ["llm_call", "tool_execution", "llm_call", "llm_call"]
        assert [s.order for s in steps] == [1, 2, 3, 4]
        assert steps[-1].agent == "supervisor"

        cost = result.cost_summary
        assert [s.step for s in cost.steps] == ["llm-call-1", "llm-call-2", "llm-call-3"]
        assert cost.total_input_tokens == 300
        assert cost.total_output_tokens == 60
        assert cost.total_cost == pytest.approx(0.0018)
        assert cost.model == SONNET_MODEL
        assert cost.provider == "bedrock"
        assert result.trace.summary.total_cost == pytest.approx(cost.total_cost)
        assert result.trace.summary.total_tokens == cost.total_tokens

    @pytest.mark.asyncio
    async def test_unknown_model_costs_nothing(self):
        model = ScriptedModel()
        outcome = await orchestrator_for(model).investigate("hello world", {"model": "my-private-model"})

        assert outcome.success is True
        assert outcome.result.cost_summary.total_tokens > 0
        assert outcome.result.cost_summary.total_cost == 0.0

    @pytest.mark.asyncio
    async def test_enabled_domains_restrict_routing(self):
        model = ScriptedModel()
        outcome = await orchestrator_for(model).investigate(ECS_QUERY, enabled_domains=["sentry_expert"])

        assert outcome.result.domains == ["sentry_expert"]

    @pytest.mark.asyncio
    async def test_each_call_gets_a_fresh_ledger(self):
        orchestrator = orchestrator_for(ScriptedModel())

        first = await orchestrator.investigate("hello world")
        second = await orchestrator.investigate("hello world")

        assert len(first.result.cost_summary.steps) == len(second.result.cost_summary.steps) == 2
        assert [s.order for s in second.result.trace.steps] == [1, 2]

    @pytest.mark.asyncio
    async def test_concurrent_investigations_are_isolated(self):
        """Test that interleaved investigations keep separate costs and traces."""
        orchestrator = orchestrator_for(QueryAwareModel())

        database, other = await asyncio.gather(
            orchestrator.investigate("database deadlock on orders", {"model": SONNET_MODEL}),
            orchestrator.investigate("hello world", {"model": SONNET_MODEL}),
        )

        assert database.result.domains == ["aws_rds_expert"]
        assert other.result.domains == ["newrelic_expert"]
        assert database.result.cost_summary.total_input_tokens == 2000
        assert other.result.cost_summary.total_input_tokens == 20
        assert [s.order for s in database.result.trace.steps] == [1, 2]
        assert [s.order for s in other.result.trace.steps] == [1, 2]


class TestToolDiscovery:
    """Test tool pools and tool-dependent domains."""

    @pytest.mark.asyncio
    async def test_code_research_skipped_without_tools(self):
        model = ScriptedModel()
        outcome = await orchestrator_for(model).investigate("code bug in repository")

        assert outcome.result.domains == ["newrelic_expert"]

    @pytest.mark.asyncio
    async def test_code_research_runs_with_discovered_tools(self):
        model = ScriptedModel()
        source = StaticToolSource([make_tool("mcp__chunkhound__search_regex")])
        outcome = await orchestrator_for(model, tool_source=source).investigate("code bug in repository")

        assert outcome.result.domains[0] == "code_research_expert"

    @pytest.mark.asyncio
    async def test_discovery_failure_is_not_fatal(self):
        model = ScriptedModel()
        source = StaticToolSource(error=ConnectionError("MCP server unreachable"))
        outcome = await orchestrator_for(model, tool_source=source).investigate("hello world")

        assert outcome.success is True

    @pytest.mark.asyncio
    async def test_no_runnable_agents_is_internal_failure(self):
        model = ScriptedModel()
        outcome = await orchestrator_for(model).investigate(
            "code bug", enabled_domains=["code_research_expert"],
        )

        assert outcome.success is False
        assert outcome.failure.error_kind == "internal"
        assert "No domain agents available" in outcome.failure.message
        assert model.calls == []


class TestInvestigationFailures:
    """Test typed failures."""

    @pytest.mark.asyncio
    async def test_invalid_config_fails_before_any_model_call(self):
        built = []

        def factory(config):
            built.append(config)
            return ScriptedModel()

        orchestrator = InvestigationOrchestrator(model_factory=factory)
        outcome = await orchestrator.investigate("hello world", {"recursionLimit": 0})

        assert outcome.success is False
        assert outcome.failure.error_kind == "config_validation"
        assert "recursionLimit" in outcome.failure.message
        assert outcome.failure.cost_summary is None
        assert outcome.failure.trace is None
        assert built == []

    @pytest.mark.asyncio
    async def test_unknown_domain_is_config_error(self):
        outcome = await orchestrator_for(ScriptedModel()).investigate("hello", enabled_domains=["datadog_expert"])

        assert outcome.failure.error_kind == "config_validation"
        assert "datadog_expert" in outcome.failure.message

    @pytest.mark.asyncio
    async def test_timeout_returns_partial_trace(self):
        """Test that the overall deadline fails with the work done so far."""
        slow_query = make_tool("newrelic__run_nrql", delay=5)
        model = ScriptedModel({"newrelic_expert": [
            tool_call_response(("newrelic__run_nrql", {"nrql": "SELECT count(*) FROM Transaction"})),
            text_response("unreachable"),
        ]})
        orchestrator = orchestrator_for(model, tools=[slow_query])

        outcome = await orchestrator.investigate(
            "checkout latency",
            {"timeoutMs": 1000, "model": SONNET_MODEL},
            enabled_domains=["newrelic_expert"],
        )

        assert outcome.success is False
        failure = outcome.failure
        assert failure.error_kind == "timeout"
        assert "timed out after 1000ms" in failure.message
        assert [s.type for s in failure.trace.steps] == ["llm_call"]
        assert len(failure.cost_summary.steps) == 1
        assert failure.cost_summary.total_cost == pytest.approx(0.0006)
        assert failure.duration_ms < 5000

    @pytest.mark.asyncio
    async def test_model_failure_is_internal_error(self):
        orchestrator = orchestrator_for(FailingModel(RuntimeError("ThrottlingException")))

        outcome = await orchestrator.investigate("hello world")

        assert outcome.success is False
        assert outcome.failure.error_kind == "internal"
        assert "ThrottlingException" in outcome.failure.message
        assert outcome.failure.trace.steps == []
        assert outcome.failure.cost_summary.total_cost == 0.0
