#!/usr/bin/env python3
"""
Reusable test doubles for investigation testing.

Provides scripted strands models, usage payloads and domain tools so agents,
the supervisor and the orchestrator can run without any model provider.

Copyright (C) 2025 Christian Gennaro Faraone
"""

import asyncio
import copy
import itertools
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from strands.models import Model

from incidentprobe.core.budget import BudgetEnforcer
from incidentprobe.core.cost_ledger import CostLedger
from incidentprobe.core.events import InvestigationObserver
from incidentprobe.core.tracer import ExecutionTracer
from incidentprobe.tools.base import DomainTool, ToolOutput
from incidentprobe.utils.config import InvestigationConfig, resolve_config

SONNET_MODEL = "us.anthropic.claude-sonnet-4-5-20250929-v1:0"

SYNTHESIS_MARKER = "supervisor of an incident investigation team"
SUMMARY_TOOL = "InvestigationSummary"

# Substrings of each domain system prompt
AGENT_PROMPT_KEYS = {
    "newrelic_expert": "the New Relic expert",
    "sentry_expert": "the Sentry expert",
    "aws_ecs_expert": "the AWS ECS expert",
    "aws_rds_expert": "the AWS RDS expert",
    "research_expert": "the research expert",
    "code_research_expert": "the code research expert",
}

_tool_use_ids = itertools.count(1)


def usage_payload(input_tokens: int = 100, output_tokens: int = 20) -> Dict[str, Any]:
    """Usage payload in the strands metadata shape."""
    return {
        "usage": {
            "inputTokens": input_tokens,
            "outputTokens": output_tokens,
            "totalTokens": input_tokens + output_tokens,
        }
    }


@dataclass
class ModelTurn:
    """One scripted assistant turn."""
    text: str = ""
    tool_calls: List[Tuple[str, Dict[str, Any]]] = field(default_factory=list)
    input_tokens: int = 100
    output_tokens: int = 20

    def stream_events(self) -> List[Dict[str, Any]]:
        """The turn as Converse stream events, ending with usage metadata."""
        events: List[Dict[str, Any]] = [{"messageStart": {"role": "assistant"}}]
        if self.text:
            events += [
                {"contentBlockStart": {"start": {}}},
                {"contentBlockDelta": {"delta": {"text": self.text}}},
                {"contentBlockStop": {}},
            ]
        for name, tool_input in self.tool_calls:
            events += [
                {"contentBlockStart": {"start": {"toolUse": {
                    "toolUseId": f"tooluse-{next(_tool_use_ids)}", "name": name,
                }}}},
                {"contentBlockDelta": {"delta": {"toolUse": {"input": json.dumps(tool_input)}}}},
                {"contentBlockStop": {}},
            ]
        events.append({"messageStop": {"stopReason": "tool_use" if self.tool_calls else "end_turn"}})
        events.append({"metadata": {**usage_payload(self.input_tokens, self.output_tokens),
                                    "metrics": {"latencyMs": 0}}})
        return events


def text_response(text: str, input_tokens: int = 100, output_tokens: int = 20) -> ModelTurn:
    return ModelTurn(text=text, input_tokens=input_tokens, output_tokens=output_tokens)


def tool_call_response(
    *calls: Tuple[str, Dict[str, Any]],
    text: str = "",
    input_tokens: int = 100,
    output_tokens: int = 20,
) -> ModelTurn:
    return ModelTurn(text=text, tool_calls=list(calls), input_tokens=input_tokens, output_tokens=output_tokens)


def synthesis_body(
    summary: str = "Checkout latency was caused by connection pool exhaustion.",
    root_cause: Optional[str] = "Database connection pool exhausted",
) -> Dict[str, Any]:
    return {
        "summary": summary,
        "agentSummaries": {"supervisor_view": "combined"},
        "timeline": ["14:00 deploy", "14:05 latency spike"],
        "rootCause": root_cause,
        "impact": "Checkout requests slowed down",
        "recommendations": ["Increase pool size", "Add connection metrics alert"],
    }


def synthesis_response(
    summary: str = "Checkout latency was caused by connection pool exhaustion.",
    root_cause: Optional[str] = "Database connection pool exhausted",
    text: str = "",
    input_tokens: int = 200,
    output_tokens: int = 50,
) -> ModelTurn:
    """Synthesis turn that answers through the structured output tool."""
    return tool_call_response(
        (SUMMARY_TOOL, synthesis_body(summary, root_cause)),
        text=text,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
    )


Script = Union[ModelTurn, List[ModelTurn]]


class ScriptedModel(Model):
    """
    Strands model returning scripted turns.

    Scripts are keyed by agent name. A list is consumed in order; a single
    ModelTurn is returned on every call. Synthesis calls are answered with
    ``synthesis``.
    """

    def __init__(
        self,
        scripts: Optional[Dict[str, Script]] = None,
        synthesis: Optional[ModelTurn] = None,
        default: Optional[ModelTurn] = None,
        delay: float = 0.0,
    ):
        self.config: Dict[str, Any] = {"model_id": SONNET_MODEL}
        self.scripts = {
            AGENT_PROMPT_KEYS.get(name, name): (list(script) if isinstance(script, list) else script)
            for name, script in (scripts or {}).items()
        }
        self.synthesis = synthesis or synthesis_response()
        self.default = default or text_response("No further findings.")
        self.delay = delay
        self.calls: List[Dict[str, Any]] = []

    def update_config(self, **model_config: Any) -> None:
        self.config.update(model_config)

    def get_config(self) -> Dict[str, Any]:
        return self.config

    async def structured_output(self, output_model, prompt, system_prompt=None, **kwargs):
        yield {"output": output_model(**synthesis_body())}

    async def stream(self, messages, tool_specs=None, system_prompt=None, **kwargs):
        self.calls.append({
            "messages": copy.deepcopy(messages),
            "tool_specs": tool_specs,
            "system_prompt": system_prompt,
        })
        if self.delay:
            await asyncio.sleep(self.delay)
        for event in self._next_turn(system_prompt or "").stream_events():
            yield event

    def _next_turn(self, prompt: str) -> ModelTurn:
        if SYNTHESIS_MARKER in prompt:
            return self.synthesis
        for key, script in self.scripts.items():
            if key not in prompt:
                continue
            if isinstance(script, ModelTurn):
                return script
            if script:
                return script.pop(0)
        return self.default

    def synthesis_calls(self) -> List[Dict[str, Any]]:
        return [call for call in self.calls if SYNTHESIS_MARKER in (call["system_prompt"] or "")]


class FailingModel(ScriptedModel):
    """Strands model whose every call raises."""

    def __init__(self, error: Exception):
        super().__init__()
        self.error = error

    async def stream(self, messages, tool_specs=None, system_prompt=None, **kwargs):
        self.calls.append({"messages": messages, "tool_specs": tool_specs, "system_prompt": system_prompt})
        raise self.error
        yield  # pragma: no cover


def make_tool(
    name: str,
    result: str = "ok",
    delay: float = 0.0,
    error: Optional[Exception] = None,
    usage_metadata: Optional[Dict[str, Any]] = None,
) -> DomainTool:
    """Async domain tool recording its invocations on ``tool.invocations``."""
    invocations: List[Dict[str, Any]] = []

    async def func(**kwargs):
        invocations.append(kwargs)
        if delay:
            await asyncio.sleep(delay)
        if error is not None:
            raise error
        return ToolOutput(content=result, usage_metadata=usage_metadata)

    tool = DomainTool(name=name, description=f"Test tool {name}", func=func)
    tool.invocations = invocations
    return tool


class InvestigationHarness:
    """Ledger, tracer, observer and enforcer for one test investigation."""

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        self.config: InvestigationConfig = resolve_config({"model": SONNET_MODEL, **(overrides or {})})
        self.ledger = CostLedger(self.config.provider, self.config.resolved_model)
        self.tracer = ExecutionTracer()
        self.observer = InvestigationObserver(self.ledger, self.tracer)
        self.enforcer = BudgetEnforcer(self.config)

    def step_types(self) -> Sequence[str]:
        return [step.type for step in self.tracer.steps]
