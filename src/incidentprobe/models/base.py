#!/usr/bin/env python3
"""
IncidentProbe Core - Multi-agent incident investigation engine
Copyright (C) 2025 Christian Gennaro Faraone

This program is free software: you can redistribute it and/or modify
it under the terms of the GNU Affero General Public License as published by
the Free Software Foundation, either version 3 of the License, or
(at your option) any later version.

This program is distributed in the hope that it will be useful,
but WITHOUT ANY WARRANTY; without even the implied warranty of
MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
GNU Affero General Public License for more details.

You should have received a copy of the GNU Affero General Public License
along with this program.  If not, see <https://www.gnu.org/licenses/>.

Data models for the IncidentProbe investigation engine.
Python attributes are snake_case; to_dict() produces the camelCase wire format.
"""

from datetime import datetime, timezone
from typing import Dict, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WireModel(BaseModel):
    """Base model serialized with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase JSON structure returned to callers."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TokenUsage(WireModel):
    """Normalized token usage of a single model call."""
    model_config = ConfigDict(frozen=True)

    input_tokens: int = Field(default=0, ge=0, description="Prompt/input tokens")
    output_tokens: int = Field(default=0, ge=0, description="Completion/output tokens")
    total_tokens: int = Field(default=0, ge=0, description="Combined tokens, provider-reported when available")

    @classmethod
    def from_counts(cls, input_tokens: int, output_tokens: int, total_tokens: Optional[int] = None) -> "TokenUsage":
        """Build usage, deriving the total when the provider did not report one."""
        if total_tokens is None:
            total_tokens = input_tokens + output_tokens
        return cls(input_tokens=input_tokens, output_tokens=output_tokens, total_tokens=total_tokens)


class StepCost(WireModel):
    """Cost of one completed model call."""
    model_config = ConfigDict(frozen=True)

    step: str = Field(description="Step identifier, llm-call-<n>")
    input_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)
    total_tokens: int = Field(ge=0)
    cost: float = Field(ge=0.0, description="Cost in USD")


class CostSummary(WireModel):
    """Aggregated cost of an investigation."""
    steps: List[StepCost] = Field(default_factory=list)
    total_input_tokens: int = 0
    total_output_tokens: int = 0
    total_tokens: int = 0
    total_cost: float = 0.0
    model: str
    provider: str


class LLMCallStep(WireModel):
    """Trace entry for a completed model call."""
    model_config = ConfigDict(frozen=True)

    type: Literal["llm_call"] = "llm_call"
    order: int = Field(ge=1)
    agent: str
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    duration_ms: int = Field(ge=0)
    cost: float = 0.0
    tool_calls_decided: Optional[List[str]] = None
    timestamp: datetime = Field(default_factory=_utcnow)


class ToolExecutionStep(WireModel):
    """Trace entry for a completed (or failed) tool call."""
    model_config = ConfigDict(frozen=True)

    type: Literal["tool_execution"] = "tool_execution"
    order: int = Field(ge=1)
    agent: str
    tool_name: str
    duration_ms: int = Field(ge=0)
    success: bool
    error: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)


TraceStep = Union[LLMCallStep, ToolExecutionStep]


class TraceSummary(WireModel):
    """Totals over all trace steps."""
    total_tokens: int = 0
    total_cost: float = 0.0
    llm_call_count: int = 0
    tool_execution_count: int = 0
    total_duration_ms: int = 0


class InvestigationTrace(WireModel):
    """Ordered trace steps plus their summary."""
    steps: List[Union[LLMCallStep, ToolExecutionStep]] = Field(default_factory=list)
    summary: TraceSummary = Field(default_factory=TraceSummary)


class InvestigationSummary(WireModel):
    """Structured summary synthesized by the supervisor."""
    summary: str = Field(description="Overall investigation summary")
    agent_summaries: Dict[str, str] = Field(default_factory=dict, description="Raw output per domain agent")
    timeline: List[str] = Field(default_factory=list, description="Relevant events in order")
    root_cause: Optional[str] = Field(default=None, description="Most likely root cause")
    impact: Optional[str] = Field(default=None, description="Observed or expected impact")
    recommendations: List[str] = Field(default_factory=list, description="Remediation steps")


class InvestigationResult(WireModel):
    """Successful (possibly incomplete) investigation outcome."""
    query: str
    raw_summary: str
    structured_summary: InvestigationSummary
    message_count: int
    duration_ms: int
    cost_summary: CostSummary
    trace: InvestigationTrace
    domains: List[str] = Field(default_factory=list, description="Domain agents that ran, in order")
    handoff_count: int = 0
    termination_reason: str = "completed"


class InvestigationFailure(WireModel):
    """Failed investigation with diagnostic partial data."""
    query: str
    error_kind: str
    message: str
    duration_ms: int = 0
    cost_summary: Optional[CostSummary] = None
    trace: Optional[InvestigationTrace] = None


class InvestigationOutcome(WireModel):
    """Either a result or a failure, never both."""
    success: bool
    result: Optional[InvestigationResult] = None
    failure: Optional[InvestigationFailure] = None

    @classmethod
    def succeeded(cls, result: InvestigationResult) -> "InvestigationOutcome":
        return cls(success=True, result=result)

    @classmethod
    def failed(cls, failure: InvestigationFailure) -> "InvestigationOutcome":
        return cls(success=False, failure=failure)
