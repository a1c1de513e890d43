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

Execution tracer recording model calls and tool executions in one sequence.
"""

from decimal import Decimal
from typing import List, Optional

from ..models.base import (
    InvestigationTrace,
    LLMCallStep,
    TokenUsage,
    ToolExecutionStep,
    TraceStep,
    TraceSummary,
)


class ExecutionTracer:
    """Ordered trace of one investigation."""

    def __init__(self):
        self._steps: List[TraceStep] = []
        self._order = 0

    def _next_order(self) -> int:
        self._order += 1
        return self._order

    @property
    def steps(self) -> List[TraceStep]:
        return list(self._steps)

    def record_llm_call(
        self,
        agent: str,
        usage: TokenUsage,
        duration_ms: int,
        cost: float,
        tool_calls_decided: Optional[List[str]] = None,
    ) -> LLMCallStep:
        step = LLMCallStep(
            order=self._next_order(),
            agent=agent,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
            duration_ms=max(int(duration_ms), 0),
            cost=cost,
            tool_calls_decided=list(tool_calls_decided) if tool_calls_decided else None,
        )
        self._steps.append(step)
        return step

    def record_tool_execution(
        self,
        agent: str,
        tool_name: str,
        duration_ms: int,
        success: bool,
        error: Optional[str] = None,
    ) -> ToolExecutionStep:
        step = ToolExecutionStep(
            order=self._next_order(),
            agent=agent,
            tool_name=tool_name,
            duration_ms=max(int(duration_ms), 0),
            success=success,
            error=error,
        )
        self._steps.append(step)
        return step

    def summary(self) -> TraceSummary:
        llm_calls = [s for s in self._steps if isinstance(s, LLMCallStep)]
        total_cost = sum((Decimal(str(s.cost)) for s in llm_calls), Decimal("0"))
        return TraceSummary(
            total_tokens=sum(s.total_tokens for s in llm_calls),
            total_cost=float(total_cost),
            llm_call_count=len(llm_calls),
            tool_execution_count=len(self._steps) - len(llm_calls),
            total_duration_ms=sum(s.duration_ms for s in self._steps),
        )

    def get_trace(self) -> InvestigationTrace:
        """Snapshot of the steps recorded so far with their summary."""
        return InvestigationTrace(steps=self.steps, summary=self.summary())
