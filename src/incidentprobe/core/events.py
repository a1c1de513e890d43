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

Investigation event contract.

Agents and the supervisor report every completed model call and tool call to
an InvestigationObserver, which feeds the cost ledger and the tracer of the
investigation that owns it.
"""

from typing import Any, List, Optional

from ..models.base import LLMCallStep, TokenUsage, ToolExecutionStep
from ..utils.logger import get_logger
from .cost_ledger import CostLedger
from .errors import UsageNormalizationMiss
from .tracer import ExecutionTracer
from .usage import normalize_usage

logger = get_logger(__name__)


class InvestigationObserver:
    """Receives step events for exactly one investigation."""

    def __init__(self, ledger: CostLedger, tracer: ExecutionTracer, verbose: bool = False):
        self.ledger = ledger
        self.tracer = tracer
        self.verbose = verbose
        self._sealed = False
        self.dropped_events = 0

    @property
    def sealed(self) -> bool:
        return self._sealed

    def seal(self):
        """Stop accepting events; used once the investigation has timed out."""
        self._sealed = True

    def on_llm_call_complete(
        self,
        usage: Any,
        agent: str,
        duration_ms: int,
        tool_calls_decided: Optional[List[str]] = None,
    ) -> Optional[LLMCallStep]:
        """
        Record a completed model call.

        ``usage`` is the raw provider payload. Unrecognized payloads are
        recorded at zero tokens and zero cost.
        """
        if self._sealed:
            self.dropped_events += 1
            logger.debug(f"Dropping model call event from {agent} after investigation ended")
            return None

        try:
            token_usage = normalize_usage(usage)
        except UsageNormalizationMiss as e:
            logger.warning(f"⚠️ Token usage not found for {agent}: {e}")
            token_usage = TokenUsage()

        step_cost = self.ledger.record_step(token_usage)
        step = self.tracer.record_llm_call(
            agent=agent,
            usage=token_usage,
            duration_ms=duration_ms,
            cost=step_cost.cost,
            tool_calls_decided=tool_calls_decided,
        )

        message = (
            f"🧠 [{step.order}] {agent} model call: {token_usage.total_tokens} tokens "
            f"in {step.duration_ms}ms (${step_cost.cost:.6f})"
        )
        if tool_calls_decided:
            message += f", tools: {', '.join(tool_calls_decided)}"
        if self.verbose:
            logger.info(message)
        else:
            logger.debug(message)
        return step

    def on_tool_call_complete(
        self,
        tool_name: str,
        agent: str,
        duration_ms: int,
        success: bool,
        error: Optional[str] = None,
    ) -> Optional[ToolExecutionStep]:
        """Record a completed or failed tool call."""
        if self._sealed:
            self.dropped_events += 1
            logger.debug(f"Dropping tool event {tool_name} from {agent} after investigation ended")
            return None

        step = self.tracer.record_tool_execution(
            agent=agent,
            tool_name=tool_name,
            duration_ms=duration_ms,
            success=success,
            error=error,
        )
        if success:
            message = f"🔧 [{step.order}] {agent} -> {tool_name} ok in {step.duration_ms}ms"
            if self.verbose:
                logger.info(message)
            else:
                logger.debug(message)
        else:
            logger.warning(f"❌ [{step.order}] {agent} -> {tool_name} failed in {step.duration_ms}ms: {error}")
        return step
