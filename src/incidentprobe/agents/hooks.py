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

Strands hook providers that feed the investigation observer.

ModelCallRecorder turns every completed strands model call into an
``on_llm_call_complete`` event. AgentBudgetHooks adds the tool side for
domain agents: tool-call tracing, the lifetime tool budget and the
per-run iteration ceiling.
"""

import json
import time
from typing import Any, List, Optional

from strands.hooks import (
    AfterModelCallEvent,
    AfterToolCallEvent,
    BeforeModelCallEvent,
    BeforeToolCallEvent,
    HookProvider,
    HookRegistry,
)

from ..core.budget import ToolCallBudget
from ..core.errors import BudgetExceededError, ToolExecutionError
from ..core.events import InvestigationObserver
from ..utils.logger import get_logger

logger = get_logger(__name__)

VERBOSE_PREVIEW_CHARS = 500

TOOL_LIMIT_MESSAGE = "Tool call limit reached. This tool was not executed."
ITERATION_LIMIT_MESSAGE = "Iteration limit reached. This tool was not executed."
FINAL_ANSWER_NUDGE = (
    "You cannot call any more tools. Give your final answer now, "
    "based only on the information gathered so far."
)
STOP_MESSAGE = "Model call skipped: the agent has used its budget for this run."


def preview(value: Any) -> str:
    text = value if isinstance(value, str) else json.dumps(value, default=str)
    if len(text) > VERBOSE_PREVIEW_CHARS:
        return text[:VERBOSE_PREVIEW_CHARS] + "..."
    return text


def message_text(message: Optional[dict]) -> str:
    """Concatenated text blocks of a Converse message."""
    if not message:
        return ""
    return "".join(block["text"] for block in message.get("content", []) if block.get("text"))


def requested_tools(message: Optional[dict]) -> List[str]:
    if not message:
        return []
    return [block["toolUse"]["name"] for block in message.get("content", []) if "toolUse" in block]


class ModelCallRecorder(HookProvider):
    """Reports each completed model call of one strands agent to the observer."""

    def __init__(self, observer: InvestigationObserver, agent_name: str, verbose: bool = False):
        self.observer = observer
        self.agent_name = agent_name
        self.verbose = verbose
        self._call_started: Optional[float] = None
        self._skip_next_record = False

    def register_hooks(self, registry: HookRegistry, **kwargs: Any) -> None:
        registry.add_callback(BeforeModelCallEvent, self.before_model_call)
        registry.add_callback(AfterModelCallEvent, self.after_model_call)

    def before_model_call(self, event: BeforeModelCallEvent) -> None:
        self._call_started = time.monotonic()

    def cancel_model_call(self, event: BeforeModelCallEvent, message: str) -> None:
        """Skip this model call; strands answers it with ``message`` instead."""
        event.cancel = message
        self._skip_next_record = True

    def after_model_call(self, event: AfterModelCallEvent) -> None:
        if self._skip_next_record:
            self._skip_next_record = False
            return
        if event.exception is not None or event.stop_response is None:
            logger.debug(f"{self.agent_name} model call failed: {event.exception}")
            return

        message = event.stop_response.message
        started = self._call_started if self._call_started is not None else time.monotonic()
        self.observer.on_llm_call_complete(
            message.get("metadata"),
            agent=self.agent_name,
            duration_ms=int((time.monotonic() - started) * 1000),
            tool_calls_decided=requested_tools(message),
        )
        text = message_text(message)
        if self.verbose and text:
            logger.info(f"💬 {self.agent_name}: {preview(text)}")


class AgentBudgetHooks(ModelCallRecorder):
    """
    Model and tool hooks of a domain agent.

    The tool budget is shared by every run of the agent. The iteration
    ceiling and the single final-answer call after the budget runs out are
    tracked per run; ``start_run`` resets them.
    """

    def __init__(
        self,
        observer: InvestigationObserver,
        agent_name: str,
        tool_budget: ToolCallBudget,
        max_iterations: int,
        verbose: bool = False,
    ):
        super().__init__(observer, agent_name, verbose)
        self.tool_budget = tool_budget
        self.max_iterations = max_iterations
        self.model_calls = 0
        self.stopped = False
        self.best_effort = ""
        self._answered_after_limit = False
        self._nudged_at = 0

    def register_hooks(self, registry: HookRegistry, **kwargs: Any) -> None:
        super().register_hooks(registry, **kwargs)
        registry.add_callback(BeforeToolCallEvent, self.before_tool_call)
        registry.add_callback(AfterToolCallEvent, self.after_tool_call)

    def start_run(self) -> None:
        self.model_calls = 0
        self.stopped = False
        self.best_effort = ""
        self._answered_after_limit = False
        self._nudged_at = 0

    def before_model_call(self, event: BeforeModelCallEvent) -> None:
        if self.model_calls >= self.max_iterations:
            logger.warning(f"⚠️ {self.agent_name} reached {self.max_iterations} iterations, returning partial answer")
            self._stop(event)
            return
        if self.tool_budget.exhausted:
            if self._answered_after_limit:
                self._stop(event)
                return
            self._answered_after_limit = True
        self.model_calls += 1
        super().before_model_call(event)

    def _stop(self, event: BeforeModelCallEvent) -> None:
        self.stopped = True
        self.cancel_model_call(event, STOP_MESSAGE)

    def after_model_call(self, event: AfterModelCallEvent) -> None:
        if not self._skip_next_record and event.stop_response is not None:
            text = message_text(event.stop_response.message)
            if text.strip():
                self.best_effort = text
        super().after_model_call(event)

    def before_tool_call(self, event: BeforeToolCallEvent) -> None:
        tool_name = event.tool_use["name"]
        if self.model_calls >= self.max_iterations:
            event.cancel_tool = ITERATION_LIMIT_MESSAGE
            return
        try:
            self.tool_budget.consume()
        except BudgetExceededError as e:
            logger.warning(f"⚠️ {self.agent_name} skipped {tool_name}: {e}")
            event.cancel_tool = f"{TOOL_LIMIT_MESSAGE} {FINAL_ANSWER_NUDGE}"
            return
        if self.verbose:
            logger.info(f"🔧 {self.agent_name} -> {tool_name} input: {preview(event.tool_use.get('input'))}")

    def after_tool_call(self, event: AfterToolCallEvent) -> None:
        # Calls cancelled by the budget never ran and are not traced
        if event.cancel_message is not None:
            return

        tool_name = event.tool_use["name"]
        success = event.result.get("status") == "success" and event.exception is None
        error = None
        if not success:
            if isinstance(event.exception, ToolExecutionError):
                error = event.exception.reason
            elif event.exception is not None:
                error = str(event.exception) or type(event.exception).__name__
            else:
                error = message_text({"content": event.result.get("content", [])}) or "tool failed"

        duration_ms = int((event.duration or 0.0) * 1000)
        self.observer.on_tool_call_complete(tool_name, self.agent_name, duration_ms, success, error)
        if success and self.verbose:
            output = message_text({"content": event.result.get("content", [])})
            logger.info(f"📦 {self.agent_name} <- {tool_name} output: {preview(output)}")

        if self._final_round() and self._nudged_at != self.model_calls:
            self._nudged_at = self.model_calls
            event.result["content"].append({"text": FINAL_ANSWER_NUDGE})

    def _final_round(self) -> bool:
        return self.tool_budget.exhausted or self.model_calls >= self.max_iterations - 1
