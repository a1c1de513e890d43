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

Domain agents: strands agents over a filtered toolset.

Each domain agent wraps one ``strands.Agent``. Its hooks report model and
tool calls to the investigation observer and enforce the tool budget and
iteration ceiling; its tools run under the per-step timeout.
"""

from typing import Any, Optional, Sequence

from opentelemetry import trace
from strands import Agent
from strands.models import Model
from strands.tools import PythonAgentTool
from strands.tools.executors import SequentialToolExecutor
from strands.types.tools import ToolResult, ToolUse

from ..core.budget import BudgetEnforcer, ToolCallBudget
from ..core.errors import ModelInvocationError, StepTimeoutError, ToolExecutionError
from ..core.events import InvestigationObserver
from ..core.tool_selector import select_tools
from ..tools.base import DomainTool
from ..utils.config import DEFAULT_AGENT_MAX_ITERATIONS, InvestigationConfig
from ..utils.logger import get_logger
from ..utils.prompt_loader import load_prompt
from .domains import DomainSpec
from .hooks import AgentBudgetHooks, message_text

logger = get_logger(__name__)
otel_tracer = trace.get_tracer(__name__)


def bind_tool(
    tool: DomainTool,
    agent_name: str,
    observer: InvestigationObserver,
    enforcer: BudgetEnforcer,
) -> PythonAgentTool:
    """
    Expose ``tool`` to a strands agent.

    The call runs under the per-step timeout. Failures are raised as
    ToolExecutionError so strands feeds them back to the model as an error
    result and the after-tool hook records them. Usage reported by the tool
    is costed as a model call of ``<agent>:<tool>``.
    """

    async def run(tool_use: ToolUse, **invocation_state: Any) -> ToolResult:
        with otel_tracer.start_as_current_span(f"tool.{tool.name}") as span:
            span.set_attribute("incidentprobe.agent", agent_name)
            span.set_attribute("incidentprobe.tool", tool.name)
            try:
                output = await enforcer.run_step(lambda: tool.invoke(tool_use.get("input") or {}), tool.name)
            except ToolExecutionError:
                span.set_attribute("incidentprobe.tool.success", False)
                raise
            except Exception as e:
                span.set_attribute("incidentprobe.tool.success", False)
                raise ToolExecutionError(tool.name, str(e) or type(e).__name__) from e
            span.set_attribute("incidentprobe.tool.success", True)

        if output.usage_metadata:
            # Tools that call a model themselves report that usage here
            observer.on_llm_call_complete(output.usage_metadata, agent=f"{agent_name}:{tool.name}", duration_ms=0)

        return {
            "toolUseId": str(tool_use.get("toolUseId")),
            "status": "success",
            "content": [{"text": output.content}],
        }

    return PythonAgentTool(tool.name, tool.tool_spec(), run)


class DomainAgent:
    """
    One specialist agent of an investigation.

    The tool-call budget lives on the instance, so it spans every run of the
    agent within the investigation (the supervisor may revisit an agent).
    """

    def __init__(
        self,
        name: str,
        model: Model,
        system_prompt: str,
        tools: Sequence[DomainTool],
        observer: InvestigationObserver,
        enforcer: BudgetEnforcer,
        max_tool_calls: int,
        max_iterations: int = DEFAULT_AGENT_MAX_ITERATIONS,
        verbose: bool = False,
    ):
        self.name = name
        self.system_prompt = system_prompt
        self.tools = list(tools)
        self.tool_budget = ToolCallBudget(max_tool_calls)
        self.max_iterations = max_iterations
        self.run_count = 0
        self.hooks = AgentBudgetHooks(observer, name, self.tool_budget, max_iterations, verbose)
        self.agent = Agent(
            name=name,
            model=model,
            system_prompt=system_prompt,
            tools=[bind_tool(tool, name, observer, enforcer) for tool in self.tools],
            hooks=[self.hooks],
            tool_executor=SequentialToolExecutor(),
            callback_handler=None,
        )

    @property
    def tool_calls_made(self) -> int:
        return self.tool_budget.used

    async def run(self, task: str) -> str:
        """
        Work on ``task`` and return the agent's answer.

        Makes at least one model call. Running out of tool calls or
        iterations returns the best answer available instead of raising.
        """
        self.run_count += 1
        logger.info(f"🤖 {self.name} starting run {self.run_count} "
                    f"({self.tool_budget.remaining} tool calls left)")

        # Every run starts from the task alone; earlier findings are in the task text
        self.agent.messages = []
        self.hooks.start_run()
        try:
            result = await self.agent.invoke_async(task)
        except Exception as e:
            raise ModelInvocationError(f"{self.name} model call failed: {e}") from e

        if self.hooks.stopped:
            if self.tool_budget.exhausted:
                logger.warning(f"⚠️ {self.name} exhausted its {self.tool_budget.limit} tool calls")
            return self.hooks.best_effort or f"{self.name} could not reach a conclusion within its budget."
        return message_text(result.message)


def create_domain_agent(
    domain: DomainSpec,
    model: Model,
    tool_pool: Sequence[DomainTool],
    observer: InvestigationObserver,
    config: InvestigationConfig,
    enforcer: BudgetEnforcer,
    peer_names: Optional[Sequence[str]] = None,
) -> DomainAgent:
    """
    Build the agent for ``domain`` with the tools matching its namespace.

    Args:
        domain: Catalog entry of the agent
        model: Strands model shared by the investigation
        tool_pool: Every tool discovered for the investigation
        observer: Event sink of the investigation
        config: Resolved investigation configuration
        enforcer: Budget enforcer of the investigation
        peer_names: Other agents this one may hand off to
    """
    tools = select_tools(tool_pool, domain.tool_prefix)
    peers = [name for name in (peer_names or []) if name != domain.name]
    system_prompt = load_prompt(domain.prompt_name, {"agents": ", ".join(peers) or "none"})
    logger.info(f"🧩 Creating {domain.name} with {len(tools)} tools")
    return DomainAgent(
        name=domain.name,
        model=model,
        system_prompt=system_prompt,
        tools=tools,
        observer=observer,
        enforcer=enforcer,
        max_tool_calls=config.max_tool_calls,
        verbose=config.verbose_logging,
    )
