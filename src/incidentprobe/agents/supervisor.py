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

Supervisor: a finite-state router over the enabled domain agents.

States are the domain agents plus a terminal synthesis state. Each routing
to an agent is one hand-off; the hand-off budget is the only bound on
cycles. Routing is a deterministic keyword classifier, overridden by an
explicit ``HANDOFF: <agent>`` line in the latest agent output.
"""


import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from strands import Agent
from strands.models import Model
from strands.types.exceptions import StructuredOutputException

from ..core.budget import HandoffBudget
from ..core.errors import ModelInvocationError
from ..core.events import InvestigationObserver
from ..models.base import InvestigationSummary
from ..utils.logger import get_logger
from ..utils.prompt_loader import load_prompt
from .domain_agent import DomainAgent
from .domains import DomainSpec
from .hooks import ModelCallRecorder, message_text

logger = get_logger(__name__)

SUPERVISOR_AGENT = "supervisor"
SUMMARY_FALLBACK_CHARS = 1000

TERMINATION_COMPLETED = "completed"
TERMINATION_RECURSION_LIMIT = "recursion_limit"

HANDOFF_PATTERN = re.compile(r"^\s*HANDOFF:\s*([A-Za-z0-9_]+)\s*$", re.MULTILINE)


@dataclass
class SupervisorRun:
    """What the supervisor produced for one investigation."""
    raw_summary: str
    structured_summary: InvestigationSummary
    message_count: int
    domains: List[str] = field(default_factory=list)
    handoff_count: int = 0
    termination_reason: str = TERMINATION_COMPLETED


def parse_handoff(output: str) -> Optional[str]:
    """Return the agent named by the last HANDOFF line, if any."""
    matches = HANDOFF_PATTERN.findall(output or "")
    return matches[-1] if matches else None


def score_domain(domain: DomainSpec, text: str) -> int:
    """Number of distinct domain keywords present in ``text`` as whole words (plural allowed)."""
    lowered = text.lower()
    return sum(1 for keyword in domain.keywords if re.search(rf"\b{re.escape(keyword)}s?\b", lowered))


def fallback_summary(raw: str) -> InvestigationSummary:
    """Summary built from the raw synthesis text, truncated to 1000 characters."""
    text = raw or ""
    if len(text) > SUMMARY_FALLBACK_CHARS:
        text = text[:SUMMARY_FALLBACK_CHARS] + "..."
    return InvestigationSummary(summary=text)


def with_agent_outputs(summary: InvestigationSummary, agent_outputs: Dict[str, str]) -> InvestigationSummary:
    """Raw agent outputs replace whatever the supervisor wrote for those agents."""
    merged = dict(summary.agent_summaries)
    merged.update(agent_outputs)
    return summary.model_copy(update={"agent_summaries": merged})


def last_assistant_text(messages: List[dict]) -> str:
    for message in reversed(messages):
        if message.get("role") == "assistant":
            text = message_text(message)
            if text.strip():
                return text
    return ""


class Supervisor:
    """Routes an investigation across domain agents, then synthesizes."""

    def __init__(
        self,
        domains: Sequence[DomainSpec],
        agents: Dict[str, DomainAgent],
        model: Model,
        observer: InvestigationObserver,
        recursion_limit: int,
    ):
        self.domains = [d for d in domains if d.name in agents]
        self.agents = agents
        self.model = model
        self.observer = observer
        self.recursion_limit = recursion_limit

    def route(self, query: str, latest_output: str, current: Optional[str], visited: Set[str]) -> Optional[str]:
        """
        Choose the next agent, or None to synthesize.

        An explicit hand-off to another enabled agent wins. Otherwise the
        unvisited agent with the most keyword hits runs, earliest declared
        on ties. With nothing run yet, the first agent is the fallback.
        """
        explicit = parse_handoff(latest_output)
        if explicit and explicit in self.agents and explicit != current:
            return explicit
        if explicit and explicit not in self.agents:
            logger.warning(f"⚠️ Ignoring hand-off to unavailable agent: {explicit}")

        text = f"{query}\n{latest_output}"
        best: Optional[Tuple[int, str]] = None
        for domain in self.domains:
            if domain.name in visited:
                continue
            score = score_domain(domain, text)
            if score > 0 and (best is None or score > best[0]):
                best = (score, domain.name)

        if best is not None:
            return best[1]
        if not visited and self.domains:
            return self.domains[0].name
        return None

    async def run(self, query: str) -> SupervisorRun:
        budget = HandoffBudget(self.recursion_limit)
        visited: Set[str] = set()
        sequence: List[str] = []
        findings: List[Tuple[str, str]] = []
        agent_outputs: Dict[str, str] = {}
        latest_output = ""
        current: Optional[str] = None
        termination_reason = TERMINATION_COMPLETED

        while True:
            next_agent = self.route(query, latest_output, current, visited)
            if next_agent is None:
                break
            if budget.exhausted:
                termination_reason = TERMINATION_RECURSION_LIMIT
                logger.warning(f"⚠️ Hand-off limit of {self.recursion_limit} reached, forcing synthesis")
                break

            hop = budget.consume()
            logger.info(f"🔀 Hand-off {hop}/{self.recursion_limit}: {current or SUPERVISOR_AGENT} -> {next_agent}")
            output = await self.agents[next_agent].run(self._build_task(query, findings))

            findings.append((next_agent, output))
            agent_outputs[next_agent] = output
            sequence.append(next_agent)
            visited.add(next_agent)
            latest_output = output
            current = next_agent

        raw_summary, summary = await self._synthesize(query, findings)

        return SupervisorRun(
            raw_summary=raw_summary,
            structured_summary=with_agent_outputs(summary, agent_outputs),
            message_count=1 + len(findings) + 1,
            domains=sequence,
            handoff_count=budget.used,
            termination_reason=termination_reason,
        )

    @staticmethod
    def _build_task(query: str, findings: List[Tuple[str, str]]) -> str:
        parts = [f"Investigation request:\n{query}"]
        if findings:
            parts.append("Findings so far:")
            for agent, output in findings:
                parts.append(f"### {agent}\n{output}")
        return "\n\n".join(parts)

    async def _synthesize(self, query: str, findings: List[Tuple[str, str]]) -> Tuple[str, InvestigationSummary]:
        """
        Ask the supervisor model for an InvestigationSummary.

        Uses strands structured output. When the model never produces a
        valid summary, its last text answer becomes the fallback summary.
        """
        prompt = self._build_task(query, findings)
        if not findings:
            prompt += "\n\nNo specialist produced findings."

        agent = Agent(
            name=SUPERVISOR_AGENT,
            model=self.model,
            system_prompt=load_prompt("supervisor_synthesis"),
            hooks=[ModelCallRecorder(self.observer, SUPERVISOR_AGENT, verbose=self.observer.verbose)],
            callback_handler=None,
        )
        try:
            result = await agent.invoke_async(prompt, structured_output_model=InvestigationSummary)
        except StructuredOutputException as e:
            raw = last_assistant_text(agent.messages)
            logger.warning(f"⚠️ Structured summary unavailable, using raw fallback: {e}")
            return raw, fallback_summary(raw)
        except Exception as e:
            raise ModelInvocationError(f"Synthesis failed: {e}") from e

        summary = result.structured_output
        if not isinstance(summary, InvestigationSummary):
            raw = message_text(result.message) or last_assistant_text(agent.messages)
            logger.warning("⚠️ Synthesis returned no structured summary, using raw fallback")
            return raw, fallback_summary(raw)

        raw = str(result)
        logger.info(f"📝 Synthesis produced {len(raw)} characters")
        return raw, summary
