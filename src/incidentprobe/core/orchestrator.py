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

Investigation orchestrator: the entry point callers use.
"""

import time
import traceback
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from strands.models import Model

from ..agents.domain_agent import DomainAgent, create_domain_agent
from ..agents.domains import DOMAIN_CATALOG, DomainSpec, select_domains
from ..agents.supervisor import Supervisor, SupervisorRun
from ..models.base import (
    InvestigationFailure,
    InvestigationOutcome,
    InvestigationResult,
)
from ..tools.base import DomainTool
from ..utils.config import InvestigationConfig, create_chat_model, get_mcp_servers, resolve_config
from ..utils.logger import get_logger
from ..utils.pricing import format_cost_report
from .budget import BudgetEnforcer
from .cost_ledger import CostLedger
from .errors import ConfigValidationError, ErrorKind, InvestigationError, InvestigationTimeoutError
from .events import InvestigationObserver
from .tool_selector import select_tools
from .tracer import ExecutionTracer

logger = get_logger(__name__)

ModelFactory = Callable[[InvestigationConfig], Model]


class ToolSource(Protocol):
    """Anything that can discover tools for an investigation."""

    async def load_tools(self) -> List[DomainTool]:
        ...

    async def close(self) -> None:
        ...


def _default_tool_source() -> Optional[ToolSource]:
    if not get_mcp_servers():
        return None
    from ..clients.mcp_client import MCPToolSource
    return MCPToolSource()


class InvestigationOrchestrator:
    """
    Runs investigations.

    The orchestrator itself only holds read-only collaborators. Every call to
    ``investigate`` builds its own ledger, tracer, observer and agents.
    """

    def __init__(
        self,
        model_factory: Optional[ModelFactory] = None,
        tools: Optional[Sequence[DomainTool]] = None,
        tool_source: Optional[ToolSource] = None,
        catalog: Tuple[DomainSpec, ...] = DOMAIN_CATALOG,
    ):
        self.model_factory = model_factory or create_chat_model
        self.static_tools: Tuple[DomainTool, ...] = tuple(tools or ())
        self.tool_source = tool_source if tool_source is not None else _default_tool_source()
        self.catalog = catalog

    async def close(self):
        """Release the tool source (open MCP connections)."""
        close = getattr(self.tool_source, "close", None)
        if close is not None:
            await close()
            logger.info("🔌 Tool source closed")

    async def investigate(
        self,
        query: str,
        config_overrides: Optional[Dict[str, Any]] = None,
        enabled_domains: Optional[Iterable[str]] = None,
    ) -> InvestigationOutcome:
        """
        Investigate ``query`` and return a result or a typed failure.

        Args:
            query: Free text description of the issue
            config_overrides: Partial InvestigationConfig (camelCase or snake_case keys)
            enabled_domains: Names of domain agents allowed to run (default: all)
        """
        start = time.monotonic()
        investigation_id = uuid.uuid4().hex[:8]

        try:
            config = resolve_config(config_overrides)
            domains = select_domains(enabled_domains, self.catalog)
        except (ConfigValidationError, ValueError) as e:
            logger.warning(f"🚫 Investigation {investigation_id} rejected: {e}")
            return InvestigationOutcome.failed(InvestigationFailure(
                query=query,
                error_kind=ErrorKind.CONFIG_VALIDATION.value,
                message=str(e),
                duration_ms=int((time.monotonic() - start) * 1000),
            ))

        ledger = CostLedger(config.provider, config.resolved_model)
        tracer = ExecutionTracer()
        observer = InvestigationObserver(ledger, tracer, verbose=config.verbose_logging)
        enforcer = BudgetEnforcer(config)

        logger.info("=" * 80)
        logger.info(f"🚀 INVESTIGATION STARTED (ID: {investigation_id})")
        logger.info(f"🔍 Query: {query[:100]}{'...' if len(query) > 100 else ''}")
        logger.info(f"⚙️ {config.provider.value}/{config.resolved_model}, timeout {config.timeout_ms}ms, "
                    f"hand-offs {config.recursion_limit}, tool calls {config.max_tool_calls}")
        logger.info("=" * 80)

        try:
            run = await enforcer.run(self._run(query, config, domains, observer, enforcer))
        except InvestigationTimeoutError as e:
            observer.seal()
            return self._failure(query, ErrorKind.TIMEOUT, str(e), start, ledger, tracer)
        except Exception as e:
            observer.seal()
            logger.error(f"❌ Investigation {investigation_id} failed: {e}")
            logger.debug(f"Traceback:\n{traceback.format_exc()}")
            return self._failure(query, ErrorKind.INTERNAL, str(e) or type(e).__name__, start, ledger, tracer)

        observer.seal()
        duration_ms = int((time.monotonic() - start) * 1000)
        cost_summary = ledger.summary()
        result = InvestigationResult(
            query=query,
            raw_summary=run.raw_summary,
            structured_summary=run.structured_summary,
            message_count=run.message_count,
            duration_ms=duration_ms,
            cost_summary=cost_summary,
            trace=tracer.get_trace(),
            domains=run.domains,
            handoff_count=run.handoff_count,
            termination_reason=run.termination_reason,
        )

        logger.info("=" * 80)
        logger.info(f"✅ INVESTIGATION COMPLETE in {duration_ms / 1000:.2f}s "
                    f"({run.termination_reason}, {run.handoff_count} hand-offs, ${cost_summary.total_cost:.6f})")
        logger.info("=" * 80)
        report = format_cost_report(cost_summary.model_dump(mode="json"))
        if config.verbose_logging:
            logger.info(report)
        else:
            logger.debug(report)

        return InvestigationOutcome.succeeded(result)

    async def _run(
        self,
        query: str,
        config: InvestigationConfig,
        domains: List[DomainSpec],
        observer: InvestigationObserver,
        enforcer: BudgetEnforcer,
    ) -> SupervisorRun:
        tool_pool = await self._load_tools()
        model = self.model_factory(config)
        agents = self._build_agents(domains, model, tool_pool, observer, config, enforcer)
        if not agents:
            raise InvestigationError("No domain agents available for this investigation")

        supervisor = Supervisor(
            domains=domains,
            agents=agents,
            model=model,
            observer=observer,
            recursion_limit=config.recursion_limit,
        )
        return await supervisor.run(query)

    async def _load_tools(self) -> List[DomainTool]:
        pool = list(self.static_tools)
        if self.tool_source is not None:
            try:
                pool.extend(await self.tool_source.load_tools())
            except Exception as e:
                logger.warning(f"⚠️ Tool discovery failed, continuing with {len(pool)} static tools: {e}")
        return pool

    @staticmethod
    def _build_agents(
        domains: List[DomainSpec],
        model: Model,
        tool_pool: List[DomainTool],
        observer: InvestigationObserver,
        config: InvestigationConfig,
        enforcer: BudgetEnforcer,
    ) -> Dict[str, DomainAgent]:
        runnable = []
        for domain in domains:
            if domain.requires_tools and not select_tools(tool_pool, domain.tool_prefix):
                logger.warning(f"⚠️ Skipping {domain.name}: no tools matching {domain.tool_prefix}")
                continue
            runnable.append(domain)

        names = [d.name for d in runnable]
        return {
            domain.name: create_domain_agent(domain, model, tool_pool, observer, config, enforcer, peer_names=names)
            for domain in runnable
        }

    @staticmethod
    def _failure(
        query: str,
        kind: ErrorKind,
        message: str,
        start: float,
        ledger: CostLedger,
        tracer: ExecutionTracer,
    ) -> InvestigationOutcome:
        trace = tracer.get_trace()
        logger.warning(f"⚠️ Investigation ended with {kind.value}: {message} "
                       f"({len(trace.steps)} steps recorded)")
        return InvestigationOutcome.failed(InvestigationFailure(
            query=query,
            error_kind=kind.value,
            message=message,
            duration_ms=int((time.monotonic() - start) * 1000),
            cost_summary=ledger.summary(),
            trace=trace,
        ))
