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

Budget enforcement: overall deadline, per-step deadline and call counters.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional

from ..utils.config import InvestigationConfig
from ..utils.logger import get_logger
from .errors import BudgetExceededError, InvestigationTimeoutError, StepTimeoutError

logger = get_logger(__name__)


class CallBudget:
    """Counter that refuses to go past its limit."""

    name = "call"

    def __init__(self, limit: int):
        if limit < 1:
            raise ValueError(f"{self.name} budget must be at least 1, got {limit}")
        self.limit = limit
        self.used = 0

    @property
    def remaining(self) -> int:
        return self.limit - self.used

    @property
    def exhausted(self) -> bool:
        return self.used >= self.limit

    def consume(self) -> int:
        """Take one unit of budget and return the new usage count."""
        if self.exhausted:
            raise BudgetExceededError(self.name, self.limit)
        self.used += 1
        return self.used


class HandoffBudget(CallBudget):
    """Supervisor to domain agent hand-offs (recursion limit)."""
    name = "handoff"


class ToolCallBudget(CallBudget):
    """Tool invocations of a single domain agent."""
    name = "tool_call"


class BudgetEnforcer:
    """
    Applies the time budgets of one investigation.

    The per-step deadline only applies when it is tighter than the overall
    deadline; otherwise the overall deadline governs every step.
    """

    def __init__(self, config: InvestigationConfig):
        self.timeout_ms = config.timeout_ms
        self.step_timeout_ms = config.step_timeout_ms

    @property
    def step_timeout_seconds(self) -> Optional[float]:
        if self.step_timeout_ms < self.timeout_ms:
            return self.step_timeout_ms / 1000
        return None

    async def run(self, awaitable: Awaitable[Any], operation: str = "Investigation") -> Any:
        """
        Await ``awaitable`` under the overall deadline.

        Raises:
            InvestigationTimeoutError: If the deadline expires first
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout_ms / 1000)
        except asyncio.TimeoutError as e:
            logger.warning(f"⏱️ {operation} exceeded {self.timeout_ms}ms deadline")
            raise InvestigationTimeoutError(operation, self.timeout_ms) from e

    async def run_step(self, call: Callable[[], Awaitable[Any]], name: str) -> Any:
        """
        Run one external call under the per-step deadline.

        Raises:
            StepTimeoutError: If the call exceeds the per-step deadline
        """
        timeout = self.step_timeout_seconds
        if timeout is None:
            return await call()
        try:
            return await asyncio.wait_for(call(), timeout=timeout)
        except asyncio.TimeoutError as e:
            raise StepTimeoutError(name, self.step_timeout_ms) from e
