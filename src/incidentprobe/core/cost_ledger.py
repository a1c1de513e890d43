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

Per-investigation cost ledger.
"""

from decimal import Decimal
from typing import List

from ..models.base import CostSummary, StepCost, TokenUsage
from ..utils.config import LLMProvider
from ..utils.logger import get_logger
from ..utils.pricing import calculate_cost

logger = get_logger(__name__)

STEP_PREFIX = "llm-call"


class CostLedger:
    """
    Accumulates the cost of every model call of one investigation.

    A ledger belongs to exactly one investigation; the orchestrator creates
    it inside ``investigate`` and drops it when the call returns.
    """

    def __init__(self, provider: LLMProvider, model: str):
        self.provider = LLMProvider(provider)
        self.model = model
        self._steps: List[StepCost] = []

    @property
    def steps(self) -> List[StepCost]:
        return list(self._steps)

    def record_step(self, usage: TokenUsage) -> StepCost:
        """Price a completed model call and append it to the ledger."""
        cost = calculate_cost(usage.input_tokens, usage.output_tokens, self.model, self.provider)
        step = StepCost(
            step=f"{STEP_PREFIX}-{len(self._steps) + 1}",
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.total_tokens,
            cost=cost,
        )
        self._steps.append(step)
        logger.debug(f"💰 {step.step}: {step.total_tokens} tokens, ${step.cost:.6f}")
        return step

    def summary(self) -> CostSummary:
        """Aggregate all recorded steps; safe to call mid-run."""
        steps = list(self._steps)
        total_cost = sum((Decimal(str(s.cost)) for s in steps), Decimal("0"))
        return CostSummary(
            steps=steps,
            total_input_tokens=sum(s.input_tokens for s in steps),
            total_output_tokens=sum(s.output_tokens for s in steps),
            total_tokens=sum(s.total_tokens for s in steps),
            total_cost=float(total_cost),
            model=self.model,
            provider=self.provider.value,
        )
