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

Token pricing configuration for cost calculation.
Rates are USD per one million tokens.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Any

from .config import LLMProvider
from .logger import get_logger

logger = get_logger(__name__)

ONE_MILLION = Decimal(1_000_000)


@dataclass(frozen=True)
class ModelPricing:
    """Pricing information for a specific model."""
    model_id: str
    input_per_1m: Decimal
    output_per_1m: Decimal
    currency: str = "USD"

    def calculate_cost(self, input_tokens: int, output_tokens: int) -> Decimal:
        """
        Calculate the cost for given token usage.

        Args:
            input_tokens: Number of input tokens
            output_tokens: Number of output tokens

        Returns:
            Total cost in the specified currency
        """
        input_cost = (Decimal(input_tokens) / ONE_MILLION) * self.input_per_1m
        output_cost = (Decimal(output_tokens) / ONE_MILLION) * self.output_per_1m
        return input_cost + output_cost


# OpenAI Models Pricing (as of December 2025)
OPENAI_PRICING = {
    "gpt-5.2": ModelPricing(
        model_id="gpt-5.2",
        input_per_1m=Decimal("1.75"),
        output_per_1m=Decimal("14"),
    ),
}

# Groq Models Pricing (as of December 2025)
GROQ_PRICING = {
    "qwen/qwen3-32b": ModelPricing(
        model_id="qwen/qwen3-32b",
        input_per_1m=Decimal("0.29"),
        output_per_1m=Decimal("0.59"),
    ),
    "qwen3-32b": ModelPricing(
        model_id="qwen3-32b",
        input_per_1m=Decimal("0.29"),
        output_per_1m=Decimal("0.59"),
    ),
}

# Bedrock Models Pricing (as of December 2025)
BEDROCK_PRICING = {
    "us.anthropic.claude-opus-4-5-20251101-v1:0": ModelPricing(
        model_id="us.anthropic.claude-opus-4-5-20251101-v1:0",
        input_per_1m=Decimal("5"),
        output_per_1m=Decimal("25"),
    ),
    "us.anthropic.claude-sonnet-4-5-20250929-v1:0": ModelPricing(
        model_id="us.anthropic.claude-sonnet-4-5-20250929-v1:0",
        input_per_1m=Decimal("3"),
        output_per_1m=Decimal("15"),
    ),
    "us.anthropic.claude-haiku-4-5-20251001-v1:0": ModelPricing(
        model_id="us.anthropic.claude-haiku-4-5-20251001-v1:0",
        input_per_1m=Decimal("1"),
        output_per_1m=Decimal("5"),
    ),
}

PRICING_BY_PROVIDER: Dict[LLMProvider, Dict[str, ModelPricing]] = {
    LLMProvider.OPENAI: OPENAI_PRICING,
    LLMProvider.GROQ: GROQ_PRICING,
    LLMProvider.BEDROCK: BEDROCK_PRICING,
}

# Local inference, never billed
OLLAMA_PRICING = ModelPricing(
    model_id="ollama",
    input_per_1m=Decimal("0"),
    output_per_1m=Decimal("0"),
)

# Unknown provider/model combinations are tracked at zero cost
DEFAULT_PRICING = ModelPricing(
    model_id="unknown",
    input_per_1m=Decimal("0"),
    output_per_1m=Decimal("0"),
)


def get_model_pricing(model_id: str, provider: LLMProvider) -> ModelPricing:
    """
    Get pricing information for a model served by a provider.

    Args:
        model_id: The model identifier
        provider: The provider serving the model

    Returns:
        ModelPricing for the model, or DEFAULT_PRICING if not found
    """
    provider = LLMProvider(provider)
    if provider == LLMProvider.OLLAMA:
        return OLLAMA_PRICING

    pricing = PRICING_BY_PROVIDER.get(provider, {}).get(model_id)
    if pricing is None:
        logger.debug(f"No pricing for {provider.value}/{model_id}, using default rate")
        return DEFAULT_PRICING
    return pricing


def calculate_cost(input_tokens: int, output_tokens: int, model_id: str, provider: LLMProvider) -> float:
    """
    Calculate the cost of a single model call in USD.

    Decimal arithmetic keeps per-step costs exact before conversion.
    """
    pricing = get_model_pricing(model_id, provider)
    return float(pricing.calculate_cost(input_tokens, output_tokens))


def format_cost_report(cost_summary: Dict[str, Any]) -> str:
    """
    Format a cost summary into a human-readable report.

    Args:
        cost_summary: Serialized CostSummary (snake_case keys)

    Returns:
        Formatted report string
    """
    lines = [
        "💰 Investigation Cost Report",
        "=" * 40,
        f"Provider: {cost_summary.get('provider', 'unknown')}",
        f"Model: {cost_summary.get('model', 'unknown')}",
        f"Total Cost: ${cost_summary.get('total_cost', 0.0):.6f} USD",
        "",
        "📊 Token Usage:",
        f"  Input Tokens: {cost_summary.get('total_input_tokens', 0):,}",
        f"  Output Tokens: {cost_summary.get('total_output_tokens', 0):,}",
        f"  Total Tokens: {cost_summary.get('total_tokens', 0):,}",
    ]

    steps = cost_summary.get("steps", [])
    if steps:
        lines.append("")
        lines.append(f"🧾 Steps ({len(steps)}):")
        for step in steps:
            lines.append(
                f"  {step['step']}: {step['total_tokens']:,} tokens - ${step['cost']:.6f}"
            )

    return "\n".join(lines)
