#!/usr/bin/env python3
"""
Test pricing, the cost ledger and cost reporting.
"""

import pytest

from incidentprobe.core.cost_ledger import CostLedger
from incidentprobe.models.base import TokenUsage
from incidentprobe.utils.config import LLMProvider
from incidentprobe.utils.pricing import (
    DEFAULT_PRICING,
    calculate_cost,
    format_cost_report,
    get_model_pricing,
)

from tests.fixtures import SONNET_MODEL


class TestPricingTable:
    """Test static provider/model pricing."""

    def test_sonnet_example_cost(self):
        """Test 120 input and 30 output tokens at $3/$15 per million."""
        cost = calculate_cost(120, 30, SONNET_MODEL, LLMProvider.BEDROCK)
        assert cost == pytest.approx(0.00081)

    def test_known_models(self):
        """Test published rates for the default models."""
        assert calculate_cost(1_000_000, 0, "gpt-5.2", LLMProvider.OPENAI) == pytest.approx(1.75)
        assert calculate_cost(0, 1_000_000, "qwen/qwen3-32b", LLMProvider.GROQ) == pytest.approx(0.59)
        opus = "us.anthropic.claude-opus-4-5-20251101-v1:0"
        assert calculate_cost(1_000_000, 1_000_000, opus, LLMProvider.BEDROCK) == pytest.approx(30.0)

    def test_ollama_is_free(self):
        """Test that local Ollama inference never costs anything."""
        assert calculate_cost(50_000, 50_000, "gpt-5.2", LLMProvider.OLLAMA) == 0.0

    def test_unknown_model_uses_default_rate(self):
        """Test that unknown models resolve to the documented zero default."""
        assert get_model_pricing("mystery-model", LLMProvider.OPENAI) is DEFAULT_PRICING
        assert calculate_cost(10_000, 10_000, "mystery-model", LLMProvider.BEDROCK) == 0.0

    def test_model_is_scoped_to_provider(self):
        """Test that a model id priced for one provider is unknown for another."""
        assert get_model_pricing("gpt-5.2", LLMProvider.GROQ) is DEFAULT_PRICING


class TestCostLedger:
    """Test per-investigation cost accumulation."""

    @pytest.fixture
    def ledger(self):
        return CostLedger(LLMProvider.BEDROCK, SONNET_MODEL)

    def test_step_identifiers_increase(self, ledger):
        """Test that step ids are llm-call-1, llm-call-2, ..."""
        steps = [ledger.record_step(TokenUsage.from_counts(10, 5)) for _ in range(3)]
        assert [s.step for s in steps] == ["llm-call-1", "llm-call-2", "llm-call-3"]

    def test_record_step_prices_usage(self, ledger):
        """Test that a recorded step carries its computed cost."""
        step = ledger.record_step(TokenUsage.from_counts(120, 30))
        assert step.total_tokens == 150
        assert step.cost == pytest.approx(0.00081)

    @pytest.mark.parametrize("counts", [
        [],
        [(120, 30)],
        [(1000, 200), (5, 0), (0, 7), (333, 333)],
    ])
    def test_summary_totals_equal_step_sums(self, ledger, counts):
        """Test that summary totals are the sums over recorded steps."""
        for input_tokens, output_tokens in counts:
            ledger.record_step(TokenUsage.from_counts(input_tokens, output_tokens))

        summary = ledger.summary()
        assert len(summary.steps) == len(counts)
        assert summary.total_cost == pytest.approx(sum(s.cost for s in summary.steps))
        assert summary.total_tokens == sum(s.total_tokens for s in summary.steps)
        assert summary.total_input_tokens == sum(c[0] for c in counts)
        assert summary.total_output_tokens == sum(c[1] for c in counts)
        assert summary.model == SONNET_MODEL
        assert summary.provider == "bedrock"

    def test_summary_is_a_snapshot(self, ledger):
        """Test that summaries taken mid-run are not mutated by later steps."""
        ledger.record_step(TokenUsage.from_counts(10, 10))
        early = ledger.summary()
        ledger.record_step(TokenUsage.from_counts(10, 10))
        assert len(early.steps) == 1
        assert len(ledger.summary().steps) == 2

    def test_separate_ledgers_do_not_share_steps(self):
        """Test that two ledgers keep independent counters."""
        first = CostLedger(LLMProvider.BEDROCK, SONNET_MODEL)
        second = CostLedger(LLMProvider.BEDROCK, SONNET_MODEL)
        first.record_step(TokenUsage.from_counts(1, 1))
        first.record_step(TokenUsage.from_counts(1, 1))
        step = second.record_step(TokenUsage.from_counts(1, 1))
        assert step.step == "llm-call-1"
        assert len(second.summary().steps) == 1


class TestCostReport:
    """Test the human-readable cost report."""

    def test_report_lists_totals_and_steps(self):
        ledger = CostLedger(LLMProvider.BEDROCK, SONNET_MODEL)
        ledger.record_step(TokenUsage.from_counts(120, 30))
        report = format_cost_report(ledger.summary().model_dump(mode="json"))

        assert "Investigation Cost Report" in report
        assert SONNET_MODEL in report
        assert "llm-call-1: 150 tokens" in report
        assert "$0.000810" in report
