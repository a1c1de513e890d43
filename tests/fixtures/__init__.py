"""Test fixtures for investigation testing."""

from .model_mocks import (
    SONNET_MODEL,
    FailingModel,
    InvestigationHarness,
    ModelTurn,
    ScriptedModel,
    make_tool,
    synthesis_body,
    synthesis_response,
    text_response,
    tool_call_response,
    usage_payload,
)

__all__ = [
    "SONNET_MODEL",
    "FailingModel",
    "InvestigationHarness",
    "ModelTurn",
    "ScriptedModel",
    "make_tool",
    "synthesis_body",
    "synthesis_response",
    "text_response",
    "tool_call_response",
    "usage_payload",
]
