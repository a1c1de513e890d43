"""Shared pytest configuration for IncidentProbe tests."""

import pytest


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Keep tests independent of the developer's environment."""
    for name in (
        "INCIDENTPROBE_PROVIDER",
        "INCIDENTPROBE_MCP_SERVERS",
        "INCIDENTPROBE_LOG_FILE",
        "BEDROCK_MODEL_ID",
        "OPENAI_MODEL",
        "GROQ_MODEL",
        "OLLAMA_MODEL",
        "OTEL_EXPORTER_OTLP_ENDPOINT",
    ):
        monkeypatch.delenv(name, raising=False)
