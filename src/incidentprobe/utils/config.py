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

Centralized configuration utilities for IncidentProbe.
Handles environment variable parsing, per-request investigation config
resolution and chat model construction.
"""

import json
import os
from enum import Enum
from typing import Dict, Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..core.errors import ConfigValidationError
from .logger import get_logger

logger = get_logger(__name__)

# Bounded model iterations for a single domain agent run
DEFAULT_AGENT_MAX_ITERATIONS = 10

GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class LLMProvider(str, Enum):
    """Supported chat model providers."""
    OPENAI = "openai"
    GROQ = "groq"
    OLLAMA = "ollama"
    BEDROCK = "bedrock"


def _default_provider() -> LLMProvider:
    return LLMProvider(os.getenv("INCIDENTPROBE_PROVIDER", LLMProvider.BEDROCK.value).lower())


class InvestigationConfig(BaseModel):
    """Per-request investigation configuration with safety bounds."""
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=False,
    )

    provider: LLMProvider = Field(default_factory=_default_provider, description="Chat model provider")
    model: Optional[str] = Field(default=None, min_length=1, description="Model override (provider default when unset)")
    temperature: float = Field(default=0.0, strict=True, ge=0.0, le=2.0, description="Sampling temperature")
    recursion_limit: int = Field(default=100, strict=True, ge=1, le=100, description="Maximum supervisor hand-offs")
    max_tool_calls: int = Field(default=30, strict=True, ge=1, le=100, description="Maximum tool calls per domain agent")
    timeout_ms: int = Field(default=600000, strict=True, ge=1000, le=600000, description="Overall investigation deadline")
    step_timeout_ms: int = Field(default=120000, strict=True, ge=1000, le=300000, description="Deadline for a single tool call")
    max_tokens: int = Field(default=60000, strict=True, ge=100, le=128000, description="Maximum output tokens per model call")
    verbose_logging: bool = Field(default=False, strict=True, description="Log tool and model payloads at info level")

    @property
    def resolved_model(self) -> str:
        """Model id actually used: the override or the provider default."""
        return self.model or get_default_model_id(self.provider)


def resolve_config(overrides: Optional[Dict[str, Any]] = None) -> InvestigationConfig:
    """
    Merge overrides onto the default configuration and validate bounds.

    Overrides may use camelCase (wire) or snake_case keys.

    Raises:
        ConfigValidationError: If any override is unknown or out of bounds
    """
    if overrides is None:
        overrides = {}
    if not isinstance(overrides, dict):
        raise ConfigValidationError("Configuration overrides must be an object")

    try:
        config = InvestigationConfig.model_validate(overrides)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        details = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise ConfigValidationError(f"Invalid investigation config: {details}", errors) from e

    if config.verbose_logging:
        logger.info(f"🔧 Resolved config: {config.model_dump(mode='json')}")
    return config


def get_default_model_id(provider: LLMProvider) -> str:
    """
    Get the default model id for a provider from environment variables.

    Supported environment variables:
    - BEDROCK_MODEL_ID (default: "us.anthropic.claude-opus-4-5-20251101-v1:0")
    - OPENAI_MODEL (default: "gpt-5.2")
    - GROQ_MODEL (default: "qwen/qwen3-32b")
    - OLLAMA_MODEL (default: "qwen3:32b")
    """
    defaults = {
        LLMProvider.BEDROCK: ("BEDROCK_MODEL_ID", "us.anthropic.claude-opus-4-5-20251101-v1:0"),
        LLMProvider.OPENAI: ("OPENAI_MODEL", "gpt-5.2"),
        LLMProvider.GROQ: ("GROQ_MODEL", "qwen/qwen3-32b"),
        LLMProvider.OLLAMA: ("OLLAMA_MODEL", "qwen3:32b"),
    }
    env_key, default = defaults[LLMProvider(provider)]
    return os.getenv(env_key, default)


def create_chat_model(config: InvestigationConfig):
    """
    Create a strands model for the configured provider.

    Args:
        config: Resolved investigation configuration

    Returns:
        A strands Model instance (BedrockModel, OpenAIModel or OllamaModel)
    """
    model_id = config.resolved_model
    provider = LLMProvider(config.provider)
    logger.info(f"🤖 Creating {provider.value} model: {model_id} (temperature={config.temperature})")

    if provider == LLMProvider.BEDROCK:
        from strands.models import BedrockModel
        return BedrockModel(
            model_id=model_id,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            streaming=False,
        )

    if provider in (LLMProvider.OPENAI, LLMProvider.GROQ):
        from strands.models.openai import OpenAIModel
        if provider == LLMProvider.GROQ:
            client_args = {"api_key": os.getenv("GROQ_API_KEY"), "base_url": GROQ_BASE_URL}
        else:
            client_args = {"api_key": os.getenv("OPENAI_API_KEY")}
        return OpenAIModel(
            client_args=client_args,
            model_id=model_id,
            params={"temperature": config.temperature, "max_tokens": config.max_tokens},
        )

    from strands.models.ollama import OllamaModel
    return OllamaModel(
        host=os.getenv("OLLAMA_HOST", "http://localhost:11434"),
        model_id=model_id,
        temperature=config.temperature,
        max_tokens=config.max_tokens,
    )


def get_mcp_servers() -> Dict[str, str]:
    """
    Get MCP servers to discover tools from.

    INCIDENTPROBE_MCP_SERVERS holds a JSON object mapping server name to URL,
    for example {"chunkhound": "http://localhost:3000/mcp"}.
    """
    raw = os.getenv("INCIDENTPROBE_MCP_SERVERS")
    if not raw:
        return {}
    try:
        servers = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning(f"⚠️ Ignoring malformed INCIDENTPROBE_MCP_SERVERS: {e}")
        return {}
    if not isinstance(servers, dict):
        logger.warning("⚠️ INCIDENTPROBE_MCP_SERVERS must be a JSON object")
        return {}
    return {str(name): str(url) for name, url in servers.items()}


def get_mcp_timeout() -> float:
    """MCP request timeout in seconds."""
    try:
        return float(os.getenv("INCIDENTPROBE_MCP_TIMEOUT", "30"))
    except ValueError:
        return 30.0


def setup_strands_telemetry():
    """
    Initialize Strands telemetry when an OTLP endpoint is configured.

    Uses StrandsTelemetry with the standard OTEL_* environment variables:
    - OTEL_EXPORTER_OTLP_ENDPOINT: enables the OTLP exporter
    - OTEL_EXPORTER_OTLP_HEADERS: optional exporter headers
    - OTEL_SERVICE_NAME: service name (default: incidentprobe)
    """
    otlp_endpoint = os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")
    if not otlp_endpoint:
        return None

    os.environ.setdefault("OTEL_SERVICE_NAME", "incidentprobe")
    try:
        from strands.telemetry import StrandsTelemetry

        telemetry = StrandsTelemetry()
        telemetry.setup_otlp_exporter()
        logger.info(f"📡 Strands telemetry exporting to {otlp_endpoint}")
        return telemetry
    except Exception as e:
        logger.warning(f"⚠️ Failed to initialize Strands telemetry: {e}")
        return None


def get_environment_info() -> Dict[str, Any]:
    """
    Get environment information for status reporting.

    Returns:
        Dict[str, Any]: Environment configuration summary
    """
    provider = _default_provider()
    return {
        "provider": provider.value,
        "model_id": get_default_model_id(provider),
        "mcp_servers": sorted(get_mcp_servers().keys()),
        "telemetry_enabled": bool(os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT")),
        "log_level": os.getenv("INCIDENTPROBE_LOG_LEVEL", "INFO"),
    }
