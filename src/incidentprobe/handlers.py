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

Shared investigation handler logic.
Transport-independent: validates the request body, runs the orchestrator and
builds the ServiceResponse envelope plus its HTTP status.
"""

from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .core.errors import ErrorKind
from .core.orchestrator import InvestigationOrchestrator
from .utils.logger import get_logger

logger = get_logger(__name__)

_orchestrator: Optional[InvestigationOrchestrator] = None


class InvestigateRequest(BaseModel):
    """Body of POST /agent/investigate."""
    model_config = ConfigDict(extra="forbid")

    query: str = Field(min_length=1, max_length=10000, description="Free text description of the issue")
    config: Optional[Dict[str, Any]] = Field(default=None, description="InvestigationConfig overrides (camelCase)")
    domains: Optional[List[str]] = Field(default=None, min_length=1, description="Domain agents allowed to run")


def service_response(success: bool, message: str, data: Any = None, **extra: Any) -> Dict[str, Any]:
    """ServiceResponse envelope shared by every endpoint."""
    response = {"success": success, "message": message, "data": data}
    response.update(extra)
    return response


def get_orchestrator() -> InvestigationOrchestrator:
    """Process-wide orchestrator; it holds no per-request state."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = InvestigationOrchestrator()
    return _orchestrator


async def shutdown_orchestrator():
    """Close the shared orchestrator, if one was created."""
    global _orchestrator
    if _orchestrator is not None:
        await _orchestrator.close()
        _orchestrator = None


def _validation_message(error: ValidationError) -> str:
    parts = []
    for err in error.errors():
        location = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{location}: {err['msg']}")
    return "Invalid request: " + "; ".join(parts)


async def handle_investigation(
    payload: Any,
    orchestrator: Optional[InvestigationOrchestrator] = None,
) -> Tuple[int, Dict[str, Any]]:
    """
    Run an investigation for a parsed JSON payload.

    Returns:
        (HTTP status, ServiceResponse body)
    """
    try:
        request = InvestigateRequest.model_validate(payload)
    except ValidationError as e:
        message = _validation_message(e)
        logger.warning(f"🚫 {message}")
        return 400, service_response(False, message)

    orchestrator = orchestrator or get_orchestrator()
    outcome = await orchestrator.investigate(
        request.query,
        config_overrides=request.config,
        enabled_domains=request.domains,
    )

    if outcome.success:
        return 200, service_response(True, "Investigation complete", outcome.result.to_dict())

    failure = outcome.failure
    status = 400 if failure.error_kind == ErrorKind.CONFIG_VALIDATION.value else 500
    error = failure.to_dict()
    error.pop("query", None)
    return status, service_response(False, failure.message, None, error=error)
