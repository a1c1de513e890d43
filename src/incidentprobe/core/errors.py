#!/usr/bin/env python3
"""
IncidentProbe Core - Investigation error types
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

Only ConfigValidationError and InvestigationTimeoutError surface as
request-level failures. The rest are absorbed into the trace and result.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class ErrorKind(Enum):
    """Typed failure kinds returned to callers."""
    CONFIG_VALIDATION = "config_validation"
    TIMEOUT = "timeout"
    INTERNAL = "internal"


class InvestigationError(Exception):
    """Base class for all investigation errors."""
    pass


class ConfigValidationError(InvestigationError):
    """Raised when configuration overrides are malformed or out of bounds."""

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class BudgetExceededError(InvestigationError):
    """Raised when a hand-off or tool-call budget is exhausted."""

    def __init__(self, budget: str, limit: int):
        super().__init__(f"{budget} budget of {limit} exhausted")
        self.budget = budget
        self.limit = limit


class InvestigationTimeoutError(InvestigationError):
    """Raised when the investigation exceeds its overall deadline."""

    def __init__(self, operation: str, timeout_ms: int):
        super().__init__(f"{operation} timed out after {timeout_ms}ms")
        self.operation = operation
        self.timeout_ms = timeout_ms


class ToolExecutionError(InvestigationError):
    """Raised when a single tool call fails."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name
        self.reason = message


class StepTimeoutError(ToolExecutionError):
    """Raised when a single tool call exceeds the per-step timeout."""

    def __init__(self, tool_name: str, timeout_ms: int):
        super().__init__(tool_name, f"timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms
        # Trace entries record step timeouts as plain "timeout"
        self.reason = "timeout"


class UsageNormalizationMiss(InvestigationError):
    """Raised when a usage payload matches none of the known shapes."""
    pass


class ModelInvocationError(InvestigationError):
    """Raised when a chat model call fails."""
    pass
