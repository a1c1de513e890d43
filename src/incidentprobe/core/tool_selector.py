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

Tool selection by source namespace.
"""

from typing import Iterable, List, TypeVar

NAMESPACE_SEPARATOR = "__"
MCP_NAMESPACE = "mcp"

T = TypeVar("T")


def namespaced_tool_name(source: str, tool: str) -> str:
    """Build a namespaced tool name, e.g. ``newrelic__fetch_logs``."""
    return f"{source}{NAMESPACE_SEPARATOR}{tool}"


def mcp_tool_name(server: str, tool: str) -> str:
    """Name of a tool discovered on an MCP server: ``mcp__<server>__<tool>``."""
    return namespaced_tool_name(namespaced_tool_name(MCP_NAMESPACE, server), tool)


def _tool_name(tool) -> str:
    return tool if isinstance(tool, str) else tool.name


def select_tools(pool: Iterable[T], prefix: str) -> List[T]:
    """Return the tools whose name starts with ``prefix``, keeping pool order."""
    if not pool:
        return []
    return [tool for tool in pool if _tool_name(tool).startswith(prefix)]


def select_mcp_server_tools(pool: Iterable[T], server: str) -> List[T]:
    """Tools discovered on one MCP server."""
    return select_tools(pool, mcp_tool_name(server, ""))
