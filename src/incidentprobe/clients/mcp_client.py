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

MCP tool discovery over JSON-RPC HTTP.
Discovered tools are exposed as DomainTools named ``mcp__<server>__<tool>``.
"""

import itertools
import json
import time
from typing import Any, Dict, List, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..core.tool_selector import mcp_tool_name
from ..tools.base import DomainTool, ToolOutput
from ..utils.config import get_mcp_servers, get_mcp_timeout
from ..utils.logger import get_logger

logger = get_logger(__name__)


class MCPClientError(Exception):
    """Custom exception for MCP client errors."""
    pass


class MCPClient:
    """Client for a single MCP server speaking JSON-RPC over HTTP."""

    def __init__(self, name: str, server_url: str, timeout: float = 30, transport: Optional[httpx.AsyncBaseTransport] = None):
        """
        Initialize MCP client.

        Args:
            name: Server name used in tool namespaces
            server_url: URL of the MCP server endpoint
            timeout: Request timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.name = name
        self.server_url = server_url
        self.timeout = timeout
        self._ids = itertools.count(1)

        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
            transport=transport,
        )

        logger.info(f"Initialized MCP client '{name}' for server: {server_url}")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(httpx.RequestError),
        reraise=True,
    )
    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        response = await self.client.post(self.server_url, json=payload)
        response.raise_for_status()
        return response

    async def _rpc(self, method: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": params or {}}
        try:
            response = await self._post(payload)
            body = response.json()
        except httpx.HTTPStatusError as e:
            raise MCPClientError(f"MCP server {self.name} returned HTTP {e.response.status_code}: {e.response.text}")
        except httpx.RequestError as e:
            raise MCPClientError(f"Request to MCP server {self.name} failed: {str(e)}")
        except json.JSONDecodeError as e:
            raise MCPClientError(f"Failed to parse MCP response from {self.name}: {str(e)}")

        if "error" in body:
            error = body["error"]
            message = error.get("message", str(error)) if isinstance(error, dict) else str(error)
            raise MCPClientError(f"MCP server {self.name} error on {method}: {message}")
        if "result" not in body:
            raise MCPClientError(f"Invalid MCP response format from {self.name}")
        return body["result"]

    async def list_tools(self) -> List[Dict[str, Any]]:
        """Return the raw tool descriptors advertised by the server."""
        result = await self._rpc("tools/list")
        return list(result.get("tools", []))

    async def call_tool(self, tool_name: str, arguments: Dict[str, Any]) -> ToolOutput:
        """
        Invoke a tool by its server-local name.

        Raises:
            MCPClientError: If the call fails or the tool reports an error
        """
        start_time = time.time()
        result = await self._rpc("tools/call", {"name": tool_name, "arguments": arguments})

        texts = []
        for block in result.get("content", []):
            if block.get("type") == "text":
                texts.append(block.get("text", ""))
            else:
                texts.append(json.dumps(block, default=str))
        content = "\n".join(texts)

        duration = time.time() - start_time
        if result.get("isError"):
            logger.error(f"MCP tool {self.name}/{tool_name} failed after {duration:.2f}s")
            raise MCPClientError(content or f"Tool {tool_name} reported an error")

        logger.debug(f"MCP tool {self.name}/{tool_name} completed in {duration:.2f}s")
        return ToolOutput(content=content, usage_metadata=result.get("_meta", {}).get("usage"))

    def as_domain_tool(self, descriptor: Dict[str, Any]) -> DomainTool:
        """Wrap a server tool descriptor as a namespaced DomainTool."""
        local_name = descriptor["name"]

        async def invoke(**arguments):
            return await self.call_tool(local_name, arguments)

        return DomainTool(
            name=mcp_tool_name(self.name, local_name),
            description=descriptor.get("description", ""),
            func=invoke,
            input_schema=descriptor.get("inputSchema") or {"type": "object", "properties": {}},
        )


class MCPToolSource:
    """Discovers tools from every configured MCP server."""

    def __init__(
        self,
        servers: Optional[Dict[str, str]] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.servers = servers if servers is not None else get_mcp_servers()
        self.timeout = timeout if timeout is not None else get_mcp_timeout()
        self.transport = transport
        self._clients: Dict[str, MCPClient] = {}

    def _client(self, name: str) -> MCPClient:
        if name not in self._clients:
            self._clients[name] = MCPClient(name, self.servers[name], timeout=self.timeout, transport=self.transport)
        return self._clients[name]

    async def load_tools(self) -> List[DomainTool]:
        """
        Discover tools from all servers.

        A server that cannot be reached contributes no tools; discovery of the
        others continues.
        """
        tools: List[DomainTool] = []
        for name in self.servers:
            try:
                descriptors = await self._client(name).list_tools()
            except MCPClientError as e:
                logger.warning(f"⚠️ MCP discovery failed for {name}: {e}")
                continue
            server_tools = [self._client(name).as_domain_tool(d) for d in descriptors if d.get("name")]
            logger.info(f"🔌 Discovered {len(server_tools)} tools on MCP server {name}")
            tools.extend(server_tools)
        return tools

    async def close(self):
        for client in self._clients.values():
            await client.close()
        self._clients.clear()
