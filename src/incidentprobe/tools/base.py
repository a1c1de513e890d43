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

Domain tool wrapper.

Domain tools are opaque async callables: they take a JSON object as input and
return content plus optional usage metadata, or raise.
"""

import asyncio
import inspect
import json
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union

ToolCallable = Callable[..., Union[Any, Awaitable[Any]]]

EMPTY_INPUT_SCHEMA = {"type": "object", "properties": {}}


@dataclass
class ToolOutput:
    """Result of a tool invocation."""
    content: str
    usage_metadata: Optional[Dict[str, Any]] = None


def _to_output(result: Any) -> ToolOutput:
    if isinstance(result, ToolOutput):
        return result
    if isinstance(result, dict) and "content" in result:
        content = result["content"]
        if not isinstance(content, str):
            content = json.dumps(content, default=str)
        usage = result.get("usage_metadata") or result.get("usageMetadata")
        return ToolOutput(content=content, usage_metadata=usage)
    if isinstance(result, str):
        return ToolOutput(content=result)
    return ToolOutput(content=json.dumps(result, default=str))


@dataclass
class DomainTool:
    """A named tool an agent can call."""
    name: str
    description: str
    func: ToolCallable
    input_schema: Dict[str, Any] = field(default_factory=lambda: dict(EMPTY_INPUT_SCHEMA))

    async def invoke(self, tool_input: Optional[Dict[str, Any]] = None) -> ToolOutput:
        """
        Call the tool with keyword arguments taken from ``tool_input``.

        Synchronous callables run in a worker thread so deadlines still apply.
        """
        kwargs = dict(tool_input or {})
        if inspect.iscoroutinefunction(self.func):
            result = await self.func(**kwargs)
        else:
            result = await asyncio.to_thread(self.func, **kwargs)
            if inspect.isawaitable(result):
                result = await result
        return _to_output(result)

    def tool_spec(self) -> Dict[str, Any]:
        """Tool specification in the strands/Bedrock Converse format."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": {"json": self.input_schema},
        }

    @classmethod
    def from_strands(cls, decorated: Any, name: Optional[str] = None) -> "DomainTool":
        """
        Wrap a ``@tool`` decorated strands function.

        Args:
            decorated: Function decorated with ``strands.tool``
            name: Optional namespaced name overriding the strands tool name
        """
        spec = decorated.tool_spec
        return cls(
            name=name or decorated.tool_name,
            description=spec.get("description", ""),
            func=decorated,
            input_schema=spec.get("inputSchema", {}).get("json", dict(EMPTY_INPUT_SCHEMA)),
        )
