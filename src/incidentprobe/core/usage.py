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

Token usage normalization.

Providers report usage in several shapes. They are tried in a fixed order
and the first one that yields a token count wins:

1. nested ``tokenUsage`` (OpenAI style)
2. nested ``usage`` (Anthropic, strands and Bedrock style)
3. flat count fields directly on the payload
4. ``usage_metadata`` on the response message

Every naming convention (promptTokens, input_tokens, inputTokens, ...) is
accepted inside any shape.
"""

from typing import Any, Callable, List, Optional, Tuple

from ..models.base import TokenUsage
from .errors import UsageNormalizationMiss

INPUT_KEYS = ("promptTokens", "prompt_tokens", "input_tokens", "inputTokens")
OUTPUT_KEYS = ("completionTokens", "completion_tokens", "output_tokens", "outputTokens")
TOTAL_KEYS = ("totalTokens", "total_tokens")

WRAPPER_KEYS = ("llmOutput", "llm_output")


def _field(source: Any, *names: str) -> Any:
    """Read the first present field from a mapping or an attribute object."""
    if source is None:
        return None
    for name in names:
        if isinstance(source, dict):
            if name in source and source[name] is not None:
                return source[name]
        else:
            value = getattr(source, name, None)
            if value is not None:
                return value
    return None


def _count(source: Any, keys: Tuple[str, ...]) -> Optional[int]:
    value = _field(source, *keys)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return max(int(value), 0)


def _usage_from_counts(source: Any) -> Optional[TokenUsage]:
    """Build TokenUsage from a container holding count fields, if it has any."""
    input_tokens = _count(source, INPUT_KEYS)
    output_tokens = _count(source, OUTPUT_KEYS)
    total_tokens = _count(source, TOTAL_KEYS)
    if input_tokens is None and output_tokens is None and total_tokens is None:
        return None
    return TokenUsage.from_counts(input_tokens or 0, output_tokens or 0, total_tokens)


def _from_token_usage(payload: Any) -> Optional[TokenUsage]:
    return _usage_from_counts(_field(payload, "tokenUsage", "token_usage"))


def _from_usage(payload: Any) -> Optional[TokenUsage]:
    return _usage_from_counts(_field(payload, "usage"))


def _from_flat_fields(payload: Any) -> Optional[TokenUsage]:
    return _usage_from_counts(payload)


def _response_messages(payload: Any) -> List[Any]:
    messages = []
    message = _field(payload, "message")
    if message is not None:
        messages.append(message)
    generations = _field(payload, "generations")
    if isinstance(generations, (list, tuple)) and generations:
        first = generations[0]
        if isinstance(first, (list, tuple)):
            first = first[0] if first else None
        generation_message = _field(first, "message")
        if generation_message is not None:
            messages.append(generation_message)
    return messages


def _from_message_metadata(payload: Any) -> Optional[TokenUsage]:
    for message in _response_messages(payload):
        usage = _usage_from_counts(_field(message, "usage_metadata", "usageMetadata"))
        if usage is not None:
            return usage
    return None


RESOLVERS: Tuple[Tuple[str, Callable[[Any], Optional[TokenUsage]]], ...] = (
    ("tokenUsage", _from_token_usage),
    ("usage", _from_usage),
    ("flat", _from_flat_fields),
    ("message_metadata", _from_message_metadata),
)


def resolve_usage(payload: Any) -> Tuple[str, TokenUsage]:
    """
    Resolve a usage payload and report which shape matched.

    A provider wrapper object (``llmOutput``) is inspected before the payload
    itself for each shape.

    Raises:
        UsageNormalizationMiss: If no shape matches
    """
    if payload is None:
        raise UsageNormalizationMiss("Usage payload is empty")

    wrapper = _field(payload, *WRAPPER_KEYS)
    sources = [wrapper, payload] if wrapper is not None else [payload]

    for shape, resolver in RESOLVERS:
        for source in sources:
            usage = resolver(source)
            if usage is not None:
                return shape, usage

    raise UsageNormalizationMiss(f"Unrecognized usage payload of type {type(payload).__name__}")


def normalize_usage(payload: Any) -> TokenUsage:
    """
    Normalize an opaque provider usage payload into TokenUsage.

    Example:
        >>> normalize_usage({"usage": {"input_tokens": 120, "output_tokens": 30}})
        TokenUsage(input_tokens=120, output_tokens=30, total_tokens=150)
    """
    return resolve_usage(payload)[1]
