#!/usr/bin/env python3
"""
Test tool selection by namespace prefix.
"""

import pytest

from incidentprobe.core.tool_selector import (
    mcp_tool_name,
    namespaced_tool_name,
    select_mcp_server_tools,
    select_tools,
)

from tests.fixtures import make_tool


class TestSelectTools:
    """Test the pure prefix filter."""

    def test_filters_by_prefix_preserving_order(self):
        pool = [make_tool("src__toolA"), make_tool("src__toolB"), make_tool("other__toolC")]
        selected = select_tools(pool, "src__")
        assert [t.name for t in selected] == ["src__toolA", "src__toolB"]

    def test_preserves_pool_order_when_interleaved(self):
        pool = [make_tool("src__z"), make_tool("x__a"), make_tool("src__a")]
        assert [t.name for t in select_tools(pool, "src__")] == ["src__z", "src__a"]

    @pytest.mark.parametrize("pool", [[], None, ()])
    def test_empty_pool_returns_empty_list(self, pool):
        assert select_tools(pool, "src__") == []

    def test_no_matches_returns_empty_list(self):
        assert select_tools([make_tool("other__toolC")], "src__") == []

    def test_accepts_plain_names(self):
        assert select_tools(["src__toolA", "other__toolC"], "src__") == ["src__toolA"]


class TestNamespacing:
    """Test namespaced tool names."""

    def test_namespaced_tool_name(self):
        assert namespaced_tool_name("newrelic", "fetch_logs") == "newrelic__fetch_logs"

    def test_mcp_tool_name(self):
        assert mcp_tool_name("chunkhound", "search_regex") == "mcp__chunkhound__search_regex"

    def test_select_mcp_server_tools(self):
        pool = [
            make_tool("mcp__chunkhound__search_regex"),
            make_tool("mcp__brave__web_search"),
            make_tool("mcp__chunkhound__search_semantic"),
        ]
        selected = select_mcp_server_tools(pool, "chunkhound")
        assert [t.name for t in selected] == [
            "mcp__chunkhound__search_regex",
            "mcp__chunkhound__search_semantic",
        ]
