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

Domain catalog: the specialist agents available to the supervisor.
Declaration order is the routing tie-break order.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple


@dataclass(frozen=True)
class DomainSpec:
    """Static description of a domain agent."""
    name: str
    description: str
    keywords: Tuple[str, ...]
    tool_prefix: str
    prompt_name: str
    requires_tools: bool = False


DOMAIN_CATALOG: Tuple[DomainSpec, ...] = (
    DomainSpec(
        name="newrelic_expert",
        description="APM data, transactions, latency and logs from New Relic",
        keywords=("newrelic", "new relic", "nrql", "apm", "latency", "throughput",
                  "transaction", "slow", "response time", "logs", "alert"),
        tool_prefix="newrelic__",
        prompt_name="newrelic_expert",
    ),
    DomainSpec(
        name="sentry_expert",
        description="Application errors, exceptions and crash reports from Sentry",
        keywords=("sentry", "exception", "stack trace", "stacktrace", "traceback",
                  "crash", "error rate", "unhandled", "release", "issue"),
        tool_prefix="sentry__",
        prompt_name="sentry_expert",
    ),
    DomainSpec(
        name="aws_ecs_expert",
        description="ECS services, tasks, deployments and container metrics",
        keywords=("ecs", "fargate", "container", "task", "service", "deployment",
                  "oom", "out of memory", "health check", "cluster"),
        tool_prefix="aws_ecs__",
        prompt_name="aws_ecs_expert",
    ),
    DomainSpec(
        name="aws_rds_expert",
        description="RDS instances, database metrics, connections and slow queries",
        keywords=("rds", "database", "postgres", "postgresql", "mysql", "aurora",
                  "sql", "query", "connections", "replica", "deadlock"),
        tool_prefix="aws_rds__",
        prompt_name="aws_rds_expert",
    ),
    DomainSpec(
        name="research_expert",
        description="Documentation, web search and cluster context through MCP tools",
        keywords=("documentation", "docs", "known issue", "search", "kubernetes",
                  "k8s", "pod", "upgrade", "version", "cve"),
        tool_prefix="mcp__",
        prompt_name="research_expert",
    ),
    DomainSpec(
        name="code_research_expert",
        description="Source code search over the indexed repositories",
        keywords=("code", "source", "function", "repository", "repo", "commit",
                  "null pointer", "nullpointerexception", "typeerror", "bug"),
        tool_prefix="mcp__chunkhound__",
        prompt_name="code_research_expert",
        requires_tools=True,
    ),
)

DOMAINS_BY_NAME: Dict[str, DomainSpec] = {spec.name: spec for spec in DOMAIN_CATALOG}


def get_domain(name: str) -> Optional[DomainSpec]:
    return DOMAINS_BY_NAME.get(name)


def select_domains(enabled: Optional[Iterable[str]] = None,
                   catalog: Tuple[DomainSpec, ...] = DOMAIN_CATALOG) -> List[DomainSpec]:
    """
    Domains enabled for an investigation, in catalog order.

    None enables the whole catalog. Unknown names raise ValueError.
    """
    if enabled is None:
        return list(catalog)
    wanted = set(enabled)
    known = {spec.name for spec in catalog}
    unknown = sorted(wanted - known)
    if unknown:
        raise ValueError(f"Unknown domains: {', '.join(unknown)}")
    return [spec for spec in catalog if spec.name in wanted]
