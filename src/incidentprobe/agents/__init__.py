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

Domain agents and the supervisor that routes between them.
"""

from .domain_agent import DomainAgent, create_domain_agent
from .domains import DOMAIN_CATALOG, DomainSpec, get_domain, select_domains
from .supervisor import Supervisor, SupervisorRun

__all__ = [
    "DOMAIN_CATALOG",
    "DomainAgent",
    "DomainSpec",
    "Supervisor",
    "SupervisorRun",
    "create_domain_agent",
    "get_domain",
    "select_domains",
]
