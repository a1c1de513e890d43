#!/usr/bin/env python3
"""
IncidentProbe Core - HTTP Server
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

IncidentProbe HTTP Server - Multi-agent incident investigator
HTTP server implementation using Starlette
"""

import argparse
from contextlib import asynccontextmanager

# Initialize telemetry before the model providers are imported
from .utils.config import setup_strands_telemetry
setup_strands_telemetry()

from starlette.applications import Starlette
from starlette.responses import JSONResponse
from starlette.routing import Route

from . import __version__
from .handlers import handle_investigation, service_response, shutdown_orchestrator
from .utils.config import get_environment_info
from .utils.logger import get_logger

logger = get_logger(__name__)


async def investigate(request):
    """
    Investigation entrypoint.

    Expects:
    {
        "query": "Free text description of the issue",
        "config": {"timeoutMs": 60000, "provider": "bedrock"},  # optional
        "domains": ["newrelic_expert", "sentry_expert"]  # optional
    }
    """
    try:
        payload = await request.json()
    except ValueError:
        # Malformed JSON and bodies that are not valid UTF-8
        return JSONResponse(service_response(False, "Invalid JSON in request body"), status_code=400)

    status_code, body = await handle_investigation(payload)
    return JSONResponse(body, status_code=status_code)


async def health(request):
    """Health check endpoint - simple status check."""
    return JSONResponse({
        "status": "healthy",
        "service": "incidentprobe-server",
        "version": __version__
    })


async def status(request):
    """Status endpoint with detailed service information."""
    try:
        return JSONResponse({
            "status": "healthy",
            "service": "incidentprobe-server",
            "version": __version__,
            "environment": get_environment_info(),
            "endpoints": {
                "investigations": "/agent/investigate",
                "health": "/health",
                "status": "/status",
                "ping": "/ping"
            }
        })
    except Exception as e:
        return JSONResponse({
            "status": "error",
            "error": str(e)
        }, status_code=500)


async def ping(request):
    """Ping endpoint for health checks."""
    return JSONResponse({"status": "ok"})


@asynccontextmanager
async def lifespan(app):
    """Close open MCP connections when the server stops."""
    logger.info("🚀 IncidentProbe server starting up")
    yield
    logger.info("🛑 IncidentProbe server shutting down")
    await shutdown_orchestrator()


app = Starlette(lifespan=lifespan, routes=[
    Route("/agent/investigate", investigate, methods=["POST"]),
    Route("/health", health, methods=["GET"]),
    Route("/status", status, methods=["GET"]),
    Route("/ping", ping, methods=["GET"]),
])


def main():
    """Main entry point for the HTTP server."""
    parser = argparse.ArgumentParser(description="IncidentProbe multi-agent incident investigator HTTP Server")
    parser.add_argument("--port", "-p",
                        type=int,
                        default=8080,
                        help="Port to run the server on (default: 8080)")
    parser.add_argument("--reload",
                        action="store_true",
                        help="Enable hot reloading for development")
    parser.add_argument("--host",
                        default="0.0.0.0",
                        help="Host to bind to (default: 0.0.0.0)")

    args = parser.parse_args()

    print("🔍 IncidentProbe - Multi-agent incident investigator (HTTP Server)")
    print("=====================================================")
    print(f"🌐 Starting HTTP server on http://{args.host}:{args.port}")
    print("")
    print("📝 Investigation Request:")
    print(f"curl -X POST http://localhost:{args.port}/agent/investigate \\")
    print("  -H 'Content-Type: application/json' \\")
    print("  -d '{\"query\": \"Checkout API latency spiked after the 14:00 deploy\", \"config\": {\"timeoutMs\": 120000}}'")
    print("")
    print("🏥 Health Check:")
    print(f"curl http://localhost:{args.port}/health")
    print("")
    print("📊 Status Check:")
    print(f"curl http://localhost:{args.port}/status")
    print("=====================================================")

    import uvicorn
    if args.reload:
        print("🔄 Hot reloading enabled - server will restart on code changes")

    uvicorn.run(
        "incidentprobe.server:app",
        host=args.host,
        port=args.port,
        reload=args.reload
    )


if __name__ == "__main__":
    main()
