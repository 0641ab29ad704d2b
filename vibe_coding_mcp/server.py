"""MCP Server for the Vibe Coding toolkit.

This module provides a FastMCP-based server exposing session history,
statistics and export, git integration, templates, auto-tagging and the
batch engine that runs any of them together.
"""

import argparse
import json
import sys

from mcp.server import FastMCP
from starlette.requests import Request
from starlette.responses import Response

from .config import get_settings
from .logger_config import configure_file_logging
from .metrics_config import ensure_metrics_initialized
from .metrics_config import get_metrics_export
from .metrics_config import get_metrics_summary
from .metrics_config import is_metrics_enabled
from .tools import register_auto_tag_tools
from .tools import register_batch_tools
from .tools import register_git_tools
from .tools import register_session_tools
from .tools import register_template_tools

mcp_server = FastMCP(name="VibeCodingTools")

register_session_tools(mcp_server)
register_git_tools(mcp_server)
register_template_tools(mcp_server)
register_auto_tag_tools(mcp_server)
register_batch_tools(mcp_server)


@mcp_server.custom_route("/health", methods=["GET"], name="health")
async def health_check(request: Request) -> Response:
    """Health check endpoint to verify server readiness."""
    return Response(status_code=200)


@mcp_server.custom_route("/metrics", methods=["GET"], name="metrics")
async def metrics_endpoint(request: Request) -> Response:
    """Prometheus metrics endpoint for monitoring MCP tool usage."""
    if not is_metrics_enabled():
        return Response(content="# Metrics disabled\n", status_code=503, media_type="text/plain")
    try:
        metrics_data, content_type = get_metrics_export()
        return Response(content=metrics_data, status_code=200, media_type=content_type)
    except Exception as e:
        return Response(content=f"# Error generating metrics: {e}\n", status_code=500, media_type="text/plain")


@mcp_server.custom_route("/metrics/summary", methods=["GET"], name="metrics_summary")
async def metrics_summary_endpoint(request: Request) -> Response:
    """JSON summary of the metrics configuration."""
    return Response(content=json.dumps(get_metrics_summary(), indent=2), media_type="application/json")


__all__ = ["mcp_server", "main"]


# --- Main Server Execution ---
def main():
    """Run the main entry point for the server with argument parsing."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Vibe Coding MCP Server")
    parser.add_argument(
        "transport",
        choices=["sse", "stdio"],
        default="stdio",
        nargs="?",
        help="Transport: 'sse' for HTTP SSE or 'stdio' for standard I/O (default: stdio)",
    )
    parser.add_argument(
        "--host",
        default=settings.sse_host,
        help=f"Host to bind to for SSE transport (default: {settings.sse_host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.sse_port,
        help=f"Port to bind to for SSE transport (default: {settings.sse_port})",
    )
    args = parser.parse_args()

    log_file = configure_file_logging(settings.log_path, settings.log_level)
    ensure_metrics_initialized(settings.enable_metrics)

    # stdout belongs to the stdio transport
    print(f"Vibe Coding MCP server '{mcp_server.name}' starting", file=sys.stderr)
    print(f"Storage directory: {settings.storage_path}", file=sys.stderr)
    print(f"Logging to: {log_file}", file=sys.stderr)
    print(f"Metrics: {'enabled' if is_metrics_enabled() else 'disabled'}", file=sys.stderr)

    if args.transport == "stdio":
        mcp_server.run(transport="stdio")
    else:
        print(f"SSE endpoint: http://{args.host}:{args.port}/sse", file=sys.stderr)
        print(f"Health endpoint: http://{args.host}:{args.port}/health", file=sys.stderr)
        mcp_server.settings.host = args.host
        mcp_server.settings.port = args.port
        mcp_server.run(transport="sse")


if __name__ == "__main__":
    main()
