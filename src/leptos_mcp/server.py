from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from leptos_mcp import tools
from leptos_mcp.models import AppConfig


logger = logging.getLogger(__name__)

TOOL_TABLE = (
    ("list-sections", tools.list_sections, tools.LIST_SECTIONS_DESCRIPTION),
    ("get-documentation", tools.get_documentation, tools.GET_DOCUMENTATION_DESCRIPTION),
    ("leptos-autofixer", tools.leptos_autofixer, tools.AUTOFIXER_DESCRIPTION),
)


def build_server(config: AppConfig | None = None) -> FastMCP:
    config = config or AppConfig()
    server = FastMCP(config.server_name, log_level=config.log_level)
    for name, fn, description in TOOL_TABLE:
        server.add_tool(fn, name=name, description=description)
    return server


def serve(config: AppConfig | None = None) -> None:
    config = config or AppConfig()
    server = build_server(config)
    logger.info("%s listening on stdio", config.server_name)
    server.run()
    logger.info("Input closed, shutting down")
