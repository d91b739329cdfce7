from __future__ import annotations

import logging

from mcp.types import TextContent

from leptos_mcp import docs
from leptos_mcp.analysis import analyze
from leptos_mcp.reporting import render_json, render_text


logger = logging.getLogger(__name__)

LIST_SECTIONS_DESCRIPTION = "List all available Leptos documentation sections with their use cases"
GET_DOCUMENTATION_DESCRIPTION = (
    "Get Leptos documentation for a specific section. "
    "Pass section name like 'signals', 'components', 'routing'"
)
AUTOFIXER_DESCRIPTION = "Analyze Leptos code and suggest fixes for common issues"


def list_sections() -> str:
    return "\n".join(
        f"* title: {section.title}, use_cases: {section.use_cases}, path: {section.path}"
        for section in docs.list_sections()
    )


def get_documentation(section: str) -> str:
    found = docs.get_section(section)
    if found is None:
        return f"Section '{section}' not found. Use list-sections to see available sections."
    return f"# {found.title}\n\n{found.content}"


def leptos_autofixer(code: str) -> list[TextContent]:
    """Readable findings first, then the same report as JSON."""
    report = analyze(code)
    logger.info("Autofixer: %d warning(s), %d error(s)", report.warnings, report.errors)
    return [
        TextContent(type="text", text=render_text(report)),
        TextContent(type="text", text=render_json(report)),
    ]
