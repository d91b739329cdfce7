import json

from leptos_mcp.reporting import NO_ISSUES
from leptos_mcp.tools import get_documentation, leptos_autofixer, list_sections


def test_list_sections_text():
    lines = list_sections().splitlines()

    assert len(lines) == 11
    assert lines[0] == (
        "* title: Getting Started, use_cases: new project, setup, installation, basics, hello world, "
        "path: getting-started"
    )


def test_get_documentation_found_and_missing():
    assert get_documentation("routing").startswith("# Routing\n\n")
    assert get_documentation("websockets") == (
        "Section 'websockets' not found. Use list-sections to see available sections."
    )


def test_autofixer_returns_text_and_json_report():
    text, report = leptos_autofixer("let count = signal(0);\n")

    assert text.type == "text"
    assert "LEP008" in text.text
    assert json.loads(report.text)["summary"] == {"warnings": 1, "errors": 0}


def test_autofixer_clean_code():
    text, report = leptos_autofixer("let (a, set_a) = signal(0);\n")

    assert text.text == NO_ISSUES
    assert json.loads(report.text)["findings"] == []
