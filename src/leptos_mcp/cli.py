from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from leptos_mcp import docs
from leptos_mcp.analysis import analyze
from leptos_mcp.analysis.catalog import CATALOG
from leptos_mcp.config import ConfigError, load_config
from leptos_mcp.log import configure_logging
from leptos_mcp.models import AnalysisReport
from leptos_mcp.reporting import render_json, render_text
from leptos_mcp.server import serve
from leptos_mcp.tools import get_documentation


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="leptos-mcp",
        description="MCP server with Leptos documentation and a code autofixer",
    )
    parser.add_argument("--config", default=None, help="Path to a JSON config file")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("serve", help="Serve MCP over stdio (default)")

    analyze_parser = subparsers.add_parser("analyze", help="Analyze a Leptos source file")
    analyze_parser.add_argument("path", help="File to analyze, or - for stdin")
    analyze_parser.add_argument("--format", choices=["json", "text"], default="json")
    analyze_parser.add_argument("--fail-on", choices=["never", "warning", "error"], default="never")

    subparsers.add_parser("rules", help="List the autofixer rules")
    subparsers.add_parser("sections", help="List documentation sections")

    docs_parser = subparsers.add_parser("docs", help="Print a documentation section")
    docs_parser.add_argument("section")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        parser.error(str(exc))
        return 2
    configure_logging(config.log_level)

    command = args.command or "serve"

    if command == "serve":
        serve(config)
        return 0

    if command == "analyze":
        try:
            source = _read_source(args.path)
        except (OSError, UnicodeDecodeError) as exc:
            parser.error(f"Cannot read {args.path}: {exc}")
            return 2

        report = analyze(source)
        print(render_json(report) if args.format == "json" else render_text(report))
        return _exit_code(report, args.fail_on)

    if command == "rules":
        print(json.dumps([rule.describe() for rule in CATALOG], indent=2, ensure_ascii=True))
        return 0

    if command == "sections":
        payload = [
            {"title": section.title, "path": section.path, "use_cases": section.use_cases}
            for section in docs.list_sections()
        ]
        print(json.dumps(payload, indent=2, ensure_ascii=True))
        return 0

    if command == "docs":
        print(get_documentation(args.section))
        return 0 if docs.get_section(args.section) is not None else 1

    parser.error(f"Unsupported command: {command}")
    return 2


def _read_source(path: str) -> str:
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def _exit_code(report: AnalysisReport, fail_on: str) -> int:
    if fail_on == "error" and report.errors:
        return 1
    if fail_on == "warning" and (report.errors or report.warnings):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
