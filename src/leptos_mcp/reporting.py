from __future__ import annotations

import json
from typing import Iterable

from leptos_mcp.models import ERROR, WARNING, AnalysisReport, Finding


NO_ISSUES = "No issues found. Code looks good!"


def build_report(findings: Iterable[Finding]) -> AnalysisReport:
    # Deduplicate exact duplicates; the first occurrence wins.
    deduped: dict[tuple, Finding] = {}
    for item in findings:
        key = (item.rule_id, item.line, item.column)
        deduped.setdefault(key, item)

    ordered = sorted(deduped.values(), key=lambda item: (item.line, item.column, item.rule_index))
    return AnalysisReport(
        findings=tuple(ordered),
        warnings=sum(1 for item in ordered if item.severity == WARNING),
        errors=sum(1 for item in ordered if item.severity == ERROR),
    )


def render_json(report: AnalysisReport) -> str:
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=True)


def render_text(report: AnalysisReport) -> str:
    if not report.findings:
        return NO_ISSUES

    lines = [f"Found {len(report.findings)} issue(s): {report.errors} error(s), {report.warnings} warning(s)", ""]
    for item in report.findings:
        lines.append(f"{item.line}:{item.column} {item.severity.upper()} {item.rule_id} {item.rule_name}")
        lines.append(f"    {item.message}")
        if item.suggested_fix is not None:
            fix_lines = item.suggested_fix.splitlines() or [""]
            lines.append(f"    fix: {fix_lines[0]}")
            lines.extend(f"         {extra}" for extra in fix_lines[1:])
    return "\n".join(lines)
