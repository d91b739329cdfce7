from __future__ import annotations

import logging
from typing import Mapping

from leptos_mcp.analysis.catalog import DISPATCH
from leptos_mcp.analysis.scanner import ScannedSource, scan
from leptos_mcp.models import AnalysisReport, Finding, Rule, UnitKind
from leptos_mcp.reporting import build_report


logger = logging.getLogger(__name__)


def evaluate(
    scanned: ScannedSource,
    dispatch: Mapping[UnitKind, tuple[tuple[int, Rule], ...]] = DISPATCH,
) -> list[Finding]:
    findings: list[Finding] = []
    units = 0
    for unit in scanned:
        units += 1
        for position, rule in dispatch[unit.kind]:
            fields = rule.matcher(unit, scanned.index)
            if fields is None:
                continue
            values = {"text": unit.text, **fields}
            findings.append(
                Finding(
                    rule_id=rule.rule_id,
                    rule_name=rule.name,
                    rule_index=position,
                    severity=rule.severity,
                    line=unit.line,
                    column=unit.column,
                    message=rule.message.format(**values),
                    suggested_fix=rule.fix.format(**values) if rule.fix is not None else None,
                )
            )

    logger.debug("Evaluated %d units, %d raw findings", units, len(findings))
    return findings


def analyze(source: str) -> AnalysisReport:
    return build_report(evaluate(scan(source)))
