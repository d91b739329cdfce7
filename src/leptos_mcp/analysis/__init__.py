from __future__ import annotations

from leptos_mcp.analysis.engine import analyze, evaluate
from leptos_mcp.analysis.scanner import scan

__all__ = ["analyze", "evaluate", "scan"]
