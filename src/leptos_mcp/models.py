from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Union


WARNING = "warning"
ERROR = "error"


class UnitKind(str, Enum):
    REACTIVE_READ = "reactive-read"
    CLOSURE_BODY = "closure-body"
    COMPONENT = "component"
    SERVER_FUNCTION = "server-function"
    ELEMENT = "element"
    ATTRIBUTE_BINDING = "attribute-binding"
    EVENT_HANDLER = "event-handler"
    CALL = "call"
    OPAQUE = "opaque"


@dataclass(frozen=True)
class ReadDetail:
    expr: str
    root: str
    method: str
    in_view: bool
    deferred: bool
    view_expr: str | None = None
    braced: bool = False
    eager_reads: int = 1


@dataclass(frozen=True)
class ClosureDetail:
    is_move: bool
    params: tuple[str, ...]
    body: str
    in_view: bool
    captures: tuple[str, ...]


@dataclass(frozen=True)
class Prop:
    name: str
    type: str
    options: tuple[str, ...] = ()


@dataclass(frozen=True)
class FunctionDetail:
    name: str
    attributes: tuple[str, ...]
    props: tuple[Prop, ...]
    return_type: str | None


@dataclass(frozen=True)
class Attribute:
    name: str
    value: str | None
    braced: bool
    line: int
    column: int


@dataclass(frozen=True)
class ElementDetail:
    tag: str
    attributes: tuple[Attribute, ...]

    def attribute(self, *names: str) -> Attribute | None:
        for item in self.attributes:
            if item.name in names:
                return item
        return None


@dataclass(frozen=True)
class AttributeDetail:
    element: str
    name: str
    value: str
    braced: bool


@dataclass(frozen=True)
class CallDetail:
    callee: str
    is_macro: bool
    is_method: bool
    receiver: str | None
    args: tuple[str, ...]
    binding: str | None = None

    @property
    def name(self) -> str:
        return self.callee.rsplit("::", 1)[-1]


@dataclass(frozen=True)
class OpaqueDetail:
    reason: str


UnitDetail = Union[
    ReadDetail,
    ClosureDetail,
    FunctionDetail,
    ElementDetail,
    AttributeDetail,
    CallDetail,
    OpaqueDetail,
]


@dataclass(frozen=True)
class SourceUnit:
    kind: UnitKind
    start: int
    end: int
    line: int
    column: int
    end_line: int
    end_column: int
    text: str
    detail: UnitDetail


Matcher = Callable[[SourceUnit, Any], Union[Mapping[str, str], None]]


@dataclass(frozen=True)
class Rule:
    rule_id: str
    name: str
    severity: str
    category: str
    kinds: frozenset[UnitKind]
    matcher: Matcher
    message: str
    fix: str | None = None

    def describe(self) -> dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "name": self.name,
            "severity": self.severity,
            "category": self.category,
            "kinds": sorted(kind.value for kind in self.kinds),
        }


@dataclass(frozen=True)
class Finding:
    rule_id: str
    rule_name: str
    rule_index: int
    severity: str
    line: int
    column: int
    message: str
    suggested_fix: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "rule_id": self.rule_id,
            "severity": self.severity,
            "line": self.line,
            "column": self.column,
            "message": self.message,
        }
        if self.suggested_fix is not None:
            payload["suggested_fix"] = self.suggested_fix
        return payload


@dataclass(frozen=True)
class AnalysisReport:
    findings: tuple[Finding, ...]
    warnings: int
    errors: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "findings": [item.to_dict() for item in self.findings],
            "summary": {"warnings": self.warnings, "errors": self.errors},
        }


@dataclass(frozen=True)
class DocSection:
    title: str
    path: str
    use_cases: str
    content: str


@dataclass(frozen=True)
class AppConfig:
    server_name: str = "leptos-mcp-server"
    log_level: str = "INFO"
