from __future__ import annotations

import logging
import re
from dataclasses import dataclass, replace
from functools import cached_property
from typing import Iterator, Mapping

from leptos_mcp.analysis.lexer import (
    OPENERS,
    SourceStructure,
    expression_end,
    read_structure,
    skip_space,
    split_top_level,
)
from leptos_mcp.analysis.markup import MarkupAttribute, ViewBlock, ViewPosition, find_views
from leptos_mcp.models import (
    Attribute,
    AttributeDetail,
    CallDetail,
    ClosureDetail,
    ElementDetail,
    FunctionDetail,
    OpaqueDetail,
    Prop,
    ReadDetail,
    SourceUnit,
    UnitDetail,
    UnitKind,
)


logger = logging.getLogger(__name__)

IDENTIFIER = re.compile(r"(?<![\w.:'])[A-Za-z_]\w*")
READ_CALL = re.compile(
    r"(?<![\w.:])(?P<expr>[A-Za-z_]\w*(?:\s*(?:\.|::)\s*[A-Za-z_]\w*)*?)"
    r"\s*\.\s*(?P<method>get|read|track|with)\s*\("
)
CLOSURE = re.compile(r"(?P<move>\bmove\s*)?\|(?P<params>[^|\n]*)\|")
CLOSURE_CONTEXT = set("(,={[;:>")
RETURN_BEFORE = re.compile(r"(?<!\w)return$")
# closures handed to these run while the surrounding expression is evaluated
EAGER_ADAPTER = re.compile(
    r"\.\s*(?:map|filter|filter_map|flat_map|for_each|fold|any|all|find|find_map|position"
    r"|take_while|skip_while|map_while|inspect|partition|max_by_key|min_by_key|sort_by|sort_by_key"
    r"|and_then|or_else|map_or|map_or_else|unwrap_or_else|then|then_some)"
    r"\s*(?:::\s*<[^(){};]*>\s*)?\([^(){};]*$"
)

FN_DECL = re.compile(r"\bfn\s+(?P<name>[A-Za-z_]\w*)")
FN_PREFIX = re.compile(
    r"(?P<attrs>(?:#\s*\[[^\]]*\]\s*)*)"
    r"(?P<quals>(?:pub(?:\s*\([^)]*\))?\s+)?(?:(?:const|async|unsafe)\s+)*)$"
)
ATTRIBUTE_PATH = re.compile(r"#\s*\[\s*(?P<path>[A-Za-z_][\w:]*)")
PROP_ATTRIBUTE = re.compile(r"#\s*\[\s*prop\s*\((?P<options>.*?)\)\s*\]", re.S)
ANY_ATTRIBUTE = re.compile(r"#\s*\[[^\]]*\]")
PARAM = re.compile(r"^\s*(?:mut\s+)?(?P<name>[A-Za-z_]\w*)\s*:\s*(?P<type>.+)$", re.S)
WHERE_CLAUSE = re.compile(r"\bwhere\b")

PATH_CALL = re.compile(
    r"(?<![\w.:'])(?P<callee>[A-Za-z_]\w*(?:\s*::\s*[A-Za-z_]\w*)*)"
    r"\s*(?:::\s*<[^(){};]*>\s*)?(?P<bang>!)?\s*\("
)
METHOD_CALL = re.compile(r"\.\s*(?P<callee>[A-Za-z_]\w*)\s*(?:::\s*<[^(){};]*>\s*)?\(")
RECEIVER = re.compile(r"(?P<receiver>[A-Za-z_]\w*(?:\s*(?:\.|::)\s*[A-Za-z_]\w*)*)\s*(?:\(\s*\))?\s*$")
LET_BINDING = re.compile(
    r"\blet\s+(?:mut\s+)?(?P<pattern>\([^()=;]*\)|[A-Za-z_]\w*)\s*(?::[^=;]*)?=\s*$"
)
FN_KEYWORD_BEFORE = re.compile(r"\bfn\s*$")
NOT_CALLABLE = frozenset(
    {
        "as", "async", "await", "const", "crate", "dyn", "else", "enum", "fn", "for",
        "if", "impl", "in", "let", "loop", "match", "mod", "move", "mut", "pub", "ref",
        "return", "self", "Self", "static", "struct", "super", "type", "unsafe", "use",
        "where", "while", "Fn", "FnMut", "FnOnce",
    }
)

SIGNAL_PAIR = re.compile(
    r"\blet\s*\(\s*(?:mut\s+)?(?P<getter>[A-Za-z_]\w*)\s*,\s*(?:mut\s+)?(?P<setter>[A-Za-z_]\w*)\s*\)"
    r"\s*(?::[^=;]*)?=\s*(?:[A-Za-z_]\w*::)*(?:signal|signal_local|arc_signal|create_signal)\b"
)
SIGNAL_HANDLE = re.compile(
    r"\blet\s+(?:mut\s+)?(?P<name>[A-Za-z_]\w*)\s*(?::[^=;]*)?=\s*"
    r"(?P<ctor>(?:[A-Za-z_]\w*::)*"
    r"(?:(?:RwSignal|ArcRwSignal|Memo|ArcMemo|Signal|Resource|ArcResource|LocalResource|OnceResource"
    r"|Trigger|ArcTrigger|StoredValue)::\w+"
    r"|create_rw_signal|create_memo|create_resource|create_local_resource|create_trigger"
    r"|signal|signal_local|create_signal))\s*(?:::\s*<[^=;]*?>\s*)?\("
)
TYPED_HANDLE = re.compile(
    r"(?<![\w.])(?P<name>[A-Za-z_]\w*)\s*:\s*(?:[A-Za-z_]\w*::)*"
    r"(?P<type>ReadSignal|WriteSignal|RwSignal|Signal|MaybeSignal|Memo|ArcReadSignal|ArcWriteSignal"
    r"|ArcRwSignal|ArcSignal|ArcMemo|Resource|LocalResource)\s*<"
)
SELF_SETTING = ("RwSignal", "create_rw_signal", "ArcRwSignal")


@dataclass(frozen=True)
class SignalIndex:
    """Reactive handles declared anywhere in one source block."""

    setters: Mapping[str, str]
    handles: frozenset[str]
    self_setting: frozenset[str]

    @classmethod
    def build(cls, masked: str) -> SignalIndex:
        setters: dict[str, str] = {}
        handles: set[str] = set()
        self_setting: set[str] = set()

        for match in SIGNAL_PAIR.finditer(masked):
            setters.setdefault(match.group("getter"), match.group("setter"))
            handles.update((match.group("getter"), match.group("setter")))

        for match in SIGNAL_HANDLE.finditer(masked):
            name = match.group("name")
            handles.add(name)
            if any(marker in match.group("ctor") for marker in SELF_SETTING):
                self_setting.add(name)

        for match in TYPED_HANDLE.finditer(masked):
            name = match.group("name")
            handles.add(name)
            if match.group("type") in ("RwSignal", "ArcRwSignal", "WriteSignal", "ArcWriteSignal"):
                self_setting.add(name)

        return cls(
            setters=dict(sorted(setters.items())),
            handles=frozenset(handles),
            self_setting=frozenset(self_setting),
        )

    def setter_for(self, name: str) -> str | None:
        if name in self.setters:
            return self.setters[name]
        if name in self.self_setting:
            return name
        return None


@dataclass(frozen=True)
class _Closure:
    start: int
    end: int
    body_start: int
    body_end: int
    is_move: bool
    params: tuple[str, ...]
    deferred: bool


class ScannedSource:
    """Lazy, restartable view of one source block as a sequence of units.

    Every ``iter()`` starts a fresh pass; the bracket structure, the views
    and the handle index are computed on first use and shared by later passes.
    """

    def __init__(self, source: str):
        self.source = source

    def __iter__(self) -> Iterator[SourceUnit]:
        yield from self._function_units()
        yield from self._markup_units()
        yield from self._closure_units()
        yield from self._read_units()
        yield from self._call_units()
        yield from self._opaque_units()

    @cached_property
    def structure(self) -> SourceStructure:
        structure = read_structure(self.source)
        if not structure.balanced:
            logger.debug("Structural inference stops at offset %d: %s", structure.cut, structure.reason)
        return structure

    @cached_property
    def index(self) -> SignalIndex:
        return SignalIndex.build(self.structure.masked[: self.structure.cut])

    @cached_property
    def views(self) -> tuple[ViewBlock, ...]:
        return tuple(find_views(self.structure))

    @cached_property
    def positions(self) -> tuple[ViewPosition, ...]:
        return tuple(position for view in self.views for position in view.positions)

    @cached_property
    def closures(self) -> tuple[_Closure, ...]:
        structure = self.structure
        masked = structure.masked
        unbraced = [
            (attribute.value_start, attribute.value_end)
            for view in self.views
            for element in view.elements
            for attribute in element.attributes
            if attribute.has_value and not attribute.braced
        ]

        closures: list[_Closure] = []
        for match in CLOSURE.finditer(masked, 0, structure.cut):
            if not match.group("move") and not _closure_context(masked, match.start()):
                continue

            start = match.start()
            limit = structure.cut
            for value_start, value_end in unbraced:
                if value_start <= start < value_end:
                    limit = min(limit, value_end)

            body_start = skip_space(masked, match.end(), limit)
            if masked.startswith("->", body_start):
                brace = masked.find("{", body_start, limit)
                body_start = limit if brace == -1 else brace
            if body_start < limit and masked[body_start] == "{":
                body_end = min(structure.closing(body_start) + 1, limit)
            else:
                body_end = expression_end(structure, body_start, limit)

            closures.append(
                _Closure(
                    start=start,
                    end=body_end,
                    body_start=body_start,
                    body_end=body_end,
                    is_move=bool(match.group("move")),
                    params=_param_names(match.group("params")),
                    deferred=not EAGER_ADAPTER.search(masked, max(0, start - 200), start),
                )
            )
        return tuple(closures)

    def _unit(self, kind: UnitKind, start: int, end: int, detail: UnitDetail) -> SourceUnit:
        line, column = self.structure.position(start)
        end_line, end_column = self.structure.position(end)
        return SourceUnit(
            kind=kind,
            start=start,
            end=end,
            line=line,
            column=column,
            end_line=end_line,
            end_column=end_column,
            text=self.source[start:end],
            detail=detail,
        )

    def _function_units(self) -> Iterator[SourceUnit]:
        structure = self.structure
        masked = structure.masked
        source = self.source
        for match in FN_DECL.finditer(masked, 0, structure.cut):
            prefix = FN_PREFIX.search(masked, max(0, match.start() - 400), match.start())
            decl_start = prefix.start("quals") if prefix else match.start()
            attributes = _attribute_names(prefix.group("attrs")) if prefix else ()

            j = skip_space(masked, match.end(), structure.cut)
            if j < structure.cut and masked[j] == "<":
                j = skip_space(masked, _generics_end(masked, j, structure.cut), structure.cut)
            if j >= structure.cut or masked[j] != "(":
                continue
            params_close = structure.closing(j)

            body_open = _body_open(structure, params_close + 1)
            if body_open is None:
                continue

            signature_tail = source[params_close + 1 : body_open]
            return_type = None
            if "->" in masked[params_close + 1 : body_open]:
                return_type = signature_tail.split("->", 1)[1]
                return_type = WHERE_CLAUSE.split(return_type, maxsplit=1)[0]
                return_type = " ".join(return_type.split()) or None

            if "server" in attributes:
                kind = UnitKind.SERVER_FUNCTION
            elif "component" in attributes or (return_type and "IntoView" in return_type):
                kind = UnitKind.COMPONENT
            else:
                continue

            detail = FunctionDetail(
                name=match.group("name"),
                attributes=attributes,
                props=tuple(self._props(j + 1, params_close)),
                return_type=return_type,
            )
            unit = self._unit(kind, decl_start, min(structure.closing(body_open) + 1, structure.cut), detail)
            # the signature stands in for the whole item
            yield replace(unit, text=source[decl_start:body_open].strip())

    def _props(self, start: int, end: int) -> Iterator[Prop]:
        for part_start, part_end in split_top_level(self.structure, start, end):
            text = self.source[part_start:part_end]
            options: list[str] = []
            for attribute in PROP_ATTRIBUTE.finditer(text):
                for option in attribute.group("options").split(","):
                    option = option.split("=", 1)[0].strip()
                    if option:
                        options.append(option)
            param = PARAM.match(ANY_ATTRIBUTE.sub("", text))
            if not param:
                continue
            yield Prop(
                name=param.group("name"),
                type=" ".join(param.group("type").split()),
                options=tuple(options),
            )

    def _markup_units(self) -> Iterator[SourceUnit]:
        source = self.source
        for view in self.views:
            for element in view.elements:
                attributes = tuple(self._attribute(item) for item in element.attributes)
                yield self._unit(
                    UnitKind.ELEMENT,
                    element.start,
                    element.end,
                    ElementDetail(tag=element.tag, attributes=attributes),
                )
                for item in element.attributes:
                    if not item.has_value:
                        continue
                    kind = UnitKind.EVENT_HANDLER if item.name.startswith("on:") else UnitKind.ATTRIBUTE_BINDING
                    detail = AttributeDetail(
                        element=element.tag,
                        name=item.name,
                        value=source[item.value_start : item.value_end],
                        braced=item.braced,
                    )
                    yield self._unit(kind, item.start, item.value_end, detail)

    def _attribute(self, item: MarkupAttribute) -> Attribute:
        line, column = self.structure.position(item.start)
        value = self.source[item.value_start : item.value_end] if item.has_value else None
        return Attribute(name=item.name, value=value, braced=item.braced, line=line, column=column)

    def _closure_units(self) -> Iterator[SourceUnit]:
        masked = self.structure.masked
        handles = self.index.handles
        view_starts = {position.start for position in self.positions}
        for closure in self.closures:
            captures: list[str] = []
            for match in IDENTIFIER.finditer(masked, closure.body_start, closure.body_end):
                name = match.group()
                if name in handles and name not in closure.params and name not in captures:
                    captures.append(name)
            detail = ClosureDetail(
                is_move=closure.is_move,
                params=closure.params,
                body=self.source[closure.body_start : closure.body_end],
                in_view=closure.start in view_starts,
                captures=tuple(captures),
            )
            yield self._unit(UnitKind.CLOSURE_BODY, closure.start, closure.end, detail)

    def _read_units(self) -> Iterator[SourceUnit]:
        structure = self.structure
        masked = structure.masked
        reads: list[tuple[int, int, str, str, ViewPosition | None, bool]] = []
        for match in READ_CALL.finditer(masked, 0, structure.cut):
            paren = match.end() - 1
            close = structure.closing(paren)
            method = match.group("method")
            if method != "with" and masked[paren + 1 : close].strip():
                continue

            start = match.start("expr")
            deferred = any(
                item.deferred and item.body_start <= start < item.body_end for item in self.closures
            )
            reads.append(
                (
                    start,
                    min(close + 1, structure.cut),
                    " ".join(match.group("expr").split()),
                    method,
                    self._innermost_position(start),
                    deferred,
                )
            )

        eager: dict[int, int] = {}
        for _, _, _, _, position, deferred in reads:
            if position is not None and not deferred:
                eager[position.start] = eager.get(position.start, 0) + 1

        for start, end, expr, method, position, deferred in reads:
            detail = ReadDetail(
                expr=self.source[start:end],
                root=re.split(r"\.|::", expr, maxsplit=1)[0].strip(),
                method=method,
                in_view=position is not None,
                deferred=deferred,
                view_expr=self.source[position.start : position.end] if position is not None else None,
                braced=position.braced if position is not None else False,
                eager_reads=eager.get(position.start, 1) if position is not None and not deferred else 1,
            )
            yield self._unit(UnitKind.REACTIVE_READ, start, end, detail)

    def _innermost_position(self, offset: int) -> ViewPosition | None:
        best = None
        for position in self.positions:
            if position.start <= offset < position.end:
                if best is None or position.end - position.start < best.end - best.start:
                    best = position
        return best

    def _call_units(self) -> Iterator[SourceUnit]:
        structure = self.structure
        masked = structure.masked
        calls: list[tuple[int, int, str, bool, bool, str | None]] = []

        for match in PATH_CALL.finditer(masked, 0, structure.cut):
            callee = re.sub(r"\s+", "", match.group("callee"))
            if callee in NOT_CALLABLE or FN_KEYWORD_BEFORE.search(masked, max(0, match.start() - 8), match.start()):
                continue
            calls.append((match.start(), match.end() - 1, callee, bool(match.group("bang")), False, None))

        for match in METHOD_CALL.finditer(masked, 0, structure.cut):
            receiver = RECEIVER.search(masked, max(0, match.start() - 200), match.start())
            calls.append(
                (
                    match.start("callee"),
                    match.end() - 1,
                    match.group("callee"),
                    False,
                    True,
                    " ".join(receiver.group("receiver").split()) if receiver else None,
                )
            )

        calls.sort(key=lambda item: item[0])
        for start, paren, callee, is_macro, is_method, receiver in calls:
            close = structure.closing(paren)
            binding = None
            if not is_method:
                let = LET_BINDING.search(masked, max(0, start - 200), start)
                if let:
                    binding = " ".join(let.group("pattern").split())
            args = tuple(
                self.source[arg_start:arg_end]
                for arg_start, arg_end in split_top_level(structure, paren + 1, min(close, structure.cut))
            )
            detail = CallDetail(
                callee=callee,
                is_macro=is_macro,
                is_method=is_method,
                receiver=receiver,
                args=args,
                binding=binding,
            )
            yield self._unit(UnitKind.CALL, start, min(close + 1, structure.cut), detail)

    def _opaque_units(self) -> Iterator[SourceUnit]:
        structure = self.structure
        if structure.balanced:
            return
        yield self._unit(
            UnitKind.OPAQUE,
            structure.cut,
            len(self.source),
            OpaqueDetail(reason=structure.reason or "unbalanced brackets"),
        )


def scan(source: str) -> ScannedSource:
    return ScannedSource(source)


def _closure_context(masked: str, start: int) -> bool:
    i = start - 1
    while i >= 0 and masked[i].isspace():
        i -= 1
    if i < 0:
        return True
    if masked[i] in CLOSURE_CONTEXT:
        return True
    return bool(RETURN_BEFORE.search(masked, max(0, i - 7), i + 1))


def _param_names(params: str) -> tuple[str, ...]:
    names: list[str] = []
    for part in params.split(","):
        pattern = part.split(":", 1)[0]
        for name in re.findall(r"[A-Za-z_]\w*", pattern):
            if name not in ("mut", "ref") and name not in names:
                names.append(name)
    return tuple(names)


def _attribute_names(attrs: str) -> tuple[str, ...]:
    return tuple(match.group("path").rsplit("::", 1)[-1] for match in ATTRIBUTE_PATH.finditer(attrs))


def _generics_end(masked: str, start: int, limit: int) -> int:
    depth = 0
    j = start
    while j < limit:
        ch = masked[j]
        if ch == "<":
            depth += 1
        elif ch == ">" and masked[j - 1] != "-":
            depth -= 1
            if depth == 0:
                return j + 1
        j += 1
    return limit


def _body_open(structure: SourceStructure, start: int) -> int | None:
    masked = structure.masked
    j = start
    while j < structure.cut:
        ch = masked[j]
        if ch == "{":
            return j
        if ch == ";":
            return None
        if ch in OPENERS:
            j = structure.closing(j) + 1
            continue
        j += 1
    return None
