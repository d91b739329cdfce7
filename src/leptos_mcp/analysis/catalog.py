from __future__ import annotations

import re
from types import MappingProxyType
from typing import Mapping

from leptos_mcp.analysis.lexer import mask_source
from leptos_mcp.analysis.scanner import IDENTIFIER, READ_CALL, SignalIndex
from leptos_mcp.models import ERROR, WARNING, Rule, SourceUnit, UnitKind


RULE_ID = re.compile(r"^LEP\d{3}$")
FETCHER_PARAMS = re.compile(r"^\s*(?:move\s*)?\|(?P<params>[^|]*)\|")
HANDLER_WRITE = re.compile(
    r"^(?P<receiver>[A-Za-z_]\w*)\s*\.\s*(?:set|update|write|notify|try_set|try_update)\s*\(.*\)$",
    re.S,
)
BARE_CALL = re.compile(r"^[A-Za-z_][\w:]*\s*\(\s*\)$")

RESOURCE_CONSTRUCTORS = frozenset(
    {
        "Resource::new",
        "Resource::new_blocking",
        "ArcResource::new",
        "create_resource",
        "create_blocking_resource",
        "create_local_resource",
    }
)
INPUT_TAGS = frozenset({"input", "textarea", "select"})
VALUE_ATTRIBUTES = ("prop:value", "value")
INPUT_EVENTS = ("input", "change")
RAW_HTML_ATTRIBUTES = frozenset({"inner_html", "prop:innerHTML", "prop:inner_html", "prop:outerHTML"})
# method name -> index of the argument carrying the markup
RAW_HTML_METHODS = {"set_inner_html": 0, "inner_html": 0, "set_outer_html": 0, "insert_adjacent_html": 1}
SIGNAL_CONSTRUCTORS = frozenset({"signal", "signal_local", "create_signal"})
OPTIONAL_PROP_OPTIONS = frozenset({"optional", "optional_no_strip", "strip_option", "default"})

DEPRECATED_CONSTRUCTORS = {
    "create_signal": "signal",
    "create_rw_signal": "RwSignal::new",
    "create_memo": "Memo::new",
    "create_effect": "Effect::new",
    "create_resource": "Resource::new",
    "create_blocking_resource": "Resource::new_blocking",
    "create_local_resource": "LocalResource::new",
    "create_action": "Action::new",
    "create_server_action": "ServerAction::new",
    "create_node_ref": "NodeRef::new",
    "create_trigger": "Trigger::new",
    "store_value": "StoredValue::new",
}
PRINT_MACROS = {
    "println": "tracing::info!",
    "print": "tracing::info!",
    "eprintln": "tracing::error!",
    "eprint": "tracing::error!",
}


def _eager_read_in_view(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """A read sitting directly in a view position runs once, at render time."""
    detail = unit.detail
    if not detail.in_view or detail.deferred:
        return None
    replacement = f"move || {detail.view_expr or detail.expr}"
    if detail.braced:
        replacement = "{" + replacement + "}"
    shared = ""
    if detail.eager_reads > 1:
        shared = f" (the same wrap also fixes the other {detail.eager_reads - 1} read(s) in this expression)"
    return {"expr": detail.expr, "replacement": replacement, "shared": shared}


def _missing_move_capture(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """A view closure without ``move`` that captures a local reactive handle."""
    detail = unit.detail
    if not detail.in_view or detail.is_move or not detail.captures:
        return None
    return {"captures": ", ".join(detail.captures), "replacement": "move " + unit.text}


def _resource_fetcher_tracks_source(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """The fetcher of a two-argument resource reads a handle instead of its parameter."""
    detail = unit.detail
    if detail.is_method or detail.callee not in RESOURCE_CONSTRUCTORS or len(detail.args) != 2:
        return None

    fetcher = mask_source(detail.args[1])
    params = FETCHER_PARAMS.match(fetcher)
    names = set(IDENTIFIER.findall(params.group("params"))) if params else set()

    reads: list[str] = []
    for match in READ_CALL.finditer(fetcher):
        root = re.split(r"\.|::", match.group("expr"), maxsplit=1)[0].strip()
        if root in names or root not in index.handles:
            continue
        read = f"{root}.{match.group('method')}()"
        if read not in reads:
            reads.append(read)
    if not reads:
        return None
    return {"callee": detail.callee, "reads": ", ".join(reads), "first": reads[0]}


def _uncontrolled_input_binding(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """A form field shows a handle's value but nothing writes the user's input back."""
    detail = unit.detail
    if detail.tag not in INPUT_TAGS or detail.attribute("bind:value", "bind:checked"):
        return None
    binding = detail.attribute(*VALUE_ATTRIBUTES)
    if binding is None or not binding.value or binding.value.startswith('"'):
        return None

    handle = next((name for name in IDENTIFIER.findall(binding.value) if name in index.handles), None)
    if handle is None:
        return None
    setter = index.setter_for(handle)

    writes = re.compile(rf"\b{re.escape(handle)}\s*\.\s*(?:set|update|write|try_set|try_update)\s*\(")
    for attribute in detail.attributes:
        if _event_name(attribute.name) not in INPUT_EVENTS or not attribute.value:
            continue
        handler = mask_source(attribute.value)
        if writes.search(handler):
            return None
        if setter and setter != handle and re.search(rf"(?<![\w.]){re.escape(setter)}\b", handler):
            return None

    return {"tag": detail.tag, "handle": handle, "setter": setter or handle}


def _raw_markup_injection(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """Any value handed to a sink that inserts it as unescaped HTML, literal or not."""
    detail = unit.detail
    if unit.kind is UnitKind.ATTRIBUTE_BINDING:
        if detail.name not in RAW_HTML_ATTRIBUTES or not detail.value:
            return None
        return {"sink": detail.name, "value": detail.value}

    if not detail.is_method or detail.callee not in RAW_HTML_METHODS:
        return None
    position = RAW_HTML_METHODS[detail.callee]
    if len(detail.args) <= position:
        return None
    return {"sink": detail.callee, "value": detail.args[position].strip()}


def _input_value_attribute(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """``value=`` only sets the initial attribute; the live property is ``prop:value``."""
    detail = unit.detail
    if detail.name != "value" or detail.element not in ("input", "textarea"):
        return None
    if not detail.value or detail.value.startswith('"'):
        return None
    value = "{" + detail.value + "}" if detail.braced else detail.value
    return {"value": value}


def _deprecated_reactive_constructor(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """Pre-0.7 free-function constructors, mapped to their current names."""
    detail = unit.detail
    if detail.is_method or detail.is_macro or detail.name not in DEPRECATED_CONSTRUCTORS:
        return None
    replacement = DEPRECATED_CONSTRUCTORS[detail.name]
    return {
        "callee": detail.callee,
        "replacement": replacement,
        "call": f"{replacement}({', '.join(detail.args)})",
    }


def _signal_without_destructuring(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """``let x = signal(..)`` keeps the (getter, setter) tuple in one name."""
    detail = unit.detail
    if detail.is_method or detail.is_macro or detail.name not in SIGNAL_CONSTRUCTORS:
        return None
    if not detail.binding or detail.binding.startswith("("):
        return None
    return {
        "name": detail.binding,
        "call": f"{detail.callee}({', '.join(detail.args)})",
    }


def _print_instead_of_tracing(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """``println!`` and friends instead of ``tracing`` macros."""
    detail = unit.detail
    if not detail.is_macro or detail.callee not in PRINT_MACROS:
        return None
    return {
        "macro": detail.callee + "!",
        "replacement": f"{PRINT_MACROS[detail.callee]}({', '.join(detail.args)})",
    }


def _missing_component_attribute(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """A function returning ``impl IntoView`` without ``#[component]``."""
    detail = unit.detail
    if "component" in detail.attributes or not detail.return_type or "IntoView" not in detail.return_type:
        return None
    return {"name": detail.name}


def _server_fn_without_error_type(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """A ``#[server]`` function whose return type never mentions ``ServerFnError``."""
    detail = unit.detail
    return_type = detail.return_type or "()"
    if "ServerFnError" in return_type:
        return None
    ok_type = return_type
    if return_type.startswith("Result<") and return_type.endswith(">"):
        ok_type = _generic_args(return_type[len("Result<") : -1])[0]
    return {"name": detail.name, "return_type": f"Result<{ok_type}, ServerFnError>"}


def _event_handler_called_eagerly(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """A handler value that is a call, so it runs once while rendering instead of on the event."""
    detail = unit.detail
    value = detail.value.strip()
    write = HANDLER_WRITE.match(value)
    if write and write.group("receiver") in index.handles:
        return {"event": detail.name, "value": value}
    if BARE_CALL.match(value):
        return {"event": detail.name, "value": value}
    return None


def _optional_prop_without_attribute(unit: SourceUnit, index: SignalIndex) -> Mapping[str, str] | None:
    """``Option<T>`` props that are still mandatory because no prop option relaxes them."""
    detail = unit.detail
    missing = [
        prop
        for prop in detail.props
        if prop.type.startswith("Option<") and not OPTIONAL_PROP_OPTIONS.intersection(prop.options)
    ]
    if not missing:
        return None
    return {
        "props": ", ".join(prop.name for prop in missing),
        "first": f"#[prop(optional)] {missing[0].name}: {missing[0].type}",
    }


def _event_name(attribute: str) -> str | None:
    # on:input and on:input:target both name the input event
    parts = attribute.split(":")
    if len(parts) < 2 or parts[0] != "on":
        return None
    return parts[1]


def _generic_args(text: str) -> list[str]:
    args: list[str] = []
    depth = 0
    start = 0
    for offset, ch in enumerate(text):
        if ch in "<([":
            depth += 1
        elif ch in ">)]" and not (ch == ">" and text[offset - 1 : offset] == "-"):
            depth -= 1
        elif ch == "," and depth == 0:
            args.append(text[start:offset].strip())
            start = offset + 1
    args.append(text[start:].strip())
    return args


CATALOG: tuple[Rule, ...] = (
    Rule(
        rule_id="LEP001",
        name="eager-read-in-view",
        severity=WARNING,
        category="reactivity",
        kinds=frozenset({UnitKind.REACTIVE_READ}),
        matcher=_eager_read_in_view,
        message="`{expr}` is read once when the view is built and will not update; wrap it in a closure{shared}",
        fix="{replacement}",
    ),
    Rule(
        rule_id="LEP002",
        name="missing-move-capture",
        severity=WARNING,
        category="reactivity",
        kinds=frozenset({UnitKind.CLOSURE_BODY}),
        matcher=_missing_move_capture,
        message="view closure captures {captures} without `move`",
        fix="{replacement}",
    ),
    Rule(
        rule_id="LEP003",
        name="resource-fetcher-tracks-source",
        severity=WARNING,
        category="reactivity",
        kinds=frozenset({UnitKind.CALL}),
        matcher=_resource_fetcher_tracks_source,
        message=(
            "the fetcher of `{callee}` reads {reads} directly; tracked reads belong in the source "
            "closure and reach the fetcher as its argument"
        ),
        fix="move {first} into the source closure and use the fetcher's parameter instead",
    ),
    Rule(
        rule_id="LEP004",
        name="uncontrolled-input-binding",
        severity=WARNING,
        category="forms",
        kinds=frozenset({UnitKind.ELEMENT}),
        matcher=_uncontrolled_input_binding,
        message="<{tag}> shows `{handle}` but no on:input handler writes it back, so the field can go stale",
        fix="on:input=move |ev| {setter}.set(event_target_value(&ev))",
    ),
    Rule(
        rule_id="LEP005",
        name="raw-markup-injection",
        severity=WARNING,
        category="security",
        kinds=frozenset({UnitKind.ATTRIBUTE_BINDING, UnitKind.CALL}),
        matcher=_raw_markup_injection,
        message="`{sink}` inserts `{value}` as raw HTML; untrusted content allows script injection",
        fix="sanitize the markup first, e.g. ammonia::clean({value})",
    ),
    Rule(
        rule_id="LEP006",
        name="input-value-attribute",
        severity=WARNING,
        category="forms",
        kinds=frozenset({UnitKind.ATTRIBUTE_BINDING}),
        matcher=_input_value_attribute,
        message="`value=` only sets the initial attribute; use `prop:value=` to keep the field in sync",
        fix="prop:value={value}",
    ),
    Rule(
        rule_id="LEP007",
        name="deprecated-reactive-constructor",
        severity=WARNING,
        category="api",
        kinds=frozenset({UnitKind.CALL}),
        matcher=_deprecated_reactive_constructor,
        message="`{callee}` is deprecated since Leptos 0.7; use `{replacement}`",
        fix="{call}",
    ),
    Rule(
        rule_id="LEP008",
        name="signal-without-destructuring",
        severity=WARNING,
        category="api",
        kinds=frozenset({UnitKind.CALL}),
        matcher=_signal_without_destructuring,
        message="`{name}` holds a (getter, setter) tuple; destructure it",
        fix="let ({name}, set_{name}) = {call};",
    ),
    Rule(
        rule_id="LEP009",
        name="print-instead-of-tracing",
        severity=WARNING,
        category="logging",
        kinds=frozenset({UnitKind.CALL}),
        matcher=_print_instead_of_tracing,
        message="`{macro}` is not visible in the browser or the server log pipeline; use tracing",
        fix="{replacement}",
    ),
    Rule(
        rule_id="LEP010",
        name="missing-component-attribute",
        severity=ERROR,
        category="components",
        kinds=frozenset({UnitKind.COMPONENT}),
        matcher=_missing_component_attribute,
        message="`{name}` returns impl IntoView but is not marked #[component]",
        fix="#[component]\n{text}",
    ),
    Rule(
        rule_id="LEP011",
        name="server-fn-without-error-type",
        severity=WARNING,
        category="server",
        kinds=frozenset({UnitKind.SERVER_FUNCTION}),
        matcher=_server_fn_without_error_type,
        message="server function `{name}` must return Result<T, ServerFnError>",
        fix="-> {return_type}",
    ),
    Rule(
        rule_id="LEP012",
        name="event-handler-called-eagerly",
        severity=WARNING,
        category="events",
        kinds=frozenset({UnitKind.EVENT_HANDLER}),
        matcher=_event_handler_called_eagerly,
        message="`{event}` is given the result of `{value}`, which runs once while rendering",
        fix="{event}=move |_| {value}",
    ),
    Rule(
        rule_id="LEP013",
        name="optional-prop-without-attribute",
        severity=WARNING,
        category="components",
        kinds=frozenset({UnitKind.COMPONENT}),
        matcher=_optional_prop_without_attribute,
        message="Option props {props} are still required at the call site without #[prop(optional)]",
        fix="{first}",
    ),
)


def _validate(catalog: tuple[Rule, ...]) -> None:
    seen: list[str] = []
    for rule in catalog:
        if not RULE_ID.match(rule.rule_id):
            raise ValueError(f"Invalid rule id {rule.rule_id!r}")
        if seen and rule.rule_id <= seen[-1]:
            raise ValueError(f"Rule {rule.rule_id} is duplicated or out of order")
        if rule.severity not in (WARNING, ERROR):
            raise ValueError(f"Rule {rule.rule_id} has unknown severity {rule.severity!r}")
        if not rule.kinds or not all(isinstance(kind, UnitKind) for kind in rule.kinds):
            raise ValueError(f"Rule {rule.rule_id} must target known unit kinds")
        seen.append(rule.rule_id)


def build_dispatch(catalog: tuple[Rule, ...]) -> Mapping[UnitKind, tuple[tuple[int, Rule], ...]]:
    _validate(catalog)
    table = {
        kind: tuple((position, rule) for position, rule in enumerate(catalog) if kind in rule.kinds)
        for kind in UnitKind
    }
    return MappingProxyType(table)


DISPATCH = build_dispatch(CATALOG)
