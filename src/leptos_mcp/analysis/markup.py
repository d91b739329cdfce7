from __future__ import annotations

import re
from dataclasses import dataclass

from leptos_mcp.analysis.lexer import CLOSERS, OPENERS, SourceStructure, skip_space, strip_span


VIEW_MACRO = re.compile(r"\bview!\s*([{(\[])")
TAG_NAME = re.compile(r"[A-Za-z][\w\-]*(?:::[A-Za-z_]\w*)*")
ATTR_NAME = re.compile(r"[A-Za-z_][\w\-]*(?::[\w\-]+)*")
NEXT_ATTRIBUTE = re.compile(r"[A-Za-z_][\w\-]*(?::[\w\-]+)*\s*=(?!=)")


@dataclass(frozen=True)
class MarkupAttribute:
    name: str
    start: int
    value_start: int | None = None
    value_end: int | None = None
    braced: bool = False

    @property
    def has_value(self) -> bool:
        return self.value_start is not None and self.value_end is not None


@dataclass(frozen=True)
class MarkupElement:
    tag: str
    start: int
    end: int
    attributes: tuple[MarkupAttribute, ...]


@dataclass(frozen=True)
class ViewPosition:
    start: int
    end: int
    braced: bool


@dataclass(frozen=True)
class ViewBlock:
    start: int
    end: int
    elements: tuple[MarkupElement, ...]
    positions: tuple[ViewPosition, ...]


def find_views(structure: SourceStructure) -> list[ViewBlock]:
    blocks: list[ViewBlock] = []
    for match in VIEW_MACRO.finditer(structure.masked, 0, structure.cut):
        opener = match.start(1)
        close = structure.closing(opener)
        elements, positions = _parse_markup(structure, opener + 1, close)
        blocks.append(
            ViewBlock(
                start=match.start(),
                end=min(close + 1, structure.cut),
                elements=tuple(elements),
                positions=tuple(positions),
            )
        )
    return blocks


def _parse_markup(
    structure: SourceStructure,
    start: int,
    end: int,
) -> tuple[list[MarkupElement], list[ViewPosition]]:
    masked = structure.masked
    elements: list[MarkupElement] = []
    positions: list[ViewPosition] = []

    i = start
    while i < end:
        ch = masked[i]
        if ch == "<":
            tag = TAG_NAME.match(masked, i + 1, end)
            if tag:
                element = _parse_open_tag(structure, i, tag, end)
                elements.append(element)
                for attribute in element.attributes:
                    position = _attribute_position(masked, attribute)
                    if position is not None:
                        positions.append(position)
                i = max(element.end, i + 1)
                continue
            i += 1
            continue
        if ch == "{":
            close = min(structure.closing(i), end)
            span = strip_span(masked, i + 1, close)
            if span[1] > span[0]:
                positions.append(ViewPosition(span[0], span[1], braced=True))
            i = close + 1
            continue
        if ch in "([":
            i = structure.closing(i) + 1
            continue
        i += 1

    return elements, positions


def _parse_open_tag(
    structure: SourceStructure,
    lt: int,
    tag: re.Match[str],
    end: int,
) -> MarkupElement:
    masked = structure.masked
    attributes: list[MarkupAttribute] = []
    j = tag.end()
    while j < end:
        ch = masked[j]
        if ch.isspace():
            j += 1
            continue
        if masked.startswith("/>", j):
            j += 2
            break
        if ch == ">":
            j += 1
            break
        if ch == "{":
            # spread or shorthand attribute, e.g. {..attrs}
            j = structure.closing(j) + 1
            continue

        name = ATTR_NAME.match(masked, j, end)
        if not name:
            j += 1
            continue

        k = skip_space(masked, name.end(), end)
        if k < end and masked[k] == "=" and not masked.startswith("==", k):
            value_start = skip_space(masked, k + 1, end)
            value_start, value_end, after, braced = _attribute_value(structure, value_start, end)
            attributes.append(
                MarkupAttribute(name.group(), name.start(), value_start, value_end, braced)
            )
            j = max(after, k + 1)
            continue

        attributes.append(MarkupAttribute(name.group(), name.start()))
        j = name.end()

    return MarkupElement(tag.group(), lt, min(j, end), tuple(attributes))


def _attribute_value(
    structure: SourceStructure,
    k: int,
    end: int,
) -> tuple[int, int, int, bool]:
    """Return (value_start, value_end, resume_at, braced) for a value starting at ``k``."""
    masked = structure.masked
    if k >= end:
        return k, k, k, False

    ch = masked[k]
    if ch == "{":
        close = min(structure.closing(k), end)
        value_start, value_end = strip_span(masked, k + 1, close)
        return value_start, value_end, close + 1, True
    if ch == '"':
        close = masked.find('"', k + 1, end)
        close = end if close == -1 else close + 1
        return k, close, close, False

    j = k
    while j < end:
        ch = masked[j]
        if ch in OPENERS:
            j = structure.closing(j) + 1
            continue
        if ch in CLOSERS:
            break
        if ch == ">" and masked[j - 1] not in "-=" and not masked.startswith(">=", j):
            break
        if masked.startswith("/>", j):
            break
        if ch.isspace():
            ahead = skip_space(masked, j, end)
            if ahead >= end:
                break
            if masked.startswith("/>", ahead) or (
                masked[ahead] == ">" and not masked.startswith(">=", ahead)
            ):
                break
            if NEXT_ATTRIBUTE.match(masked, ahead, end):
                break
            j = ahead
            continue
        j += 1

    j = min(j, end)
    value_start, value_end = strip_span(masked, k, j)
    return value_start, value_end, j, False


def _attribute_position(masked: str, attribute: MarkupAttribute) -> ViewPosition | None:
    if not attribute.has_value or attribute.value_end <= attribute.value_start:
        return None
    if masked[attribute.value_start] == '"':
        return None
    return ViewPosition(attribute.value_start, attribute.value_end, attribute.braced)
