"""Lexical structure of a source block.

Comments and literal contents are blanked out so pattern matching only ever
sees code, brackets are paired with a delimiter stack in one linear pass, and
the first point where the brackets stop making sense becomes the cut after
which no structure is inferred.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import dataclass
from typing import Mapping


OPENERS = {"(": ")", "[": "]", "{": "}"}
CLOSERS = {")": "(", "]": "[", "}": "{"}

BRACKET = re.compile(r"[()\[\]{}]")
RAW_STRING_START = re.compile(r"b?r(#*)\"")
CHAR_LITERAL = re.compile(r"'(?:\\(?:u\{[0-9a-fA-F]{1,6}\}|x[0-9a-fA-F]{2}|.)|[^\\'\n])'")
NEWLINE = re.compile(r"\n")


@dataclass(frozen=True)
class SourceStructure:
    source: str
    masked: str
    pairs: Mapping[int, int]
    cut: int
    line_starts: tuple[int, ...]
    reason: str | None = None

    @property
    def balanced(self) -> bool:
        return self.reason is None

    def closing(self, opener: int) -> int:
        return self.pairs.get(opener, self.cut)

    def position(self, offset: int) -> tuple[int, int]:
        index = bisect.bisect_right(self.line_starts, offset) - 1
        return index + 1, offset - self.line_starts[index] + 1


def read_structure(source: str) -> SourceStructure:
    masked = mask_source(source)
    pairs, cut, reason = match_brackets(masked)
    line_starts = [0]
    line_starts.extend(match.end() for match in NEWLINE.finditer(source))
    return SourceStructure(
        source=source,
        masked=masked,
        pairs=pairs,
        cut=cut,
        line_starts=tuple(line_starts),
        reason=reason,
    )


def mask_source(source: str) -> str:
    """Blank comments and the contents of string and char literals.

    Delimiting quotes and every newline survive, so offsets, lines and
    columns in the masked text are the same as in the source.
    """
    out = list(source)
    length = len(source)
    i = 0
    while i < length:
        ch = source[i]
        if ch == "/" and source.startswith("//", i):
            end = source.find("\n", i)
            end = length if end == -1 else end
            _blank(out, i, end)
            i = end
            continue
        if ch == "/" and source.startswith("/*", i):
            end = _block_comment_end(source, i)
            _blank(out, i, end)
            i = end
            continue
        if ch in "br" and (i == 0 or not _is_word(source[i - 1])):
            raw = RAW_STRING_START.match(source, i)
            if raw:
                terminator = '"' + raw.group(1)
                end = source.find(terminator, raw.end())
                end = length if end == -1 else end
                _blank(out, raw.end(), end)
                i = end + len(terminator)
                continue
        if ch == '"':
            end = _string_end(source, i + 1)
            _blank(out, i + 1, end)
            i = end + 1
            continue
        if ch == "'":
            literal = CHAR_LITERAL.match(source, i)
            if literal:
                _blank(out, i + 1, literal.end() - 1)
                i = literal.end()
                continue
        i += 1
    return "".join(out)


def match_brackets(masked: str) -> tuple[dict[int, int], int, str | None]:
    pairs: dict[int, int] = {}
    stack: list[tuple[str, int]] = []
    for match in BRACKET.finditer(masked):
        ch = match.group()
        offset = match.start()
        if ch in OPENERS:
            stack.append((ch, offset))
            continue
        if not stack:
            return pairs, offset, f"unmatched '{ch}' at offset {offset}"
        opener, start = stack[-1]
        if opener != CLOSERS[ch]:
            return pairs, offset, f"'{ch}' at offset {offset} does not close '{opener}'"
        stack.pop()
        pairs[start] = offset

    if stack:
        opener, start = stack[0]
        return pairs, start, f"unclosed '{opener}' at offset {start}"
    return pairs, len(masked), None


def skip_space(text: str, i: int, end: int) -> int:
    while i < end and text[i].isspace():
        i += 1
    return i


def strip_span(text: str, start: int, end: int) -> tuple[int, int]:
    start = skip_space(text, start, end)
    while end > start and text[end - 1].isspace():
        end -= 1
    return start, end


def split_top_level(structure: SourceStructure, start: int, end: int) -> list[tuple[int, int]]:
    """Split ``start:end`` on commas that are not nested in brackets or closure pipes."""
    masked = structure.masked
    parts: list[tuple[int, int]] = []
    part_start = start
    j = start
    while j < end:
        ch = masked[j]
        if ch in OPENERS:
            j = structure.closing(j) + 1
            continue
        if ch == "|" and masked[part_start:j].strip() in ("", "move"):
            close = masked.find("|", j + 1, end)
            j = end if close == -1 else close + 1
            continue
        if ch == ",":
            parts.append((part_start, j))
            part_start = j + 1
        j += 1
    parts.append((part_start, end))

    spans = []
    for part in parts:
        span = strip_span(masked, *part)
        if span[1] > span[0]:
            spans.append(span)
    return spans


def expression_end(structure: SourceStructure, start: int, limit: int) -> int:
    masked = structure.masked
    j = start
    while j < limit:
        ch = masked[j]
        if ch in OPENERS:
            j = structure.closing(j) + 1
            continue
        if ch in CLOSERS or ch in ",;":
            break
        j += 1
    j = min(j, limit)
    while j > start and masked[j - 1].isspace():
        j -= 1
    return j


def _blank(out: list[str], start: int, end: int) -> None:
    for k in range(start, min(end, len(out))):
        if out[k] != "\n":
            out[k] = " "


def _block_comment_end(source: str, start: int) -> int:
    depth = 0
    j = start
    length = len(source)
    while j < length:
        if source.startswith("/*", j):
            depth += 1
            j += 2
            continue
        if source.startswith("*/", j):
            depth -= 1
            j += 2
            if depth == 0:
                return j
            continue
        j += 1
    return length


def _string_end(source: str, start: int) -> int:
    j = start
    length = len(source)
    while j < length:
        ch = source[j]
        if ch == "\\":
            j += 2
            continue
        if ch == '"':
            return j
        j += 1
    return length


def _is_word(ch: str) -> bool:
    return ch.isalnum() or ch == "_"
