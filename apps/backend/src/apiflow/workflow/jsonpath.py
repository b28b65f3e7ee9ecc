"""Minimal JSONPath evaluator used by variable extraction.

Supported syntax::

    $                 root
    .name  ['name']   member access
    [0]  [-1]         array index (negative counts from the end)
    .*  [*]           wildcard over object values / array items
    ..name ..* ..[0]  recursive descent

A query that matches exactly one value returns that value unwrapped, several
matches come back as a list in document order, and no match returns
``NOT_FOUND`` so that a matched ``null`` stays distinguishable.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterator, Union

_NAME_RE = re.compile(r"[^.\[\]\s'\"]+")
_INDEX_RE = re.compile(r"-?\d+")


class JSONPathSyntaxError(ValueError):
    """Raised when a path expression cannot be parsed."""

    def __init__(self, message: str, path: str, position: int | None = None):
        self.path = path
        self.position = position
        if position is not None:
            message = f"{message} at position {position}"
        super().__init__(message)


class _NotFound:
    _instance: _NotFound | None = None

    def __new__(cls) -> _NotFound:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_FOUND"

    def __bool__(self) -> bool:
        return False


NOT_FOUND = _NotFound()


@dataclass(frozen=True)
class Member:
    name: str


@dataclass(frozen=True)
class Index:
    index: int


@dataclass(frozen=True)
class Wildcard:
    pass


@dataclass(frozen=True)
class Descend:
    selector: Union[Member, Index, Wildcard]


Segment = Union[Member, Index, Wildcard, Descend]


@lru_cache(maxsize=256)
def compile_path(path: str) -> tuple[Segment, ...]:
    """Parse ``path`` into a tuple of segments. Raises ``JSONPathSyntaxError``."""
    if not path or not path.strip():
        raise JSONPathSyntaxError("Path expression is empty", path)

    text = path.strip()
    if text.startswith("$"):
        pos = 1
    elif text[0] in ".[":
        pos = 0
    else:
        # Bare member names are relative to the root
        text = "." + text
        pos = 0

    segments: list[Segment] = []
    while pos < len(text):
        char = text[pos]
        if text.startswith("..", pos):
            pos += 2
            if pos < len(text) and text[pos] == "[":
                selector, pos = _parse_bracket(text, pos, path)
            else:
                selector, pos = _parse_dotted(text, pos, path)
            segments.append(Descend(selector))
        elif char == ".":
            selector, pos = _parse_dotted(text, pos + 1, path)
            segments.append(selector)
        elif char == "[":
            selector, pos = _parse_bracket(text, pos, path)
            segments.append(selector)
        else:
            raise JSONPathSyntaxError(f"Unexpected character {char!r}", path, pos)
    return tuple(segments)


def _parse_dotted(text: str, pos: int, path: str) -> tuple[Union[Member, Wildcard], int]:
    if pos < len(text) and text[pos] == "*":
        return Wildcard(), pos + 1
    match = _NAME_RE.match(text, pos)
    if match is None:
        raise JSONPathSyntaxError("Expected member name", path, pos)
    return Member(match.group(0)), match.end()


def _parse_bracket(text: str, pos: int, path: str) -> tuple[Union[Member, Index, Wildcard], int]:
    close = text.find("]", pos)
    if close == -1:
        raise JSONPathSyntaxError("Unterminated '['", path, pos)
    inner = text[pos + 1 : close].strip()
    after = close + 1

    if inner == "*":
        return Wildcard(), after
    if _INDEX_RE.fullmatch(inner):
        return Index(int(inner)), after
    if len(inner) >= 2 and inner[0] == inner[-1] and inner[0] in "'\"":
        name = inner[1:-1]
        if not name:
            raise JSONPathSyntaxError("Empty member name", path, pos)
        return Member(name), after
    raise JSONPathSyntaxError(f"Invalid bracket expression [{inner}]", path, pos)


def _select(node: Any, selector: Union[Member, Index, Wildcard]) -> Iterator[Any]:
    if isinstance(selector, Member):
        if isinstance(node, dict) and selector.name in node:
            yield node[selector.name]
    elif isinstance(selector, Index):
        if isinstance(node, list) and -len(node) <= selector.index < len(node):
            yield node[selector.index]
    elif isinstance(node, dict):
        yield from node.values()
    elif isinstance(node, list):
        yield from node


def _walk(node: Any) -> Iterator[Any]:
    yield node
    if isinstance(node, dict):
        for child in node.values():
            yield from _walk(child)
    elif isinstance(node, list):
        for child in node:
            yield from _walk(child)


def find_all(path: str, value: Any) -> list[Any]:
    """Return every value matched by ``path`` in document order."""
    nodes = [value]
    for segment in compile_path(path):
        matched: list[Any] = []
        for node in nodes:
            if isinstance(segment, Descend):
                for descendant in _walk(node):
                    matched.extend(_select(descendant, segment.selector))
            else:
                matched.extend(_select(node, segment))
        nodes = matched
        if not nodes:
            break
    return nodes


def evaluate(path: str, value: Any) -> Any:
    """Evaluate ``path`` against ``value``.

    Returns the single match unwrapped, a list when several values match, or
    ``NOT_FOUND``. Raises ``JSONPathSyntaxError`` for malformed expressions.
    """
    matches = find_all(path, value)
    if not matches:
        return NOT_FOUND
    if len(matches) == 1:
        return matches[0]
    return matches
