"""Variable substitution for ``{{name}}`` placeholders in request templates.

The encoding applied to a resolved value depends on where it lands:

    url, query  percent-encoded, so values cannot add path segments or parameters
    header      CR and LF removed, so values cannot start a new header line
    body        inserted verbatim
"""

from __future__ import annotations

import json
import re
from typing import Any, Literal, Mapping
from urllib.parse import quote

SubstitutionContext = Literal["url", "query", "header", "body"]

VARIABLE_PATTERN = re.compile(r"\{\{(\w+)\}\}", re.ASCII)

# Characters left unescaped by JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"
_CRLF_RE = re.compile(r"[\r\n]")


def stringify(value: Any) -> str:
    """Render a variable the way it reads in a JSON document."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def encode_value(value: str, context: SubstitutionContext) -> str:
    if context in ("url", "query"):
        return quote(value, safe=_URI_COMPONENT_SAFE)
    if context == "header":
        return _CRLF_RE.sub("", value)
    return value


def substitute_variables(
    template: str,
    variables: Mapping[str, Any],
    context: SubstitutionContext,
) -> str:
    """Replace each bound placeholder in ``template``; unbound ones are kept as-is."""
    if not template:
        return template

    def _replace(match: re.Match) -> str:
        name = match.group(1)
        if name not in variables:
            return match.group(0)
        return encode_value(stringify(variables[name]), context)

    return VARIABLE_PATTERN.sub(_replace, template)


def extract_variable_references(template: str) -> list[str]:
    """Unique placeholder names in order of first appearance."""
    if not template:
        return []
    return list(dict.fromkeys(VARIABLE_PATTERN.findall(template)))


def validate_variable_references(template: str, scope: list[str]) -> list[str]:
    """Names referenced by ``template`` that are missing from ``scope``."""
    available = set(scope)
    return [name for name in extract_variable_references(template) if name not in available]
