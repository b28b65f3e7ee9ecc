"""Variable extraction: pull values out of response bodies with JSONPath."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel

from ..config import get_settings
from .jsonpath import NOT_FOUND, JSONPathSyntaxError, evaluate
from .schema import VariableExtraction


class ExtractionResult(BaseModel):
    """Values bound by one extraction pass plus human-readable errors."""

    extracted: dict[str, Any] = {}
    errors: list[str] = []


class PathValidation(BaseModel):
    valid: bool
    error: Optional[str] = None


class ExtractionPreview(BaseModel):
    value: Any = None
    error: Optional[str] = None


def extract_variables(
    response_body: Any,
    extractions: list[VariableExtraction],
) -> ExtractionResult:
    """Run every extraction against ``response_body``. Never raises.

    Each extraction is evaluated independently in declaration order; a failing
    one is recorded in ``errors`` and does not stop the rest. A body that is
    not a JSON object or array fails every extraction.
    """
    result = ExtractionResult()
    if not extractions:
        return result

    if not isinstance(response_body, (dict, list)):
        for extraction in extractions:
            result.errors.append(
                f'Cannot extract "{extraction.name}": response body is not a JSON object'
            )
        return result

    for extraction in extractions:
        try:
            value = evaluate(extraction.json_path, response_body)
        except JSONPathSyntaxError as e:
            result.errors.append(f'Failed to extract "{extraction.name}": {e}')
            continue

        if value is NOT_FOUND:
            result.errors.append(
                f'No value found for "{extraction.name}" at path: {extraction.json_path}'
            )
        else:
            result.extracted[extraction.name] = value

    return result


def validate_json_path(expression: str, max_length: int | None = None) -> PathValidation:
    """Check a JSONPath expression for emptiness, length and syntax."""
    if max_length is None:
        max_length = get_settings().max_json_path_length

    if not expression or not expression.strip():
        return PathValidation(valid=False, error="JSONPath expression cannot be empty")

    if len(expression) > max_length:
        return PathValidation(
            valid=False,
            error=f"JSONPath expression cannot exceed {max_length} characters",
        )

    try:
        evaluate(expression, {})
    except JSONPathSyntaxError as e:
        return PathValidation(valid=False, error=str(e))
    return PathValidation(valid=True)


def preview_extraction(response_body: Any, json_path: str) -> ExtractionPreview:
    """Validate ``json_path`` and evaluate it against a sample body."""
    validation = validate_json_path(json_path)
    if not validation.valid:
        return ExtractionPreview(error=validation.error)

    value = evaluate(json_path, response_body)
    if value is NOT_FOUND:
        return ExtractionPreview(error=f"No value found at path: {json_path}")
    return ExtractionPreview(value=value)
