"""Workflow export/import with field-level validation of untrusted payloads."""

from __future__ import annotations

import json
import uuid
from typing import Any

from ..config import Settings, get_settings
from .schema import VariableExtraction, WorkflowAuth, WorkflowDocument, WorkflowRequest, WorkflowStep

VALID_METHODS = {"GET", "POST", "PUT", "PATCH", "DELETE"}
VALID_AUTH_TYPES = {"none", "api-key", "bearer", "basic"}

_EXPORT_EXCLUDE = {"id", "created_at", "updated_at"}


class WorkflowImportError(ValueError):
    """Raised when an imported workflow payload is malformed."""


def export_workflow(workflow: WorkflowDocument) -> str:
    """Serialize a workflow to JSON, without storage-only fields."""
    data = workflow.model_dump(mode="json", by_alias=True, exclude=_EXPORT_EXCLUDE, exclude_none=True)
    return json.dumps(data, indent=2)


def import_workflow(text: str, settings: Settings | None = None) -> WorkflowDocument:
    """Parse and validate an exported workflow, dropping unexpected fields."""
    settings = settings or get_settings()
    try:
        raw = json.loads(text)
    except ValueError:
        raise WorkflowImportError("Invalid JSON: could not parse workflow data")

    if not isinstance(raw, dict):
        raise WorkflowImportError("Invalid workflow: expected an object")

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise WorkflowImportError('Invalid workflow: missing or empty "name"')
    if len(name.strip()) > settings.max_workflow_name_length:
        raise WorkflowImportError(
            f'Invalid workflow: "name" cannot exceed {settings.max_workflow_name_length} characters'
        )

    steps = raw.get("steps")
    if not isinstance(steps, list):
        raise WorkflowImportError('Invalid workflow: "steps" must be an array')
    if len(steps) > settings.max_steps:
        raise WorkflowImportError(f"Invalid workflow: cannot have more than {settings.max_steps} steps")

    server_url = raw.get("serverUrl")
    if not isinstance(server_url, str) or not server_url.strip():
        raise WorkflowImportError('Invalid workflow: missing or empty "serverUrl"')

    description = raw.get("description")
    shared_auth = raw.get("sharedAuth")

    return WorkflowDocument(
        id=uuid.uuid4().hex,
        name=name.strip(),
        description=description if isinstance(description, str) else None,
        server_url=server_url.strip(),
        shared_auth=_validate_auth(shared_auth) if isinstance(shared_auth, dict) else None,
        steps=[_validate_step(step, i, settings) for i, step in enumerate(steps)],
    )


def _validate_step(raw: Any, index: int, settings: Settings) -> WorkflowStep:
    if not isinstance(raw, dict):
        raise WorkflowImportError(f"Invalid step at index {index}: expected an object")

    extractions = raw.get("extractions")
    valid_extractions = [
        VariableExtraction(id=e["id"], name=e["name"], json_path=e["jsonPath"])
        for e in (extractions if isinstance(extractions, list) else [])
        if _is_valid_extraction(e)
    ]
    if len(valid_extractions) > settings.max_extractions:
        raise WorkflowImportError(
            f"Invalid step at index {index}: cannot have more than "
            f"{settings.max_extractions} extractions"
        )
    for extraction in valid_extractions:
        if len(extraction.name) > settings.max_variable_name_length:
            raise WorkflowImportError(
                f'Invalid step at index {index}: variable name "{extraction.name[:20]}..." '
                f"exceeds {settings.max_variable_name_length} characters"
            )

    step_id = raw.get("id")
    order = raw.get("order")
    name = raw.get("name")
    return WorkflowStep(
        id=step_id if isinstance(step_id, str) else str(uuid.uuid4()),
        order=order if isinstance(order, int) and not isinstance(order, bool) else index,
        name=name if isinstance(name, str) else f"Step {index + 1}",
        request=_validate_request(raw.get("request"), index),
        extractions=valid_extractions,
    )


def _validate_request(raw: Any, index: int) -> WorkflowRequest:
    if not isinstance(raw, dict):
        raise WorkflowImportError(f"Invalid request at step {index}: expected an object")

    method = str(raw.get("method") or "GET").upper()
    if method not in VALID_METHODS:
        raise WorkflowImportError(f'Invalid method "{method}" at step {index}')

    path = raw.get("path")
    body = raw.get("body")
    server_url = raw.get("serverUrl")
    auth = raw.get("auth")
    return WorkflowRequest(
        method=method,
        path=path if isinstance(path, str) else "/",
        headers=raw["headers"] if _is_string_map(raw.get("headers")) else {},
        query_params=raw["queryParams"] if _is_string_map(raw.get("queryParams")) else {},
        body=body if isinstance(body, str) else None,
        server_url=server_url if isinstance(server_url, str) else None,
        auth=_validate_auth(auth) if isinstance(auth, dict) else None,
    )


def _validate_auth(raw: dict) -> WorkflowAuth:
    auth_type = raw.get("type")
    fields = {
        key: raw[source]
        for key, source in (
            ("token", "token"),
            ("api_key", "apiKey"),
            ("username", "username"),
            ("password", "password"),
        )
        if isinstance(raw.get(source), str)
    }
    return WorkflowAuth(type=auth_type if auth_type in VALID_AUTH_TYPES else "none", **fields)


def _is_valid_extraction(raw: Any) -> bool:
    return isinstance(raw, dict) and all(
        isinstance(raw.get(key), str) for key in ("id", "name", "jsonPath")
    )


def _is_string_map(value: Any) -> bool:
    return isinstance(value, dict) and all(isinstance(v, str) for v in value.values())
