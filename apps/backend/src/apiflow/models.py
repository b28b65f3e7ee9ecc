"""API models for apiflow."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from .workflow.schema import HttpMethod, StepResponse, WorkflowAuth


class ExecuteRequestPayload(BaseModel):
    """A single request to run through the SSRF-guarded proxy."""

    method: HttpMethod = "GET"
    url: str = Field(..., description="Absolute target URL")
    headers: dict[str, str] = {}
    body: Optional[str] = None
    auth: Optional[WorkflowAuth] = None


class ExecuteRequestResponse(BaseModel):
    """Proxy envelope: ``data`` on success, ``error`` otherwise."""

    success: bool
    data: Optional[StepResponse] = None
    error: Optional[str] = None


class JsonPathValidateRequest(BaseModel):
    expression: str


class JsonPathPreviewRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    body: Any = Field(None, description="Sample response body")
    json_path: str = Field(..., alias="jsonPath")


class TemplateReferencesRequest(BaseModel):
    template: str
    scope: list[str] = Field(default_factory=list, description="Variable names currently available")


class TemplateReferencesResponse(BaseModel):
    references: list[str]
    missing: list[str]


class WorkflowImportRequest(BaseModel):
    content: str = Field(..., description="Exported workflow JSON")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str = "apiflow"
