"""Pydantic models defining workflow documents and their execution results."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]
AuthType = Literal["none", "api-key", "bearer", "basic"]
StepStatus = Literal["pending", "running", "success", "failure", "skipped"]
RunStatus = Literal["idle", "running", "completed", "failed", "aborted"]

BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


class WorkflowAuth(BaseModel):
    """Authentication descriptor applied to a request."""

    model_config = ConfigDict(populate_by_name=True)

    type: AuthType = "none"
    api_key: Optional[str] = Field(None, alias="apiKey")
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None


class VariableExtraction(BaseModel):
    """Bind the value found at ``json_path`` in a step's response to ``name``."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    json_path: str = Field(alias="jsonPath")
    description: Optional[str] = None


class WorkflowRequest(BaseModel):
    """HTTP request template for a single step."""

    model_config = ConfigDict(populate_by_name=True)

    method: HttpMethod = "GET"
    path: str = "/"
    headers: dict[str, str] = {}
    query_params: dict[str, str] = Field(default_factory=dict, alias="queryParams")
    body: Optional[str] = None
    auth: Optional[WorkflowAuth] = None
    server_url: Optional[str] = Field(None, alias="serverUrl")


class WorkflowStep(BaseModel):
    """One HTTP call in the chain."""

    id: str
    order: int
    name: str
    request: WorkflowRequest
    extractions: list[VariableExtraction] = []


class WorkflowDocument(BaseModel):
    """A named, ordered chain of steps sharing one server and auth."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    description: Optional[str] = None
    steps: list[WorkflowStep] = []
    server_url: str = Field(alias="serverUrl")
    shared_auth: Optional[WorkflowAuth] = Field(None, alias="sharedAuth")
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def ordered_steps(self) -> list[WorkflowStep]:
        """Steps sorted by ``order``; ties keep their stored position."""
        return sorted(self.steps, key=lambda step: step.order)


# ---------------------------------------------------------------------------
# Collaborator contract
# ---------------------------------------------------------------------------


class HttpRequest(BaseModel):
    """A fully rendered request handed to the request executor."""

    method: HttpMethod
    url: str
    headers: dict[str, str] = {}
    body: Optional[str] = None
    auth: WorkflowAuth = Field(default_factory=WorkflowAuth)


class StepResponse(BaseModel):
    """A decoded HTTP response. ``time`` is in milliseconds, ``size`` in KB."""

    model_config = ConfigDict(populate_by_name=True)

    status: int
    status_text: str = Field("", alias="statusText")
    headers: dict[str, str] = {}
    body: Any = None
    time: float = 0
    size: float = 0


class RequestOutcome(BaseModel):
    """Envelope returned by a request executor: a response or an error message."""

    ok: bool
    response: Optional[StepResponse] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, response: StepResponse) -> RequestOutcome:
        return cls(ok=True, response=response)

    @classmethod
    def failure(cls, error: str, response: StepResponse | None = None) -> RequestOutcome:
        return cls(ok=False, error=error or "Request failed", response=response)


# ---------------------------------------------------------------------------
# Execution results
# ---------------------------------------------------------------------------


class StepExecutionResult(BaseModel):
    """Outcome of one step within a run."""

    model_config = ConfigDict(populate_by_name=True)

    step_id: str = Field(alias="stepId")
    status: StepStatus = "pending"
    response: Optional[StepResponse] = None
    error: Optional[str] = None
    extracted_variables: dict[str, Any] = Field(default_factory=dict, alias="extractedVariables")
    extraction_errors: list[str] = Field(default_factory=list, alias="extractionErrors")
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")


class WorkflowExecution(BaseModel):
    """Aggregated result of one run of a workflow document."""

    model_config = ConfigDict(populate_by_name=True)

    workflow_id: str = Field(alias="workflowId")
    status: RunStatus = "idle"
    current_step_index: int = Field(0, alias="currentStepIndex")
    results: list[StepExecutionResult] = []
    variables: dict[str, Any] = {}
    started_at: Optional[datetime] = Field(None, alias="startedAt")
    completed_at: Optional[datetime] = Field(None, alias="completedAt")
