"""Sequential workflow executor which threads extracted variables between steps."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Mapping, Optional
from urllib.parse import quote

from ..connectors.base import BaseRequestExecutor
from .extraction import extract_variables
from .schema import (
    BODY_METHODS,
    HttpRequest,
    RequestOutcome,
    StepExecutionResult,
    WorkflowAuth,
    WorkflowDocument,
    WorkflowExecution,
    WorkflowStep,
)
from .substitution import substitute_variables

logger = logging.getLogger(__name__)

StepStartCallback = Callable[[int], Any]
StepCompleteCallback = Callable[[int, StepExecutionResult], Any]
CompleteCallback = Callable[[WorkflowExecution], Any]
ErrorCallback = Callable[[int, str], Any]

# Query values are already percent-encoded by substitution, so keep '%' intact
_QUERY_VALUE_SAFE = "-_.!~*'()%"
_QUERY_KEY_SAFE = "-_.!~*'()"


class CancellationToken:
    """Cooperative cancellation flag checked by the engine at step boundaries."""

    def __init__(self) -> None:
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass
class _RunState:
    """Everything one run owns. Never shared between runs."""

    execution: WorkflowExecution
    steps: list[WorkflowStep]
    token: CancellationToken
    variables: dict[str, Any] = field(default_factory=dict)


def render_request(
    workflow: WorkflowDocument,
    step: WorkflowStep,
    variables: Mapping[str, Any],
) -> HttpRequest:
    """Build the concrete request for ``step`` from the current variable scope."""
    template = step.request

    base_url = template.server_url or workflow.server_url
    path = substitute_variables(template.path, variables, "url")
    if path.startswith("/"):
        base_url = base_url.rstrip("/")
    url = f"{base_url}{path}"

    query_pairs = []
    for key, value in template.query_params.items():
        rendered = substitute_variables(value, variables, "query")
        if rendered:
            query_pairs.append(
                f"{quote(key, safe=_QUERY_KEY_SAFE)}={quote(rendered, safe=_QUERY_VALUE_SAFE)}"
            )
    if query_pairs:
        separator = "&" if "?" in url else "?"
        url = f"{url}{separator}{'&'.join(query_pairs)}"

    headers = {
        key: substitute_variables(value, variables, "header")
        for key, value in template.headers.items()
    }

    body = None
    if template.body and template.method in BODY_METHODS:
        body = substitute_variables(template.body, variables, "body")

    auth = template.auth or workflow.shared_auth or WorkflowAuth(type="none")

    return HttpRequest(method=template.method, url=url, headers=headers, body=body, auth=auth)


async def _notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class WorkflowEngine:
    """Runs a workflow's steps in order against a request executor.

    Any failed step halts the run and marks the remaining steps skipped.
    ``abort()`` is honoured before each step and right after each step
    finishes; an in-flight request always runs to completion.
    """

    def __init__(self, executor: BaseRequestExecutor):
        self.executor = executor
        self._active: CancellationToken | None = None
        # abort() on an engine that has never run applies to its first run
        self._pending_abort = False
        self._has_run = False

    @property
    def running(self) -> bool:
        return self._active is not None

    def abort(self) -> None:
        """Request cancellation of the current run.

        Before the engine's first run this arms that run; once a run has
        finished, calling it while idle does nothing.
        """
        if self._active is not None:
            self._active.cancel()
        elif not self._has_run:
            self._pending_abort = True

    async def execute(
        self,
        workflow: WorkflowDocument,
        *,
        on_step_start: StepStartCallback | None = None,
        on_step_complete: StepCompleteCallback | None = None,
        on_complete: CompleteCallback | None = None,
        on_error: ErrorCallback | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> WorkflowExecution:
        """Execute ``workflow`` and return the full execution trace."""
        if self._active is not None:
            raise RuntimeError("WorkflowEngine is already running a workflow")

        token = cancel_token or CancellationToken()
        if self._pending_abort:
            token.cancel()
            self._pending_abort = False
        self._active = token

        state = _RunState(
            execution=WorkflowExecution(
                workflow_id=workflow.id,
                status="running",
                started_at=datetime.now(),
            ),
            steps=workflow.ordered_steps(),
            token=token,
        )
        state.execution.variables = state.variables

        try:
            await self._run(
                workflow,
                state,
                on_step_start=on_step_start,
                on_step_complete=on_step_complete,
                on_error=on_error,
            )
        finally:
            self._active = None
            self._has_run = True

        execution = state.execution
        execution.completed_at = datetime.now()
        logger.info(
            "Workflow %s finished with status %s (%d steps)",
            workflow.id,
            execution.status,
            len(execution.results),
        )
        await _notify(on_complete, execution)
        return execution

    async def _run(
        self,
        workflow: WorkflowDocument,
        state: _RunState,
        *,
        on_step_start: StepStartCallback | None,
        on_step_complete: StepCompleteCallback | None,
        on_error: ErrorCallback | None,
    ) -> None:
        execution = state.execution
        steps = state.steps
        logger.info("Running workflow %s (%d steps)", workflow.id, len(steps))

        for index, step in enumerate(steps):
            if state.token.cancelled:
                self._skip_from(state, index)
                execution.status = "aborted"
                return

            execution.current_step_index = index
            await _notify(on_step_start, index)

            result = StepExecutionResult(step_id=step.id, status="running", started_at=datetime.now())
            request = render_request(workflow, step, dict(state.variables))
            outcome = await self._dispatch(step, request)
            result.completed_at = datetime.now()

            if not outcome.ok:
                result.status = "failure"
                result.error = outcome.error
                result.response = outcome.response
                execution.results.append(result)
                logger.warning("Step %s of workflow %s failed: %s", step.id, workflow.id, outcome.error)
                await _notify(on_error, index, result.error)
                await _notify(on_step_complete, index, result)

                self._skip_from(state, index + 1)
                execution.status = "failed"
                return

            result.status = "success"
            result.response = outcome.response

            body = outcome.response.body if outcome.response is not None else None
            extraction = extract_variables(body, step.extractions)
            result.extracted_variables = extraction.extracted
            result.extraction_errors = extraction.errors
            state.variables.update(extraction.extracted)
            if extraction.errors:
                logger.warning("Extraction warnings for step %r: %s", step.name, extraction.errors)

            execution.results.append(result)
            await _notify(on_step_complete, index, result)

            if state.token.cancelled and index + 1 < len(steps):
                self._skip_from(state, index + 1)
                execution.status = "aborted"
                return

        execution.status = "completed"

    async def _dispatch(self, step: WorkflowStep, request: HttpRequest) -> RequestOutcome:
        try:
            return await self.executor.execute(request)
        except Exception as e:
            logger.warning("Request executor raised for step %s: %s", step.id, type(e).__name__)
            return RequestOutcome.failure(str(e) or "Unknown error")

    @staticmethod
    def _skip_from(state: _RunState, start: int) -> None:
        for step in state.steps[start:]:
            state.execution.results.append(StepExecutionResult(step_id=step.id, status="skipped"))
