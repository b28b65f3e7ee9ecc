import asyncio
import json
import logging

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse, StreamingResponse

from .config import get_settings
from .connectors import BaseRequestExecutor, close_request_executor, create_request_executor
from .models import (
    ExecuteRequestPayload,
    ExecuteRequestResponse,
    HealthResponse,
    JsonPathPreviewRequest,
    JsonPathValidateRequest,
    TemplateReferencesRequest,
    TemplateReferencesResponse,
    WorkflowImportRequest,
)
from .workflow.executor import WorkflowEngine
from .workflow.extraction import preview_extraction, validate_json_path
from .workflow.io import WorkflowImportError, export_workflow, import_workflow
from .workflow.report import ExecutionReport
from .workflow.schema import HttpRequest, WorkflowAuth, WorkflowDocument, WorkflowExecution
from .workflow.substitution import extract_variable_references, validate_variable_references

load_dotenv()

logger = logging.getLogger(__name__)

app = FastAPI(
    title="apiflow API",
    description="Run chained OpenAPI requests as workflows with variable passing between steps",
    version="0.1.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def executor_factory() -> BaseRequestExecutor:
    """Build the request executor for one run. Replaced in tests."""
    return create_request_executor(get_settings())


def _dump(execution: WorkflowExecution) -> dict:
    return execution.model_dump(mode="json", by_alias=True)


async def _run_workflow(workflow: WorkflowDocument) -> WorkflowExecution:
    executor = executor_factory()
    try:
        return await WorkflowEngine(executor).execute(workflow)
    finally:
        await close_request_executor(executor)


@app.get("/api/health", response_model=HealthResponse)
def health():
    return HealthResponse(status="ok")


# --- Request proxy ---

@app.post("/api/execute-request", response_model=ExecuteRequestResponse)
async def execute_request(payload: ExecuteRequestPayload):
    """Run one request through the configured executor."""
    executor = executor_factory()
    try:
        outcome = await executor.execute(
            HttpRequest(
                method=payload.method,
                url=payload.url,
                headers=payload.headers,
                body=payload.body,
                auth=payload.auth or WorkflowAuth(),
            )
        )
    finally:
        await close_request_executor(executor)
    return ExecuteRequestResponse(success=outcome.ok, data=outcome.response, error=outcome.error)


# --- Workflow execution ---

@app.post("/api/workflows/run")
async def run_workflow(workflow: WorkflowDocument):
    execution = await _run_workflow(workflow)
    return _dump(execution)


@app.post("/api/workflows/run/stream")
async def run_workflow_stream(workflow: WorkflowDocument):
    """Stream one ``step`` event per executed step, then a ``complete`` event."""

    async def event_stream():
        queue: asyncio.Queue = asyncio.Queue()
        executor = executor_factory()
        engine = WorkflowEngine(executor)

        async def on_step_complete(index, result):
            await queue.put(
                {"type": "step", "index": index, "result": result.model_dump(mode="json", by_alias=True)}
            )

        async def run():
            try:
                execution = await engine.execute(workflow, on_step_complete=on_step_complete)
                await queue.put({"type": "complete", "execution": _dump(execution)})
            except Exception as e:
                logger.exception("Streaming run of workflow %s crashed", workflow.id)
                await queue.put({"type": "error", "content": str(e)})
            finally:
                await close_request_executor(executor)
                await queue.put(None)

        task = asyncio.create_task(run())
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield f"data: {json.dumps(event, default=str)}\n\n"
        finally:
            if not task.done():
                # Client went away: stop after the in-flight step
                engine.abort()
            await task

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
        },
    )


@app.post("/api/workflows/report", response_class=PlainTextResponse)
async def run_workflow_report(workflow: WorkflowDocument):
    execution = await _run_workflow(workflow)
    return ExecutionReport.from_execution(workflow, execution).to_markdown()


@app.post("/api/workflows/import")
def import_workflow_endpoint(request: WorkflowImportRequest):
    try:
        workflow = import_workflow(request.content)
    except WorkflowImportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return workflow.model_dump(mode="json", by_alias=True)


@app.post("/api/workflows/export", response_class=PlainTextResponse)
def export_workflow_endpoint(workflow: WorkflowDocument):
    return export_workflow(workflow)


# --- Authoring helpers ---

@app.post("/api/jsonpath/validate")
def validate_jsonpath_endpoint(request: JsonPathValidateRequest):
    return validate_json_path(request.expression).model_dump(exclude_none=True)


@app.post("/api/jsonpath/preview")
def preview_jsonpath_endpoint(request: JsonPathPreviewRequest):
    return preview_extraction(request.body, request.json_path).model_dump(exclude_none=True)


@app.post("/api/templates/references", response_model=TemplateReferencesResponse)
def template_references(request: TemplateReferencesRequest):
    return TemplateReferencesResponse(
        references=extract_variable_references(request.template),
        missing=validate_variable_references(request.template, request.scope),
    )
