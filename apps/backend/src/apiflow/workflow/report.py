"""Execution report model with markdown rendering."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from .schema import StepExecutionResult, WorkflowDocument, WorkflowExecution


class ExecutionReport(BaseModel):
    """Summary of a workflow execution run."""

    workflow_id: str
    workflow_name: str
    status: str
    total_steps: int
    successful: int
    failed: int
    skipped: int
    step_names: dict[str, str] = {}
    execution: WorkflowExecution

    @classmethod
    def from_execution(cls, workflow: WorkflowDocument, execution: WorkflowExecution) -> ExecutionReport:
        counts = {"success": 0, "failure": 0, "skipped": 0}
        for result in execution.results:
            if result.status in counts:
                counts[result.status] += 1
        return cls(
            workflow_id=workflow.id,
            workflow_name=workflow.name,
            status=execution.status,
            total_steps=len(workflow.steps),
            successful=counts["success"],
            failed=counts["failure"],
            skipped=counts["skipped"],
            step_names={step.id: step.name for step in workflow.steps},
            execution=execution,
        )

    def to_markdown(self) -> str:
        lines = [
            f"# Execution Report: {self.workflow_name}",
            "",
            f"**Workflow ID:** `{self.workflow_id}`",
            f"**Status:** {self.status}",
            f"**Total steps:** {self.total_steps}",
            f"**Successful:** {self.successful}",
            f"**Failed:** {self.failed}",
            f"**Skipped:** {self.skipped}",
            "",
        ]

        lines.append("## Execution Trace")
        lines.append("")
        lines.append("| # | Step | Status | HTTP | Detail |")
        lines.append("|---|------|--------|------|--------|")

        for i, result in enumerate(self.execution.results, 1):
            name = self.step_names.get(result.step_id, result.step_id)
            http_status = str(result.response.status) if result.response else ""
            status_icon = {"success": "OK", "failure": "FAIL", "skipped": "SKIP"}.get(
                result.status, result.status
            )
            lines.append(
                f"| {i} | `{name}` | {status_icon} | {http_status} | {_detail(result)} |"
            )

        if self.execution.variables:
            lines.append("")
            lines.append("## Variables")
            for name, value in self.execution.variables.items():
                lines.append(f"- `{name}` = {_short(value)}")

        lines.append("")
        started, completed = self.execution.started_at, self.execution.completed_at
        if started and completed:
            duration = (completed - started).total_seconds()
            lines.append(f"**Duration:** {duration:.2f}s")

        return "\n".join(lines)

    def to_dict(self) -> dict:
        return self.model_dump(mode="json")


def _detail(result: StepExecutionResult) -> str:
    if result.error:
        return result.error
    parts = [f"{k}={_short(v)}" for k, v in result.extracted_variables.items()]
    parts.extend(f"warning: {e}" for e in result.extraction_errors)
    return ", ".join(parts)


def _short(value: Any, limit: int = 60) -> str:
    text = str(value)
    return text if len(text) <= limit else text[: limit - 3] + "..."
