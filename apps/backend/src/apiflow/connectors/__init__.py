"""Connector package: request executors used by the workflow engine.

Usage:
    from apiflow.connectors import create_request_executor, close_request_executor

    executor = create_request_executor(settings)
    try:
        ...
    finally:
        await close_request_executor(executor)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx

from .base import BaseRequestExecutor, RequestError
from .http import HttpxRequestExecutor

if TYPE_CHECKING:
    from ..config import Settings


def create_request_executor(
    settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> BaseRequestExecutor:
    """Create the executor selected by ``settings.executor_mode``.

    Modes:
      "http"      : real requests through httpx with SSRF checks (default)
      "simulator" : offline route table; register routes on the returned executor
    """
    if settings.executor_mode == "simulator":
        # simulator imports connectors.base, so resolve it lazily
        from ..simulator import create_simulator

        return create_simulator()

    return HttpxRequestExecutor.from_settings(settings, http_client)


async def close_request_executor(executor: BaseRequestExecutor) -> None:
    """Close any HTTP client owned by the executor."""
    await executor.aclose()


__all__ = [
    "BaseRequestExecutor",
    "HttpxRequestExecutor",
    "RequestError",
    "close_request_executor",
    "create_request_executor",
]
