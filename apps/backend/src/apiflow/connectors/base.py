"""Base interface for request executors used by the workflow engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..workflow.schema import HttpRequest, RequestOutcome

if TYPE_CHECKING:
    from ..config import Settings


class RequestError(Exception):
    """Raised inside an executor when a request cannot be completed."""

    def __init__(self, message: str, error_type: str = "request_failed"):
        self.error_type = error_type
        super().__init__(message)


class BaseRequestExecutor(ABC):
    """Abstract base for everything that performs a step's HTTP call.

    Interface contract:

        async def execute(self, request: HttpRequest) -> RequestOutcome: ...

    Implementations report failures through ``RequestOutcome.failure`` rather
    than raising. The engine still treats a raised exception as a failed step.
    """

    name: str = ""

    @abstractmethod
    async def execute(self, request: HttpRequest) -> RequestOutcome:
        """Perform ``request`` and return its outcome."""
        ...

    async def aclose(self) -> None:
        """Release any resources held by the executor."""
        return None

    @classmethod
    @abstractmethod
    def from_settings(cls, settings: Settings) -> BaseRequestExecutor:
        """Construct this executor from application Settings."""
        ...
