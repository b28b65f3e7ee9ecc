"""Offline request executor answering from a route table."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Union
from urllib.parse import urlsplit

from pydantic import BaseModel

from ..connectors.base import BaseRequestExecutor
from ..connectors.http import body_size_kb
from ..workflow.schema import HttpRequest, RequestOutcome, StepResponse
from .failures import FailureConfig

if TYPE_CHECKING:
    from ..config import Settings


class SimulatedRoute(BaseModel):
    """Canned response for one "METHOD /path" route."""

    status: int = 200
    status_text: str = "OK"
    headers: dict[str, str] = {"content-type": "application/json"}
    body: Any = None
    time: float = 1.0


RouteHandler = Callable[[HttpRequest], Union[SimulatedRoute, Awaitable[SimulatedRoute]]]


class SimulatedExecutor(BaseRequestExecutor):
    """Answers requests from ``routes`` without touching the network.

    Routes are keyed by ``"METHOD /path"`` (query string ignored) and map to a
    ``SimulatedRoute`` or to a handler returning one. Every request received is
    appended to ``requests``.
    """

    name = "simulator"

    def __init__(
        self,
        routes: dict[str, SimulatedRoute | RouteHandler] | None = None,
        failure_config: FailureConfig | None = None,
    ) -> None:
        self.routes: dict[str, SimulatedRoute | RouteHandler] = dict(routes or {})
        self.failure_config = failure_config
        self.requests: list[HttpRequest] = []

    @classmethod
    def from_settings(cls, settings: Settings) -> SimulatedExecutor:
        return cls()

    def add_route(self, method: str, path: str, route: SimulatedRoute | RouteHandler) -> None:
        self.routes[f"{method.upper()} {path}"] = route

    async def execute(self, request: HttpRequest) -> RequestOutcome:
        self.requests.append(request)
        path = urlsplit(request.url).path or "/"

        if self.failure_config:
            rule = self.failure_config.match(request.method, path)
            if rule is not None and rule.status is None:
                return RequestOutcome.failure(rule.describe())
            if rule is not None:
                body = {"error": rule.error_type, "message": rule.message}
                return RequestOutcome.success(
                    StepResponse(
                        status=rule.status,
                        status_text=rule.message,
                        headers={"content-type": "application/json"},
                        body=body,
                        time=0.0,
                        size=body_size_kb(body),
                    )
                )

        route = self.routes.get(f"{request.method} {path}")
        if route is None:
            return RequestOutcome.failure(f"No simulated route for {request.method} {path}")

        if not isinstance(route, SimulatedRoute):
            route = route(request)
            if inspect.isawaitable(route):
                route = await route

        return RequestOutcome.success(
            StepResponse(
                status=route.status,
                status_text=route.status_text,
                headers=route.headers,
                body=route.body,
                time=route.time,
                size=body_size_kb(route.body),
            )
        )
