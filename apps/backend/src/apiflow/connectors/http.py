"""httpx-backed request executor with SSRF checks and response decoding."""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import TYPE_CHECKING, Any

import httpx

from ..workflow.schema import BODY_METHODS, HttpRequest, RequestOutcome, StepResponse, WorkflowAuth
from .base import BaseRequestExecutor, RequestError
from .url_guard import validate_proxy_url

if TYPE_CHECKING:
    from ..config import Settings

logger = logging.getLogger(__name__)

BINARY_MESSAGE = "Binary response (use Download to save)"


def build_auth_headers(headers: dict[str, str], auth: WorkflowAuth | None) -> httpx.Headers:
    """Return ``headers`` with the credentials from ``auth`` applied."""
    merged = httpx.Headers(headers)
    if auth is None:
        return merged

    if auth.type == "bearer" and auth.token:
        merged["Authorization"] = f"Bearer {auth.token}"
    elif auth.type == "api-key" and auth.api_key:
        merged["X-API-Key"] = auth.api_key
    elif auth.type == "basic" and auth.username and auth.password:
        credentials = base64.b64encode(f"{auth.username}:{auth.password}".encode()).decode()
        merged["Authorization"] = f"Basic {credentials}"
    return merged


def decode_body(response: httpx.Response) -> Any:
    """Decode a response body according to its content type."""
    content_type = response.headers.get("content-type", "")
    if "application/json" in content_type:
        try:
            return response.json()
        except ValueError:
            return response.text
    if content_type.startswith("text/") or not response.content:
        return response.text
    return {"type": content_type, "message": BINARY_MESSAGE}


def body_size_kb(body: Any) -> float:
    text = body if isinstance(body, str) else json.dumps(body)
    return len(text.encode("utf-8")) / 1024


class HttpxRequestExecutor(BaseRequestExecutor):
    """Performs workflow requests over the network with httpx.

    Every failure (blocked URL, unencodable header, timeout, transport
    error, and optionally 4xx/5xx statuses) is returned as
    ``RequestOutcome.failure``.
    """

    name = "http"

    def __init__(
        self,
        http_client: httpx.AsyncClient | None = None,
        *,
        timeout: float = 30.0,
        fail_on_http_error: bool = False,
        allow_private_networks: bool = False,
    ) -> None:
        self.http = http_client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = http_client is None
        self.timeout = timeout
        self.fail_on_http_error = fail_on_http_error
        self.allow_private_networks = allow_private_networks

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> HttpxRequestExecutor:
        return cls(
            http_client,
            timeout=settings.request_timeout_seconds,
            fail_on_http_error=settings.fail_on_http_error,
            allow_private_networks=settings.allow_private_networks,
        )

    async def execute(self, request: HttpRequest) -> RequestOutcome:
        try:
            return await self._send(request)
        except RequestError as e:
            logger.warning(
                "Request failed: method=%s url=%s error=%s",
                request.method,
                request.url,
                e.error_type,
            )
            return RequestOutcome.failure(str(e))

    async def _send(self, request: HttpRequest) -> RequestOutcome:
        validation = validate_proxy_url(request.url, self.allow_private_networks)
        if not validation.valid:
            raise RequestError(f"Invalid URL: {validation.error}", "url_blocked")

        try:
            headers = build_auth_headers(request.headers, request.auth)
        except (UnicodeEncodeError, TypeError) as e:
            raise RequestError(f"Invalid request headers: {e}", "invalid_request")
        content = request.body if request.body and request.method in BODY_METHODS else None

        started = time.perf_counter()
        try:
            resp = await self.http.request(
                request.method,
                request.url,
                headers=headers,
                content=content,
                timeout=self.timeout,
            )
        except httpx.InvalidURL as e:
            raise RequestError(f"Invalid URL: {e}", "invalid_request")
        except httpx.TimeoutException:
            raise RequestError(f"Request timeout ({self.timeout:g}s exceeded)", "timeout")
        except httpx.HTTPError as e:
            raise RequestError(str(e) or "Request failed", "transport_error")
        elapsed_ms = (time.perf_counter() - started) * 1000

        body = decode_body(resp)
        response = StepResponse(
            status=resp.status_code,
            status_text=resp.reason_phrase,
            headers=dict(resp.headers),
            body=body,
            time=round(elapsed_ms, 2),
            size=body_size_kb(body),
        )

        if self.fail_on_http_error and resp.is_error:
            return RequestOutcome.failure(
                f"HTTP {resp.status_code} {resp.reason_phrase}".strip(), response
            )
        return RequestOutcome.success(response)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.http.aclose()
