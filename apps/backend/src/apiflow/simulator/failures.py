"""Injected failures for simulated requests.

A rule is looked up by ``"METHOD /path"`` first and then by ``"* /path"``.
It either fails the request outright (``status`` unset) or answers it with
an HTTP error response, and can be limited to its first ``times`` matches.
"""

from __future__ import annotations

import random

from pydantic import BaseModel, PrivateAttr


class FailureRule(BaseModel):
    error_type: str = "server_error"
    message: str = "Simulated failure"
    status: int | None = None
    probability: float = 1.0
    times: int | None = None

    _hits: int = PrivateAttr(default=0)

    @property
    def exhausted(self) -> bool:
        return self.times is not None and self._hits >= self.times

    def describe(self) -> str:
        return f"[{self.error_type}] {self.message}"


class FailureConfig(BaseModel):
    rules: dict[str, FailureRule] = {}
    seed: int | None = None

    _rng: random.Random = PrivateAttr(default_factory=random.Random)

    def model_post_init(self, __context) -> None:
        if self.seed is not None:
            self._rng.seed(self.seed)

    def match(self, method: str, path: str) -> FailureRule | None:
        """Return the rule that fires for this request, if any."""
        rule = self.rules.get(f"{method.upper()} {path}") or self.rules.get(f"* {path}")
        if rule is None or rule.exhausted:
            return None
        if self._rng.random() >= rule.probability:
            return None
        rule._hits += 1
        return rule
