"""Simulated request execution for offline workflow runs."""

from .executor import SimulatedExecutor, SimulatedRoute
from .failures import FailureConfig, FailureRule


def create_simulator(
    routes: dict | None = None,
    failure_config: FailureConfig | None = None,
) -> SimulatedExecutor:
    """Create a fresh simulated executor with its own route table and trace."""
    return SimulatedExecutor(routes=routes, failure_config=failure_config)


__all__ = [
    "FailureConfig",
    "FailureRule",
    "SimulatedExecutor",
    "SimulatedRoute",
    "create_simulator",
]
