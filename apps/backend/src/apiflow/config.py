from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # ------------------------------------------------------------------
    # Request execution
    # ------------------------------------------------------------------
    # "http"     : real requests through httpx, guarded against SSRF (default)
    # "simulator": offline route table, no network access
    executor_mode: Literal["http", "simulator"] = "http"
    request_timeout_seconds: float = 30.0
    # Treat 4xx/5xx responses as step failures instead of ordinary responses
    fail_on_http_error: bool = False
    # Skip hostname keyword and private IP checks (local development only)
    allow_private_networks: bool = False

    # ------------------------------------------------------------------
    # Workflow limits
    # ------------------------------------------------------------------
    max_steps: int = 20
    max_extractions: int = 10
    max_variable_name_length: int = 50
    max_json_path_length: int = 500
    max_workflow_name_length: int = 100

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    class Config:
        env_file = ".env"
        case_sensitive = False


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
