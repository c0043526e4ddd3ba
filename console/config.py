"""
Configuration and startup checks for the console core.

Settings are read once from the environment (prefix `CONSOLE_`, optional
`.env` file) and are frozen afterwards: the API base address, timeout and
default headers cannot change while the process runs.

Permissions: The caller needs no special privileges. The guard simply reads
the settings object and raises `SystemExit` on fatal misconfiguration.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Dict, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PROD_LIKE_ENVIRONMENTS = frozenset({"prod", "production", "stage", "staging"})


class ConsoleSettings(BaseSettings):
    """Process-wide console settings (immutable)."""

    model_config = SettingsConfigDict(
        env_prefix="CONSOLE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        frozen=True,
    )

    environment: str = "dev"

    # Transport
    api_base_url: str = "http://localhost:8080/api"
    request_timeout: float = 10.0
    default_headers: Dict[str, str] = Field(
        default_factory=lambda: {"Content-Type": "application/json"}
    )

    # Auth endpoints (relative to api_base_url)
    login_path: str = "/auth/login"
    logout_path: str = "/auth/logout"
    register_path: str = "/auth/register"

    # Router targets
    login_route: str = "/login"
    default_route: str = "/dashboard"

    # Session persistence
    session_file: Path = Path("~/.stumanage/session.json")

    # Listing
    default_page_size: int = 10
    page_size_options: List[int] = Field(default_factory=lambda: [5, 10, 20, 50])

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @field_validator("api_base_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("environment")
    @classmethod
    def _lower_environment(cls, value: str) -> str:
        return (value or "dev").strip().lower()

    @field_validator("session_file")
    @classmethod
    def _expand_user(cls, value: Path) -> Path:
        return value.expanduser()

    @field_validator("page_size_options")
    @classmethod
    def _positive_sizes(cls, value: List[int]) -> List[int]:
        if not value or any(size < 1 for size in value):
            raise ValueError("page_size_options must contain positive sizes")
        return sorted(set(value))

    @model_validator(mode="after")
    def _default_size_is_an_option(self) -> "ConsoleSettings":
        if self.default_page_size not in self.page_size_options:
            raise ValueError("default_page_size must be one of page_size_options")
        return self

    @property
    def is_prod_like(self) -> bool:
        return self.environment in PROD_LIKE_ENVIRONMENTS


@lru_cache(maxsize=1)
def get_settings() -> ConsoleSettings:
    """Return the process-wide settings instance (read once)."""
    return ConsoleSettings()


def ensure_secure_config_on_startup(settings: ConsoleSettings) -> None:
    """Fail fast on insecure production configuration.

    Checks (prod-like environments only):
    - The API base URL must use https; bearer tokens must not travel in clear.
    - The request timeout must be positive so hung calls surface as errors.

    Development remains permissive for convenience.
    """
    if settings.request_timeout <= 0:
        raise SystemExit("Refusing to start: CONSOLE_REQUEST_TIMEOUT must be positive.")
    if not settings.is_prod_like:
        return
    if not settings.api_base_url.lower().startswith("https://"):
        raise SystemExit(
            "Refusing to start: CONSOLE_API_BASE_URL must use https in production (got "
            f"{settings.api_base_url.split('://', 1)[0]})."
        )
