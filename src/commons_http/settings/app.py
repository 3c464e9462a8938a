"""Environment settings powered by Pydantic BaseSettings."""

from typing import Annotated

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from commons_http.constants import DEFAULT_TIMEOUT_MS


class HttpSettings(BaseSettings):
    """Environment configuration for the HTTP service layer.

    Every field reads from a ``COMMONS_HTTP_`` prefixed variable, e.g.
    ``COMMONS_HTTP_TIMEOUT_MS=5000``.
    """

    model_config = SettingsConfigDict(
        env_prefix="COMMONS_HTTP_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    timeout_ms: Annotated[int, Field(gt=0, le=600_000)] = DEFAULT_TIMEOUT_MS
    log_level: str = "INFO"
    log_json: bool = True
    user_agent: str | None = None


def get_settings() -> HttpSettings:
    """Get a settings instance."""
    return HttpSettings()
