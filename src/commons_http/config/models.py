"""Client configuration schema."""

import logging
from typing import Annotated

import structlog
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from commons_http.constants import DEFAULT_AUTH_FAILURE_STATUSES, DEFAULT_TIMEOUT_MS
from commons_http.service.manager import HttpServiceManager
from commons_http.settings.app import HttpSettings
from commons_http.url.formatter import UrlFormatter


logger = structlog.get_logger()

# Credentials are installed at runtime, never carried in configuration
FORBIDDEN_CONFIG_HEADERS = frozenset({"authorization", "cookie", "x-api-key"})

_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _validate_headers(headers: dict[str, str]) -> dict[str, str]:
    for key in headers:
        if key.lower() in FORBIDDEN_CONFIG_HEADERS:
            msg = f"Header '{key}' must not be stored in config"
            raise ValueError(msg)
    return headers


class ServiceDefinition(BaseModel):
    """Configuration for a single service.

    Attributes:
        name: Service name, used as the ``name://`` scheme in request URLs.
        url: Base URL, ``[protocol://]host[:port][/version]``.
        headers: Headers sent with every request to the service.
        endpoint_headers: Headers for specific endpoints; they replace the
            service headers for that endpoint.
        replacements: Placeholder values applied to every endpoint.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: Annotated[
        str, Field(min_length=1, max_length=100, pattern=r"^[A-Za-z0-9_.-]+$")
    ]
    url: Annotated[str, Field(min_length=1)]
    headers: dict[str, str] = Field(default_factory=dict)
    endpoint_headers: dict[str, dict[str, str]] = Field(default_factory=dict)
    replacements: dict[str, str] = Field(default_factory=dict)

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate the URL is a base URL a formatter can parse."""
        if UrlFormatter.parse(v) is None:
            msg = f"URL must be [protocol://]host[:port][/version], got {v!r}"
            raise ValueError(msg)
        return v

    @field_validator("headers")
    @classmethod
    def validate_no_auth_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no credential headers are stored in config."""
        return _validate_headers(v)

    @field_validator("endpoint_headers")
    @classmethod
    def validate_no_endpoint_auth_headers(
        cls, v: dict[str, dict[str, str]]
    ) -> dict[str, dict[str, str]]:
        """Ensure no credential headers are stored in endpoint config."""
        for headers in v.values():
            _validate_headers(headers)
        return v

    def to_formatter(self) -> UrlFormatter:
        """Build the URL formatter for this service."""
        formatter = UrlFormatter.parse(self.url)
        if formatter is None:
            # validate_url guarantees a parseable URL
            msg = f"Unparseable service URL: {self.url}"
            raise ValueError(msg)
        formatter.replacements = dict(self.replacements)
        return formatter


class HttpClientConfig(BaseModel):
    """Root configuration for an HttpService.

    Attributes:
        timeout_ms: Per-request deadline in milliseconds.
        default_headers: Headers sent with every request.
        default_service: Service used for bare endpoints; the first service
            when omitted.
        services: Service definitions, in registration order.
        auth_failure_statuses: Statuses that trigger renegotiation.
        log_level: Log level name applied by ``HttpService.from_config``.
        log_json: Whether logs render as JSON lines.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_ms: Annotated[int, Field(gt=0, le=600_000)] = DEFAULT_TIMEOUT_MS
    default_headers: dict[str, str] = Field(default_factory=dict)
    default_service: str | None = None
    services: list[ServiceDefinition] = Field(default_factory=list)
    auth_failure_statuses: frozenset[int] = DEFAULT_AUTH_FAILURE_STATUSES
    log_level: str = "INFO"
    log_json: bool = True

    @field_validator("default_headers")
    @classmethod
    def validate_no_auth_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Ensure no credential headers are stored in config."""
        return _validate_headers(v)

    @field_validator("auth_failure_statuses")
    @classmethod
    def validate_statuses(cls, v: frozenset[int]) -> frozenset[int]:
        """Validate statuses are HTTP status codes."""
        invalid = sorted(s for s in v if not 100 <= s <= 599)  # noqa: PLR2004
        if invalid:
            msg = f"Invalid HTTP status codes: {invalid}"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate and normalize the log level name."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            msg = f"Unknown log level: {v}"
            raise ValueError(msg)
        return level

    @model_validator(mode="after")
    def validate_services(self) -> "HttpClientConfig":
        """Ensure service names are unique and the default exists."""
        names = [s.name for s in self.services]
        duplicates = {name for name in names if names.count(name) > 1}
        if duplicates:
            msg = f"Duplicate service names found: {duplicates}"
            raise ValueError(msg)

        if self.default_service is not None and self.default_service not in names:
            msg = f"Default service '{self.default_service}' is not defined"
            raise ValueError(msg)
        return self

    @property
    def log_level_value(self) -> int:
        """Get the numeric logging level."""
        return logging.getLevelName(self.log_level)

    @classmethod
    def from_settings(
        cls,
        settings: HttpSettings,
        services: list[ServiceDefinition] | None = None,
        default_service: str | None = None,
    ) -> "HttpClientConfig":
        """Build a config from environment settings.

        Args:
            settings: Environment settings.
            services: Service definitions.
            default_service: Optional default service name.

        Returns:
            Client configuration.
        """
        default_headers: dict[str, str] = {}
        if settings.user_agent:
            default_headers["User-Agent"] = settings.user_agent

        return cls(
            timeout_ms=settings.timeout_ms,
            default_headers=default_headers,
            default_service=default_service,
            services=services or [],
            log_level=settings.log_level,
            log_json=settings.log_json,
        )


def build_service_manager(config: HttpClientConfig) -> HttpServiceManager:
    """Build a service manager with every configured service registered.

    Args:
        config: Client configuration.

    Returns:
        Manager with formatters and headers installed.
    """
    manager = HttpServiceManager()

    for service in config.services:
        manager.register(service.name, service.to_formatter())
        for key, value in service.headers.items():
            manager.add_header(service.name, key, value)
        for endpoint, headers in service.endpoint_headers.items():
            for key, value in headers.items():
                manager.add_header(service.name, key, value, endpoint=endpoint)

    if config.default_service is not None:
        manager.urls.default = config.default_service

    logger.bind(component="http", subcomponent="config").info(
        "service_manager_built",
        services=[s.name for s in config.services],
        default_service=manager.urls.default,
    )
    return manager
