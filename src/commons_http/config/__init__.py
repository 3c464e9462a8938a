"""Client configuration models."""

from commons_http.config.models import (
    FORBIDDEN_CONFIG_HEADERS,
    HttpClientConfig,
    ServiceDefinition,
    build_service_manager,
)


__all__ = [
    "FORBIDDEN_CONFIG_HEADERS",
    "HttpClientConfig",
    "ServiceDefinition",
    "build_service_manager",
]
