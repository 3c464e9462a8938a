"""Observability: structured logging, metrics and redaction."""

from commons_http.observability.logging import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
)
from commons_http.observability.metrics import HttpMetrics
from commons_http.observability.redact import (
    redact_headers,
    redact_url_credentials,
)


__all__ = [
    "HttpMetrics",
    "bind_request_context",
    "clear_request_context",
    "configure_logging",
    "get_logger",
    "redact_headers",
    "redact_url_credentials",
]
