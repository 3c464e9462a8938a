"""HTTP client layer for named services.

Resolves ``service://endpoint`` URLs through registered formatters, layers
default, service and endpoint headers, and runs requests through a lifecycle
that queues work while credentials are renegotiated.
"""

from commons_http.config import HttpClientConfig, ServiceDefinition
from commons_http.errors import (
    HttpServiceError,
    HttpTimeoutError,
    RequestAbortedError,
    SerializationError,
    UnauthorizedError,
    UrlResolutionError,
)
from commons_http.headers import HttpHeaders
from commons_http.service import (
    AuthState,
    AuthStateError,
    HttpResponse,
    HttpService,
    HttpServiceManager,
    TokenRenegotiator,
)
from commons_http.transport import HttpxTransport
from commons_http.url import UrlFormatter, UrlFormatterCollection


__all__ = [
    # Service
    "HttpService",
    "HttpServiceManager",
    "HttpResponse",
    "AuthState",
    "AuthStateError",
    "TokenRenegotiator",
    # URLs and headers
    "UrlFormatter",
    "UrlFormatterCollection",
    "HttpHeaders",
    # Transport
    "HttpxTransport",
    # Config
    "HttpClientConfig",
    "ServiceDefinition",
    # Errors
    "HttpServiceError",
    "UrlResolutionError",
    "HttpTimeoutError",
    "UnauthorizedError",
    "RequestAbortedError",
    "SerializationError",
]
