"""HTTP service layer with authentication renegotiation.

This module provides:
- HttpService: request lifecycle over an injected transport
- HttpServiceManager: service registry for URL formatters and headers
- AuthStateMachine: authentication stance and pending request queue
- TokenRenegotiator: bearer token refresh on authentication failure
"""

from commons_http.service.auth import AuthState, AuthStateError, AuthStateMachine
from commons_http.service.client import HttpService
from commons_http.service.manager import HttpServiceManager, ServiceData
from commons_http.service.models import (
    HttpRequestRecord,
    HttpResponse,
    HttpVerb,
    ResultSlot,
    SerializationType,
)
from commons_http.service.renegotiation import TokenRenegotiator


__all__ = [
    # Client
    "HttpService",
    # Manager
    "HttpServiceManager",
    "ServiceData",
    # Auth
    "AuthState",
    "AuthStateError",
    "AuthStateMachine",
    "TokenRenegotiator",
    # Models
    "HttpRequestRecord",
    "HttpResponse",
    "HttpVerb",
    "ResultSlot",
    "SerializationType",
]
