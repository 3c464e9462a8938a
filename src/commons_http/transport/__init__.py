"""Transports that carry requests for HttpService."""

from commons_http.transport.httpx_transport import HttpxTransport
from commons_http.transport.protocols import (
    HttpTransport,
    TransportRequest,
    TransportResponse,
)


__all__ = [
    "HttpTransport",
    "HttpxTransport",
    "TransportRequest",
    "TransportResponse",
]
