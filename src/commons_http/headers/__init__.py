"""Header hierarchy: default, service and endpoint levels."""

from commons_http.headers.headers import EndpointHeaders, HttpHeaders, ServiceHeaders


__all__ = [
    "EndpointHeaders",
    "HttpHeaders",
    "ServiceHeaders",
]
