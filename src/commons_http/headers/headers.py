"""Service and endpoint scoped request headers."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


@dataclass
class EndpointHeaders:
    """Headers for one endpoint of a service."""

    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)


@dataclass
class ServiceHeaders:
    """Headers for one service, plus per-endpoint overrides.

    Attributes:
        service: Service name.
        headers: Headers sent with every request to the service.
    """

    service: str
    headers: dict[str, str] = field(default_factory=dict)
    _endpoints: dict[str, EndpointHeaders] = field(
        default_factory=dict, init=False, repr=False
    )

    def get_headers(self, endpoint: str | None = None) -> dict[str, str]:
        """Get the effective headers for an endpoint.

        Endpoint headers replace the service headers entirely when the
        endpoint has any; otherwise the service headers apply.

        Args:
            endpoint: Endpoint name, or None for the service headers.

        Returns:
            A copy of the effective headers.
        """
        if endpoint:
            endpoint_headers = self._endpoints.get(endpoint)
            if endpoint_headers is not None and endpoint_headers.headers:
                return dict(endpoint_headers.headers)
        return dict(self.headers)

    def set(self, endpoint: str, key: str, value: str) -> None:
        """Set a header for an endpoint."""
        if endpoint not in self._endpoints:
            self._endpoints[endpoint] = EndpointHeaders(endpoint)
        self._endpoints[endpoint].headers[key] = value

    def remove(self, endpoint: str, key: str) -> None:
        """Remove a header from an endpoint."""
        endpoint_headers = self._endpoints.get(endpoint)
        if endpoint_headers is not None:
            endpoint_headers.headers.pop(key, None)

    def clear(self, endpoint: str) -> None:
        """Remove every header from an endpoint."""
        endpoint_headers = self._endpoints.get(endpoint)
        if endpoint_headers is not None:
            endpoint_headers.headers.clear()


class HttpHeaders:
    """Headers organized by service and by (service, endpoint).

    Lookups never raise: unknown services and endpoints produce an empty
    mapping. Every lookup returns a fresh copy, so callers may mutate the
    result without touching stored headers.
    """

    def __init__(self) -> None:
        """Initialize with no headers."""
        self._services: dict[str, ServiceHeaders] = {}

    def set(
        self,
        service: str,
        key: str,
        value: str,
        endpoint: str | None = None,
    ) -> None:
        """Set a header for a service, or for one endpoint of it.

        Args:
            service: Service name.
            key: Header name.
            value: Header value.
            endpoint: Optional endpoint name.
        """
        if service not in self._services:
            self._services[service] = ServiceHeaders(service)

        if endpoint is None:
            self._services[service].headers[key] = value
        else:
            self._services[service].set(endpoint, key, value)

    def remove(self, service: str, key: str, endpoint: str | None = None) -> None:
        """Remove a header from a service, or from one endpoint of it."""
        service_headers = self._services.get(service)
        if service_headers is None:
            return

        if endpoint is None:
            service_headers.headers.pop(key, None)
        else:
            service_headers.remove(endpoint, key)

    def clear(self, service: str, endpoint: str | None = None) -> None:
        """Remove every header from a service, or from one endpoint of it."""
        service_headers = self._services.get(service)
        if service_headers is None:
            return

        if endpoint is None:
            service_headers.headers.clear()
        else:
            service_headers.clear(endpoint)

    def get_headers(
        self,
        service: str | None,
        endpoint: str | None = None,
    ) -> dict[str, str]:
        """Get the effective headers for a service or endpoint.

        Args:
            service: Service name. None or empty yields no headers.
            endpoint: Optional endpoint name.

        Returns:
            A copy of the effective headers.
        """
        if not service:
            return {}

        service_headers = self._services.get(service)
        if service_headers is None:
            return {}

        return service_headers.get_headers(endpoint)

    def merge(
        self,
        defaults: Iterable[tuple[str, str]] | Mapping[str, str],
        service: str | None,
        endpoint: str | None = None,
    ) -> dict[str, str]:
        """Overlay service or endpoint headers on top of default headers.

        Args:
            defaults: Client-wide headers, as pairs or a mapping.
            service: Service name.
            endpoint: Optional endpoint name.

        Returns:
            Merged headers; service/endpoint values win per key.
        """
        pairs = defaults.items() if isinstance(defaults, Mapping) else defaults
        merged = dict(pairs)
        merged.update(self.get_headers(service, endpoint))
        return merged
