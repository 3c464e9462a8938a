"""Service manager: URL formatters and headers behind one facade."""

from dataclasses import dataclass, field

import structlog

from commons_http.constants import PASSTHROUGH_SCHEMES
from commons_http.errors import UrlResolutionError
from commons_http.headers.headers import HttpHeaders
from commons_http.url.collection import UrlFormatterCollection
from commons_http.url.formatter import UrlFormatter


logger = structlog.get_logger()


@dataclass(frozen=True)
class ServiceData:
    """Everything needed to address one request.

    Attributes:
        service: Owning service name, or None for unclaimed absolute URLs.
        url: Concrete URL to send the request to.
        endpoint: Endpoint name used for header lookup.
        headers: Service or endpoint headers for the request.
    """

    service: str | None
    url: str
    endpoint: str
    headers: dict[str, str] = field(default_factory=dict)


class HttpServiceManager:
    """Registry of services, their URL formatters and their headers."""

    def __init__(self, urls: UrlFormatterCollection | None = None) -> None:
        """Initialize the manager.

        Args:
            urls: Formatter collection to use; a new one when omitted.
        """
        self.urls = urls if urls is not None else UrlFormatterCollection()
        self.headers = HttpHeaders()
        self._log = logger.bind(component="http", subcomponent="manager")

    def register(self, name: str, formatter: UrlFormatter) -> None:
        """Register a service formatter."""
        self.urls.register(name, formatter)

    def unregister(self, name: str) -> None:
        """Remove a service formatter. Its headers are kept."""
        self.urls.unregister(name)

    def get_url_formatter(self, service: str) -> UrlFormatter | None:
        """Get the formatter for a service, or None."""
        return self.urls.formatter(service)

    def get_headers(
        self,
        service: str | None,
        endpoint: str | None = None,
    ) -> dict[str, str]:
        """Get a copy of the effective headers for a service or endpoint."""
        return self.headers.get_headers(service, endpoint)

    def add_header(
        self,
        service: str,
        key: str,
        value: str,
        endpoint: str | None = None,
    ) -> None:
        """Set a header for a service or one of its endpoints."""
        self.headers.set(service, key, value, endpoint=endpoint)

    def remove_header(
        self,
        service: str,
        key: str,
        endpoint: str | None = None,
    ) -> None:
        """Remove a header from a service or one of its endpoints."""
        self.headers.remove(service, key, endpoint=endpoint)

    def clear_headers(self, service: str, endpoint: str | None = None) -> None:
        """Remove every header from a service or one of its endpoints."""
        self.headers.clear(service, endpoint=endpoint)

    def resolve_service_data(
        self,
        url: str,
        replacements: dict[str, str] | None = None,
    ) -> ServiceData:
        """Resolve a request URL into its service, concrete URL and headers.

        ``service://path`` and bare paths are rendered through the matching
        formatter. Absolute http(s) URLs no service claims by scheme are
        passed through unchanged; their service, if any, is found by reverse
        resolution.

        Args:
            url: Service URL, bare endpoint or absolute URL.
            replacements: Placeholder values for this request.

        Returns:
            The resolved service data.

        Raises:
            UrlResolutionError: If the URL cannot be resolved.
        """
        try:
            service, formatter, remainder = self.urls.resolve(url)
        except UrlResolutionError:
            scheme = self.urls.protocol_name(url)
            if scheme is None or scheme.lower() not in PASSTHROUGH_SCHEMES:
                raise
            return self._resolve_absolute(url)

        endpoint = self._endpoint_name(remainder)
        return ServiceData(
            service=service,
            url=formatter.url(remainder, replacements=replacements),
            endpoint=endpoint,
            headers=self.headers.get_headers(service, endpoint),
        )

    def _resolve_absolute(self, url: str) -> ServiceData:
        service = self.urls.formatter_name(url)
        endpoint = ""
        if service is not None:
            endpoint = self._endpoint_for_absolute(service, url)

        self._log.debug(
            "absolute_url_passthrough",
            service=service,
            endpoint=endpoint,
        )
        return ServiceData(
            service=service,
            url=url,
            endpoint=endpoint,
            headers=self.headers.get_headers(service, endpoint),
        )

    def _endpoint_for_absolute(self, service: str, url: str) -> str:
        path = self.urls.remove_params(url)
        path = path[len(self.urls.origin(path)) :].strip("/")

        formatter = self.urls.formatter(service)
        version = formatter.version.strip("/") if formatter else ""
        if version and (path == version or path.startswith(version + "/")):
            path = path[len(version) :]

        return path.strip("/")

    @staticmethod
    def _endpoint_name(remainder: str) -> str:
        return UrlFormatterCollection.remove_params(remainder).strip("/")
