"""Registry of URL formatters keyed by logical service name."""

from collections.abc import Iterator

import structlog

from commons_http.errors import UrlResolutionError
from commons_http.url.constants import SCHEME_SEPARATOR
from commons_http.url.formatter import UrlFormatter


logger = structlog.get_logger()


class UrlFormatterCollection:
    """Named collection of UrlFormatters.

    A service name is used like a URL scheme: ``trellis://users/42`` renders
    ``users/42`` with the formatter registered as ``trellis``. Inputs without
    a scheme are rendered with the default service.

    The collection is not synchronized. Registration that races with
    resolution must be serialized by the caller.
    """

    def __init__(self) -> None:
        """Initialize an empty collection."""
        self._formatters: dict[str, UrlFormatter] = {}
        self._default: str | None = None
        self._log = logger.bind(component="http", subcomponent="urls")

    @property
    def default(self) -> str | None:
        """Get the default service name."""
        return self._default

    @default.setter
    def default(self, name: str | None) -> None:
        """Set the default service name.

        Raises:
            KeyError: If the name is not registered.
        """
        if name is None:
            self._default = None
            return

        name = self.format_name(name)
        if name not in self._formatters:
            msg = f"Cannot make unregistered service '{name}' the default"
            raise KeyError(msg)
        self._default = name

    @property
    def names(self) -> list[str]:
        """Get registered service names in registration order."""
        return list(self._formatters)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.format_name(name) in self._formatters

    def __len__(self) -> int:
        return len(self._formatters)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._formatters))

    def register(self, name: str, formatter: UrlFormatter) -> None:
        """Register a formatter for a service.

        The first registered service becomes the default.

        Args:
            name: Service name. A ``://`` suffix is stripped.
            formatter: The formatter; the collection takes ownership of it.
        """
        name = self.format_name(name)
        self._formatters[name] = formatter

        if not self._default:
            self._default = name

        self._log.debug(
            "formatter_registered",
            service=name,
            default=self._default,
        )

    def unregister(self, name: str) -> None:
        """Remove a service.

        If the removed service was the default, the earliest remaining
        registration becomes the default.

        Args:
            name: Service name.
        """
        name = self.format_name(name)
        if self._formatters.pop(name, None) is None:
            return

        if self._default == name:
            self._default = next(iter(self._formatters), None)

        self._log.debug(
            "formatter_unregistered",
            service=name,
            default=self._default,
        )

    def formatter(self, name: str) -> UrlFormatter | None:
        """Get the formatter registered for a service, or None."""
        return self._formatters.get(self.format_name(name))

    def resolve(self, endpoint: str) -> tuple[str, UrlFormatter, str]:
        """Find the formatter responsible for an endpoint or service URL.

        Args:
            endpoint: ``service://path`` or a bare path for the default service.

        Returns:
            Tuple of (service name, formatter, remaining path).

        Raises:
            UrlResolutionError: If no registered formatter applies.
        """
        index = endpoint.find(SCHEME_SEPARATOR)
        if index == -1:
            if not self._default or self._default not in self._formatters:
                msg = f"No default service to resolve '{endpoint}'"
                raise UrlResolutionError(msg, endpoint)
            return self._default, self._formatters[self._default], endpoint

        name = endpoint[:index]
        remainder = endpoint[index + len(SCHEME_SEPARATOR) :]
        formatter = self._formatters.get(name)
        if formatter is None:
            msg = f"No formatter registered for service '{name}'"
            raise UrlResolutionError(msg, endpoint)
        return name, formatter, remainder

    def url(
        self,
        endpoint: str,
        version: str | None = None,
        port: int | None = None,
        protocol: str | None = None,
        replacements: dict[str, str] | None = None,
    ) -> str:
        """Render an endpoint or service URL into a concrete URL.

        Args:
            endpoint: ``service://path`` or a bare path for the default service.
            version: Version override.
            port: Port override.
            protocol: Protocol override.
            replacements: Placeholder values for this call only.

        Returns:
            The formatted URL.

        Raises:
            UrlResolutionError: If no registered formatter applies.
        """
        _, formatter, remainder = self.resolve(endpoint)
        return formatter.url(
            remainder,
            version=version,
            port=port,
            protocol=protocol,
            replacements=replacements,
        )

    def formatter_name(self, url: str) -> str | None:
        """Find the service name responsible for a URL.

        A registered scheme prefix answers directly. Otherwise the URL is
        assumed to be already resolved and the service is found by matching
        its protocol, host and port against every registered formatter. When
        several services share those, any one of them may be returned.

        Args:
            url: A service URL or a concrete URL.

        Returns:
            The service name, or None if nothing matches.
        """
        url = self.remove_params(url)

        name = self.protocol_name(url)
        if name is not None and name in self._formatters:
            return name

        parser = UrlFormatter.parse(self.origin(url))
        if parser is None:
            return None

        target = parser.base_format()
        for key, formatter in list(self._formatters.items()):
            if formatter.base_format() == target:
                return key

        return None

    @staticmethod
    def protocol_name(url: str) -> str | None:
        """Extract the text before ``://``, or None if there is no scheme."""
        index = url.find(SCHEME_SEPARATOR)
        if index == -1:
            return None
        return url[:index]

    @staticmethod
    def format_name(name: str) -> str:
        """Strip a ``://`` suffix (and anything after it) from a service name."""
        index = name.find(SCHEME_SEPARATOR)
        if index == -1:
            return name
        return name[:index]

    @staticmethod
    def remove_params(url: str) -> str:
        """Drop the query string from a URL."""
        return url.split("?", 1)[0]

    @staticmethod
    def origin(url: str) -> str:
        """Reduce a URL to ``scheme://host[:port]`` (or ``host[:port]``)."""
        index = url.find(SCHEME_SEPARATOR)
        if index == -1:
            return url.split("/", 1)[0]

        start = index + len(SCHEME_SEPARATOR)
        return url[:start] + url[start:].split("/", 1)[0]
