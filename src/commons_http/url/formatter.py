"""URL formatter: renders endpoints against a base URL configuration."""

from dataclasses import dataclass, field

from commons_http.url.constants import (
    BASE_URL_PATTERN,
    DEFAULT_HOST,
    DEFAULT_PORT,
    DEFAULT_PROTOCOL,
    PLACEHOLDER_TEMPLATE,
    SCHEME_SEPARATOR,
)


@dataclass
class UrlFormatter:
    """Builds URLs for one service from a protocol, host, port and version.

    Fields are plain attributes and may be changed at any time; every call to
    ``url`` normalizes them again, so the stored values do not need to be
    canonical.

    Attributes:
        protocol: Scheme, with or without the trailing ``://``.
        host: Host name. A scheme prefix or trailing path is tolerated.
        port: Port number. Values <= 0 render as 80.
        version: Optional API version segment, e.g. ``v1``.
        replacements: ``{key}`` placeholder values applied to endpoints.
    """

    protocol: str = DEFAULT_PROTOCOL
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    version: str = ""
    replacements: dict[str, str] = field(default_factory=dict)

    def url(
        self,
        endpoint: str,
        version: str | None = None,
        port: int | None = None,
        protocol: str | None = None,
        replacements: dict[str, str] | None = None,
    ) -> str:
        """Render an endpoint into a fully-qualified URL.

        Omitted overrides fall back to the formatter's own values. Call-site
        replacements win over the formatter's replacements for shared keys.

        Args:
            endpoint: Endpoint path, e.g. ``users/{userId}/items``.
            version: Version override.
            port: Port override.
            protocol: Protocol override.
            replacements: Placeholder values for this call only.

        Returns:
            The formatted URL.
        """
        rendered_version = self._format_version(
            self.version if version is None else version
        )
        prefix = (
            f"{self._format_protocol(self.protocol if protocol is None else protocol)}"
            f"{self._format_host(self.host)}:"
            f"{self._format_port(self.port if port is None else port)}"
        )
        rendered_endpoint = self._format_endpoint(endpoint, replacements)

        if not rendered_version:
            return f"{prefix}/{rendered_endpoint}"
        return f"{prefix}/{rendered_version}/{rendered_endpoint}"

    def from_url(self, url: str) -> bool:
        """Populate protocol, host, port and version from a base URL.

        Accepts ``scheme://host[:port][/version]``. Only a single path segment
        is understood as the version; deeper paths do not parse. A missing
        scheme defaults to ``http`` and a missing port to 80.

        Args:
            url: The URL to parse.

        Returns:
            True if the URL parsed. On failure the formatter is unchanged.
        """
        if not url or not url.strip():
            return False

        match = BASE_URL_PATTERN.fullmatch(url)
        if match is None:
            return False

        self.protocol = match.group("protocol") or DEFAULT_PROTOCOL
        self.host = match.group("host")
        self.port = int(match.group("port") or DEFAULT_PORT)
        self.version = match.group("version") or ""
        return True

    def base_format(self) -> tuple[str, str, int]:
        """Return the normalized (protocol, host, port) triple."""
        return (
            self._format_protocol(self.protocol),
            self._format_host(self.host),
            self._format_port(self.port),
        )

    def copy(self) -> "UrlFormatter":
        """Return an independent copy of this formatter."""
        return UrlFormatter(
            protocol=self.protocol,
            host=self.host,
            port=self.port,
            version=self.version,
            replacements=dict(self.replacements),
        )

    @classmethod
    def parse(cls, url: str) -> "UrlFormatter | None":
        """Create a formatter from a base URL, or None if it does not parse."""
        formatter = cls()
        if not formatter.from_url(url):
            return None
        return formatter

    @staticmethod
    def _format_protocol(protocol: str) -> str:
        if not protocol:
            return DEFAULT_PROTOCOL + SCHEME_SEPARATOR
        if not protocol.endswith(SCHEME_SEPARATOR):
            return protocol + SCHEME_SEPARATOR
        return protocol

    @staticmethod
    def _format_host(host: str) -> str:
        host = (host or DEFAULT_HOST).strip("/")

        index = host.find(SCHEME_SEPARATOR)
        if index != -1:
            host = host[index + len(SCHEME_SEPARATOR) :]

        # trim endpoints off
        return host.split("/", 1)[0]

    @staticmethod
    def _format_port(port: int) -> int:
        return port if port > 0 else DEFAULT_PORT

    @staticmethod
    def _format_version(version: str) -> str:
        return version.strip("/")

    def _format_endpoint(
        self,
        endpoint: str,
        replacements: dict[str, str] | None,
    ) -> str:
        if not endpoint:
            return ""

        endpoint = endpoint.strip("/")

        merged = dict(self.replacements)
        if replacements:
            merged.update(replacements)

        for key, value in merged.items():
            endpoint = endpoint.replace(PLACEHOLDER_TEMPLATE.format(key=key), value)

        return endpoint
