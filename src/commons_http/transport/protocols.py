"""Transport interface consumed by HttpService."""

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class TransportRequest:
    """One request handed to a transport.

    Attributes:
        method: Upper-case HTTP method.
        url: Fully-qualified URL.
        headers: Request headers.
        body: Optional request body.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | None = None


@dataclass(frozen=True)
class TransportResponse:
    """What a transport observed for one request.

    A transport-level failure (DNS, refused connection, TLS) is reported via
    ``network_error`` with ``status_code`` 0 rather than raised.

    Attributes:
        status_code: HTTP status code, or 0 when no response arrived.
        headers: Response headers in wire order.
        body: Response body.
        network_error: Transport error text, if the request failed.
    """

    status_code: int = 0
    headers: list[tuple[str, str]] = field(default_factory=list)
    body: bytes = b""
    network_error: str | None = None

    @property
    def is_network_error(self) -> bool:
        """Check if the transport failed to obtain a response."""
        return self.network_error is not None

    @property
    def text(self) -> str:
        """Decode the body as UTF-8, replacing invalid bytes."""
        return self.body.decode("utf-8", errors="replace")


@runtime_checkable
class HttpTransport(Protocol):
    """Sends requests on behalf of HttpService.

    Implementations must honor task cancellation: HttpService cancels the
    awaiting task on timeout and on abort.
    """

    async def send(self, request: TransportRequest) -> TransportResponse:
        """Send one request and wait for its response."""
        ...

    async def aclose(self) -> None:
        """Release connections held by the transport."""
        ...
