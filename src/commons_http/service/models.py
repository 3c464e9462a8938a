"""Request and response models for the HTTP service."""

import asyncio
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Generic, TypeVar

import structlog

from commons_http.transport.protocols import TransportRequest


logger = structlog.get_logger()

T = TypeVar("T")


class HttpVerb(str, Enum):
    """HTTP methods supported by HttpService."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


class SerializationType(str, Enum):
    """How a response body is turned into a payload.

    - JSON: deserialized into the request's response type
    - RAW: returned as bytes untouched
    """

    JSON = "json"
    RAW = "raw"


@dataclass(frozen=True)
class HttpResponse(Generic[T]):
    """Typed response delivered to callers.

    ``network_success`` is False for transport failures, non-2xx statuses and
    payloads that failed to deserialize; ``network_error`` then explains why.

    Attributes:
        payload: Deserialized payload (raw bytes for RAW requests).
        headers: Response headers as ordered (name, value) pairs.
        status_code: HTTP status code, 0 if no response arrived.
        network_success: Whether the request succeeded end to end.
        network_error: Transport error, response body text or
            deserialization message when the request did not succeed.
        raw: Response body bytes.
    """

    payload: T | None = None
    headers: list[tuple[str, str]] = field(default_factory=list)
    status_code: int = 0
    network_success: bool = False
    network_error: str | None = None
    raw: bytes = b""

    def header(self, name: str) -> str | None:
        """Get the first header value with the given name (case-insensitive)."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None


class ResultSlot(Generic[T]):
    """Single-assignment wrapper around an asyncio future.

    Exactly one of ``succeed`` or ``fail`` takes effect. Later attempts are
    logged as invariant violations and ignored. A future the caller already
    cancelled is skipped quietly.
    """

    def __init__(self, future: "asyncio.Future[T]", request_id: str) -> None:
        """Initialize the slot.

        Args:
            future: Future handed to the caller.
            request_id: Request identifier for logging.
        """
        self._future = future
        self._log = logger.bind(
            component="http",
            subcomponent="result",
            request_id=request_id,
        )

    @property
    def resolved(self) -> bool:
        """Check if the slot has been resolved (or the caller cancelled)."""
        return self._future.done()

    def succeed(self, value: T) -> bool:
        """Resolve with a value.

        Returns:
            True if this call resolved the slot.
        """
        if not self._claim("succeed"):
            return False
        self._future.set_result(value)
        return True

    def fail(self, error: BaseException) -> bool:
        """Resolve with an error.

        Returns:
            True if this call resolved the slot.
        """
        if not self._claim("fail"):
            return False
        self._future.set_exception(error)
        return True

    def _claim(self, outcome: str) -> bool:
        if not self._future.done():
            return True

        if self._future.cancelled():
            self._log.debug("result_discarded_caller_cancelled", outcome=outcome)
        else:
            self._log.error(
                "invariant_violation",
                error_type="double_resolution",
                outcome=outcome,
            )
        return False


def new_request_id() -> str:
    """Generate a short identifier used to correlate log lines."""
    return uuid.uuid4().hex[:12]


@dataclass(eq=False)
class HttpRequestRecord:
    """A request owned by the HttpService pipeline until it resolves.

    Attributes:
        verb: HTTP method.
        url: Resolved URL.
        headers: Merged request headers.
        body: Serialized payload, if any.
        slot: Single-resolution result slot.
        response_type: Type the response payload is deserialized into.
        serialization: How the response body is interpreted.
        service: Owning service name, if known.
        endpoint: Endpoint name used for header lookup.
        authentication: Whether this request belongs to the renegotiation
            flow and is exempt from queuing.
        request_id: Identifier used in log lines.
        attempts: Number of times the request has been sent.
    """

    verb: HttpVerb
    url: str
    headers: dict[str, str]
    body: bytes | None
    slot: ResultSlot[HttpResponse[Any]]
    response_type: Any = Any
    serialization: SerializationType = SerializationType.JSON
    service: str | None = None
    endpoint: str | None = None
    authentication: bool = False
    request_id: str = field(default_factory=new_request_id)
    attempts: int = 0

    @property
    def resolved(self) -> bool:
        """Check if the record's result has been delivered."""
        return self.slot.resolved

    def to_transport_request(self) -> TransportRequest:
        """Build the transport request for this record."""
        return TransportRequest(
            method=self.verb.value,
            url=self.url,
            headers=dict(self.headers),
            body=self.body,
        )
