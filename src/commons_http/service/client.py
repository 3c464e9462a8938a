"""HTTP service: request lifecycle with authentication renegotiation."""

import asyncio
import functools
import time
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

import httpx
import structlog

from commons_http.constants import (
    CONTENT_TYPE_OCTET_STREAM,
    DEFAULT_AUTH_FAILURE_STATUSES,
    DEFAULT_TIMEOUT_MS,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
)
from commons_http.errors import (
    HttpTimeoutError,
    RequestAbortedError,
    SerializationError,
    UnauthorizedError,
)
from commons_http.observability.logging import configure_logging
from commons_http.observability.metrics import HttpMetrics
from commons_http.observability.redact import redact_headers, redact_url_credentials
from commons_http.serializer.json_serializer import JsonSerializer
from commons_http.serializer.protocols import Serializer
from commons_http.service.auth import AuthState, AuthStateMachine
from commons_http.service.manager import HttpServiceManager, ServiceData
from commons_http.service.models import (
    HttpRequestRecord,
    HttpResponse,
    HttpVerb,
    ResultSlot,
    SerializationType,
    new_request_id,
)
from commons_http.transport.httpx_transport import HttpxTransport
from commons_http.transport.protocols import HttpTransport, TransportResponse


if TYPE_CHECKING:
    from commons_http.config.models import HttpClientConfig


logger = structlog.get_logger()

AuthFailureListener = Callable[["HttpService"], None]


class HttpService:
    """Sends requests to registered services and tracks authentication.

    Every verb method resolves the URL and headers synchronously, then hands
    a request record to the pipeline and returns a future that resolves
    exactly once with an HttpResponse or fails with an HttpServiceError.

    Requests are sent as one asyncio task each. When a response reports an
    authorization failure the service stops sending: new requests, and any
    in-flight request that completes or times out meanwhile, are queued
    until ``mark_authentication_updated`` resubmits them in arrival order or
    ``mark_authentication_failed`` fails them. Requests tagged
    ``authentication=True`` bypass the queue so the renegotiation flow can
    reach the backend.

    Verb methods must be called while an event loop is running.
    """

    def __init__(
        self,
        manager: HttpServiceManager | None = None,
        transport: HttpTransport | None = None,
        serializer: Serializer | None = None,
        auth: AuthStateMachine | None = None,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        auth_failure_statuses: Iterable[int] = DEFAULT_AUTH_FAILURE_STATUSES,
    ) -> None:
        """Initialize the service.

        Args:
            manager: Service registry; a new empty one when omitted.
            transport: Transport used to send requests; HttpxTransport when
                omitted.
            serializer: Payload serializer; JsonSerializer when omitted.
            auth: Authentication stance; a new CONFIGURED one when omitted.
            timeout_ms: Deadline for each send, in milliseconds.
            auth_failure_statuses: Status codes that trigger renegotiation.
        """
        self.manager = manager if manager is not None else HttpServiceManager()
        self.auth = auth if auth is not None else AuthStateMachine()
        self.timeout_ms = timeout_ms
        self.auth_failure_statuses = frozenset(auth_failure_statuses)
        self.headers: list[tuple[str, str]] = []

        self._transport: HttpTransport = (
            transport if transport is not None else HttpxTransport()
        )
        self._serializer: Serializer = (
            serializer if serializer is not None else JsonSerializer()
        )
        self._in_flight: dict[HttpRequestRecord, asyncio.Task[None]] = {}
        self._auth_listeners: list[AuthFailureListener] = []
        self._metrics = HttpMetrics.get_instance()
        self._log = logger.bind(component="http", subcomponent="service")

    @classmethod
    def from_config(
        cls,
        config: "HttpClientConfig",
        transport: HttpTransport | None = None,
        serializer: Serializer | None = None,
    ) -> "HttpService":
        """Build a service, its registry and its headers from configuration.

        Logging is configured from the config's level and format first.

        Args:
            config: Client configuration.
            transport: Optional transport override.
            serializer: Optional serializer override.

        Returns:
            A ready HttpService in CONFIGURED state.
        """
        from commons_http.config.models import build_service_manager

        configure_logging(level=config.log_level_value, json_format=config.log_json)

        service = cls(
            manager=build_service_manager(config),
            transport=transport,
            serializer=serializer,
            timeout_ms=config.timeout_ms,
            auth_failure_statuses=config.auth_failure_statuses,
        )
        service.headers.extend(config.default_headers.items())
        return service

    @property
    def state(self) -> AuthState:
        """Get the current authentication stance."""
        return self.auth.state

    @property
    def in_flight(self) -> int:
        """Get the number of requests currently being sent."""
        return len(self._in_flight)

    @property
    def pending(self) -> int:
        """Get the number of requests waiting on renegotiation."""
        return self.auth.pending

    # Verbs

    def get(
        self,
        url: str,
        response_type: Any = Any,
        *,
        replacements: dict[str, str] | None = None,
        authentication: bool = False,
    ) -> "asyncio.Future[HttpResponse[Any]]":
        """Send a GET request and deserialize the JSON response.

        Args:
            url: Service URL, bare endpoint or absolute URL.
            response_type: Type to validate the response payload against.
            replacements: Placeholder values for this request.
            authentication: Tag as part of the renegotiation flow.

        Returns:
            Future resolving to the response.

        Raises:
            UrlResolutionError: If the URL cannot be resolved.
        """
        return self._send_json(
            HttpVerb.GET,
            url,
            None,
            response_type,
            replacements=replacements,
            authentication=authentication,
        )

    def post(
        self,
        url: str,
        payload: Any = None,
        response_type: Any = Any,
        *,
        replacements: dict[str, str] | None = None,
        authentication: bool = False,
    ) -> "asyncio.Future[HttpResponse[Any]]":
        """Send a POST request with a JSON payload.

        Raises:
            UrlResolutionError: If the URL cannot be resolved.
            SerializationError: If the payload cannot be serialized.
        """
        return self._send_json(
            HttpVerb.POST,
            url,
            payload,
            response_type,
            replacements=replacements,
            authentication=authentication,
        )

    def put(
        self,
        url: str,
        payload: Any = None,
        response_type: Any = Any,
        *,
        replacements: dict[str, str] | None = None,
        authentication: bool = False,
    ) -> "asyncio.Future[HttpResponse[Any]]":
        """Send a PUT request with a JSON payload."""
        return self._send_json(
            HttpVerb.PUT,
            url,
            payload,
            response_type,
            replacements=replacements,
            authentication=authentication,
        )

    def patch(
        self,
        url: str,
        payload: Any = None,
        response_type: Any = Any,
        *,
        replacements: dict[str, str] | None = None,
        authentication: bool = False,
    ) -> "asyncio.Future[HttpResponse[Any]]":
        """Send a PATCH request with a JSON payload."""
        return self._send_json(
            HttpVerb.PATCH,
            url,
            payload,
            response_type,
            replacements=replacements,
            authentication=authentication,
        )

    def delete(
        self,
        url: str,
        response_type: Any = Any,
        *,
        replacements: dict[str, str] | None = None,
        authentication: bool = False,
    ) -> "asyncio.Future[HttpResponse[Any]]":
        """Send a DELETE request."""
        return self._send_json(
            HttpVerb.DELETE,
            url,
            None,
            response_type,
            replacements=replacements,
            authentication=authentication,
        )

    def get_raw(
        self,
        url: str,
        *,
        replacements: dict[str, str] | None = None,
        authentication: bool = False,
    ) -> "asyncio.Future[HttpResponse[bytes]]":
        """Send a GET request and return the body bytes untouched."""
        return self._send(
            HttpVerb.GET,
            url,
            body=None,
            content_type=CONTENT_TYPE_OCTET_STREAM,
            response_type=bytes,
            serialization=SerializationType.RAW,
            replacements=replacements,
            authentication=authentication,
        )

    def download(self, url: str) -> "asyncio.Future[HttpResponse[bytes]]":
        """Download a resource as bytes."""
        return self.get_raw(url)

    def post_raw(
        self,
        url: str,
        payload: bytes,
        *,
        replacements: dict[str, str] | None = None,
        authentication: bool = False,
    ) -> "asyncio.Future[HttpResponse[bytes]]":
        """Send a POST request with an ``application/octet-stream`` body."""
        return self._send(
            HttpVerb.POST,
            url,
            body=payload,
            content_type=CONTENT_TYPE_OCTET_STREAM,
            response_type=bytes,
            serialization=SerializationType.RAW,
            replacements=replacements,
            authentication=authentication,
        )

    def put_raw(
        self,
        url: str,
        payload: bytes,
        *,
        replacements: dict[str, str] | None = None,
        authentication: bool = False,
    ) -> "asyncio.Future[HttpResponse[bytes]]":
        """Send a PUT request with an ``application/octet-stream`` body."""
        return self._send(
            HttpVerb.PUT,
            url,
            body=payload,
            content_type=CONTENT_TYPE_OCTET_STREAM,
            response_type=bytes,
            serialization=SerializationType.RAW,
            replacements=replacements,
            authentication=authentication,
        )

    def post_file(
        self,
        url: str,
        fields: Iterable[tuple[str, str]],
        file: bytes,
        response_type: Any = Any,
        *,
        filename: str = "file",
    ) -> "asyncio.Future[HttpResponse[Any]]":
        """Upload a file with form fields as ``multipart/form-data``."""
        return self._send_multipart(
            HttpVerb.POST, url, fields, file, response_type, filename
        )

    def put_file(
        self,
        url: str,
        fields: Iterable[tuple[str, str]],
        file: bytes,
        response_type: Any = Any,
        *,
        filename: str = "file",
    ) -> "asyncio.Future[HttpResponse[Any]]":
        """Replace a file with form fields as ``multipart/form-data``."""
        return self._send_multipart(
            HttpVerb.PUT, url, fields, file, response_type, filename
        )

    # Authentication

    def add_authentication_failed_listener(self, listener: AuthFailureListener) -> None:
        """Register a callback run when renegotiation becomes necessary.

        The callback receives this service and is expected to refresh
        credentials, then call ``mark_authentication_updated`` or
        ``mark_authentication_failed``.
        """
        self._auth_listeners.append(listener)

    def remove_authentication_failed_listener(
        self, listener: AuthFailureListener
    ) -> None:
        """Unregister a renegotiation callback."""
        if listener in self._auth_listeners:
            self._auth_listeners.remove(listener)

    def mark_authentication_updated(self) -> None:
        """Report that new credentials are installed.

        Leaves RENEGOTIATION_REQUIRED and resubmits every queued request in
        arrival order. Does nothing when already CONFIGURED.

        Raises:
            AuthStateError: If the stance is FAILED.
        """
        if self.auth.is_configured():
            self._log.debug("auth_already_configured")
            return

        self.auth.transition(AuthState.CONFIGURED)
        records = self.auth.drain()
        self._log.info("auth_renegotiated", resubmitted=len(records))

        for record in records:
            if record.resolved:
                continue
            self._refresh_headers(record)
            self._submit(record)

    def mark_authentication_failed(self) -> None:
        """Report that renegotiation failed for good.

        Moves to FAILED and fails every queued request with
        UnauthorizedError. Later non-authentication requests fail
        immediately. Does nothing when already FAILED.
        """
        if self.auth.is_failed():
            self._log.warning("auth_already_failed")
            return

        self.auth.transition(AuthState.FAILED)
        records = self.auth.drain()
        self._log.warning("auth_renegotiation_failed", failed=len(records))

        for record in records:
            record.slot.fail(UnauthorizedError(record.url))

    # Lifecycle

    def abort(self, include_pending: bool = False) -> int:
        """Cancel every in-flight request.

        Aborted requests fail with RequestAbortedError. Requests queued for
        renegotiation are left queued unless ``include_pending`` is set.

        Args:
            include_pending: Also fail requests waiting on renegotiation.

        Returns:
            Number of requests aborted.
        """
        in_flight = list(self._in_flight.items())
        self._in_flight.clear()

        aborted = 0
        for record, task in in_flight:
            task.cancel()
            if record.slot.fail(RequestAbortedError(record.url)):
                self._metrics.record_abort()
                aborted += 1

        pending = self.auth.drain() if include_pending else []
        for record in pending:
            if record.slot.fail(RequestAbortedError(record.url)):
                aborted += 1

        self._log.info(
            "requests_aborted",
            in_flight=len(in_flight),
            pending=len(pending),
        )
        return aborted

    async def aclose(self) -> None:
        """Abort everything, queued requests included, and close the transport."""
        self.abort(include_pending=True)
        await self._transport.aclose()

    # Pipeline

    def _send_json(
        self,
        verb: HttpVerb,
        url: str,
        payload: Any,
        response_type: Any,
        *,
        replacements: dict[str, str] | None,
        authentication: bool,
    ) -> "asyncio.Future[HttpResponse[Any]]":
        # let serialization errors propagate to the caller
        body = None if payload is None else self._serializer.serialize(payload)
        return self._send(
            verb,
            url,
            body=body,
            content_type=self._serializer.content_type,
            response_type=response_type,
            serialization=SerializationType.JSON,
            replacements=replacements,
            authentication=authentication,
        )

    def _send_multipart(
        self,
        verb: HttpVerb,
        url: str,
        fields: Iterable[tuple[str, str]],
        file: bytes,
        response_type: Any,
        filename: str,
    ) -> "asyncio.Future[HttpResponse[Any]]":
        # httpx builds the multipart body and its boundary header
        encoded = httpx.Request(
            verb.value,
            "http://localhost/",
            data=dict(fields),
            files={"file": (filename, file)},
        )
        return self._send(
            verb,
            url,
            body=encoded.read(),
            content_type=encoded.headers["Content-Type"],
            response_type=response_type,
            serialization=SerializationType.JSON,
            replacements=None,
            authentication=False,
        )

    def _send(
        self,
        verb: HttpVerb,
        url: str,
        *,
        body: bytes | None,
        content_type: str,
        response_type: Any,
        serialization: SerializationType,
        replacements: dict[str, str] | None,
        authentication: bool,
    ) -> "asyncio.Future[HttpResponse[Any]]":
        loop = asyncio.get_running_loop()
        data = self.manager.resolve_service_data(url, replacements=replacements)

        request_id = new_request_id()
        future: asyncio.Future[HttpResponse[Any]] = loop.create_future()
        record = HttpRequestRecord(
            verb=verb,
            url=data.url,
            headers=self._build_headers(data, body, content_type, serialization),
            body=body,
            slot=ResultSlot(future, request_id),
            response_type=response_type,
            serialization=serialization,
            service=data.service,
            endpoint=data.endpoint,
            authentication=authentication,
            request_id=request_id,
        )
        future.add_done_callback(functools.partial(self._on_caller_done, record))

        self._submit(record)
        return future

    def _build_headers(
        self,
        data: ServiceData,
        body: bytes | None,
        content_type: str,
        serialization: SerializationType,
    ) -> dict[str, str]:
        headers = dict(self.headers)
        headers.update(data.headers)

        if serialization == SerializationType.JSON:
            headers["Accept"] = self._serializer.content_type
        if body is not None:
            headers["Content-Type"] = content_type

        return headers

    def _refresh_headers(self, record: HttpRequestRecord) -> None:
        # queued requests pick up credentials installed during renegotiation
        headers = self.manager.headers.merge(
            self.headers, record.service, record.endpoint
        )
        for key in ("Accept", "Content-Type"):
            if key in record.headers:
                headers[key] = record.headers[key]
        record.headers = headers

    def _submit(self, record: HttpRequestRecord) -> None:
        if record.authentication or self.auth.is_configured():
            self._dispatch(record)
            return

        if self.auth.is_renegotiating():
            self.auth.enqueue(record)
            self._log.info(
                "request_held_for_renegotiation",
                request_id=record.request_id,
                pending=self.auth.pending,
            )
            return

        self._log.warning(
            "request_rejected_unauthorized",
            request_id=record.request_id,
            url=redact_url_credentials(record.url),
        )
        record.slot.fail(UnauthorizedError(record.url))

    def _dispatch(self, record: HttpRequestRecord) -> None:
        record.attempts += 1
        task = asyncio.get_running_loop().create_task(
            self._run(record),
            name=f"http-{record.request_id}",
        )
        self._in_flight[record] = task
        task.add_done_callback(functools.partial(self._release, record))

    async def _run(self, record: HttpRequestRecord) -> None:
        log = self._log.bind(
            request_id=record.request_id,
            method=record.verb.value,
            url=redact_url_credentials(record.url),
            service=record.service,
        )
        log.debug(
            "request_sent",
            attempt=record.attempts,
            authentication=record.authentication,
            headers=redact_headers(record.headers),
        )

        start_time_ns = time.perf_counter_ns()
        try:
            async with asyncio.timeout(self.timeout_ms / 1000):
                response = await self._transport.send(record.to_transport_request())
        except TimeoutError:
            self._handle_timeout(record, log)
            return
        except Exception as e:  # noqa: BLE001
            response = TransportResponse(network_error=f"Unexpected error: {e}")

        duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
        self._metrics.record_duration(duration_ms)
        self._metrics.record_request(response.status_code, len(response.body))

        self._handle_response(record, response, log, duration_ms)

    def _handle_timeout(
        self,
        record: HttpRequestRecord,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        if not record.authentication and self.auth.is_renegotiating():
            self._requeue(record, log, reason="timeout")
            return

        self._metrics.record_timeout()
        log.warning("request_timeout", timeout_ms=self.timeout_ms)
        record.slot.fail(HttpTimeoutError(record.url, self.timeout_ms))

    def _handle_response(
        self,
        record: HttpRequestRecord,
        response: TransportResponse,
        log: structlog.stdlib.BoundLogger,
        duration_ms: float,
    ) -> None:
        if not record.authentication:
            # the stance may have changed while this request was in flight
            if self.auth.is_renegotiating():
                self._requeue(record, log, reason="renegotiation_in_progress")
                return

            if response.status_code in self.auth_failure_statuses:
                if self.auth.is_configured():
                    self._begin_renegotiation(record, response, log)
                    return
                log.warning("request_unauthorized", status_code=response.status_code)
                record.slot.fail(UnauthorizedError(record.url))
                return

        result = self._build_response(record, response)
        log.info(
            "request_complete",
            status_code=result.status_code,
            network_success=result.network_success,
            bytes=len(result.raw),
            attempts=record.attempts,
            duration_ms=round(duration_ms, 2),
        )
        record.slot.succeed(result)

    def _begin_renegotiation(
        self,
        record: HttpRequestRecord,
        response: TransportResponse,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        self._metrics.record_auth_failure()
        self.auth.transition(AuthState.RENEGOTIATION_REQUIRED)
        self.auth.enqueue(record)
        log.warning(
            "authentication_required",
            status_code=response.status_code,
            listeners=len(self._auth_listeners),
        )

        for listener in list(self._auth_listeners):
            try:
                listener(self)
            except Exception:
                log.exception("auth_listener_failed")

    def _requeue(
        self,
        record: HttpRequestRecord,
        log: structlog.stdlib.BoundLogger,
        reason: str,
    ) -> None:
        self._metrics.record_requeue()
        self.auth.enqueue(record)
        log.info("request_requeued", reason=reason, pending=self.auth.pending)

    def _build_response(
        self,
        record: HttpRequestRecord,
        response: TransportResponse,
    ) -> HttpResponse[Any]:
        if response.is_network_error:
            self._metrics.record_network_failure()
            return HttpResponse(
                headers=list(response.headers),
                status_code=response.status_code,
                network_success=False,
                network_error=response.network_error,
                raw=response.body,
            )

        if not HTTP_STATUS_OK_MIN <= response.status_code < HTTP_STATUS_OK_MAX:
            self._metrics.record_network_failure()
            return HttpResponse(
                headers=list(response.headers),
                status_code=response.status_code,
                network_success=False,
                network_error=response.text,
                raw=response.body,
            )

        if record.serialization == SerializationType.RAW:
            return HttpResponse(
                payload=response.body,
                headers=list(response.headers),
                status_code=response.status_code,
                network_success=True,
                raw=response.body,
            )

        try:
            payload = self._serializer.deserialize(response.body, record.response_type)
        except SerializationError as exc:
            self._metrics.record_deserialization_failure()
            return HttpResponse(
                headers=list(response.headers),
                status_code=response.status_code,
                network_success=False,
                network_error=f"Could not deserialize {response.text} : {exc}.",
                raw=response.body,
            )

        return HttpResponse(
            payload=payload,
            headers=list(response.headers),
            status_code=response.status_code,
            network_success=True,
            raw=response.body,
        )

    def _release(self, record: HttpRequestRecord, task: "asyncio.Task[None]") -> None:
        if self._in_flight.get(record) is task:
            del self._in_flight[record]

        if task.cancelled():
            return

        error = task.exception()
        if error is not None:
            self._log.error(
                "request_pipeline_error",
                request_id=record.request_id,
                error=str(error),
                error_type=type(error).__name__,
            )
            record.slot.fail(error)

    def _on_caller_done(
        self,
        record: HttpRequestRecord,
        future: "asyncio.Future[HttpResponse[Any]]",
    ) -> None:
        if not future.cancelled():
            return

        task = self._in_flight.pop(record, None)
        if task is not None:
            task.cancel()
            self._log.debug("request_cancelled_by_caller", request_id=record.request_id)
        else:
            self.auth.discard(record)
