"""HttpTransport implementation on top of httpx."""

import httpx
import structlog

from commons_http.observability.redact import redact_url_credentials
from commons_http.transport.protocols import TransportRequest, TransportResponse


logger = structlog.get_logger()


class HttpxTransport:
    """Sends requests with an ``httpx.AsyncClient``.

    Deadlines are enforced by HttpService, so the default client carries no
    timeout of its own. Transport errors are returned as
    ``TransportResponse.network_error``.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        follow_redirects: bool = True,
        verify: bool = True,
    ) -> None:
        """Initialize the transport.

        Args:
            client: Client to use. One is created when omitted and is then
                owned (and closed) by the transport.
            follow_redirects: Redirect policy for a created client.
            verify: TLS verification for a created client.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=None,
            follow_redirects=follow_redirects,
            verify=verify,
        )
        self._log = logger.bind(component="http", subcomponent="transport")

    async def send(self, request: TransportRequest) -> TransportResponse:
        """Send one request.

        Args:
            request: The request to send.

        Returns:
            The response, or a response carrying ``network_error``.
        """
        try:
            response = await self._client.request(
                request.method,
                request.url,
                headers=request.headers,
                content=request.body,
            )
        except httpx.TimeoutException as exc:
            return self._network_error(request, f"Request timed out: {exc}")
        except httpx.ConnectError as exc:
            return self._network_error(request, f"Connection failed: {exc}")
        except httpx.HTTPError as exc:
            return self._network_error(request, f"Transport error: {exc}")

        return TransportResponse(
            status_code=response.status_code,
            headers=list(response.headers.multi_items()),
            body=response.content,
        )

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    def _network_error(
        self,
        request: TransportRequest,
        message: str,
    ) -> TransportResponse:
        self._log.warning(
            "transport_error",
            method=request.method,
            url=redact_url_credentials(request.url),
            error=message,
        )
        return TransportResponse(network_error=message)
