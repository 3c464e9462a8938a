"""Bearer token renegotiation driven by HttpService authentication failures."""

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from typing import TYPE_CHECKING

import structlog


if TYPE_CHECKING:
    from commons_http.service.client import HttpService


logger = structlog.get_logger()

TokenRefresh = Callable[["HttpService"], Awaitable[str]]

AUTHORIZATION_HEADER = "Authorization"


class TokenRenegotiator:
    """Refreshes a bearer token whenever a service asks for renegotiation.

    The refresh callable receives the service and should send its own
    requests with ``authentication=True`` so they bypass the pending queue.
    Only one refresh runs at a time; failures reported while a refresh is
    running join that round.

    Example:
        async def refresh(service: HttpService) -> str:
            response = await service.post(
                "auth://token", {"refresh_token": token}, TokenModel,
                authentication=True,
            )
            return response.payload.access_token

        TokenRenegotiator(refresh, services=["api"]).attach(service)
    """

    def __init__(
        self,
        refresh: TokenRefresh,
        services: Iterable[str],
        scheme: str = "Bearer",
    ) -> None:
        """Initialize the renegotiator.

        Args:
            refresh: Coroutine function returning a fresh access token.
            services: Services that receive the Authorization header.
            scheme: Authorization scheme placed before the token.
        """
        self._refresh = refresh
        self._services = list(services)
        self._scheme = scheme
        self._task: asyncio.Task[None] | None = None
        self._rounds = 0
        self._log = logger.bind(component="http", subcomponent="renegotiation")

    @property
    def rounds(self) -> int:
        """Get the number of refresh rounds started."""
        return self._rounds

    def attach(self, service: "HttpService") -> None:
        """Start listening for authentication failures on a service."""
        service.add_authentication_failed_listener(self._on_authentication_failed)

    def detach(self, service: "HttpService") -> None:
        """Stop listening for authentication failures on a service."""
        service.remove_authentication_failed_listener(self._on_authentication_failed)

    async def wait(self) -> None:
        """Wait for the running refresh round, if any, to finish."""
        if self._task is not None:
            await asyncio.shield(self._task)

    def _on_authentication_failed(self, service: "HttpService") -> None:
        if self._task is not None and not self._task.done():
            self._log.debug("renegotiation_already_running")
            return

        self._rounds += 1
        self._task = asyncio.get_running_loop().create_task(
            self._renegotiate(service),
            name=f"renegotiation-{self._rounds}",
        )

    async def _renegotiate(self, service: "HttpService") -> None:
        log = self._log.bind(round=self._rounds)
        log.info("token_refresh_started", services=self._services)

        try:
            token = await self._refresh(service)
        except Exception as e:  # noqa: BLE001
            log.warning(
                "token_refresh_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            service.mark_authentication_failed()
            return

        if not token:
            log.warning("token_refresh_failed", error="empty token")
            service.mark_authentication_failed()
            return

        value = f"{self._scheme} {token}"
        for name in self._services:
            service.manager.add_header(name, AUTHORIZATION_HEADER, value)

        log.info("token_refreshed", services=self._services)
        service.mark_authentication_updated()
