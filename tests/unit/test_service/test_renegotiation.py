"""Unit tests for TokenRenegotiator."""

import asyncio
from collections.abc import Iterator

import pytest

from commons_http.errors import UnauthorizedError
from commons_http.observability.metrics import HttpMetrics
from commons_http.service.auth import AuthState
from commons_http.service.client import HttpService
from commons_http.service.manager import HttpServiceManager
from commons_http.service.renegotiation import TokenRenegotiator
from commons_http.url.formatter import UrlFormatter
from tests.helpers.transport import ScriptedTransport


API = "http://api.example.com:80"
AUTH = "http://auth.example.com:80"


@pytest.fixture(autouse=True)
def reset_metrics() -> Iterator[None]:
    """Reset the metrics singleton around each test."""
    HttpMetrics.reset()
    yield
    HttpMetrics.reset()


@pytest.fixture
def transport() -> ScriptedTransport:
    """Create a scripted transport."""
    return ScriptedTransport()


@pytest.fixture
def service(transport: ScriptedTransport) -> HttpService:
    """Create a service with api and auth services."""
    manager = HttpServiceManager()
    manager.register("api", UrlFormatter(host="api.example.com"))
    manager.register("auth", UrlFormatter(host="auth.example.com"))
    return HttpService(manager, transport, timeout_ms=1000)


async def fetch_token(service: HttpService) -> str:
    """Refresh callable that asks the auth service for a token."""
    response = await service.post(
        "auth://token", {"grant_type": "refresh_token"}, authentication=True
    )
    if not response.network_success:
        msg = f"token refresh failed: {response.network_error}"
        raise RuntimeError(msg)
    return response.payload["access_token"]


class TestTokenRenegotiator:
    """Tests for refreshing tokens on authentication failure."""

    @pytest.mark.asyncio
    async def test_refresh_installs_token_and_resends(
        self, service: HttpService, transport: ScriptedTransport
    ) -> None:
        """Test the full round: 403, token refresh, resend with the new token."""
        renegotiator = TokenRenegotiator(fetch_token, services=["api"])
        renegotiator.attach(service)
        transport.reply(f"{API}/me", status_code=403)
        transport.reply(f"{AUTH}/token", payload={"access_token": "fresh"})
        transport.reply(f"{API}/me", payload={"name": "ann"})

        response = await service.get("api://me")

        assert response.payload == {"name": "ann"}
        assert service.state == AuthState.CONFIGURED
        assert renegotiator.rounds == 1
        assert transport.urls() == [f"{API}/me", f"{AUTH}/token", f"{API}/me"]
        assert transport.requests[2].headers["Authorization"] == "Bearer fresh"
        assert "Authorization" not in transport.requests[1].headers

    @pytest.mark.asyncio
    async def test_refresh_failure_fails_requests(
        self, service: HttpService, transport: ScriptedTransport
    ) -> None:
        """Test that a failed refresh moves the service to FAILED."""
        TokenRenegotiator(fetch_token, services=["api"]).attach(service)
        transport.reply(f"{API}/me", status_code=403)
        transport.reply(f"{AUTH}/token", status_code=400, body=b"invalid_grant")

        with pytest.raises(UnauthorizedError):
            await service.get("api://me")

        assert service.state == AuthState.FAILED

    @pytest.mark.asyncio
    async def test_empty_token_fails(
        self, service: HttpService, transport: ScriptedTransport
    ) -> None:
        """Test that an empty token counts as a failed refresh."""

        async def empty(_: HttpService) -> str:
            return ""

        TokenRenegotiator(empty, services=["api"]).attach(service)
        transport.reply(f"{API}/me", status_code=403)

        with pytest.raises(UnauthorizedError):
            await service.get("api://me")

    @pytest.mark.asyncio
    async def test_one_round_for_concurrent_failures(
        self, service: HttpService, transport: ScriptedTransport
    ) -> None:
        """Test that failures during a running refresh join that round."""
        release = asyncio.Event()

        async def slow(_: HttpService) -> str:
            await release.wait()
            return "tok"

        renegotiator = TokenRenegotiator(slow, services=["api"], scheme="Token")
        renegotiator.attach(service)
        transport.reply(f"{API}/a", status_code=403)
        first = service.get("api://a")
        await transport.wait_for_requests(1)
        await asyncio.sleep(0)

        # a second renegotiation request while the first is still running
        for listener in list(service._auth_listeners):
            listener(service)

        transport.reply(f"{API}/a", payload={})
        release.set()
        await first
        await renegotiator.wait()

        assert renegotiator.rounds == 1
        assert transport.requests[-1].headers["Authorization"] == "Token tok"

    @pytest.mark.asyncio
    async def test_detach(
        self, service: HttpService, transport: ScriptedTransport
    ) -> None:
        """Test that a detached renegotiator no longer reacts."""
        renegotiator = TokenRenegotiator(fetch_token, services=["api"])
        renegotiator.attach(service)
        renegotiator.detach(service)
        transport.reply(f"{API}/a", status_code=403)

        service.get("api://a")
        await transport.wait_for_requests(1)
        for _ in range(5):
            await asyncio.sleep(0)

        assert renegotiator.rounds == 0
        assert service.state == AuthState.RENEGOTIATION_REQUIRED
