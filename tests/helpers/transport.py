"""Scripted transport for driving HttpService in tests.

Replies are queued per URL and handed out in order. A reply can be held on
an ``asyncio.Event`` gate, or hang until the request is cancelled, so tests
can interleave responses with authentication state changes.
"""

import asyncio
import json
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any

from commons_http.transport.protocols import TransportRequest, TransportResponse


class UnscriptedRequestError(Exception):
    """Raised when a request arrives for a URL with no queued reply."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"No scripted reply for {url}")


@dataclass
class ScriptedReply:
    """One queued reply.

    Attributes:
        response: Response to return.
        gate: Event awaited before returning, if any.
        hang: Never return; only cancellation ends the send.
    """

    response: TransportResponse
    gate: asyncio.Event | None = None
    hang: bool = False


@dataclass
class ScriptedTransport:
    """HttpTransport double that returns queued replies and records requests."""

    requests: list[TransportRequest] = field(default_factory=list)
    cancelled: list[TransportRequest] = field(default_factory=list)
    closed: bool = False
    _replies: dict[str, deque[ScriptedReply]] = field(
        default_factory=lambda: defaultdict(deque)
    )

    def reply(
        self,
        url: str,
        status_code: int = 200,
        payload: Any = None,
        body: bytes | None = None,
        headers: list[tuple[str, str]] | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        """Queue a reply for a URL.

        ``payload`` is encoded as JSON unless ``body`` is given.
        """
        if body is None:
            body = b"" if payload is None else json.dumps(payload).encode()
        response = TransportResponse(
            status_code=status_code,
            headers=headers or [("Content-Type", "application/json")],
            body=body,
        )
        self._replies[url].append(ScriptedReply(response=response, gate=gate))

    def fail(self, url: str, error: str) -> None:
        """Queue a transport-level failure for a URL."""
        response = TransportResponse(network_error=error)
        self._replies[url].append(ScriptedReply(response=response))

    def hang(self, url: str) -> None:
        """Queue a reply that never arrives."""
        reply = ScriptedReply(response=TransportResponse(), hang=True)
        self._replies[url].append(reply)

    def urls(self) -> list[str]:
        """Get requested URLs in send order."""
        return [request.url for request in self.requests]

    async def wait_for_requests(self, count: int) -> None:
        """Yield to the loop until ``count`` requests have been sent."""
        for _ in range(1000):
            if len(self.requests) >= count:
                return
            await asyncio.sleep(0)
        msg = f"Expected {count} requests, saw {len(self.requests)}"
        raise AssertionError(msg)

    async def send(self, request: TransportRequest) -> TransportResponse:
        self.requests.append(request)

        queue = self._replies.get(request.url)
        if not queue:
            raise UnscriptedRequestError(request.url)
        reply = queue.popleft()

        try:
            if reply.hang:
                await asyncio.Event().wait()
            if reply.gate is not None:
                await reply.gate.wait()
        except asyncio.CancelledError:
            self.cancelled.append(request)
            raise

        return reply.response

    async def aclose(self) -> None:
        self.closed = True
