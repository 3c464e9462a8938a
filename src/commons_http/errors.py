"""Error types raised by the HTTP service layer.

URL resolution errors are raised synchronously from the call that asked for
the URL. Timeout, unauthorized and abort errors are delivered through the
request's result future instead.
"""


class HttpServiceError(Exception):
    """Base exception for all HTTP service errors."""


class UrlResolutionError(HttpServiceError):
    """A URL could not be resolved to a registered service.

    Attributes:
        url: The URL or endpoint that failed to resolve.
    """

    def __init__(self, message: str, url: str) -> None:
        """Initialize the error.

        Args:
            message: Human-readable message.
            url: The URL or endpoint that failed to resolve.
        """
        self.url = url
        super().__init__(message)


class HttpTimeoutError(HttpServiceError):
    """A request did not complete before its deadline."""

    def __init__(self, url: str, timeout_ms: int) -> None:
        """Initialize the error.

        Args:
            url: Requested URL.
            timeout_ms: Deadline that was exceeded, in milliseconds.
        """
        self.url = url
        self.timeout_ms = timeout_ms
        super().__init__(f"Request to {url} timed out after {timeout_ms} ms")


class UnauthorizedError(HttpServiceError):
    """Authentication renegotiation failed; the request cannot be sent."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Unauthorized: authentication failed for {url}")


class RequestAbortedError(HttpServiceError):
    """The request was cancelled by an abort."""

    def __init__(self, url: str) -> None:
        self.url = url
        super().__init__(f"Request to {url} was aborted")


class SerializationError(HttpServiceError):
    """A payload could not be serialized or deserialized."""
