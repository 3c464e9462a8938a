"""HTTP constants shared across the service layer."""

from http import HTTPStatus


CONTENT_TYPE_JSON = "application/json"
CONTENT_TYPE_OCTET_STREAM = "application/octet-stream"

# Status code ranges
HTTP_STATUS_OK_MIN = 200
HTTP_STATUS_OK_MAX = 300

# Responses with these statuses trigger authentication renegotiation
DEFAULT_AUTH_FAILURE_STATUSES = frozenset({HTTPStatus.FORBIDDEN.value})

DEFAULT_TIMEOUT_MS = 30_000

# Schemes passed through untouched when no service claims them
PASSTHROUGH_SCHEMES = frozenset({"http", "https"})
