"""URL formatting and service resolution."""

from commons_http.url.collection import UrlFormatterCollection
from commons_http.url.formatter import UrlFormatter


__all__ = [
    "UrlFormatter",
    "UrlFormatterCollection",
]
