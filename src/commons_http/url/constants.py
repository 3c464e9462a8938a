"""URL constants shared by formatters and the formatter collection."""

import re


SCHEME_SEPARATOR = "://"

DEFAULT_PROTOCOL = "http"
DEFAULT_HOST = "localhost"
DEFAULT_PORT = 80

# scheme://host[:port][/singleSegment][/]
BASE_URL_PATTERN = re.compile(
    r"(?:(?P<protocol>\w+)://)?"
    r"(?P<host>[A-Za-z0-9_\-.]+)"
    r"(?::(?P<port>\d+))?"
    r"(?:/(?P<version>[A-Za-z0-9_\-]+))?"
    r"/?",
    re.ASCII,
)

PLACEHOLDER_TEMPLATE = "{{{key}}}"
