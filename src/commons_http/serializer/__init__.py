"""Payload serialization."""

from commons_http.serializer.json_serializer import JsonSerializer
from commons_http.serializer.protocols import Serializer


__all__ = [
    "JsonSerializer",
    "Serializer",
]
