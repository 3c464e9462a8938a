"""Protocol interface for payload serializers."""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Serializer(Protocol):
    """Converts request payloads to bytes and response bytes to typed values.

    Any object implementing ``serialize`` and ``deserialize`` with matching
    signatures can be passed to HttpService.
    """

    content_type: str

    def serialize(self, value: Any) -> bytes:
        """Serialize a payload.

        Raises:
            SerializationError: If the value cannot be serialized.
        """
        ...

    def deserialize(self, data: bytes, response_type: Any) -> Any:
        """Deserialize response bytes into ``response_type``.

        Raises:
            SerializationError: If the bytes do not match the type.
        """
        ...
