"""JSON serializer backed by pydantic type adapters."""

from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter, ValidationError

from commons_http.constants import CONTENT_TYPE_JSON
from commons_http.errors import SerializationError


@lru_cache(maxsize=256)
def _adapter(response_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_type)


class JsonSerializer:
    """Serializes payloads to JSON and validates responses against a type.

    Payloads may be plain JSON values, pydantic models or dataclasses.
    Response types may be anything pydantic can validate: models, dataclasses,
    ``dict[str, int]``, ``list[Model]`` or ``Any`` for untyped JSON.
    """

    content_type = CONTENT_TYPE_JSON

    def serialize(self, value: Any) -> bytes:
        """Serialize a payload to UTF-8 JSON bytes.

        Raises:
            SerializationError: If the value is not JSON serializable.
        """
        try:
            return _adapter(Any).dump_json(value)
        except (TypeError, ValueError) as exc:
            msg = f"Could not serialize {type(value).__name__}: {exc}"
            raise SerializationError(msg) from exc

    def deserialize(self, data: bytes, response_type: Any) -> Any:
        """Parse JSON bytes and validate them against ``response_type``.

        Raises:
            SerializationError: If the bytes are not valid JSON for the type.
        """
        try:
            # empty bodies (204, bare DELETE responses) read as JSON null
            if not data.strip():
                return _adapter(response_type).validate_python(None)
            return _adapter(response_type).validate_json(data)
        except ValidationError as exc:
            msg = f"{exc.error_count()} validation error(s) for {response_type!r}"
            raise SerializationError(msg) from exc
        except TypeError as exc:
            msg = f"Unsupported response type {response_type!r}: {exc}"
            raise SerializationError(msg) from exc
