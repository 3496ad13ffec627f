"""Message serialization and query response deserialization.

Contract messages cross the backend boundary as plain JSON values. Callers
may pass pydantic models (the usual case for typed message enums) or
already-built mappings; query responses are validated back into whatever
type the caller asks for.
"""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from typing import Any, TypeVar

from pydantic import (
    BaseModel,
    PydanticSchemaGenerationError,
    TypeAdapter,
    ValidationError,
)

from contractforge.core.hasher import canonical_json_bytes
from contractforge.errors import DeserializationError

T = TypeVar("T")


def serialize_message(msg: Any) -> Any:
    """Convert a contract message into a JSON-compatible value."""
    if isinstance(msg, BaseModel):
        return msg.model_dump(mode="json", exclude_none=True)
    if isinstance(msg, (Mapping, Sequence)) and not isinstance(msg, (str, bytes)):
        try:
            # Round trip to reject values the chain could never receive
            return json.loads(canonical_json_bytes(msg))
        except (TypeError, ValueError) as exc:
            raise DeserializationError(
                f"Message is not JSON serializable: {exc}"
            ) from exc
    raise DeserializationError(
        f"Unsupported message type {type(msg).__name__}; "
        "expected a pydantic model, mapping, or sequence"
    )


def deserialize_response(raw: Any, response_type: type[T] | None = None) -> T | Any:
    """Validate a raw query response into ``response_type``.

    With no ``response_type`` the raw JSON value is returned unchanged.
    """
    if response_type is None:
        return raw
    try:
        if isinstance(raw, (str, bytes)) and issubclass_safe(response_type, BaseModel):
            return response_type.model_validate_json(raw)
        return TypeAdapter(response_type).validate_python(raw)
    except ValidationError as exc:
        raise DeserializationError(
            f"Query response does not match {response_type!r}: {exc}"
        ) from exc
    except PydanticSchemaGenerationError as exc:
        raise DeserializationError(
            f"Cannot validate query responses into {response_type!r}: {exc}"
        ) from exc


def issubclass_safe(candidate: Any, parent: type) -> bool:
    try:
        return isinstance(candidate, type) and issubclass(candidate, parent)
    except TypeError:
        # Parameterized generics such as list[int] on older interpreters
        return False
