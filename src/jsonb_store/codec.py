"""
jsonb_store.codec

JSON encoding of caller objects.

Responsibilities:
- Encode arbitrary objects (pydantic models, dataclasses, TypedDicts, builtins) to JSON text.
- Decode JSON text back into a requested type, validating its shape.
- Translate pydantic failures into the store's error taxonomy.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError

from jsonb_store.errors import DeserializationError, SerializationError

T = TypeVar("T")


@lru_cache(maxsize=256)
def _cached_adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def _adapter(type_: Any) -> TypeAdapter[Any]:
    try:
        return _cached_adapter(type_)
    except TypeError:
        # Unhashable annotations (e.g. Annotated with list metadata) skip the cache.
        return TypeAdapter(type_)


def _type_label(type_: Any) -> str:
    return str(getattr(type_, "__name__", type_))


def encode(obj: Any) -> str:
    # Encode with the adapter of the runtime type so model/dataclass serializers apply.
    try:
        return _adapter(type(obj)).dump_json(obj).decode("utf-8")
    except (PydanticSchemaGenerationError, ValueError, TypeError) as exc:
        raise SerializationError(f"cannot encode {type(obj).__name__} as JSON: {exc}") from exc


def decode(text: str, type_: type[T] | Any = Any) -> T:
    """
    Parse `text` as JSON and validate it against `type_`.

    Raises pydantic `ValidationError` for malformed JSON or a shape mismatch.
    Code reading rows out of a table goes through `decode_stored` instead.
    """

    return _adapter(type_).validate_json(text)


def decode_stored(text: str, type_: type[T] | Any, *, table: str, id: str) -> T:
    """Decode a payload read from `table`/`id`, raising `DeserializationError` on mismatch."""

    try:
        return decode(text, type_)
    except ValidationError as exc:
        raise DeserializationError(
            f"stored payload does not match {_type_label(type_)}", table=table, id=id
        ) from exc


__all__ = ["ValidationError", "decode", "decode_stored", "encode"]
