"""Serializer implementations.

Two serializers cover the common cases:

- `DocumentSerializer` passes JSON-compatible documents (dicts) through
  unchanged. Typical for metadata, and for tooling that wants the raw
  stored structure (e.g. export).
- `SerializableSerializer` handles objects implementing the `Serializable`
  protocol and records their class so they can be rebuilt on read::

      {"class": "shop.events:OrderPlaced", "payload": {"order_id": "..."}}
"""

from __future__ import annotations

import importlib
from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from chronicle.interfaces.eventstore import SerializationError
from chronicle.interfaces.serializer import Serializer

CLASS_KEY = "class"  # pragma: no mutate
PAYLOAD_KEY = "payload"  # pragma: no mutate


@runtime_checkable
class Serializable(Protocol):
    """Objects that know how to turn themselves into a document and back."""

    def serialize(self) -> dict[str, Any]:
        """Return a JSON-compatible document describing the object."""

    @classmethod
    def deserialize(cls, data: dict[str, Any]) -> Serializable:
        """Rebuild the object from the output of `serialize`."""


class DocumentSerializer(Serializer):
    """Pass-through serializer for JSON-compatible mappings."""

    def serialize(self, value: Any) -> Any:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise SerializationError(
                f"DocumentSerializer expects a mapping, got {type(value).__name__}."
            )
        return dict(value)

    def deserialize(self, data: Any) -> Any:
        if not isinstance(data, Mapping):
            raise SerializationError(
                f"Expected a JSON object, got {type(data).__name__}."
            )
        return dict(data)


def _class_path(cls: type) -> str:
    return f"{cls.__module__}:{cls.__qualname__}"


def _resolve_class(path: str) -> type:
    module_name, _, qualname = path.partition(":")
    if not module_name or not qualname:
        raise SerializationError(f"Invalid class reference: {path!r}")
    try:
        target: Any = importlib.import_module(module_name)
        for part in qualname.split("."):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise SerializationError(f"Class {path!r} does not exist.") from e
    if not isinstance(target, type):
        raise SerializationError(f"{path!r} does not refer to a class.")
    return target


class SerializableSerializer(Serializer):
    """Serializer for objects implementing the `Serializable` protocol."""

    def serialize(self, value: Any) -> Any:
        if not isinstance(value, Serializable):
            raise SerializationError(
                f"Object of type {type(value).__name__} does not implement "
                "serialize()/deserialize()."
            )
        return {CLASS_KEY: _class_path(type(value)), PAYLOAD_KEY: value.serialize()}

    def deserialize(self, data: Any) -> Any:
        if not isinstance(data, Mapping) or not {CLASS_KEY, PAYLOAD_KEY} <= set(data):
            raise SerializationError(
                f"Expected keys {CLASS_KEY!r} and {PAYLOAD_KEY!r} in serialized data."
            )
        cls = _resolve_class(data[CLASS_KEY])
        if not issubclass(cls, Serializable):
            raise SerializationError(
                f"{data[CLASS_KEY]!r} does not implement serialize()/deserialize()."
            )
        return cls.deserialize(data[PAYLOAD_KEY])
