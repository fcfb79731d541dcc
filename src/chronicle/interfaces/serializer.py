"""Serializer port for CHRONICLE.

A serializer turns a domain value (event payload or metadata) into a
JSON-compatible structure and back. The event store takes two independent
instances, one per concern, and owns the textual encoding of the structure.
"""

import abc
from typing import Any


class Serializer(abc.ABC):
    """Converts values to and from JSON-compatible structures."""

    @abc.abstractmethod
    def serialize(self, value: Any) -> Any:
        """Return a JSON-compatible representation of `value`.

        Raises:
            SerializationError: if the value is not supported.
        """

    @abc.abstractmethod
    def deserialize(self, data: Any) -> Any:
        """Rebuild a value from its serialized representation.

        Raises:
            SerializationError: if the data cannot be converted.
        """
