"""Aggregate identifier codecs.

The storage form of an identifier is chosen once per store:

- `TextIdentifierCodec` stores the identifier as-is, up to the column width.
- `BinaryIdentifierCodec` packs a UUID into 16 bytes using a `UuidPacker`.

Mixing the two for one table would break the unique ``(identifier, position)``
constraint for existing rows, so binary mode without a packer is a
configuration error rather than a silent fallback to text.
"""

from __future__ import annotations

import abc
import uuid

from chronicle.interfaces.eventstore import (
    EventStoreConfigurationError,
    InvalidIdentifierError,
)

from .schema import IDENTIFIER_TEXT_LENGTH

StorageValue = str | bytes

INVALID_UUID_MSG = (
    "Only valid UUIDs are allowed to be used with the binary storage mode."
)
INVALID_BYTES_MSG = "Could not convert binary storage value to UUID."
TOO_LONG_MSG = (
    f"Identifiers are limited to {IDENTIFIER_TEXT_LENGTH} characters in the "
    "text storage mode."
)


class UuidPacker:
    """Packs canonical UUID strings into 16 bytes and back."""

    def to_bytes(self, identifier: str) -> bytes:
        """Return the 16-byte big-endian form of the UUID `identifier`.

        Raises:
            ValueError: if `identifier` is not a UUID.
        """
        return uuid.UUID(identifier).bytes

    def from_bytes(self, value: bytes) -> str:
        """Return the canonical text form of a 16-byte UUID.

        Raises:
            ValueError: if `value` is not exactly 16 bytes.
        """
        return str(uuid.UUID(bytes=bytes(value)))


class IdentifierCodec(abc.ABC):
    """Converts aggregate identifiers to and from their storage form."""

    binary: bool = False

    @abc.abstractmethod
    def to_storage(self, identifier: str) -> StorageValue:
        """Return the value stored in the ``identifier`` column.

        Raises:
            InvalidIdentifierError: if the identifier cannot be stored.
        """

    @abc.abstractmethod
    def from_storage(self, value: StorageValue) -> str:
        """Return the external identifier for a stored value.

        Raises:
            InvalidIdentifierError: if the stored value cannot be converted.
        """


class TextIdentifierCodec(IdentifierCodec):
    """Stores identifiers as text (pass-through), up to 36 characters."""

    def to_storage(self, identifier: str) -> StorageValue:
        if not isinstance(identifier, str):
            raise InvalidIdentifierError(
                f"Identifiers must be strings, got {type(identifier).__name__}."
            )
        if len(identifier) > IDENTIFIER_TEXT_LENGTH:
            raise InvalidIdentifierError(TOO_LONG_MSG)
        return identifier

    def from_storage(self, value: StorageValue) -> str:
        if isinstance(value, bytes):
            raise InvalidIdentifierError(
                "Found a binary identifier in a text-mode event table."
            )
        return value


class BinaryIdentifierCodec(IdentifierCodec):
    """Stores UUID identifiers as 16 raw bytes."""

    binary = True

    def __init__(self, packer: UuidPacker | None):
        if packer is None:
            raise EventStoreConfigurationError(
                "binary UUID packer is required when using binary identifiers"
            )
        self.packer = packer

    def to_storage(self, identifier: str) -> StorageValue:
        try:
            return self.packer.to_bytes(identifier)
        except (ValueError, TypeError, AttributeError) as e:
            raise InvalidIdentifierError(INVALID_UUID_MSG) from e

    def from_storage(self, value: StorageValue) -> str:
        try:
            return self.packer.from_bytes(value)  # type: ignore[arg-type]
        except (ValueError, TypeError) as e:
            raise InvalidIdentifierError(INVALID_BYTES_MSG) from e


def make_identifier_codec(
    use_binary: bool, packer: UuidPacker | None = None
) -> IdentifierCodec:
    """Choose the identifier codec for a store.

    Args:
        use_binary: Whether identifiers are stored as 16-byte UUIDs.
        packer: UUID packer; required when `use_binary` is True, ignored otherwise.

    Raises:
        EventStoreConfigurationError: if binary mode is requested without a packer.
    """
    if use_binary:
        return BinaryIdentifierCodec(packer)
    return TextIdentifierCodec()
