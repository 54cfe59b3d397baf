"""
Fixed-length byte types.

Block and parent hashes are 32-byte values. JSON-RPC transports them as
`0x`-prefixed hex strings, so the types here accept both raw bytes and hex
on construction and always render back to `0x` hex.
"""

from __future__ import annotations

from typing import Any, ClassVar

from pydantic.annotated_handlers import GetCoreSchemaHandler
from pydantic_core import core_schema
from typing_extensions import Self


def _to_raw(value: Any) -> bytes:
    """
    Turn a hash-like input into raw bytes.

    Strings are read as hex, with the `0x` prefix optional. Byte-like values
    are copied as they are.

    Raises:
        ValueError: If a string is not valid hex.
        TypeError: If the value is neither a string nor byte-like.
    """
    if isinstance(value, str):
        return bytes.fromhex(value.removeprefix("0x"))
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise TypeError(f"Cannot build a hash from {type(value).__name__}")


class BaseBytes(bytes):
    """
    Immutable byte string with a length fixed per subclass.

    Instances compare and hash like plain `bytes` of the same content.
    """

    LENGTH: ClassVar[int]
    """Required byte length, set by each subclass."""

    def __new__(cls, value: Any = b"") -> Self:
        """
        Build and length-check an instance.

        Args:
            value: Raw bytes or a hex string.

        Raises:
            ValueError: If the decoded value is not exactly `LENGTH` bytes.
        """
        raw = _to_raw(value)
        if len(raw) != cls.LENGTH:
            raise ValueError(f"{cls.__name__} expects exactly {cls.LENGTH} bytes, got {len(raw)}")
        return super().__new__(cls, raw)

    @classmethod
    def zero(cls) -> Self:
        """Build the all-zero value."""
        return cls(bytes(cls.LENGTH))

    @classmethod
    def from_int(cls, value: int) -> Self:
        """Build the value holding `value` as a big-endian integer."""
        return cls(value.to_bytes(cls.LENGTH, "big"))

    @classmethod
    def __get_pydantic_core_schema__(
        cls, source_type: Any, handler: GetCoreSchemaHandler
    ) -> core_schema.CoreSchema:
        """
        Let pydantic models hold fixed-length bytes as fields.

        Instances pass through untouched. Anything else goes through the
        constructor, and dumps render as `0x` hex.
        """
        return core_schema.union_schema(
            [
                core_schema.is_instance_schema(cls),
                core_schema.no_info_plain_validator_function(cls),
            ],
            serialization=core_schema.plain_serializer_function_ser_schema(
                lambda value: value.to_hex()
            ),
        )

    def to_hex(self) -> str:
        """Return the `0x`-prefixed hexadecimal form used on the wire."""
        return "0x" + self.hex()

    def short(self) -> str:
        """Return an abbreviated hex form for log lines."""
        digits = self.hex()
        return f"0x{digits[:8]}..{digits[-4:]}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.to_hex()})"

    def __str__(self) -> str:
        return self.to_hex()


class Bytes32(BaseBytes):
    """A 32-byte hash."""

    LENGTH = 32


ZERO_HASH: Bytes32 = Bytes32.zero()
"""The all-zero hash, used as the parent of a genesis block."""
