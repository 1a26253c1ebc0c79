#!/usr/bin/env python3
"""
Canonical encodings.

Binary form: fixed-width little-endian integers and raw byte strings, laid
out field by field with no framing. Re-encoding a decoded value always
reproduces the original bytes.

JSON form: RFC 8785 canonical JSON (JCS) of the value's ``to_dict()``.
"""

import json
import struct
from typing import Any, Callable, Optional, Type, TypeVar

try:
    import jcs
except ImportError:
    raise ImportError("Install jcs: pip install jcs")

from .errors import DecodeError

T = TypeVar("T")


class Writer:
    """Accumulates canonical binary fields."""

    def __init__(self):
        self._parts = []

    def u8(self, value: int) -> "Writer":
        self._parts.append(struct.pack("<B", value))
        return self

    def u16(self, value: int) -> "Writer":
        self._parts.append(struct.pack("<H", value))
        return self

    def u32(self, value: int) -> "Writer":
        self._parts.append(struct.pack("<I", value))
        return self

    def u64(self, value: int) -> "Writer":
        self._parts.append(struct.pack("<Q", value))
        return self

    def raw(self, data: bytes) -> "Writer":
        self._parts.append(bytes(data))
        return self

    def var_bytes(self, data: bytes) -> "Writer":
        """Bytes prefixed with a u8 length."""
        if len(data) > 0xFF:
            raise ValueError("byte string too long for u8 length prefix")
        return self.u8(len(data)).raw(data)

    def option(self, data: Optional[bytes]) -> "Writer":
        if data is None:
            return self.u8(0)
        return self.u8(1).raw(data)

    def getvalue(self) -> bytes:
        return b"".join(self._parts)


class Reader:
    """Consumes canonical binary fields, failing on short or trailing data."""

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._pos = 0

    def _take(self, size: int) -> bytes:
        end = self._pos + size
        if end > len(self._data):
            raise DecodeError(
                f"unexpected end of data: need {size} bytes at offset {self._pos}, "
                f"have {len(self._data) - self._pos}"
            )
        chunk = self._data[self._pos:end]
        self._pos = end
        return chunk

    def _unpack(self, fmt: str) -> int:
        return struct.unpack(fmt, self._take(struct.calcsize(fmt)))[0]

    def u8(self) -> int:
        return self._unpack("<B")

    def u16(self) -> int:
        return self._unpack("<H")

    def u32(self) -> int:
        return self._unpack("<I")

    def u64(self) -> int:
        return self._unpack("<Q")

    def raw(self, size: int) -> bytes:
        return self._take(size)

    def var_bytes(self) -> bytes:
        return self._take(self.u8())

    def option(self, size: int) -> Optional[bytes]:
        flag = self.u8()
        if flag == 0:
            return None
        if flag == 1:
            return self._take(size)
        raise DecodeError(f"invalid option flag {flag:#04x}")

    def finish(self):
        if self._pos != len(self._data):
            raise DecodeError(f"{len(self._data) - self._pos} trailing bytes after value")


def decode_with(data: bytes, read: Callable[[Reader], T]) -> T:
    """Decode a single value occupying all of ``data``."""
    reader = Reader(data)
    value = read(reader)
    reader.finish()
    return value


# Canonical JSON serialization
def serialize(value: Any) -> bytes:
    """Serialize a value (or its ``to_dict()``) using JCS (RFC 8785)"""
    if hasattr(value, "to_dict"):
        value = value.to_dict()
    return jcs.canonicalize(value)


def deserialize(data: bytes, cls: Optional[Type[T]] = None):
    """Deserialize JCS bytes, optionally into ``cls`` via ``cls.from_dict``"""
    try:
        obj = json.loads(data)
    except (ValueError, UnicodeDecodeError) as exc:
        raise DecodeError(f"invalid JSON: {exc}") from exc
    if cls is None:
        return obj
    if not isinstance(obj, dict):
        raise DecodeError(f"expected a JSON object for {cls.__name__}")
    return cls.from_dict(obj)


def hex_field(obj: dict, name: str, size: Optional[int] = None) -> bytes:
    """Fetch a hex-encoded field from a JSON object."""
    try:
        value = bytes.fromhex(obj[name])
    except KeyError:
        raise DecodeError(f"missing field '{name}'")
    except (TypeError, ValueError):
        raise DecodeError(f"field '{name}' is not valid hex")
    if size is not None and len(value) != size:
        raise DecodeError(f"field '{name}' must be {size} bytes, got {len(value)}")
    return value


def int_field(obj: dict, name: str, bits: int) -> int:
    """Fetch an unsigned integer field of at most ``bits`` bits."""
    try:
        value = obj[name]
    except KeyError:
        raise DecodeError(f"missing field '{name}'")
    if isinstance(value, bool) or not isinstance(value, int) or not 0 <= value < (1 << bits):
        raise DecodeError(f"field '{name}' must be an unsigned {bits}-bit integer")
    return value
