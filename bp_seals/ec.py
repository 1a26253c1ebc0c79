#!/usr/bin/env python3
"""
secp256k1 capabilities needed for key tweaking.

Containers only need three operations (scalar from hash, point addition and
scalar multiplication) plus point encodings. They are grouped in
``Secp256k1`` so container logic doesn't depend on the curve library.
"""

from typing import Optional

from ecdsa import SECP256k1, VerifyingKey, ellipticcurve
from ecdsa.errors import MalformedPointError

from .errors import MalformedInput

Point = ellipticcurve.Point

COMPRESSED_SIZE = 33
XONLY_SIZE = 32


class Secp256k1:
    """Scalar and point arithmetic on secp256k1, backed by ``ecdsa``."""

    def __init__(self):
        self.curve = SECP256k1.curve
        self.order = SECP256k1.order
        gen = SECP256k1.generator
        self.generator = ellipticcurve.Point(self.curve, gen.x(), gen.y(), self.order)

    # Capability interface
    def scalar_from_hash(self, digest: bytes) -> int:
        """
        Interpret a 32-byte digest as a curve scalar, reduced mod n.

        Raises:
            MalformedInput: If the reduced scalar is zero
        """
        if len(digest) != 32:
            raise MalformedInput("scalar digest must be 32 bytes")
        scalar = int.from_bytes(digest, "big") % self.order
        if scalar == 0:
            raise MalformedInput("digest reduces to the zero scalar")
        return scalar

    def point_add(self, a: Point, b: Point) -> Point:
        result = a + b
        if result == ellipticcurve.INFINITY:
            raise MalformedInput("point addition produced the point at infinity")
        return result

    def point_mul(self, scalar: int, point: Optional[Point] = None) -> Point:
        """Multiply ``point`` (the generator by default) by ``scalar``."""
        if point is None:
            point = self.generator
        return point * (scalar % self.order)

    # Encodings
    def decode_point(self, data: bytes) -> Point:
        """
        Parse a 33-byte compressed or 32-byte x-only public key.

        x-only keys are lifted to the point with even y.

        Raises:
            MalformedInput: If the encoding is invalid or off the curve
        """
        data = bytes(data)
        if len(data) == XONLY_SIZE:
            data = b"\x02" + data
        elif len(data) != COMPRESSED_SIZE:
            raise MalformedInput(f"public key must be 33 or 32 bytes, got {len(data)}")
        if data[0] not in (2, 3):
            raise MalformedInput(f"invalid compressed key prefix {data[0]:#04x}")
        if int.from_bytes(data[1:], "big") >= self.curve.p():
            raise MalformedInput("x coordinate is not a field element")
        try:
            key = VerifyingKey.from_string(data, curve=SECP256k1)
        except MalformedPointError as exc:
            raise MalformedInput(f"public key is not on the curve: {exc}") from exc
        return key.pubkey.point.to_affine()

    def encode_point(self, point: Point, compressed: bool = True) -> bytes:
        try:
            key = VerifyingKey.from_public_point(point, curve=SECP256k1)
        except MalformedPointError as exc:
            raise MalformedInput(f"can't encode point: {exc}") from exc
        data = key.to_string("compressed")
        return data if compressed else data[1:]

    def xonly(self, point: Point) -> bytes:
        return self.encode_point(point, compressed=False)

    def has_even_y(self, point: Point) -> bool:
        return point.y() & 1 == 0


SECP256K1 = Secp256k1()
