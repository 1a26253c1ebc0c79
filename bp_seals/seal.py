#!/usr/bin/env python3
"""
Seal definitions: transaction outputs used as single-use seals.

A seal is closed by spending its output in a transaction that carries a
commitment container. ``ExplicitSeal`` names the output directly;
``RevealedSeal`` adds a blinding factor so the output can be published only
in concealed form (``ConcealedSeal``) until the holder reveals it.
"""

import secrets
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from bech32 import bech32_decode, bech32_encode, convertbits

from . import tagged
from .encoding import Reader, Writer, decode_with, hex_field, int_field
from .errors import DecodeError, ParseError, WitnessVoutError
from .tx import OutPoint, txid_from_hex, txid_to_hex

CONCEALED_HRP = "utxob"
WITNESS_TXID = "~"


class CloseMethod(Enum):
    """Method of single-use-seal closing."""

    # Commitment in the first OP_RETURN output of the witness transaction
    OPRET_FIRST = "opret1st"
    # Tweaked internal key of the first taproot output
    TAPRET_FIRST = "tapret1st"

    def __str__(self):
        return self.value

    @property
    def code(self) -> int:
        return _METHOD_CODES[self]

    @classmethod
    def from_code(cls, code: int) -> "CloseMethod":
        for method, value in _METHOD_CODES.items():
            if value == code:
                return method
        raise DecodeError(f"unknown close method code {code:#04x}")

    @classmethod
    def parse(cls, value: str) -> "CloseMethod":
        try:
            return cls(value.lower())
        except ValueError:
            raise ParseError(f"wrong seal close method id '{value}'")


_METHOD_CODES = {CloseMethod.OPRET_FIRST: 0x00, CloseMethod.TAPRET_FIRST: 0x01}


@dataclass(frozen=True)
class ExplicitSeal:
    """
    Revealed seal definition without blinding data.

    ``txid`` is None when the seal points to an output of the witness
    transaction of some other seal, whose id isn't known yet.
    """

    method: CloseMethod
    txid: Optional[bytes]
    vout: int

    def __post_init__(self):
        _check_fields(self.txid, self.vout)

    @classmethod
    def from_outpoint(cls, outpoint: OutPoint, method: CloseMethod = CloseMethod.TAPRET_FIRST) -> "ExplicitSeal":
        return cls(method, outpoint.txid, outpoint.vout)

    def outpoint(self) -> OutPoint:
        """
        Raises:
            WitnessVoutError: If the seal has no txid
        """
        if self.txid is None:
            raise WitnessVoutError()
        return OutPoint(self.txid, self.vout)

    def txid_or(self, default_txid: bytes) -> bytes:
        """Seal txid, or ``default_txid`` for a witness-output seal."""
        return self.txid if self.txid is not None else default_txid

    def outpoint_or(self, default_txid: bytes) -> OutPoint:
        return OutPoint(self.txid_or(default_txid), self.vout)

    def __str__(self):
        txid = txid_to_hex(self.txid) if self.txid is not None else WITNESS_TXID
        return f"{self.method}:{txid}:{self.vout}"

    @classmethod
    def parse(cls, value: str) -> "ExplicitSeal":
        """Parse ``method:txid:vout``; ``~`` stands for an unknown witness txid."""
        method, txid, vout = _split_seal_string(value)
        return cls(method, txid, vout)

    def write(self, writer: Writer) -> Writer:
        return writer.u8(self.method.code).option(self.txid).u32(self.vout)

    @classmethod
    def read(cls, reader: Reader) -> "ExplicitSeal":
        return cls(CloseMethod.from_code(reader.u8()), reader.option(32), reader.u32())

    def to_bytes(self) -> bytes:
        return self.write(Writer()).getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> "ExplicitSeal":
        return decode_with(data, cls.read)

    def to_dict(self) -> dict:
        return {
            "method": str(self.method),
            "txid": txid_to_hex(self.txid) if self.txid is not None else None,
            "vout": self.vout,
        }

    @classmethod
    def from_dict(cls, obj: dict) -> "ExplicitSeal":
        return cls(*_fields_from_dict(obj))


@dataclass(frozen=True)
class RevealedSeal:
    """Seal definition together with its secret blinding factor."""

    method: CloseMethod
    txid: Optional[bytes]
    vout: int
    blinding: int

    def __post_init__(self):
        _check_fields(self.txid, self.vout)
        if not 0 <= self.blinding < (1 << 64):
            raise ParseError("blinding factor must be an unsigned 64-bit integer")

    @classmethod
    def new(cls, method: CloseMethod, outpoint: OutPoint, blinding: Optional[int] = None) -> "RevealedSeal":
        """Define a seal over ``outpoint`` with a fresh random blinding factor."""
        if blinding is None:
            blinding = secrets.randbits(64)
        return cls(method, outpoint.txid, outpoint.vout, blinding)

    @classmethod
    def from_explicit(cls, seal: ExplicitSeal, blinding: Optional[int] = None) -> "RevealedSeal":
        if blinding is None:
            blinding = secrets.randbits(64)
        return cls(seal.method, seal.txid, seal.vout, blinding)

    def explicit(self) -> ExplicitSeal:
        return ExplicitSeal(self.method, self.txid, self.vout)

    def outpoint(self) -> OutPoint:
        return self.explicit().outpoint()

    def txid_or(self, default_txid: bytes) -> bytes:
        return self.explicit().txid_or(default_txid)

    def outpoint_or(self, default_txid: bytes) -> OutPoint:
        return self.explicit().outpoint_or(default_txid)

    def conceal(self) -> "ConcealedSeal":
        return ConcealedSeal(tagged.commit(tagged.TAG_SEAL, self.to_bytes()))

    def __str__(self):
        return f"{self.explicit()}#{self.blinding}"

    @classmethod
    def parse(cls, value: str) -> "RevealedSeal":
        """Parse ``method:txid:vout#blinding``."""
        seal, sep, blinding = value.partition("#")
        if not sep:
            raise ParseError(f"wrong structure of revealed seal '{value}': missing '#blinding'")
        if not (blinding.isascii() and blinding.isdigit()):
            raise ParseError(f"wrong blinding factor '{blinding}'")
        method, txid, vout = _split_seal_string(seal)
        return cls(method, txid, vout, int(blinding))

    def write(self, writer: Writer) -> Writer:
        return self.explicit().write(writer).u64(self.blinding)

    @classmethod
    def read(cls, reader: Reader) -> "RevealedSeal":
        seal = ExplicitSeal.read(reader)
        return cls(seal.method, seal.txid, seal.vout, reader.u64())

    def to_bytes(self) -> bytes:
        return self.write(Writer()).getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> "RevealedSeal":
        return decode_with(data, cls.read)

    def to_dict(self) -> dict:
        obj = self.explicit().to_dict()
        obj["blinding"] = f"{self.blinding:016x}"
        return obj

    @classmethod
    def from_dict(cls, obj: dict) -> "RevealedSeal":
        method, txid, vout = _fields_from_dict(obj)
        raw = hex_field(obj, "blinding", 8)
        return cls(method, txid, vout, int.from_bytes(raw, "big"))


@dataclass(frozen=True)
class ConcealedSeal:
    """Public, blinded reference to a seal: a tagged hash of the revealed seal."""

    digest: bytes

    def __post_init__(self):
        if len(self.digest) != 32:
            raise ParseError("concealed seal must be 32 bytes")

    def __str__(self):
        return self.to_bech32()

    def to_bech32(self) -> str:
        return bech32_encode(CONCEALED_HRP, convertbits(self.digest, 8, 5))

    @classmethod
    def from_bech32(cls, value: str) -> "ConcealedSeal":
        hrp, data = bech32_decode(value)
        if hrp is None or data is None:
            raise ParseError(f"wrong Bech32 representation of the blinded seal '{value}'")
        if hrp != CONCEALED_HRP:
            raise ParseError(f"wrong Bech32 prefix '{hrp}', expected '{CONCEALED_HRP}'")
        raw = convertbits(data, 5, 8, False)
        if raw is None or len(raw) != 32:
            raise ParseError("wrong length of the blinded seal payload")
        return cls(bytes(raw))

    def to_bytes(self) -> bytes:
        return self.digest

    @classmethod
    def from_bytes(cls, data: bytes) -> "ConcealedSeal":
        return decode_with(data, lambda r: cls(r.raw(32)))

    def to_dict(self) -> dict:
        return {"concealed": self.digest.hex()}

    @classmethod
    def from_dict(cls, obj: dict) -> "ConcealedSeal":
        return cls(hex_field(obj, "concealed", 32))


def verify_reveal(concealed: ConcealedSeal, revealed: RevealedSeal) -> bool:
    """Check that ``revealed`` (outpoint plus blinding) opens ``concealed``."""
    return tagged.verify(tagged.TAG_SEAL, revealed.to_bytes(), concealed.digest)


def _check_fields(txid: Optional[bytes], vout: int):
    if txid is not None and len(txid) != 32:
        raise ParseError("txid must be 32 bytes")
    if not 0 <= vout <= 0xFFFFFFFF:
        raise ParseError(f"vout {vout} out of range")


def _split_seal_string(value: str):
    parts = value.split(":")
    if parts[0] in ("", WITNESS_TXID):
        raise ParseError("single-use-seal must start with method name (e.g. 'tapret1st')")
    if len(parts) > 1 and parts[1] == "":
        raise ParseError("full transaction id is required for the seal specification")
    if len(parts) != 3:
        raise ParseError(f"wrong structure of seal string '{value}'")
    method_s, txid_s, vout_s = parts
    method = CloseMethod.parse(method_s)
    txid = None if txid_s == WITNESS_TXID else txid_from_hex(txid_s)
    if not (vout_s.isascii() and vout_s.isdigit()):
        raise ParseError(f"wrong vout '{vout_s}': must be a decimal unsigned integer")
    return method, txid, int(vout_s)


def _fields_from_dict(obj: dict):
    try:
        method = CloseMethod.parse(obj["method"])
    except KeyError:
        raise DecodeError("missing field 'method'")
    except AttributeError:
        raise DecodeError("field 'method' must be a string")
    txid = None
    if obj.get("txid") is not None:
        txid = hex_field(obj, "txid", 32)[::-1]
    return method, txid, int_field(obj, "vout", 32)
