#!/usr/bin/env python3
"""
Minimal bitcoin transaction data model.

Only what seal validation needs: outpoints, outputs and a legacy
(non-witness) serialization from which the txid is computed.
"""

import struct
from dataclasses import dataclass
from typing import Optional, Tuple

from .errors import MalformedInput, ParseError
from .tagged import hash256

OP_RETURN = 0x6A
OP_1 = 0x51
PUSH_32 = 0x20


def _compact_size(n: int) -> bytes:
    if n < 0xFD:
        return struct.pack("<B", n)
    if n <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", n)
    if n <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", n)
    return b"\xff" + struct.pack("<Q", n)


def txid_to_hex(txid: bytes) -> str:
    """Display form of a txid (reversed byte order)."""
    return bytes(txid)[::-1].hex()


def txid_from_hex(value: str) -> bytes:
    try:
        raw = bytes.fromhex(value)
    except ValueError:
        raise ParseError(f"invalid txid '{value}': must be 64 hexadecimal characters")
    if len(raw) != 32:
        raise ParseError(f"invalid txid '{value}': must be 64 hexadecimal characters")
    return raw[::-1]


@dataclass(frozen=True, order=True)
class OutPoint:
    """Reference to a transaction output: (txid, vout)."""

    txid: bytes
    vout: int

    def __post_init__(self):
        if len(self.txid) != 32:
            raise MalformedInput("txid must be 32 bytes")
        if not 0 <= self.vout <= 0xFFFFFFFF:
            raise MalformedInput(f"vout {self.vout} out of range")

    def __str__(self):
        return f"{txid_to_hex(self.txid)}:{self.vout}"

    @classmethod
    def parse(cls, value: str) -> "OutPoint":
        txid, sep, vout = value.partition(":")
        if not sep or not (vout.isascii() and vout.isdigit()):
            raise ParseError(f"invalid outpoint '{value}': expected <txid>:<vout>")
        return cls(txid_from_hex(txid), int(vout))

    def serialize(self) -> bytes:
        return self.txid + struct.pack("<I", self.vout)


@dataclass(frozen=True)
class TxOut:
    value: int
    script_pubkey: bytes

    def serialize(self) -> bytes:
        return struct.pack("<q", self.value) + _compact_size(len(self.script_pubkey)) + self.script_pubkey

    @property
    def is_op_return(self) -> bool:
        return len(self.script_pubkey) > 0 and self.script_pubkey[0] == OP_RETURN

    @property
    def is_taproot(self) -> bool:
        s = self.script_pubkey
        return len(s) == 34 and s[0] == OP_1 and s[1] == PUSH_32


@dataclass(frozen=True)
class TxIn:
    prevout: OutPoint
    script_sig: bytes = b""
    sequence: int = 0xFFFFFFFF

    def serialize(self) -> bytes:
        return (
            self.prevout.serialize()
            + _compact_size(len(self.script_sig))
            + self.script_sig
            + struct.pack("<I", self.sequence)
        )


@dataclass(frozen=True)
class Transaction:
    inputs: Tuple[TxIn, ...]
    outputs: Tuple[TxOut, ...]
    version: int = 2
    locktime: int = 0

    def __post_init__(self):
        object.__setattr__(self, "inputs", tuple(self.inputs))
        object.__setattr__(self, "outputs", tuple(self.outputs))

    @classmethod
    def spending(cls, prevouts, outputs, version: int = 2, locktime: int = 0) -> "Transaction":
        """Build a transaction spending ``prevouts`` with empty script sigs."""
        return cls(tuple(TxIn(p) for p in prevouts), tuple(outputs), version, locktime)

    def serialize(self) -> bytes:
        parts = [struct.pack("<i", self.version), _compact_size(len(self.inputs))]
        parts.extend(txin.serialize() for txin in self.inputs)
        parts.append(_compact_size(len(self.outputs)))
        parts.extend(txout.serialize() for txout in self.outputs)
        parts.append(struct.pack("<I", self.locktime))
        return b"".join(parts)

    @property
    def txid(self) -> bytes:
        return hash256(self.serialize())

    def outpoint(self, vout: int) -> OutPoint:
        return OutPoint(self.txid, vout)

    def spends(self, outpoint: OutPoint) -> bool:
        return any(txin.prevout == outpoint for txin in self.inputs)

    def first_output(self, predicate) -> Optional[TxOut]:
        for txout in self.outputs:
            if predicate(txout):
                return txout
        return None
