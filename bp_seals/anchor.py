#!/usr/bin/env python3
"""
Anchors: the data a seal holder reveals to prove what a closing committed to.

An anchor names the close method, the protocol id, the inclusion proof of
that protocol's message in the commitment tree, and the original key used by
the container (empty for OP_RETURN). Given the message and the witness
transaction, anyone can recompute the container and compare.
"""

from dataclasses import dataclass
from typing import Optional

from .dbc import container_for
from .encoding import Reader, Writer, decode_with, hex_field
from .errors import DecodeError, MalformedInput
from .mpc import MerkleProof, check_protocol_id
from .seal import CloseMethod
from .tx import Transaction


@dataclass(frozen=True)
class Anchor:
    method: CloseMethod
    protocol_id: bytes
    proof: MerkleProof
    original: bytes = b""

    def __post_init__(self):
        check_protocol_id(self.protocol_id)
        if len(self.original) > 0xFF:
            raise MalformedInput("original key or script too long")

    def commitment(self, message: bytes) -> bytes:
        """Tree commitment implied by the proof for ``message``."""
        return self.proof.commitment(self.protocol_id, message)

    def check(self, tx: Transaction, message: bytes) -> Optional[str]:
        """
        Verify that ``tx`` carries a container committing to ``message``.

        Returns:
            None on success, otherwise the reason of the mismatch
        """
        container = container_for(self.method)
        located = container.locate(tx)
        if located is None:
            return f"witness transaction has no {self.method} commitment container"
        commitment = self.commitment(message)
        if not self.proof.verify(commitment, self.protocol_id, message):
            return "protocol id doesn't match its slot in the commitment tree"
        if not container.verify_embedding(self.original, commitment, located):
            return "commitment container doesn't match the revealed message"
        return None

    def write(self, writer: Writer) -> Writer:
        writer.u8(self.method.code).raw(self.protocol_id)
        self.proof.write(writer)
        return writer.var_bytes(self.original)

    @classmethod
    def read(cls, reader: Reader) -> "Anchor":
        method = CloseMethod.from_code(reader.u8())
        protocol_id = reader.raw(32)
        proof = MerkleProof.read(reader)
        return cls(method, protocol_id, proof, reader.var_bytes())

    def to_bytes(self) -> bytes:
        return self.write(Writer()).getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> "Anchor":
        return decode_with(data, cls.read)

    def to_dict(self) -> dict:
        return {
            "method": str(self.method),
            "protocol_id": self.protocol_id.hex(),
            "proof": self.proof.to_dict(),
            "original": self.original.hex(),
        }

    @classmethod
    def from_dict(cls, obj: dict) -> "Anchor":
        proof = obj.get("proof")
        if not isinstance(proof, dict):
            raise DecodeError("field 'proof' must be an object")
        method = obj.get("method")
        if not isinstance(method, str):
            raise DecodeError("field 'method' must be a string")
        return cls(
            CloseMethod.parse(method),
            hex_field(obj, "protocol_id", 32),
            MerkleProof.from_dict(proof),
            hex_field(obj, "original"),
        )
