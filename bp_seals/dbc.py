#!/usr/bin/env python3
"""
Deterministic bitcoin commitments.

A container embeds a 32-byte commitment into a transaction output such that
the output stays spendable as before, yet anyone knowing the original key
(or script) and the commitment can recompute the output and check it.
Containers are exactly the bytes of a public key or output script; verifiers
always recompute and compare, they never parse a custom envelope.

Strategies:

* ``KeyTweakContainer``: pay-to-contract, P' = P + H(tag, P || C)·G,
  container is the compressed P'.
* ``TapretContainer``: the same tweak applied to a taproot internal key,
  container is the P2TR script ``OP_1 <x-only P'>`` (close method tapret1st).
* ``OpretContainer``: provably unspendable ``OP_RETURN <C>`` output
  (close method opret1st).
"""

import hmac
import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from . import tagged
from .ec import SECP256K1, Secp256k1
from .errors import MalformedInput
from .seal import CloseMethod
from .tx import OP_1, OP_RETURN, PUSH_32, Transaction

log = logging.getLogger(__name__)

COMMITMENT_SIZE = 32


def check_commitment(commitment: bytes) -> bytes:
    if not isinstance(commitment, (bytes, bytearray)) or len(commitment) != COMMITMENT_SIZE:
        raise MalformedInput(f"commitment must be {COMMITMENT_SIZE} bytes")
    return bytes(commitment)


class Container(ABC):
    """Strategy embedding a commitment into a key or output script."""

    method: Optional[CloseMethod] = None

    @abstractmethod
    def embed(self, original: bytes, commitment: bytes) -> bytes:
        """
        Produce the container for ``commitment``.

        Raises:
            MalformedInput: If ``original`` or ``commitment`` is ill-formed
        """

    def verify_embedding(self, original: bytes, commitment: bytes, container: bytes) -> bool:
        """
        Check that ``container`` embeds ``commitment`` over ``original``.

        Returns:
            True if valid, False otherwise (malformed inputs included)
        """
        try:
            expected = self.embed(original, commitment)
        except MalformedInput as exc:
            log.debug("embedding check failed: %s", exc)
            return False
        if not isinstance(container, (bytes, bytearray)):
            return False
        return hmac.compare_digest(expected, bytes(container))

    def locate(self, tx: Transaction) -> Optional[bytes]:
        """Find this strategy's container in a witness transaction."""
        return None


class _TweakMixin:
    tag = tagged.TAG_TWEAK

    def __init__(self, curve: Secp256k1 = SECP256K1):
        self.curve = curve

    def _key_bytes(self, original: bytes) -> bytes:
        raise NotImplementedError

    def tweak(self, original: bytes, commitment: bytes) -> int:
        """t = H(tag, P || C) as a curve scalar."""
        digest = tagged.commit(self.tag, self._key_bytes(original) + check_commitment(commitment))
        return self.curve.scalar_from_hash(digest)

    def tweaked_point(self, original: bytes, commitment: bytes):
        point = self.curve.decode_point(self._key_bytes(original))
        tweak = self.tweak(original, commitment)
        return self.curve.point_add(point, self.curve.point_mul(tweak))


class KeyTweakContainer(_TweakMixin, Container):
    """Pay-to-contract public key tweak."""

    def _key_bytes(self, original: bytes) -> bytes:
        if not isinstance(original, (bytes, bytearray)) or len(original) != 33:
            raise MalformedInput("original key must be a 33-byte compressed public key")
        # parse early so an off-curve key fails before hashing
        self.curve.decode_point(original)
        return bytes(original)

    def embed(self, original: bytes, commitment: bytes) -> bytes:
        return self.curve.encode_point(self.tweaked_point(original, commitment))


class TapretContainer(_TweakMixin, Container):
    """Commitment in the output key of the first taproot output."""

    method = CloseMethod.TAPRET_FIRST
    tag = tagged.TAG_TAPRET

    def _key_bytes(self, original: bytes) -> bytes:
        if not isinstance(original, (bytes, bytearray)):
            raise MalformedInput("internal key must be bytes")
        if len(original) == 33:
            original = original[1:]
        if len(original) != 32:
            raise MalformedInput("internal key must be a 32-byte x-only or 33-byte compressed key")
        self.curve.decode_point(original)
        return bytes(original)

    def embed(self, original: bytes, commitment: bytes) -> bytes:
        point = self.tweaked_point(original, commitment)
        return bytes([OP_1, PUSH_32]) + self.curve.xonly(point)

    def locate(self, tx: Transaction) -> Optional[bytes]:
        txout = tx.first_output(lambda out: out.is_taproot)
        return txout.script_pubkey if txout is not None else None


class OpretContainer(Container):
    """Commitment in a provably unspendable OP_RETURN output."""

    method = CloseMethod.OPRET_FIRST

    def embed(self, original: bytes, commitment: bytes) -> bytes:
        if original:
            raise MalformedInput("OP_RETURN containers take no original key or script")
        return bytes([OP_RETURN, PUSH_32]) + check_commitment(commitment)

    def locate(self, tx: Transaction) -> Optional[bytes]:
        txout = tx.first_output(lambda out: out.is_op_return)
        return txout.script_pubkey if txout is not None else None


_CONTAINERS: Dict[CloseMethod, Container] = {
    CloseMethod.OPRET_FIRST: OpretContainer(),
    CloseMethod.TAPRET_FIRST: TapretContainer(),
}


def container_for(method: CloseMethod) -> Container:
    try:
        return _CONTAINERS[method]
    except KeyError:
        raise MalformedInput(f"no commitment container for close method {method}")
