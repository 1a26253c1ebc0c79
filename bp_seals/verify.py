#!/usr/bin/env python3
"""
Single-use-seal validation.

The protocol never closes a seal itself; it replays a claimed closing
against chain data and returns a verdict:

    OPEN      the sealed output exists and is unspent
    CLOSED    exactly one transaction spends it and carries a container
              committing to the revealed message
    INVALID   anything else: output never created, forged reveal, missing
              or mismatching commitment, or conflicting spends

Mismatches are verdicts, not exceptions. Resolver failures propagate.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Sequence, Tuple, Union

from .anchor import Anchor
from .errors import SealConflict, VerificationMismatch
from .resolver import ChainResolver
from .seal import ConcealedSeal, ExplicitSeal, RevealedSeal, verify_reveal
from .tx import OutPoint

log = logging.getLogger(__name__)

Seal = Union[ExplicitSeal, RevealedSeal]


class SealStatus(Enum):
    OPEN = "open"
    CLOSED = "closed"
    INVALID = "invalid"


@dataclass(frozen=True)
class SealVerdict:
    status: SealStatus
    outpoint: Optional[OutPoint]
    message: Optional[bytes] = None
    reason: Optional[str] = None
    witness_txid: Optional[bytes] = None
    conflicts: Tuple[bytes, ...] = field(default=())

    @property
    def is_open(self) -> bool:
        return self.status is SealStatus.OPEN

    @property
    def is_closed(self) -> bool:
        return self.status is SealStatus.CLOSED

    @property
    def is_conflict(self) -> bool:
        return bool(self.conflicts)

    def raise_for_status(self) -> "SealVerdict":
        """
        Turn an INVALID verdict into an exception.

        Raises:
            SealConflict: If the seal has conflicting spends
            VerificationMismatch: For any other INVALID verdict
        """
        if self.is_conflict:
            raise SealConflict(self.outpoint, self.conflicts)
        if self.status is SealStatus.INVALID:
            raise VerificationMismatch(f"seal {self.outpoint} is invalid: {self.reason}", self.outpoint)
        return self

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "outpoint": str(self.outpoint) if self.outpoint is not None else None,
            "message": self.message.hex() if self.message is not None else None,
            "reason": self.reason,
            "witness_txid": self.witness_txid[::-1].hex() if self.witness_txid is not None else None,
            "conflicts": [txid[::-1].hex() for txid in self.conflicts],
        }


def _invalid(outpoint, reason: str, **kwargs) -> SealVerdict:
    log.info("seal %s invalid: %s", outpoint, reason)
    return SealVerdict(SealStatus.INVALID, outpoint, reason=reason, **kwargs)


def validate_seal(seal: Seal, resolver: ChainResolver, anchor: Optional[Anchor] = None,
                  message: Optional[bytes] = None, protocol_id: Optional[bytes] = None) -> SealVerdict:
    """
    Validate a seal against chain data.

    Args:
        seal: Seal definition with a known txid
        resolver: Chain data source
        anchor: Revealed closing data, needed to accept a closing
        message: The message claimed to be committed by the closing
        protocol_id: Expected protocol id; the anchor must match it if given

    Returns:
        SealVerdict (OPEN, CLOSED with the message, or INVALID with a reason)

    Raises:
        WitnessVoutError: If the seal has no txid
        ResolverFailure: If chain data could not be fetched
    """
    outpoint = seal.outpoint()

    txout = resolver.output(outpoint)
    if txout is None:
        return _invalid(outpoint, "sealed output was never created")

    spends = resolver.spends(outpoint)
    if not spends:
        log.info("seal %s is open", outpoint)
        return SealVerdict(SealStatus.OPEN, outpoint)
    if len(spends) > 1:
        txids = tuple(sorted(spend.txid for spend in spends))
        log.warning("seal %s spent by %d conflicting transactions", outpoint, len(txids))
        return _invalid(outpoint, "double-spend conflict", conflicts=txids)

    spend = spends[0]
    witness_txid = spend.txid
    if anchor is None or message is None:
        return _invalid(outpoint, "no commitment revealed for the closing transaction",
                        witness_txid=witness_txid)
    if anchor.method is not seal.method:
        return _invalid(outpoint, f"anchor uses {anchor.method}, seal requires {seal.method}",
                        witness_txid=witness_txid)
    if protocol_id is not None and anchor.protocol_id != protocol_id:
        return _invalid(outpoint, "anchor is for a different protocol", witness_txid=witness_txid)

    reason = anchor.check(spend.tx, message)
    if reason is not None:
        return _invalid(outpoint, reason, witness_txid=witness_txid)

    log.info("seal %s closed by %s", outpoint, witness_txid[::-1].hex())
    return SealVerdict(SealStatus.CLOSED, outpoint, message=bytes(message), witness_txid=witness_txid)


def validate_concealed(concealed: ConcealedSeal, revealed: RevealedSeal, resolver: ChainResolver,
                       anchor: Optional[Anchor] = None, message: Optional[bytes] = None,
                       protocol_id: Optional[bytes] = None) -> SealVerdict:
    """
    Validate a blinded seal after its holder revealed outpoint and factor.

    A reveal that doesn't reproduce ``concealed`` is INVALID without
    querying the resolver.
    """
    if not verify_reveal(concealed, revealed):
        outpoint = revealed.outpoint() if revealed.txid is not None else None
        return _invalid(outpoint, "revealed seal doesn't match the concealed seal")
    return validate_seal(revealed, resolver, anchor, message, protocol_id)


@dataclass(frozen=True)
class ValidationRequest:
    seal: Seal
    anchor: Optional[Anchor] = None
    message: Optional[bytes] = None
    protocol_id: Optional[bytes] = None


def validate_many(requests: Sequence[ValidationRequest], resolver: ChainResolver,
                  max_workers: Optional[int] = None) -> List[SealVerdict]:
    """
    Validate independent seals in parallel.

    Results come back in request order. The first resolver failure is
    re-raised after all submitted validations finished.
    """
    if not requests:
        return []
    with ThreadPoolExecutor(max_workers=max_workers) as pool:
        futures = [
            pool.submit(validate_seal, req.seal, resolver, req.anchor, req.message, req.protocol_id)
            for req in requests
        ]
        return [future.result() for future in futures]
