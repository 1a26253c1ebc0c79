#!/usr/bin/env python3
"""
Exception hierarchy for bp-seals.

Construction and resolver problems raise. Verification mismatches are
returned as booleans or verdicts and only become exceptions when a caller
asks for it via ``SealVerdict.raise_for_status()``.
"""

from typing import Optional, Sequence


class SealsError(Exception):
    """Base class for bp-seals errors."""


class MalformedInput(SealsError, ValueError):
    """Ill-formed key, script, message or encoded value."""


class WitnessVoutError(MalformedInput):
    """Seal refers to an output of a not yet known witness transaction."""

    def __init__(self, message: str = "seal has no txid; it points to a witness transaction output"):
        super().__init__(message)


class ParseError(MalformedInput):
    """Wrong text representation of a seal or close method."""


class DecodeError(MalformedInput):
    """Canonical byte or JSON data can't be decoded."""


class UnknownProtocol(MalformedInput, KeyError):
    """Protocol id is not part of the commitment tree."""

    def __str__(self):
        return Exception.__str__(self)


class CollisionExhausted(SealsError):
    """Tree slot placement didn't converge within the attempt bound."""

    def __init__(self, entries: int, attempts: int, max_depth: int):
        self.entries = entries
        self.attempts = attempts
        self.max_depth = max_depth
        super().__init__(
            f"unable to place {entries} protocols without collision after "
            f"{attempts} attempts (max depth {max_depth})"
        )


class ResolverFailure(SealsError):
    """Chain data resolver could not answer a query."""

    def __init__(self, message: str, outpoint=None, stage: Optional[str] = None):
        self.outpoint = outpoint
        self.stage = stage
        context = []
        if stage:
            context.append(f"stage={stage}")
        if outpoint is not None:
            context.append(f"outpoint={outpoint}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class VerificationMismatch(SealsError):
    """A recomputed digest, tweak or path didn't match the claimed one."""

    def __init__(self, message: str, outpoint=None):
        self.outpoint = outpoint
        super().__init__(message)


class SealConflict(VerificationMismatch):
    """The same seal outpoint is spent by more than one transaction."""

    def __init__(self, outpoint, txids: Sequence[bytes]):
        self.txids = tuple(txids)
        shown = ", ".join(txid[::-1].hex() for txid in self.txids)
        super().__init__(f"seal {outpoint} closed by conflicting transactions: {shown}", outpoint)
