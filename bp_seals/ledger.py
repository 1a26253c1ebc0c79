#!/usr/bin/env python3
"""
Append-only log of validated seal closings.
Hash-chained, so tampering with recorded history is detectable, and a
second, different closing of an already recorded seal is rejected.
"""

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

try:
    import jcs
except ImportError:
    raise ImportError("Install jcs: pip install jcs")

from .errors import DecodeError, MalformedInput, SealConflict
from .tx import OutPoint
from .verify import SealVerdict

log = logging.getLogger(__name__)


def _entry_hash(entry: dict) -> str:
    body = {k: v for k, v in entry.items() if k != "hash"}
    return hashlib.sha256(jcs.canonicalize(body)).hexdigest()


class ClosingLog:
    """
    Closed seals, one JSON line per closing.

    Every entry carries the hash of its predecessor, and an outpoint may
    appear only once.
    """

    GENESIS_HASH = hashlib.sha256(b"BP-SEALS-CLOSING-LOG-GENESIS-v1").hexdigest()

    def __init__(self, log_file: Optional[Path] = None):
        self.log_file = Path(log_file) if log_file else Path("closings.log")
        self.entries: List[Dict] = []
        self.chain_hash = self.GENESIS_HASH
        self._by_outpoint: Dict[str, Dict] = {}

        if self.log_file.exists():
            self._load()

    def record(self, verdict: SealVerdict, metadata: Optional[dict] = None) -> dict:
        """
        Record a closed seal.

        Args:
            verdict: A CLOSED verdict from seal validation
            metadata: Optional application data stored with the entry

        Returns:
            The log entry (an existing one if this closing was already recorded)

        Raises:
            MalformedInput: If the verdict is not CLOSED
            SealConflict: If the seal was recorded as closed by another transaction
        """
        if not verdict.is_closed:
            raise MalformedInput(f"only closed seals can be recorded, got {verdict.status.value}")

        key = str(verdict.outpoint)
        witness = verdict.witness_txid[::-1].hex()
        existing = self._by_outpoint.get(key)
        if existing is not None:
            if existing["witness_txid"] == witness and existing["message"] == verdict.message.hex():
                return existing
            log.warning("re-closing attempt for seal %s by %s, recorded witness %s",
                        key, witness, existing["witness_txid"])
            raise SealConflict(verdict.outpoint, [bytes.fromhex(existing["witness_txid"])[::-1],
                                                  verdict.witness_txid])

        entry = {
            "index": len(self.entries),
            "prev_hash": self.chain_hash,
            "timestamp": round(time.time(), 6),
            "outpoint": key,
            "witness_txid": witness,
            "message": verdict.message.hex(),
            "metadata": metadata or {},
        }
        self.chain_hash = _entry_hash(entry)
        entry["hash"] = self.chain_hash

        self.entries.append(entry)
        self._by_outpoint[key] = entry
        self._append_to_file(entry)
        return entry

    def first_break(self) -> Optional[int]:
        """
        Index of the first entry that breaks the chain.

        An entry breaks it when it doesn't link to its predecessor, its hash
        doesn't match its content, or it closes an already closed seal.

        Returns:
            None if every entry is intact
        """
        expected_prev = self.GENESIS_HASH
        closed = set()
        for index, entry in enumerate(self.entries):
            broken = (
                entry.get("index") != index
                or entry.get("prev_hash") != expected_prev
                or entry.get("hash") != _entry_hash(entry)
                or entry.get("outpoint") in closed
            )
            if broken:
                return index
            closed.add(entry["outpoint"])
            expected_prev = entry["hash"]
        return None

    def verify_chain(self) -> bool:
        return self.first_break() is None

    def get(self, outpoint) -> Optional[dict]:
        """Get the closing entry of a seal outpoint."""
        return self._by_outpoint.get(str(outpoint))

    def is_closed(self, outpoint) -> bool:
        return str(outpoint) in self._by_outpoint

    def closed_outpoints(self) -> List[OutPoint]:
        return [OutPoint.parse(entry["outpoint"]) for entry in self.entries]

    def _load(self):
        """
        Read closings recorded by earlier runs.

        Raises:
            DecodeError: If a line isn't a JSON object with an outpoint
        """
        with open(self.log_file, "rb") as f:
            for lineno, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    entry = json.loads(line)
                except ValueError as exc:
                    raise DecodeError(f"{self.log_file}:{lineno}: invalid JSON: {exc}") from exc
                if not isinstance(entry, dict) or not isinstance(entry.get("outpoint"), str):
                    raise DecodeError(f"{self.log_file}:{lineno}: not a closing entry")
                self.entries.append(entry)
                # the first closing wins; later duplicates show up in first_break()
                self._by_outpoint.setdefault(entry["outpoint"], entry)
        if self.entries:
            self.chain_hash = self.entries[-1].get("hash", self.GENESIS_HASH)
        log.debug("loaded %d closings from %s", len(self.entries), self.log_file)

    def _append_to_file(self, entry: dict):
        with open(self.log_file, "ab") as f:
            f.write(jcs.canonicalize(entry) + b"\n")

    def export_closings(self, output_file: Optional[Path] = None) -> dict:
        """
        Summarize the recorded closings for an auditor.

        Args:
            output_file: Where to write the canonical JSON summary

        Returns:
            Closed seal count, chain status and the witness of every seal
        """
        broken_at = self.first_break()
        summary = {
            "chain_hash": self.chain_hash,
            "chain_valid": broken_at is None,
            "first_break": broken_at,
            "closed_seals": len(self._by_outpoint),
            "witnesses": {
                outpoint: entry.get("witness_txid") for outpoint, entry in self._by_outpoint.items()
            },
        }
        if output_file:
            Path(output_file).write_bytes(jcs.canonicalize(summary))
        return summary

    def __len__(self):
        return len(self.entries)

    def __contains__(self, outpoint) -> bool:
        return self.is_closed(outpoint)
