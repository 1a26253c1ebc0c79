#!/usr/bin/env python3
"""
Chain data resolver interface.

Seal validation consumes chain data only through ``ChainResolver``. An
implementation must tell "never created" and "unspent" apart from "query
failed": the first two are answers (None / empty list), the last one is a
``ResolverFailure``. Retry and backoff are the resolver's business.
"""

import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, List, Optional

from .tx import OutPoint, Transaction, TxOut


@dataclass(frozen=True)
class Spend:
    """A transaction spending a seal outpoint with its confirmation depth."""

    tx: Transaction
    confirmations: int = 0

    @property
    def txid(self) -> bytes:
        return self.tx.txid

    @property
    def confirmed(self) -> bool:
        return self.confirmations > 0


class ChainResolver(ABC):

    @abstractmethod
    def output(self, outpoint: OutPoint) -> Optional[TxOut]:
        """
        Look up a transaction output.

        Returns:
            The output, or None if it was never created

        Raises:
            ResolverFailure: If the query could not be answered
        """

    @abstractmethod
    def spends(self, outpoint: OutPoint) -> List[Spend]:
        """
        Transactions spending ``outpoint``.

        Returns:
            Empty list if unspent; more than one entry only on chain views
            containing conflicting unconfirmed transactions

        Raises:
            ResolverFailure: If the query could not be answered
        """


class MemoryResolver(ChainResolver):
    """
    In-memory chain view.

    Keeps every transaction it is given, so two transactions spending the
    same output (a mempool view) are both reported.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._outputs: Dict[OutPoint, TxOut] = {}
        self._spends: Dict[OutPoint, Dict[bytes, Spend]] = defaultdict(dict)

    def add_transaction(self, tx: Transaction, confirmations: int = 0) -> bytes:
        """Add a transaction; returns its txid."""
        txid = tx.txid
        with self._lock:
            for vout, txout in enumerate(tx.outputs):
                self._outputs[OutPoint(txid, vout)] = txout
            for txin in tx.inputs:
                self._spends[txin.prevout][txid] = Spend(tx, confirmations)
        return txid

    def add_output(self, outpoint: OutPoint, txout: TxOut):
        """Register an output without its full transaction."""
        with self._lock:
            self._outputs[outpoint] = txout

    def remove_transaction(self, txid: bytes):
        """Drop a transaction, e.g. one evicted from the mempool."""
        with self._lock:
            for outpoint in [op for op in self._outputs if op.txid == txid]:
                del self._outputs[outpoint]
            for outpoint in [op for op, spends in self._spends.items() if txid in spends]:
                spends = self._spends[outpoint]
                del spends[txid]
                if not spends:
                    del self._spends[outpoint]

    def spent_outpoints(self) -> List[OutPoint]:
        """Outpoints with at least one known spend."""
        with self._lock:
            return list(self._spends)

    def output(self, outpoint: OutPoint) -> Optional[TxOut]:
        with self._lock:
            return self._outputs.get(outpoint)

    def spends(self, outpoint: OutPoint) -> List[Spend]:
        with self._lock:
            return list(self._spends.get(outpoint, {}).values())

