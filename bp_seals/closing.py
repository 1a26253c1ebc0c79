#!/usr/bin/env python3
"""
Preparing a seal closing.

Builds the commitment tree over the messages of every protocol being
closed, embeds its commitment into the container output and hands out an
anchor per protocol. Signing and broadcasting the witness transaction that
spends the sealed output is left to the wallet.
"""

import logging
from typing import Mapping, Optional

from .anchor import Anchor
from .config import DEFAULT_CONFIG, CommitConfig
from .dbc import container_for
from .mpc import MultiCommitment
from .seal import CloseMethod
from .tx import TxOut

log = logging.getLogger(__name__)


class SealClosing:
    """Commitment container and anchors for one witness transaction."""

    def __init__(self, method: CloseMethod, tree: MultiCommitment, original: bytes, output_script: bytes):
        self.method = method
        self.tree = tree
        self.original = original
        self.output_script = output_script

    @property
    def commitment(self) -> bytes:
        return self.tree.commitment

    def anchor(self, protocol_id: bytes) -> Anchor:
        """Anchor proving the closing commits to this protocol's message."""
        return Anchor(self.method, protocol_id, self.tree.proof(protocol_id), self.original)

    def tx_output(self, value: int = 0) -> TxOut:
        """Output to include in the witness transaction."""
        return TxOut(value, self.output_script)


def prepare_closing(messages: Mapping[bytes, bytes], method: Optional[CloseMethod] = None,
                    original: bytes = b"", entropy: Optional[int] = None,
                    config: Optional[CommitConfig] = None) -> SealClosing:
    """
    Commit to ``messages`` and build the container for the witness output.

    Args:
        messages: {protocol id: message}
        method: Close method (configured default if None)
        original: Taproot internal key for tapret1st; empty for opret1st
        entropy: Seed for the padding leaves (random if None)
        config: Commitment configuration

    Raises:
        MalformedInput: On ill-formed messages or original key
        CollisionExhausted: If the commitment tree can't be built
    """
    config = config or DEFAULT_CONFIG
    method = method or config.close_method
    tree = MultiCommitment.build(messages, entropy=entropy, config=config)
    script = container_for(method).embed(original, tree.commitment)
    log.debug("prepared %s closing for %d protocols, tree depth %d", method, len(tree), tree.depth)
    return SealClosing(method, tree, bytes(original), script)
