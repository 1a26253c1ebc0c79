"""bp-seals: deterministic bitcoin commitments and single-use seals."""

import logging

from .tagged import commit, verify, tagged_hash
from .errors import (
    SealsError,
    MalformedInput,
    CollisionExhausted,
    ResolverFailure,
    VerificationMismatch,
    SealConflict,
)
from .config import CommitConfig, DEFAULT_CONFIG
from .mpc import MultiCommitment, MerkleProof, verify_inclusion
from .dbc import KeyTweakContainer, TapretContainer, OpretContainer, container_for
from .tx import OutPoint, TxOut, TxIn, Transaction
from .seal import CloseMethod, ExplicitSeal, RevealedSeal, ConcealedSeal, verify_reveal
from .anchor import Anchor
from .resolver import ChainResolver, MemoryResolver, Spend
from .verify import (
    SealStatus,
    SealVerdict,
    ValidationRequest,
    validate_seal,
    validate_concealed,
    validate_many,
)
from .closing import SealClosing, prepare_closing
from .ledger import ClosingLog
from .encoding import serialize, deserialize

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = "0.8.0"
__all__ = [
    "commit",
    "verify",
    "tagged_hash",
    "SealsError",
    "MalformedInput",
    "CollisionExhausted",
    "ResolverFailure",
    "VerificationMismatch",
    "SealConflict",
    "CommitConfig",
    "DEFAULT_CONFIG",
    "MultiCommitment",
    "MerkleProof",
    "verify_inclusion",
    "KeyTweakContainer",
    "TapretContainer",
    "OpretContainer",
    "container_for",
    "OutPoint",
    "TxOut",
    "TxIn",
    "Transaction",
    "CloseMethod",
    "ExplicitSeal",
    "RevealedSeal",
    "ConcealedSeal",
    "verify_reveal",
    "Anchor",
    "ChainResolver",
    "MemoryResolver",
    "Spend",
    "SealStatus",
    "SealVerdict",
    "ValidationRequest",
    "validate_seal",
    "validate_concealed",
    "validate_many",
    "SealClosing",
    "prepare_closing",
    "ClosingLog",
    "serialize",
    "deserialize",
]
