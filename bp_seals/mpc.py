#!/usr/bin/env python3
"""
Multi-protocol commitment tree (LNPBP-4 style).

Many independent (protocol id, message) pairs are committed with a single
32-byte value. Each protocol gets a deterministic slot in a complete binary
tree; the remaining slots are filled with entropy leaves so that neither the
number of protocols nor their positions can be inferred from a proof.

Construction:

1. Start at the smallest depth d with 2^d >= number of protocols, plus one
   level when privacy is required so there is always padding.
2. Place every protocol at ``H_slot(protocol_id || cofactor) mod 2^d``. On a
   collision try the next cofactor; when all cofactors for a depth are used
   up go one level deeper. Running out of depths raises CollisionExhausted.
3. Fill empty slots with ``H_entropy(seed || slot)``.
4. Hash nodes pairwise with ``H_node(left || right)`` up to the Merkle root.
5. The final commitment binds depth and cofactor:
   ``H_root(depth || cofactor || merkle_root)``.
"""

import hmac
import logging
import secrets
import struct
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from . import tagged
from .config import DEFAULT_CONFIG, CommitConfig
from .encoding import Reader, Writer, decode_with, hex_field, int_field
from .errors import CollisionExhausted, DecodeError, MalformedInput, UnknownProtocol

log = logging.getLogger(__name__)

PROTOCOL_ID_SIZE = 32


def check_protocol_id(protocol_id: bytes) -> bytes:
    if not isinstance(protocol_id, (bytes, bytearray)) or len(protocol_id) != PROTOCOL_ID_SIZE:
        raise MalformedInput(f"protocol id must be {PROTOCOL_ID_SIZE} bytes")
    return bytes(protocol_id)


def message_digest(message: bytes) -> bytes:
    if not isinstance(message, (bytes, bytearray)):
        raise MalformedInput("message must be bytes")
    return tagged.commit(tagged.TAG_MESSAGE, bytes(message))


def leaf_hash(protocol_id: bytes, message: bytes) -> bytes:
    return tagged.commit(tagged.TAG_LEAF, check_protocol_id(protocol_id) + message_digest(message))


def entropy_leaf(entropy: int, slot: int) -> bytes:
    return tagged.commit(tagged.TAG_ENTROPY, struct.pack("<QI", entropy, slot))


def node_hash(left: bytes, right: bytes) -> bytes:
    return tagged.commit(tagged.TAG_NODE, left + right)


def root_commitment(depth: int, cofactor: int, merkle_root: bytes) -> bytes:
    return tagged.commit(tagged.TAG_ROOT, struct.pack("<BH", depth, cofactor) + merkle_root)


def placement(protocol_id: bytes, depth: int, cofactor: int) -> int:
    """Slot of a protocol in a tree of the given depth under ``cofactor``."""
    if depth == 0:
        return 0
    digest = tagged.commit(tagged.TAG_SLOT, check_protocol_id(protocol_id) + struct.pack("<H", cofactor))
    return int.from_bytes(digest, "big") % (1 << depth)


def min_depth(count: int, private: bool = True) -> int:
    """Smallest depth holding ``count`` leaves; one level more if private."""
    depth = max(0, (count - 1).bit_length())
    if private:
        depth += 1
    return depth


def find_placement(protocol_ids: Iterable[bytes], config: CommitConfig = DEFAULT_CONFIG) -> Tuple[int, int, Dict[bytes, int]]:
    """
    Search for the first depth and cofactor placing all protocols uniquely.

    Returns:
        (depth, cofactor, {protocol_id: slot})

    Raises:
        CollisionExhausted: If no placement exists within the configured bounds
    """
    ids = sorted(check_protocol_id(pid) for pid in protocol_ids)
    start = min_depth(len(ids), config.private)
    attempts = 0
    for depth in range(start, config.max_depth + 1):
        for cofactor in range(config.max_cofactor):
            attempts += 1
            slots = {}
            used = set()
            for pid in ids:
                slot = placement(pid, depth, cofactor)
                if slot in used:
                    break
                used.add(slot)
                slots[pid] = slot
            else:
                log.debug("placed %d protocols at depth %d cofactor %d after %d attempts",
                          len(ids), depth, cofactor, attempts)
                return depth, cofactor, slots
            if depth == 0:
                break
        log.debug("no collision-free placement at depth %d", depth)
    raise CollisionExhausted(len(ids), attempts, config.max_depth)


@dataclass(frozen=True)
class MerkleProof:
    """
    Inclusion proof of one protocol message in a commitment tree.

    ``path`` lists sibling digests from the leaf up to the root; its length
    equals ``depth``.
    """

    slot: int
    depth: int
    cofactor: int
    path: Tuple[bytes, ...]

    def __post_init__(self):
        object.__setattr__(self, "path", tuple(bytes(p) for p in self.path))
        if not 0 <= self.depth <= 32:
            raise MalformedInput(f"proof depth {self.depth} out of range")
        if not 0 <= self.cofactor <= 0xFFFF:
            raise MalformedInput(f"proof cofactor {self.cofactor} out of range")
        if not 0 <= self.slot < (1 << self.depth):
            raise MalformedInput(f"slot {self.slot} doesn't fit a tree of depth {self.depth}")
        if len(self.path) != self.depth:
            raise MalformedInput(f"proof path has {len(self.path)} nodes, depth is {self.depth}")
        if any(len(node) != 32 for node in self.path):
            raise MalformedInput("proof path nodes must be 32 bytes")

    def merkle_root(self, protocol_id: bytes, message: bytes) -> bytes:
        node = leaf_hash(protocol_id, message)
        index = self.slot
        for sibling in self.path:
            if index & 1:
                node = node_hash(sibling, node)
            else:
                node = node_hash(node, sibling)
            index >>= 1
        return node

    def commitment(self, protocol_id: bytes, message: bytes) -> bytes:
        """Recompute the tree commitment this proof leads to."""
        return root_commitment(self.depth, self.cofactor, self.merkle_root(protocol_id, message))

    def verify(self, commitment: bytes, protocol_id: bytes, message: bytes) -> bool:
        """
        Check inclusion of ``message`` under ``protocol_id`` in ``commitment``.

        Returns:
            True if valid, False otherwise
        """
        try:
            if placement(protocol_id, self.depth, self.cofactor) != self.slot:
                return False
            expected = self.commitment(protocol_id, message)
        except MalformedInput:
            return False
        if not isinstance(commitment, (bytes, bytearray)) or len(commitment) != 32:
            return False
        return hmac.compare_digest(expected, bytes(commitment))

    def write(self, writer: Writer) -> Writer:
        writer.u8(self.depth).u16(self.cofactor).u32(self.slot)
        for node in self.path:
            writer.raw(node)
        return writer

    @classmethod
    def read(cls, reader: Reader) -> "MerkleProof":
        depth = reader.u8()
        cofactor = reader.u16()
        slot = reader.u32()
        if depth > 32:
            raise DecodeError(f"proof depth {depth} out of range")
        path = tuple(reader.raw(32) for _ in range(depth))
        try:
            return cls(slot, depth, cofactor, path)
        except MalformedInput as exc:
            raise DecodeError(str(exc)) from exc

    def to_bytes(self) -> bytes:
        return self.write(Writer()).getvalue()

    @classmethod
    def from_bytes(cls, data: bytes) -> "MerkleProof":
        return decode_with(data, cls.read)

    def to_dict(self) -> dict:
        return {
            "slot": self.slot,
            "depth": self.depth,
            "cofactor": self.cofactor,
            "path": [node.hex() for node in self.path],
        }

    @classmethod
    def from_dict(cls, obj: dict) -> "MerkleProof":
        path = obj.get("path")
        if not isinstance(path, list):
            raise DecodeError("field 'path' must be a list")
        try:
            nodes = tuple(bytes.fromhex(node) for node in path)
            return cls(int_field(obj, "slot", 32), int_field(obj, "depth", 8),
                       int_field(obj, "cofactor", 16), nodes)
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"invalid proof: {exc}") from exc


def verify_inclusion(commitment: bytes, protocol_id: bytes, message: bytes, proof: MerkleProof) -> bool:
    return proof.verify(commitment, protocol_id, message)


class MultiCommitment:
    """
    Fully built commitment tree.

    Holds every message and the entropy seed, so it is private data of the
    party closing the seal. Share ``proof(protocol_id)`` with each protocol
    participant instead.
    """

    def __init__(self, messages: Dict[bytes, bytes], depth: int, cofactor: int,
                 slots: Dict[bytes, int], entropy: int):
        self._messages = messages
        self.depth = depth
        self.cofactor = cofactor
        self.entropy = entropy
        self._slots = slots
        self._layers = self._build_layers()

    @classmethod
    def build(cls, messages: Mapping[bytes, bytes], entropy: Optional[int] = None,
              config: Optional[CommitConfig] = None) -> "MultiCommitment":
        """
        Commit to a mapping of protocol id to message.

        Args:
            messages: {32-byte protocol id: message bytes}
            entropy: 64-bit seed for padding leaves (random if None)
            config: Placement bounds and privacy setting

        Raises:
            MalformedInput: If the mapping is empty or ids/messages are ill-formed
            CollisionExhausted: If no collision-free placement is found
        """
        config = config or DEFAULT_CONFIG
        if not messages:
            raise MalformedInput("no messages to commit")
        checked = {}
        for pid, message in messages.items():
            if not isinstance(message, (bytes, bytearray)):
                raise MalformedInput(f"message for protocol {bytes(pid).hex()} must be bytes")
            checked[check_protocol_id(pid)] = bytes(message)
        if entropy is None:
            entropy = secrets.randbits(64)
        elif not 0 <= entropy < (1 << 64):
            raise MalformedInput("entropy must be an unsigned 64-bit integer")
        depth, cofactor, slots = find_placement(checked, config)
        return cls(checked, depth, cofactor, slots, entropy)

    def _build_layers(self) -> List[List[bytes]]:
        by_slot = {slot: pid for pid, slot in self._slots.items()}
        leaves = []
        for slot in range(self.width):
            pid = by_slot.get(slot)
            if pid is None:
                leaves.append(entropy_leaf(self.entropy, slot))
            else:
                leaves.append(leaf_hash(pid, self._messages[pid]))
        layers = [leaves]
        while len(layers[-1]) > 1:
            prev = layers[-1]
            layers.append([node_hash(prev[i], prev[i + 1]) for i in range(0, len(prev), 2)])
        return layers

    @property
    def width(self) -> int:
        return 1 << self.depth

    @property
    def leaves(self) -> Tuple[bytes, ...]:
        return tuple(self._layers[0])

    @property
    def merkle_root(self) -> bytes:
        return self._layers[-1][0]

    @property
    def commitment(self) -> bytes:
        return root_commitment(self.depth, self.cofactor, self.merkle_root)

    def protocol_ids(self) -> List[bytes]:
        return sorted(self._messages)

    def message(self, protocol_id: bytes) -> bytes:
        try:
            return self._messages[protocol_id]
        except KeyError:
            raise UnknownProtocol(f"protocol {bytes(protocol_id).hex()} is not committed in this tree")

    def slot(self, protocol_id: bytes) -> int:
        try:
            return self._slots[protocol_id]
        except KeyError:
            raise UnknownProtocol(f"protocol {bytes(protocol_id).hex()} is not committed in this tree")

    def proof(self, protocol_id: bytes) -> MerkleProof:
        """Inclusion proof for ``protocol_id``, revealing no other message."""
        index = self.slot(protocol_id)
        slot = index
        path = []
        for layer in self._layers[:-1]:
            path.append(layer[index ^ 1])
            index >>= 1
        return MerkleProof(slot, self.depth, self.cofactor, tuple(path))

    def __len__(self):
        return len(self._messages)

    def __contains__(self, protocol_id):
        return protocol_id in self._messages

    def to_dict(self) -> dict:
        return {
            "depth": self.depth,
            "cofactor": self.cofactor,
            "entropy": f"{self.entropy:016x}",
            "messages": {pid.hex(): msg.hex() for pid, msg in sorted(self._messages.items())},
        }

    @classmethod
    def from_dict(cls, obj: dict, config: Optional[CommitConfig] = None) -> "MultiCommitment":
        """
        Rebuild a stored tree, checking its recorded depth and cofactor.

        Args:
            obj: Output of ``to_dict``
            config: Depth bound for the stored tree

        Raises:
            DecodeError: If the stored tree is malformed or deeper than
                ``config.max_depth``
        """
        config = config or DEFAULT_CONFIG
        depth = int_field(obj, "depth", 8)
        if depth > config.max_depth:
            raise DecodeError(f"stored depth {depth} exceeds the limit of {config.max_depth}")
        messages = obj.get("messages")
        if not isinstance(messages, dict) or not messages:
            raise DecodeError("field 'messages' must be a non-empty object")
        try:
            decoded = {bytes.fromhex(pid): bytes.fromhex(msg) for pid, msg in messages.items()}
        except (TypeError, ValueError) as exc:
            raise DecodeError(f"invalid message encoding: {exc}") from exc
        entropy = int.from_bytes(hex_field(obj, "entropy", 8), "big")
        cofactor = int_field(obj, "cofactor", 16)
        if len(decoded) > (1 << depth):
            raise DecodeError("stored depth can't hold all protocols")
        slots = {}
        for pid in decoded:
            slots[check_protocol_id(pid)] = placement(pid, depth, cofactor)
        if len(set(slots.values())) != len(slots):
            raise DecodeError("stored depth and cofactor place two protocols in one slot")
        return cls(decoded, depth, cofactor, slots, entropy)
