#!/usr/bin/env python3
"""
Multi-protocol commitment tree tests.
Run with: pytest tests/test_mpc.py -v
"""

import json
import os

import pytest
from hypothesis import given, settings, strategies as st

from bp_seals.config import CommitConfig
from bp_seals.encoding import deserialize
from bp_seals.errors import CollisionExhausted, DecodeError, MalformedInput, UnknownProtocol
from bp_seals.mpc import (
    MerkleProof,
    MultiCommitment,
    entropy_leaf,
    find_placement,
    leaf_hash,
    min_depth,
    placement,
    root_commitment,
    verify_inclusion,
)

from conftest import protocol_id

protocol_ids = st.binary(min_size=32, max_size=32)
entries = st.dictionaries(protocol_ids, st.binary(max_size=64), min_size=1, max_size=12)


@given(messages=entries, entropy=st.integers(min_value=0, max_value=2**64 - 1))
@settings(max_examples=50)
def test_inclusion_roundtrip(messages, entropy):
    """Every committed message verifies against its own proof."""
    tree = MultiCommitment.build(messages, entropy=entropy)
    for pid, message in messages.items():
        proof = tree.proof(pid)
        assert verify_inclusion(tree.commitment, pid, message, proof)


@given(messages=entries, other=st.binary(max_size=64))
@settings(max_examples=50)
def test_foreign_message_rejected(messages, other):
    """A message that was not committed fails against any real proof."""
    tree = MultiCommitment.build(messages, entropy=1)
    pid = next(iter(messages))
    if other == messages[pid]:
        other = other + b"\x00"
    assert not verify_inclusion(tree.commitment, pid, other, tree.proof(pid))


@given(messages=entries)
@settings(max_examples=30)
def test_build_is_deterministic(messages):
    a = MultiCommitment.build(messages, entropy=42)
    b = MultiCommitment.build(dict(reversed(list(messages.items()))), entropy=42)
    assert a.commitment == b.commitment
    assert a.leaves == b.leaves


def test_single_entry_private_tree_is_padded():
    pid = protocol_id("single")
    tree = MultiCommitment.build({pid: b"msg"}, entropy=5)
    assert tree.depth == 1
    assert tree.width == 2
    assert entropy_leaf(5, 1 - tree.slot(pid)) in tree.leaves


def test_single_entry_depth_zero_without_privacy():
    pid = protocol_id("single")
    tree = MultiCommitment.build({pid: b"msg"}, entropy=5, config=CommitConfig(private=False))
    assert tree.depth == 0
    assert tree.leaves == (leaf_hash(pid, b"msg"),)
    assert tree.commitment == root_commitment(0, 0, leaf_hash(pid, b"msg"))
    proof = tree.proof(pid)
    assert proof.path == ()
    assert proof.verify(tree.commitment, pid, b"msg")


def test_two_entries_make_four_leaf_tree():
    messages = {protocol_id("A"): b"hello", protocol_id("B"): b"world"}
    tree = MultiCommitment.build(messages, entropy=0)
    assert tree.depth == 2
    assert len(tree.leaves) == 4
    real = {leaf_hash(pid, msg) for pid, msg in messages.items()}
    assert len(real & set(tree.leaves)) == 2


def test_min_depth():
    assert min_depth(1, private=False) == 0
    assert min_depth(1) == 1
    assert min_depth(2, private=False) == 1
    assert min_depth(3, private=False) == 2
    assert min_depth(4) == 3
    assert min_depth(5) == 4


def test_entropy_changes_commitment_not_placement():
    messages = {protocol_id("A"): b"a", protocol_id("B"): b"b"}
    one = MultiCommitment.build(messages, entropy=1)
    two = MultiCommitment.build(messages, entropy=2)
    assert one.commitment != two.commitment
    assert (one.depth, one.cofactor) == (two.depth, two.cofactor)
    assert one.slot(protocol_id("A")) == two.slot(protocol_id("A"))


def test_placement_is_collision_free():
    messages = {os.urandom(32): b"x" for _ in range(40)}
    tree = MultiCommitment.build(messages)
    slots = [tree.slot(pid) for pid in messages]
    assert len(set(slots)) == len(slots)
    for pid in messages:
        assert placement(pid, tree.depth, tree.cofactor) == tree.slot(pid)


def test_no_root_collisions_across_many_trees():
    """Distinct message sets of equal size give distinct commitments."""
    roots = set()
    for _ in range(200):
        messages = {os.urandom(32): os.urandom(16) for _ in range(3)}
        roots.add(MultiCommitment.build(messages).commitment)
    assert len(roots) == 200


def test_proof_for_other_protocol_fails():
    a, b = protocol_id("A"), protocol_id("B")
    tree = MultiCommitment.build({a: b"hello", b: b"world"}, entropy=9)
    assert not verify_inclusion(tree.commitment, b, b"world", tree.proof(a))
    assert not verify_inclusion(tree.commitment, a, b"world", tree.proof(a))


def test_proof_with_forged_slot_fails():
    a = protocol_id("A")
    tree = MultiCommitment.build({a: b"hello"}, entropy=9)
    proof = tree.proof(a)
    forged = MerkleProof(1 - proof.slot, proof.depth, proof.cofactor, proof.path)
    assert not forged.verify(tree.commitment, a, b"hello")


def test_proof_against_other_commitment_fails():
    a = protocol_id("A")
    tree = MultiCommitment.build({a: b"hello"}, entropy=1)
    other = MultiCommitment.build({a: b"hello"}, entropy=2)
    assert not verify_inclusion(other.commitment, a, b"hello", tree.proof(a))
    assert not verify_inclusion(b"\x00" * 31, a, b"hello", tree.proof(a))


def test_unknown_protocol_proof():
    tree = MultiCommitment.build({protocol_id("A"): b"hello"})
    with pytest.raises(UnknownProtocol):
        tree.proof(protocol_id("Z"))
    with pytest.raises(KeyError):
        tree.message(protocol_id("Z"))


def test_malformed_inputs():
    with pytest.raises(MalformedInput):
        MultiCommitment.build({})
    with pytest.raises(MalformedInput):
        MultiCommitment.build({b"short": b"msg"})
    with pytest.raises(MalformedInput):
        MultiCommitment.build({protocol_id("A"): "text"})
    with pytest.raises(MalformedInput):
        MultiCommitment.build({protocol_id("A"): b"msg"}, entropy=2**64)


def test_collision_exhausted():
    config = CommitConfig(private=False, max_depth=1, max_cofactor=1)
    messages = {protocol_id(str(i)): b"m" for i in range(3)}
    with pytest.raises(CollisionExhausted) as info:
        MultiCommitment.build(messages, config=config)
    assert info.value.entries == 3
    assert info.value.max_depth == 1


def test_find_placement_counts_attempts():
    ids = [protocol_id(str(i)) for i in range(8)]
    depth, cofactor, slots = find_placement(ids, CommitConfig())
    assert depth >= 4
    assert sorted(slots) == sorted(ids)


def test_merkle_proof_validation():
    with pytest.raises(MalformedInput):
        MerkleProof(0, 2, 0, (b"\x00" * 32,))
    with pytest.raises(MalformedInput):
        MerkleProof(4, 2, 0, (b"\x00" * 32, b"\x00" * 32))
    with pytest.raises(MalformedInput):
        MerkleProof(0, 1, 0x10000, (b"\x00" * 32,))


def test_merkle_proof_bytes_roundtrip():
    a = protocol_id("A")
    tree = MultiCommitment.build({a: b"hello", protocol_id("B"): b"world"}, entropy=3)
    proof = tree.proof(a)
    data = proof.to_bytes()
    assert len(data) == 1 + 2 + 4 + 32 * proof.depth
    assert MerkleProof.from_bytes(data) == proof
    assert MerkleProof.from_dict(proof.to_dict()) == proof


def test_merkle_proof_decode_errors():
    proof = MultiCommitment.build({protocol_id("A"): b"x"}, entropy=3).proof(protocol_id("A"))
    data = proof.to_bytes()
    with pytest.raises(DecodeError):
        MerkleProof.from_bytes(data[:-1])
    with pytest.raises(DecodeError):
        MerkleProof.from_bytes(data + b"\x00")
    with pytest.raises(DecodeError):
        MerkleProof.from_dict({"slot": 0, "depth": 1, "cofactor": 0, "path": ["zz"]})


def test_tree_dict_roundtrip():
    messages = {protocol_id("A"): b"hello", protocol_id("B"): b"world", protocol_id("C"): b"!"}
    tree = MultiCommitment.build(messages, entropy=77)
    restored = MultiCommitment.from_dict(tree.to_dict())
    assert restored.commitment == tree.commitment
    assert restored.protocol_ids() == tree.protocol_ids()


def test_tree_dict_rejects_colliding_placement():
    messages = {protocol_id(str(i)): b"m" for i in range(5)}
    obj = MultiCommitment.build(messages, entropy=1).to_dict()
    obj["depth"] = 0
    with pytest.raises(DecodeError):
        MultiCommitment.from_dict(obj)


def test_tree_dict_rejects_excessive_depth():
    messages = {protocol_id(str(i)): b"m" for i in range(3)}
    tree = MultiCommitment.build(messages, entropy=5)
    assert tree.depth >= 3
    obj = tree.to_dict()
    obj["depth"] = 30
    with pytest.raises(DecodeError):
        deserialize(json.dumps(obj).encode(), MultiCommitment)

    obj["depth"] = tree.depth
    with pytest.raises(DecodeError):
        MultiCommitment.from_dict(obj, CommitConfig(max_depth=tree.depth - 1))
    restored = MultiCommitment.from_dict(obj, CommitConfig(max_depth=tree.depth))
    assert restored.commitment == tree.commitment


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
