import pytest

from bp_seals.ec import SECP256K1
from bp_seals.errors import ResolverFailure
from bp_seals.resolver import ChainResolver
from bp_seals.tx import OutPoint, Transaction, TxOut


def pubkey(secret: int) -> bytes:
    """Compressed public key for a small test secret."""
    return SECP256K1.encode_point(SECP256K1.point_mul(secret))


def protocol_id(label: str) -> bytes:
    return label.encode("utf-8").ljust(32, b"\x00")


class FailingResolver(ChainResolver):
    """Resolver whose backend is unreachable."""

    def __init__(self):
        self.calls = 0

    def output(self, outpoint):
        self.calls += 1
        raise ResolverFailure("connection refused", outpoint, "output")

    def spends(self, outpoint):
        self.calls += 1
        raise ResolverFailure("connection refused", outpoint, "spends")


@pytest.fixture
def internal_key():
    return pubkey(0x1234)


@pytest.fixture
def funding_tx(internal_key):
    """Transaction creating the output used as a seal."""
    return Transaction.spending(
        [OutPoint(b"\x11" * 32, 0)],
        [TxOut(100_000, b"\x51\x20" + internal_key[1:]), TxOut(5_000, b"\x00\x14" + b"\x22" * 20)],
    )
