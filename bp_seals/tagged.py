#!/usr/bin/env python3
"""
Tagged commitment engine.

Tagged hashes follow BIP-340: SHA256(SHA256(tag) || SHA256(tag) || msg).
The tag is baked into the pre-image, so digests made for different purposes
can never be confused even if their messages coincide.
"""

import hashlib
import hmac
from functools import lru_cache
from typing import Union

DIGEST_SIZE = 32

# Domain tags
TAG_MESSAGE = "urn:lnpbp:lnpbp4:message"
TAG_LEAF = "urn:lnpbp:lnpbp4:leaf"
TAG_ENTROPY = "urn:lnpbp:lnpbp4:entropy"
TAG_NODE = "urn:lnpbp:lnpbp4:node"
TAG_ROOT = "urn:lnpbp:lnpbp4:root"
TAG_SLOT = "urn:lnpbp:lnpbp4:slot"
TAG_TWEAK = "urn:lnpbp:dbc:p2c"
TAG_TAPRET = "urn:lnpbp:dbc:tapret"
TAG_SEAL = "urn:lnpbp:seals:txout"

Tag = Union[str, bytes]


@lru_cache(maxsize=64)
def _tag_prefix(tag: bytes) -> bytes:
    tag_hash = hashlib.sha256(tag).digest()
    return tag_hash + tag_hash


def tagged_hash(tag: Tag, message: bytes) -> bytes:
    """Compute BIP-340 style tagged SHA256 of ``message``."""
    if isinstance(tag, str):
        tag = tag.encode("utf-8")
    return hashlib.sha256(_tag_prefix(bytes(tag)) + bytes(message)).digest()


def commit(tag: Tag, message: bytes) -> bytes:
    """
    Commit to a message under a domain tag.

    Args:
        tag: Domain separation tag
        message: Message bytes

    Returns:
        32-byte digest; identical (tag, message) always gives the same digest
    """
    return tagged_hash(tag, message)


def verify(tag: Tag, message: bytes, digest: bytes) -> bool:
    """
    Check that ``digest`` commits to ``message`` under ``tag``.

    Returns:
        True if valid, False otherwise (including malformed digests)
    """
    if not isinstance(digest, (bytes, bytearray)) or len(digest) != DIGEST_SIZE:
        return False
    return hmac.compare_digest(commit(tag, message), bytes(digest))


def sha256(data: bytes) -> bytes:
    return hashlib.sha256(data).digest()


def hash256(data: bytes) -> bytes:
    """Double SHA256, as used for bitcoin transaction ids."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()
