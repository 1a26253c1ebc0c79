#!/usr/bin/env python3
"""
Commitment configuration.

Defaults can be overridden from the environment:

    BP_SEALS_PRIVATE        "0"/"false" allows depth-0 single-leaf trees
    BP_SEALS_MAX_DEPTH      maximum commitment tree depth (1..32)
    BP_SEALS_MAX_COFACTOR   cofactor attempts per depth (1..65536)
    BP_SEALS_CLOSE_METHOD   "tapret1st" or "opret1st"
"""

import os
from dataclasses import dataclass

from .errors import MalformedInput
from .seal import CloseMethod

MAX_TREE_DEPTH = 32
MAX_COFACTOR = 1 << 16


@dataclass(frozen=True)
class CommitConfig:
    private: bool = True
    max_depth: int = 16
    max_cofactor: int = 512
    close_method: CloseMethod = CloseMethod.TAPRET_FIRST

    def __post_init__(self):
        if not 1 <= self.max_depth <= MAX_TREE_DEPTH:
            raise MalformedInput(f"max_depth must be within 1..{MAX_TREE_DEPTH}")
        if not 1 <= self.max_cofactor <= MAX_COFACTOR:
            raise MalformedInput(f"max_cofactor must be within 1..{MAX_COFACTOR}")

    @classmethod
    def from_env(cls, environ=None) -> "CommitConfig":
        env = os.environ if environ is None else environ
        defaults = cls()
        private = env.get("BP_SEALS_PRIVATE")
        method = env.get("BP_SEALS_CLOSE_METHOD")
        return cls(
            private=defaults.private if private is None else private.lower() not in ("0", "false", "no", ""),
            max_depth=_int_env(env, "BP_SEALS_MAX_DEPTH", defaults.max_depth),
            max_cofactor=_int_env(env, "BP_SEALS_MAX_COFACTOR", defaults.max_cofactor),
            close_method=defaults.close_method if method is None else CloseMethod.parse(method),
        )


def _int_env(env, name: str, default: int) -> int:
    value = env.get(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise MalformedInput(f"{name} must be an integer, got '{value}'")


DEFAULT_CONFIG = CommitConfig()
