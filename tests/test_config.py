#!/usr/bin/env python3
"""
Configuration tests.
Run with: pytest tests/test_config.py -v
"""

import pytest

from bp_seals.closing import prepare_closing
from bp_seals.config import DEFAULT_CONFIG, CommitConfig
from bp_seals.errors import MalformedInput
from bp_seals.seal import CloseMethod

from conftest import protocol_id


def test_defaults():
    assert DEFAULT_CONFIG.private
    assert DEFAULT_CONFIG.close_method is CloseMethod.TAPRET_FIRST
    assert CommitConfig.from_env({}) == DEFAULT_CONFIG


def test_from_env():
    config = CommitConfig.from_env({
        "BP_SEALS_PRIVATE": "false",
        "BP_SEALS_MAX_DEPTH": "8",
        "BP_SEALS_MAX_COFACTOR": "64",
        "BP_SEALS_CLOSE_METHOD": "OPRET1ST",
    })
    assert config == CommitConfig(private=False, max_depth=8, max_cofactor=64,
                                  close_method=CloseMethod.OPRET_FIRST)


def test_from_process_environment(monkeypatch):
    monkeypatch.setenv("BP_SEALS_MAX_DEPTH", "12")
    assert CommitConfig.from_env().max_depth == 12


@pytest.mark.parametrize("env", [
    {"BP_SEALS_MAX_DEPTH": "deep"},
    {"BP_SEALS_MAX_DEPTH": "0"},
    {"BP_SEALS_MAX_DEPTH": "33"},
    {"BP_SEALS_MAX_COFACTOR": "70000"},
    {"BP_SEALS_CLOSE_METHOD": "p2pkh"},
])
def test_bad_env_values(env):
    with pytest.raises(MalformedInput):
        CommitConfig.from_env(env)


def test_configured_close_method_is_default():
    config = CommitConfig(close_method=CloseMethod.OPRET_FIRST)
    closing = prepare_closing({protocol_id("A"): b"x"}, config=config, entropy=1)
    assert closing.method is CloseMethod.OPRET_FIRST
    assert closing.output_script[:2] == b"\x6a\x20"
    assert closing.output_script[2:] == closing.commitment


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
