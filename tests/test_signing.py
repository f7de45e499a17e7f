"""
Unit tests for executor/signing.py -- signing capability from PRIVATE_KEY.
"""

import pytest

from config import Config, ConfigurationError
from executor.signing import build_signer

TEST_KEY = "4c" * 32


class TestBuildSigner:
    def test_missing_key(self):
        with pytest.raises(ConfigurationError):
            build_signer(Config(private_key=""))

    def test_malformed_key(self):
        with pytest.raises(ConfigurationError) as exc:
            build_signer(Config(private_key="0xnot-a-key"))
        assert "not-a-key" not in str(exc.value)

    def test_prefix_optional(self):
        a = build_signer(Config(private_key=TEST_KEY))
        b = build_signer(Config(private_key="0x" + TEST_KEY))
        assert a.address == b.address
        assert a.address.startswith("0x")
