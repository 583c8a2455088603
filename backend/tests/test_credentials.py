"""
Test Suite: Credential Hasher
"""
import pytest
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.services.credentials import DIGEST_HEX_LENGTH, hash_secret, verify_secret


class TestHashSecret:
    def test_known_digest(self):
        assert hash_secret("abc") == "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"

    def test_deterministic(self):
        assert hash_secret("hunter22") == hash_secret("hunter22")

    def test_fixed_length_lowercase_hex(self):
        digest = hash_secret("any secret at all")
        assert len(digest) == DIGEST_HEX_LENGTH
        assert digest == digest.lower()
        int(digest, 16)

    def test_empty_secret_is_hashable(self):
        assert hash_secret("") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    def test_unicode_secret(self):
        assert len(hash_secret("pässwörd✓")) == DIGEST_HEX_LENGTH

    def test_different_secrets_differ(self):
        assert hash_secret("user123") != hash_secret("user124")


class TestVerifySecret:
    def test_matching_secret(self):
        assert verify_secret("admin123", hash_secret("admin123"))

    def test_wrong_secret(self):
        assert not verify_secret("admin124", hash_secret("admin123"))

    @pytest.mark.parametrize("digest", ["", None])
    def test_missing_digest(self, digest):
        assert not verify_secret("admin123", digest)
