"""Tests for company API key generation and verification."""

from behaviormarket.auth.api_keys import (
    KEY_PREFIX,
    PREFIX_LENGTH,
    generate_api_key,
    key_prefix,
    looks_like_api_key,
    verify_api_key,
)


class TestApiKeys:
    def test_generate(self):
        full_key, prefix, key_hash = generate_api_key()
        assert full_key.startswith(KEY_PREFIX)
        assert prefix == full_key[:PREFIX_LENGTH]
        assert len(prefix) == 16
        assert full_key not in key_hash

    def test_keys_are_unique(self):
        assert generate_api_key()[0] != generate_api_key()[0]

    def test_verify(self):
        full_key, _, key_hash = generate_api_key()
        assert verify_api_key(full_key, key_hash) is True
        assert verify_api_key(full_key + "0", key_hash) is False
        assert verify_api_key(full_key, "garbage") is False

    def test_shape_check(self):
        full_key, _, _ = generate_api_key()
        assert looks_like_api_key(full_key)
        assert not looks_like_api_key("Bearer abc")
        assert not looks_like_api_key(KEY_PREFIX)
        assert key_prefix(full_key) == full_key[:16]
