"""Company API keys: ``bm_live_<hex>``, stored as prefix + argon2 hash."""

from __future__ import annotations

import secrets

import argon2

KEY_PREFIX = "bm_live_"
PREFIX_LENGTH = len(KEY_PREFIX) + 8  # "bm_live_" + 8 hex chars, used for lookup

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)


def generate_api_key() -> tuple[str, str, str]:
    """
    Generate a new API key.

    Returns:
        (full_key, prefix, argon2_hash). Only the prefix and hash are
        persisted; the full key is returned to the caller once.
    """
    full_key = f"{KEY_PREFIX}{secrets.token_hex(24)}"
    return full_key, key_prefix(full_key), _hasher.hash(full_key)


def key_prefix(full_key: str) -> str:
    return full_key[:PREFIX_LENGTH]


def looks_like_api_key(value: str) -> bool:
    return value.startswith(KEY_PREFIX) and len(value) > PREFIX_LENGTH


def verify_api_key(full_key: str, stored_hash: str) -> bool:
    try:
        return _hasher.verify(stored_hash, full_key)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False
