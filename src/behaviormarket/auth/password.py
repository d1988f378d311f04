"""Password hashing (argon2id) and strength rules."""

from __future__ import annotations

import argon2

from behaviormarket.config import get_settings

_hasher = argon2.PasswordHasher(
    time_cost=2,
    memory_cost=65536,  # 64 MB
    parallelism=1,
    hash_len=32,
    salt_len=16,
    type=argon2.Type.ID,
)


class PasswordStrengthError(ValueError):
    """Raised when a password does not meet strength requirements."""


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Return True when the password matches. Never raises on mismatch or a malformed hash."""
    try:
        return _hasher.verify(password_hash, password)
    except (argon2.exceptions.VerifyMismatchError, argon2.exceptions.InvalidHashError):
        return False


def check_needs_rehash(password_hash: str) -> bool:
    return _hasher.check_needs_rehash(password_hash)


def validate_password_strength(password: str) -> None:
    """
    Enforce length bounds from settings plus upper, lower and digit classes.

    Raises PasswordStrengthError with the first rule that fails.
    """
    settings = get_settings()
    if not password or not password.strip():
        msg = "Password cannot be empty"
        raise PasswordStrengthError(msg)
    if len(password) < settings.password_min_length:
        msg = f"Password must be at least {settings.password_min_length} characters"
        raise PasswordStrengthError(msg)
    if len(password) > settings.password_max_length:
        msg = f"Password must not exceed {settings.password_max_length} characters"
        raise PasswordStrengthError(msg)

    rules = (
        (str.isupper, "one uppercase letter"),
        (str.islower, "one lowercase letter"),
        (str.isdigit, "one digit"),
    )
    for check, label in rules:
        if not any(check(c) for c in password):
            msg = f"Password must contain at least {label}"
            raise PasswordStrengthError(msg)
