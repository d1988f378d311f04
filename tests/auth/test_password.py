"""Tests for password hashing and strength rules."""

import pytest

from behaviormarket.auth.password import (
    PasswordStrengthError,
    check_needs_rehash,
    hash_password,
    validate_password_strength,
    verify_password,
)


class TestPasswordHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("Password123")
        assert hashed.startswith("$argon2id$")
        assert verify_password("Password123", hashed) is True

    def test_wrong_password_rejected(self):
        hashed = hash_password("Password123")
        assert verify_password("Password124", hashed) is False

    def test_malformed_hash_rejected(self):
        assert verify_password("Password123", "not-a-hash") is False

    def test_fresh_hash_does_not_need_rehash(self):
        assert check_needs_rehash(hash_password("Password123")) is False


class TestPasswordStrength:
    def test_strong_password_accepted(self):
        validate_password_strength("Password123")

    @pytest.mark.parametrize(
        ("password", "message"),
        [
            ("", "cannot be empty"),
            ("   ", "cannot be empty"),
            ("Pass12", "at least 8 characters"),
            ("password123", "uppercase"),
            ("PASSWORD123", "lowercase"),
            ("PasswordABC", "digit"),
            ("Aa1" * 50, "must not exceed"),
        ],
    )
    def test_weak_passwords_rejected(self, password, message):
        with pytest.raises(PasswordStrengthError, match=message):
            validate_password_strength(password)

    def test_strength_error_is_value_error(self):
        assert issubclass(PasswordStrengthError, ValueError)
