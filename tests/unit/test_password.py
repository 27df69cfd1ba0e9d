"""Tests for password hashing and length policy."""

import pytest

from tickquest.auth.password import (
    PasswordPolicyError,
    check_needs_rehash,
    hash_password,
    validate_password,
    verify_password,
)


class TestHashing:
    def test_hash_and_verify(self):
        hashed = hash_password("hunter2-hunter2")
        assert hashed.startswith("$argon2id$")
        assert verify_password("hunter2-hunter2", hashed)
        assert not verify_password("wrong", hashed)

    def test_garbage_hash_does_not_raise(self):
        assert verify_password("anything", "not-a-hash") is False

    def test_fresh_hash_needs_no_rehash(self):
        assert check_needs_rehash(hash_password("hunter2-hunter2")) is False


class TestValidatePassword:
    def test_accepts_in_range(self):
        validate_password("12345678")

    def test_too_short(self):
        with pytest.raises(PasswordPolicyError, match="at least 8"):
            validate_password("short")

    def test_too_long(self):
        with pytest.raises(PasswordPolicyError, match="exceed 16"):
            validate_password("x" * 17, max_length=16)

    def test_whitespace_only(self):
        with pytest.raises(PasswordPolicyError, match="empty"):
            validate_password("         ")
