"""
tests/test_passwords.py -- Tests for auth/passwords.py.

Covers:
  - hash() output is salted bcrypt at the configured cost
  - verify() accepts the right password and rejects others
  - Corrupt stored hashes verify as False instead of raising
  - The timing dummy hash exists from construction, at the same cost
"""

from auth.passwords import PasswordHasher


def test_hash_is_salted_bcrypt():
    hasher = PasswordHasher(rounds=4)
    first = hasher.hash("correct-horse")
    second = hasher.hash("correct-horse")
    assert first != second
    assert first.startswith("$2b$04$")


def test_verify():
    hasher = PasswordHasher(rounds=4)
    hashed = hasher.hash("correct-horse")
    assert hasher.verify(hashed, "correct-horse")
    assert not hasher.verify(hashed, "battery-staple")


def test_corrupt_hash_is_a_mismatch():
    assert not PasswordHasher(rounds=4).verify("not-a-bcrypt-hash", "correct-horse")


def test_dummy_hash_ready_before_first_login():
    hasher = PasswordHasher(rounds=4)
    dummy = hasher._dummy_hash
    assert dummy.startswith(b"$2b$04$")
    hasher.equalize("anything")
    assert hasher._dummy_hash is dummy
