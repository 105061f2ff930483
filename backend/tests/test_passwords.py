"""Tests for local-password hashing."""

from backlog_auth.services.passwords import hash_password, verify_password


class TestPasswords:
    def test_provisioned_hash_verifies(self):
        stored = hash_password("correct horse battery staple")
        assert stored.startswith("$argon2id$")
        assert verify_password("correct horse battery staple", stored) is True

    def test_wrong_password(self):
        stored = hash_password("correct horse battery staple")
        assert verify_password("wrong", stored) is False

    def test_missing_hash_never_verifies(self):
        assert verify_password("dummy-password-for-timing", None) is False

    def test_malformed_hash(self):
        assert verify_password("anything", "not-a-hash") is False
