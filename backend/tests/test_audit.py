"""Tests for security audit logging and metadata redaction."""

import logging

import pytest

from backlog_auth.services.audit import (
    SecurityAuditLogger,
    SecurityEvent,
    Severity,
    mask_email,
    redact_metadata,
)


class TestMaskEmail:
    def test_keeps_prefix_and_domain(self):
        assert mask_email("player@example.com") == "pl***@example.com"

    def test_short_local_part(self):
        assert mask_email("a@example.com") == "a***@example.com"

    def test_not_an_email(self):
        assert mask_email("nonsense") == "[REDACTED]"


class TestRedactMetadata:
    def test_secrets_removed(self):
        redacted = redact_metadata(
            {
                "password": "hunter2",
                "refresh_token": "abc",
                "accessToken": "def",
                "client-secret": "ghi",
                "Authorization": "Bearer x",
            }
        )
        assert set(redacted.values()) == {"[REDACTED]"}

    def test_user_ids_replaced(self):
        redacted = redact_metadata({"user_id": 7, "targetUserId": 8, "id": 9, "owner_id": None})
        assert redacted == {
            "user_id": "[USER_ID_REDACTED]",
            "targetUserId": "[USER_ID_REDACTED]",
            "id": "[ID_REDACTED]",
            "owner_id": None,
        }

    def test_emails_masked(self):
        redacted = redact_metadata({"email": "player@example.com", "actor_email": "ops@example.com"})
        assert redacted == {"email": "pl***@example.com", "actor_email": "op***@example.com"}

    def test_nested_dicts(self):
        redacted = redact_metadata({"details": {"token": "abc", "count": 3}})
        assert redacted == {"details": {"token": "[REDACTED]", "count": 3}}

    def test_plain_values_kept(self):
        assert redact_metadata({"reason": "logout", "failed_attempts": 5}) == {
            "reason": "logout",
            "failed_attempts": 5,
        }


class TestSecurityAuditLogger:
    @pytest.fixture
    def audit(self):
        return SecurityAuditLogger(environment="test")

    @pytest.mark.parametrize(
        "severity,level",
        [
            (Severity.LOW, logging.INFO),
            (Severity.MEDIUM, logging.WARNING),
            (Severity.HIGH, logging.ERROR),
            (Severity.CRITICAL, logging.CRITICAL),
        ],
    )
    def test_severity_maps_to_level(self, audit, caplog, severity, level):
        with caplog.at_level(logging.DEBUG, logger="backlog.security"):
            audit.log_event(SecurityEvent.ADMIN_ACTION, severity, "something")
        assert caplog.records[-1].levelno == level

    def test_entry_structure(self, audit, caplog):
        with caplog.at_level(logging.INFO, logger="backlog.security"):
            entry = audit.log_auth_success(42, provider="local")

        assert entry["event"] == "auth_success"
        assert entry["severity"] == "low"
        assert entry["environment"] == "test"
        assert entry["metadata"] == {"user_id": "[USER_ID_REDACTED]", "provider": "local"}
        assert entry["request"] is None
        assert caplog.records[-1].security_event == entry
        assert "[SECURITY] LOW - User authentication successful" in caplog.text

    def test_account_locked_is_high(self, audit):
        entry = audit.log_account_locked(5, email="player@example.com")
        assert entry["event"] == "account_locked"
        assert entry["severity"] == "high"
        assert entry["metadata"]["email"] == "pl***@example.com"

    def test_token_revoked(self, audit):
        entry = audit.log_token_revoked("refresh", "User logout", user_id=3)
        assert entry["message"] == "Token revoked: refresh"
        assert entry["metadata"]["reason"] == "User logout"
        assert entry["metadata"]["user_id"] == "[USER_ID_REDACTED]"

    def test_secrets_never_logged(self, audit, caplog):
        with caplog.at_level(logging.INFO, logger="backlog.security"):
            audit.log_auth_failure("bad", password="hunter2", token="eyJsecret")
        record = caplog.records[-1]
        assert "hunter2" not in str(record.security_event)
        assert "eyJsecret" not in str(record.security_event)
