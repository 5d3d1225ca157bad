"""Unit tests for logging service."""

import json

import structlog

from agent_portal.services.logging_service import configure_logging, get_logger, redact_sensitive


class TestRedactSensitive:
    """Tests for redact_sensitive processor."""

    def test_redacts_password(self):
        """Test password field is redacted."""
        event_dict = {"password": "hunter22", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password"] == "REDACTED"

    def test_redacts_password_hash(self):
        event_dict = {"password_hash": "$2b$12$abc", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["password_hash"] == "REDACTED"

    def test_redacts_authorization(self):
        """Test authorization field is redacted."""
        event_dict = {"authorization": "Bearer token123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["authorization"] == "REDACTED"

    def test_redacts_tokens_and_cookies(self):
        event_dict = {"auth_token": "eyJ...", "set_cookie": "session-id=abc", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["auth_token"] == "REDACTED"
        assert result["set_cookie"] == "REDACTED"

    def test_redacts_secret_in_key_name(self):
        """Test fields containing 'secret' are redacted."""
        event_dict = {"jwt_secret": "abc123", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["jwt_secret"] == "REDACTED"

    def test_preserves_non_sensitive_fields(self):
        """Test non-sensitive fields are preserved."""
        event_dict = {
            "correlation_id": "abc-123",
            "agent_id": "AG123456",
            "duration_ms": 100,
        }
        result = redact_sensitive(None, None, event_dict)
        assert result == {
            "correlation_id": "abc-123",
            "agent_id": "AG123456",
            "duration_ms": 100,
        }

    def test_case_insensitive_redaction(self):
        """Test redaction works regardless of case."""
        event_dict = {
            "Password": "secret2",
            "SECRET_KEY": "secret3",
            "Authorization": "Bearer x",
        }
        result = redact_sensitive(None, None, event_dict)
        assert set(result.values()) == {"REDACTED"}

    def test_redacts_session_id(self):
        event_dict = {"session_id": "sess-abc123", "agent_id": "AG123456", "event": "test"}
        result = redact_sensitive(None, None, event_dict)
        assert result["session_id"] == "REDACTED"
        assert result["agent_id"] == "AG123456"

    def test_redacts_inside_nested_details(self):
        event_dict = {
            "event": "audit_event_recorded",
            "details": {"session_id": "sess-abc123", "reason": "logout", "reset_token": "eyJ"},
        }
        result = redact_sensitive(None, None, event_dict)
        assert result["details"] == {
            "session_id": "REDACTED",
            "reason": "logout",
            "reset_token": "REDACTED",
        }

    def test_non_dict_values_untouched(self):
        event_dict = {"event": "test", "roles": ["agent", "admin"], "count": 3}
        result = redact_sensitive(None, None, dict(event_dict))
        assert result == event_dict


class TestConfigureLogging:
    """Tests for configure_logging function."""

    def test_get_logger_returns_bound_logger(self):
        """Test get_logger returns a usable structlog logger."""
        configure_logging("INFO")
        logger = get_logger("test_module")
        assert logger is not None
        logger.info("test_event", data="value")

    def test_get_logger_without_name(self):
        configure_logging("INFO")
        assert get_logger() is not None

    def test_output_is_json_and_redacted(self, capsys):
        configure_logging("INFO")
        structlog.contextvars.clear_contextvars()

        structlog.get_logger().info("login_attempt", agent_id="AG1", password="hunter22")

        line = capsys.readouterr().out.strip().splitlines()[-1]
        entry = json.loads(line)
        assert entry["event"] == "login_attempt"
        assert entry["agent_id"] == "AG1"
        assert entry["password"] == "REDACTED"
        assert "hunter22" not in line


class TestCorrelationIdBinding:
    """Tests for correlation ID context binding."""

    def test_correlation_id_binds_to_context(self):
        configure_logging("INFO")
        structlog.contextvars.clear_contextvars()

        structlog.contextvars.bind_contextvars(correlation_id="test-correlation-123")

        context = structlog.contextvars.get_contextvars()
        assert context.get("correlation_id") == "test-correlation-123"
        structlog.contextvars.clear_contextvars()

    def test_correlation_id_clears_correctly(self):
        configure_logging("INFO")

        structlog.contextvars.bind_contextvars(correlation_id="to-be-cleared")
        structlog.contextvars.clear_contextvars()

        assert "correlation_id" not in structlog.contextvars.get_contextvars()
