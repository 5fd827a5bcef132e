"""Tests for skillmatch/exceptions.py — suggestion field."""

from skillmatch.exceptions import (
    AssignmentUnavailable,
    AuditWriteFailed,
    ConfigError,
    EmptyPoolError,
    ItemNotFound,
    NoDevelopersAvailable,
    StoreError,
    ValidationError,
)


class TestExceptionSuggestions:
    def test_config_error_with_suggestion(self):
        """Suggestion text appears in str() output."""
        err = ConfigError("bad config", suggestion="Fix it.")
        assert "Try: Fix it." in str(err)
        assert err.suggestion == "Fix it."

    def test_no_suggestion_no_try(self):
        assert "Try:" not in str(ConfigError("bad"))
        assert "Try:" not in str(ValidationError("bad"))
        assert "Try:" not in str(NoDevelopersAvailable("T-1"))

    def test_item_not_found_has_default_suggestion(self):
        err = ItemNotFound("T-9")
        assert "T-9" in str(err)
        assert "skillmatch import" in str(err)
        assert err.work_item_id == "T-9"

    def test_empty_pool(self):
        err = EmptyPoolError("circle-2", "acme")
        assert "circle-2" in str(err)
        assert "acme" in str(err)
        assert "Try:" in str(err)

    def test_store_error_fields(self):
        err = StoreError("get_item", "connection refused")
        assert err.operation == "get_item"
        assert "connection refused" in str(err)

    def test_assignment_unavailable_is_retryable_hint(self):
        err = AssignmentUnavailable("get_profiles", "timed out")
        assert "get_profiles" in str(err)
        assert "safe to retry" in str(err)

    def test_audit_write_failed_carries_decision(self):
        sentinel = object()
        err = AuditWriteFailed("T-1", "disk full", decision=sentinel)
        assert err.decision is sentinel
        assert "T-1" in str(err)
        assert "Try:" in str(err)
