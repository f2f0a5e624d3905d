"""Tests for structured logging helpers."""

from datetime import timedelta

import pytest
import structlog
from structlog.testing import capture_logs

from coldreach_billing.logging import AUDIT_LOGGER_NAME, _service_info, log_audit_event
from coldreach_billing.settings import Environment, Settings


@pytest.mark.unit
class TestAuditEvents:
    """Test audit event emission."""

    def test_audit_event_fields(self):
        """Test audit event fields."""
        with capture_logs() as logs:
            log_audit_event(
                "credit.issued",
                "billing",
                subscription_id="sub_1",
                resource_type="credit",
                resource_id="cred_1",
                amount="10.00",
            )

        [entry] = logs
        assert entry["event"] == "credit.issued"
        assert entry["log_level"] == "info"
        assert entry["audit_category"] == "billing"
        assert entry["audit_subscription_id"] == "sub_1"
        assert entry["audit_resource_type"] == "credit"
        assert entry["audit_resource_id"] == "cred_1"
        assert entry["amount"] == "10.00"

    def test_orchestrator_mutations_are_audited(self, orchestrator):
        """Test orchestrator mutations emit audit events."""
        with capture_logs() as logs:
            orchestrator.request_pause("sub_test")

        events = [entry["event"] for entry in logs]
        assert "subscription.pause" in events
        assert "Subscription transitioned" in events

    def test_lifecycle_event_logged_under_its_own_key(self, orchestrator, clock):
        """Test transition logs carry the lifecycle event."""
        with capture_logs() as logs:
            orchestrator.record_payment_failure("sub_test")
            orchestrator.record_payment_success("sub_test")
            orchestrator.request_pause("sub_test", scheduled_date=clock() + timedelta(days=2))

        transitioned = [entry for entry in logs if entry["event"] == "Subscription transitioned"]
        assert [entry["lifecycle_event"] for entry in transitioned] == [
            "payment_failed",
            "payment_succeeded",
        ]
        [scheduled] = [entry for entry in logs if entry["event"] == "Subscription action scheduled"]
        assert scheduled["lifecycle_event"] == "pause"

    def test_audit_logger_name(self):
        """Test audit logger name."""
        assert AUDIT_LOGGER_NAME == "audit"
        assert structlog.get_logger(AUDIT_LOGGER_NAME) is not None


@pytest.mark.unit
class TestServiceInfoProcessor:
    """Test the service info processor."""

    def test_adds_service_and_environment(self):
        """Test service and environment are added."""
        processor = _service_info(Settings(app_name="billing-test", environment=Environment.TEST))

        event = processor(None, "info", {"event": "hello"})

        assert event == {"event": "hello", "service": "billing-test", "environment": "test"}

    def test_keeps_explicit_values(self):
        """Test explicit values are not overwritten."""
        processor = _service_info(Settings())

        event = processor(None, "info", {"event": "hello", "service": "other"})

        assert event["service"] == "other"
