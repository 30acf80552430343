"""Tests for entitlement computation and the capability gate."""
import pytest

from conductor.errors import CapabilityError, describe_error
from conductor.services.entitlements import (
    Capability,
    EntitlementGate,
    RepositorySubscriptionSource,
    StaticSubscriptionSource,
    compute_entitlements,
)

from conftest import make_plan


class TestComputeEntitlements:
    """Test the pure entitlement rules."""

    def test_free_user_without_trips(self):
        """Test a new free user may create exactly one trip."""
        status = compute_entitlements("free", 0)

        assert status.is_premium == False
        assert status.can_create_trip == True
        assert status.can_use_ai_edit == False
        assert status.trip_limit == 1
        assert status.reason == "premium_only"

    def test_free_user_at_limit(self):
        """Test the free trip limit."""
        status = compute_entitlements("free", 1)

        assert status.can_create_trip == False
        assert status.reason == "limit_reached"
        assert status.denial_reason(Capability.CREATE_TRIP) == "limit_reached"
        assert status.denial_reason(Capability.AI_EDIT) == "premium_only"

    def test_premium_statuses(self):
        """Test active and trialing subscriptions unlock everything."""
        for subscription in ("active", "trialing"):
            status = compute_entitlements(subscription, 10)

            assert status.is_premium
            assert status.can_create_trip
            assert status.can_use_ai_edit
            assert status.can_use_voice_guide
            assert status.can_copy_plan
            assert status.trip_limit is None
            assert status.reason is None

    def test_lapsed_subscriptions_are_free(self):
        """Test canceled and past_due fall back to free rules."""
        for subscription in ("canceled", "past_due", None):
            status = compute_entitlements(subscription, 1)

            assert status.is_premium == False
            assert status.can_create_trip == False

    def test_custom_limit(self):
        """Test a configured free trip limit."""
        assert compute_entitlements("free", 2, free_trip_limit=3).can_create_trip
        assert not compute_entitlements("free", 3, free_trip_limit=3).can_create_trip


class TestEntitlementGate:
    """Test the gate in front of capabilities."""

    def test_require_allowed(self):
        """Test an allowed capability returns the status."""
        gate = EntitlementGate(StaticSubscriptionSource("active", 0), free_trip_limit=1)

        status = gate.require(Capability.AI_EDIT)

        assert status.is_premium

    def test_require_denied(self):
        """Test a denied capability raises with its reason."""
        gate = EntitlementGate(StaticSubscriptionSource("free", 0), free_trip_limit=1)

        with pytest.raises(CapabilityError) as exc_info:
            gate.require(Capability.VOICE_GUIDE)

        assert exc_info.value.capability == "voice_guide"
        assert exc_info.value.reason == "premium_only"
        assert describe_error(exc_info.value)["title"] == "Premium required"

    def test_subscription_change_applies_immediately(self):
        """Test the gate re-reads its source on every check."""
        source = StaticSubscriptionSource("free", 1)
        gate = EntitlementGate(source, free_trip_limit=1)

        with pytest.raises(CapabilityError):
            gate.require(Capability.CREATE_TRIP)

        source.status = "active"
        gate.require(Capability.CREATE_TRIP)

    def test_trip_count_from_repository(self, repository):
        """Test saved plans count towards the free limit."""
        gate = EntitlementGate(RepositorySubscriptionSource(repository, status="free"), free_trip_limit=1)
        assert gate.status().can_create_trip

        repository.save_plan(make_plan())

        status = gate.status()
        assert status.current_trip_count == 1
        assert status.can_create_trip == False
