"""
Entitlement Gate - Feature permissions derived from subscription and usage.

Nothing here is cached: every query re-reads the subscription source, so a
subscription change mid-session takes effect on the next check.
"""
import logging
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from ..config import settings
from ..errors import CapabilityError

logger = logging.getLogger(__name__)

FREE_TRIP_LIMIT = 1
PREMIUM_STATUSES = {"active", "trialing"}


class SubscriptionStatus(str, Enum):
    FREE = "free"
    ACTIVE = "active"
    TRIALING = "trialing"
    CANCELED = "canceled"
    PAST_DUE = "past_due"


class Capability(str, Enum):
    CREATE_TRIP = "create_trip"
    AI_EDIT = "ai_edit"
    VOICE_GUIDE = "voice_guide"
    COPY_PLAN = "copy_plan"


class EntitlementStatus(BaseModel):
    is_premium: bool
    can_create_trip: bool
    can_use_ai_edit: bool
    can_use_voice_guide: bool
    can_copy_plan: bool
    trip_limit: Optional[int]  # None means unlimited
    current_trip_count: int
    reason: Optional[str] = None

    def allows(self, capability: Capability) -> bool:
        return {
            Capability.CREATE_TRIP: self.can_create_trip,
            Capability.AI_EDIT: self.can_use_ai_edit,
            Capability.VOICE_GUIDE: self.can_use_voice_guide,
            Capability.COPY_PLAN: self.can_copy_plan,
        }[capability]

    def denial_reason(self, capability: Capability) -> Optional[str]:
        """Why a capability is blocked, or None when allowed."""
        if self.allows(capability):
            return None
        if capability == Capability.CREATE_TRIP:
            return "limit_reached"
        return "premium_only"


def compute_entitlements(
    subscription_status: Optional[str],
    trip_count: int,
    free_trip_limit: int = FREE_TRIP_LIMIT,
) -> EntitlementStatus:
    """Derive entitlements from subscription status and trip count."""
    status = subscription_status.value if isinstance(subscription_status, Enum) else subscription_status
    is_premium = status in PREMIUM_STATUSES
    can_create_trip = is_premium or trip_count < free_trip_limit

    if not can_create_trip:
        reason = "limit_reached"
    elif not is_premium:
        reason = "premium_only"
    else:
        reason = None

    return EntitlementStatus(
        is_premium=is_premium,
        can_create_trip=can_create_trip,
        can_use_ai_edit=is_premium,
        can_use_voice_guide=is_premium,
        can_copy_plan=is_premium,
        trip_limit=None if is_premium else free_trip_limit,
        current_trip_count=trip_count,
        reason=reason,
    )


class StaticSubscriptionSource:
    """Subscription source with fixed values, for tests and demos."""

    def __init__(self, status: str = SubscriptionStatus.FREE.value, trip_count: int = 0):
        self.status = status
        self.trip_count = trip_count

    def get_subscription_status(self) -> str:
        return self.status

    def get_trip_count(self) -> int:
        return self.trip_count


class RepositorySubscriptionSource:
    """Counts the trips saved in a plan repository."""

    def __init__(self, repository, status: Optional[str] = None):
        self.repository = repository
        self.status = status

    def get_subscription_status(self) -> str:
        if self.status is not None:
            return self.status
        return settings.subscription_status

    def get_trip_count(self) -> int:
        return self.repository.count_plans()


class EntitlementGate:
    """Answers capability questions from the current subscription state."""

    def __init__(self, subscription_source, free_trip_limit: Optional[int] = None):
        self.subscription = subscription_source
        self.free_trip_limit = free_trip_limit if free_trip_limit is not None else settings.free_trip_limit

    def status(self) -> EntitlementStatus:
        return compute_entitlements(
            self.subscription.get_subscription_status(),
            self.subscription.get_trip_count(),
            self.free_trip_limit,
        )

    def require(self, capability: Capability) -> EntitlementStatus:
        """Return the status, or raise CapabilityError if the capability is denied."""
        status = self.status()
        reason = status.denial_reason(capability)
        if reason is not None:
            logger.info(f"Capability {capability.value} denied: {reason}")
            raise CapabilityError(capability.value, reason)
        return status
