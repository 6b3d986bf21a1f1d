"""
Entitlement resolution: who the caller is allowed to be billed as.

Reads the caller's profile, maps its tier through the policy table and
applies the admission rule. The check is advisory; the credit RPC used by
the ledger is the authoritative floor-at-zero decrement.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from gumrukcum.auth.schemas import Identity, UserProfile
from gumrukcum.analysis.tiers import TierPolicy, policy_for
from gumrukcum.config import Settings
from gumrukcum.errors import InsufficientCredit, ProfileNotFound

logger = logging.getLogger(__name__)


class SupabaseProfileStore:
    """`profiles` table plus the `decrement_credit` RPC."""

    def __init__(self, sb):
        self.sb = sb

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        result = self.sb.table("profiles").select("id, email, credits, subscription_tier") \
            .eq("id", user_id).limit(1).execute()
        if not result.data:
            return None
        row = result.data[0]
        return UserProfile(
            id=row["id"],
            email=row.get("email"),
            credits=row.get("credits") or 0,
            subscription_tier=row.get("subscription_tier") or "free",
        )

    def decrement_credit(self, user_id: str) -> Optional[int]:
        """Returns the new balance, or None when the balance was already zero."""
        result = self.sb.rpc("decrement_credit", {"user_id": user_id}).execute()
        data = result.data
        if isinstance(data, list):
            data = data[0] if data else None
        if isinstance(data, dict):
            data = data.get("credits")
        return data


@dataclass(frozen=True)
class Entitlement:
    profile: UserProfile
    policy: TierPolicy

    @property
    def admitted(self) -> bool:
        return self.policy.unlimited_credits or self.profile.credits >= 1


def resolve_entitlement(store, identity: Identity, settings: Settings) -> Entitlement:
    profile = store.get_profile(identity.id)
    if profile is None:
        logger.error(f"No profile row for user {identity.id}")
        raise ProfileNotFound("User profile not found. Please contact support.")

    entitlement = Entitlement(profile=profile, policy=policy_for(profile.subscription_tier, settings))
    if not entitlement.admitted:
        logger.info(f"User {identity.id} rejected: tier={entitlement.policy.tier.value} credits={profile.credits}")
        raise InsufficientCredit(tier=entitlement.policy.tier.value, credits=profile.credits)
    return entitlement
