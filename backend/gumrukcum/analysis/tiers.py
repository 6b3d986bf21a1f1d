"""
Subscription tier policy.

One table decides, per tier, whether credits are charged, which provider
tools are enabled, whether market data is requested, and which model
variant is used. Model names come from Settings so they can be swapped
through the environment.
"""

import logging
from dataclasses import dataclass
from enum import Enum

from gumrukcum.config import Settings

logger = logging.getLogger(__name__)

WEB_SEARCH = "web_search"


class SubscriptionTier(str, Enum):
    FREE = "free"
    ENTREPRENEUR = "entrepreneur"
    PROFESSIONAL = "professional"
    CORPORATE = "corporate"


@dataclass(frozen=True)
class TierPolicy:
    tier: SubscriptionTier
    unlimited_credits: bool
    tools: frozenset
    market_data: bool
    model_variant: str


# tier -> (unlimited_credits, tools, market_data, Settings attribute for the model)
_TIER_TABLE = {
    SubscriptionTier.FREE: (False, frozenset(), False, "model_free"),
    SubscriptionTier.ENTREPRENEUR: (False, frozenset(), False, "model_entrepreneur"),
    SubscriptionTier.PROFESSIONAL: (True, frozenset({WEB_SEARCH}), True, "model_professional"),
    SubscriptionTier.CORPORATE: (True, frozenset({WEB_SEARCH}), True, "model_corporate"),
}


def parse_tier(value) -> SubscriptionTier:
    """Unknown or missing tiers fall back to free."""
    try:
        return SubscriptionTier(value)
    except ValueError:
        logger.warning(f"Unknown subscription tier {value!r}, treating as free")
        return SubscriptionTier.FREE


def policy_for(tier, settings: Settings) -> TierPolicy:
    tier = parse_tier(tier)
    unlimited, tools, market_data, model_setting = _TIER_TABLE[tier]
    return TierPolicy(
        tier=tier,
        unlimited_credits=unlimited,
        tools=tools,
        market_data=market_data,
        model_variant=getattr(settings, model_setting),
    )
