from fastapi import APIRouter, Depends
from gumrukcum.auth.dependencies import require_identity
from gumrukcum.auth.schemas import Identity, ProfileView
from gumrukcum.analysis.entitlements import SupabaseProfileStore
from gumrukcum.analysis.tiers import policy_for
from gumrukcum.config import get_settings, get_supabase_client, Settings
from gumrukcum.errors import ProfileNotFound, ServiceNotConfigured

router = APIRouter()


def get_profile_store() -> SupabaseProfileStore:
    sb = get_supabase_client()
    if not sb:
        raise ServiceNotConfigured("Database not configured.")
    return SupabaseProfileStore(sb)


@router.get("/me", response_model=ProfileView)
async def get_me(
    identity: Identity = Depends(require_identity),
    profiles: SupabaseProfileStore = Depends(get_profile_store),
    settings: Settings = Depends(get_settings),
):
    """Current user's tier and remaining credits."""
    profile = profiles.get_profile(identity.id)
    if profile is None:
        raise ProfileNotFound("User profile not found. Please contact support.")

    policy = policy_for(profile.subscription_tier, settings)
    return ProfileView(
        id=profile.id,
        email=profile.email or identity.email,
        credits=profile.credits,
        tier=policy.tier.value,
        unlimited=policy.unlimited_credits,
    )
