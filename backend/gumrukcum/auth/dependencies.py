from fastapi import Depends, Header
from typing import Optional
import logging
import httpx

from gumrukcum.auth.schemas import Identity
from gumrukcum.config import get_settings, Settings
from gumrukcum.errors import AuthServiceUnavailable, Unauthenticated

logger = logging.getLogger(__name__)

_http_client: Optional[httpx.AsyncClient] = None


def get_http_client(timeout: float = 5.0) -> httpx.AsyncClient:
    global _http_client
    if _http_client is None:
        _http_client = httpx.AsyncClient(timeout=timeout)
    return _http_client


async def close_http_client():
    global _http_client
    if _http_client is not None:
        await _http_client.aclose()
        _http_client = None


def _extract_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise Unauthenticated("Sign in required.")
    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise Unauthenticated("Sign in required.")
    return token


class SupabaseTokenVerifier:
    """Resolves a Supabase access token to the user it was issued for."""

    def __init__(self, settings: Settings, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings
        self._client = client

    @property
    def client(self) -> httpx.AsyncClient:
        return self._client or get_http_client(self.settings.auth_timeout_seconds)

    async def verify(self, authorization: Optional[str]) -> Identity:
        token = _extract_token(authorization)
        if not self.settings.supabase_url:
            logger.error("SUPABASE_URL not configured, cannot verify credentials")
            raise AuthServiceUnavailable("Authentication service is not configured.")

        try:
            resp = await self.client.get(
                f"{self.settings.supabase_url}/auth/v1/user",
                headers={
                    "Authorization": f"Bearer {token}",
                    "apikey": self.settings.supabase_service_key,
                },
            )
        except httpx.ConnectError:
            logger.error("Cannot connect to Supabase. Project may be paused or URL is wrong")
            raise AuthServiceUnavailable(
                "Authentication service is temporarily unavailable. Please try again later."
            )
        except httpx.TimeoutException:
            logger.error("Supabase auth request timed out")
            raise AuthServiceUnavailable("Authentication service timed out. Please try again.")

        if resp.status_code != 200:
            if resp.status_code != 401:
                logger.warning(f"Supabase auth returned {resp.status_code}: {resp.text[:200]}")
            raise Unauthenticated("User could not be verified.")

        user = resp.json()
        if not user.get("id"):
            raise Unauthenticated("User could not be verified.")
        return Identity(id=user["id"], email=user.get("email"))


def get_verifier(settings: Settings = Depends(get_settings)) -> SupabaseTokenVerifier:
    return SupabaseTokenVerifier(settings)


async def require_identity(
    authorization: Optional[str] = Header(None),
    verifier: SupabaseTokenVerifier = Depends(get_verifier),
) -> Identity:
    """Require authenticated user. Raises Unauthenticated (401) otherwise."""
    return await verifier.verify(authorization)
