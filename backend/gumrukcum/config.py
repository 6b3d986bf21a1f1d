from pydantic_settings import BaseSettings
from functools import lru_cache
import logging

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    # API Keys
    openai_api_key: str = ""
    supabase_url: str = ""
    supabase_service_key: str = ""

    # Model variant per subscription tier
    model_free: str = "gpt-4.1-mini"
    model_entrepreneur: str = "gpt-4.1-mini"
    model_professional: str = "gpt-4.1"
    model_corporate: str = "gpt-4.1"

    # Generation
    generation_timeout_seconds: float = 60.0
    generation_temperature: float = 0.3

    # Input limits
    max_prompt_chars: int = 4000
    max_image_bytes: int = 10 * 1024 * 1024

    # App
    auth_timeout_seconds: float = 5.0
    analyze_rate_limit: str = "10/minute"
    frontend_url: str = "http://localhost:5173"
    debug: bool = False

    class Config:
        env_file = ".env"


@lru_cache
def get_settings() -> Settings:
    return Settings()


_supabase_client = None
_supabase_attempted = False


def get_supabase_client():
    """Get Supabase admin client. Returns None if not configured or keys are invalid."""
    global _supabase_client, _supabase_attempted

    if _supabase_attempted:
        return _supabase_client

    _supabase_attempted = True
    s = get_settings()

    if not s.supabase_url or not s.supabase_service_key:
        logger.warning("Supabase URL or service key not configured. Profiles and history disabled.")
        return None

    try:
        from supabase import create_client
        _supabase_client = create_client(s.supabase_url, s.supabase_service_key)
        logger.info("Supabase client initialized successfully.")
        return _supabase_client
    except Exception as e:
        logger.error(
            f"Failed to initialize Supabase client: {e}. "
            "Profiles, credits and query history will be unavailable. "
            "Check that SUPABASE_URL and SUPABASE_SERVICE_KEY are correct."
        )
        return None
