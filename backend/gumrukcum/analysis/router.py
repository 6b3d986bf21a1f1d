"""
Gümrükçüm Analysis Router

  POST /api/analyze   product text and/or photo → AnalysisResult
  GET  /api/history   caller's past analyses, newest first

Tier and user id are always re-derived from the bearer token and the
profiles table; the request body is never trusted for either. The analyze
body is only parsed after the caller is verified, so a request without a
valid credential always gets a 401.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request

from gumrukcum.middleware import limiter
from gumrukcum.analysis.client import OpenAIGenerationClient
from gumrukcum.analysis.entitlements import SupabaseProfileStore
from gumrukcum.analysis.ledger import SupabaseHistoryStore
from gumrukcum.analysis.schemas import AnalysisResult, AnalyzeRequest, QueryHistory
from gumrukcum.analysis.service import AnalysisPipeline
from gumrukcum.auth.dependencies import get_verifier, require_identity, SupabaseTokenVerifier
from gumrukcum.auth.schemas import Identity
from gumrukcum.config import get_settings, get_supabase_client, Settings
from gumrukcum.errors import AnalysisError, ServiceNotConfigured

logger = logging.getLogger(__name__)
router = APIRouter()


def get_history_store() -> SupabaseHistoryStore:
    sb = get_supabase_client()
    if not sb:
        raise ServiceNotConfigured("Database not configured.")
    return SupabaseHistoryStore(sb)


def get_pipeline(
    settings: Settings = Depends(get_settings),
    verifier: SupabaseTokenVerifier = Depends(get_verifier),
) -> AnalysisPipeline:
    """Never raises; missing configuration is reported by the pipeline after verification."""
    sb = get_supabase_client()
    return AnalysisPipeline(
        verifier=verifier,
        profiles=SupabaseProfileStore(sb) if sb else None,
        history=SupabaseHistoryStore(sb) if sb else None,
        generator=OpenAIGenerationClient(settings) if settings.openai_api_key else None,
        settings=settings,
    )


# ═══════════════════════════════════════
# Analysis
# ═══════════════════════════════════════

@router.post(
    "/analyze",
    response_model=AnalysisResult,
    response_model_by_alias=True,
    response_model_exclude_none=True,
    openapi_extra={"requestBody": {
        "required": True,
        "content": {"application/json": {"schema": AnalyzeRequest.model_json_schema(by_alias=True)}},
    }},
)
@limiter.limit(lambda: get_settings().analyze_rate_limit)
async def analyze(
    request: Request,
    authorization: Optional[str] = Header(None),
    pipeline: AnalysisPipeline = Depends(get_pipeline),
):
    try:
        payload = await request.json()
    except ValueError:
        # Reported as invalid_request once the caller is verified
        payload = None

    try:
        return await pipeline.run(authorization, payload)
    except AnalysisError:
        raise
    except Exception:
        logger.exception("Analysis failed")
        raise AnalysisError("Analysis failed. Please try again.")


# ═══════════════════════════════════════
# History
# ═══════════════════════════════════════

@router.get("/history", response_model=list[QueryHistory], response_model_by_alias=True, response_model_exclude_none=True)
async def get_history(
    identity: Identity = Depends(require_identity),
    history: SupabaseHistoryStore = Depends(get_history_store),
):
    try:
        return history.list_for_user(identity.id)
    except Exception:
        logger.exception(f"Could not fetch history for {identity.id}")
        raise AnalysisError("Could not fetch query history.")
