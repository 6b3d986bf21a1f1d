"""
Credit ledger and query history.

Runs after a successful generation. The user already has their answer at
this point, so every failure here is logged and recorded in the returned
LedgerOutcome instead of being raised.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from pydantic import ValidationError

from gumrukcum.auth.schemas import Identity
from gumrukcum.analysis.schemas import AnalysisResult, QueryHistory
from gumrukcum.analysis.tiers import TierPolicy

logger = logging.getLogger(__name__)

IMAGE_ONLY_PROMPT = "Görsel Analizi"
HISTORY_LIMIT = 50


class SupabaseHistoryStore:
    """Append-only `queries` table."""

    def __init__(self, sb):
        self.sb = sb

    def append(self, user_id: str, user_prompt: str, result: AnalysisResult) -> None:
        self.sb.table("queries").insert({
            "user_id": user_id,
            "user_prompt": user_prompt,
            "ai_response": result.model_dump(mode="json", by_alias=True, exclude_none=True),
        }).execute()

    def list_for_user(self, user_id: str, limit: int = HISTORY_LIMIT) -> list[QueryHistory]:
        result = self.sb.table("queries").select("id, created_at, user_prompt, ai_response") \
            .eq("user_id", user_id).order("created_at", desc=True).limit(limit).execute()
        rows = []
        for row in result.data or []:
            try:
                rows.append(QueryHistory.model_validate(row))
            except ValidationError as e:
                # Rows written by older clients may not match the current shape
                logger.warning(f"Skipping unreadable history row {row.get('id')}: {e.error_count()} error(s)")
        return rows


@dataclass
class LedgerOutcome:
    credit_charged: bool = False
    remaining_credits: Optional[int] = None
    history_saved: bool = False
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def record_usage(
    profiles,
    history,
    identity: Identity,
    policy: TierPolicy,
    user_prompt: Optional[str],
    result: AnalysisResult,
) -> LedgerOutcome:
    outcome = LedgerOutcome()

    if not policy.unlimited_credits:
        try:
            remaining = profiles.decrement_credit(identity.id)
            if remaining is None:
                # Balance hit zero between admission and now
                outcome.errors.append("credit balance already zero")
                logger.warning(f"Credit for {identity.id} not charged, balance already zero")
            else:
                outcome.credit_charged = True
                outcome.remaining_credits = remaining
        except Exception as e:
            outcome.errors.append(f"credit decrement failed: {e}")
            logger.warning(f"Could not decrement credit for {identity.id}: {e}")

    try:
        history.append(identity.id, (user_prompt or "").strip() or IMAGE_ONLY_PROMPT, result)
        outcome.history_saved = True
    except Exception as e:
        outcome.errors.append(f"history append failed: {e}")
        logger.warning(f"Could not save query history for {identity.id}: {e}")

    return outcome
