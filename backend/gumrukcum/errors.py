"""
Typed failures of the analysis pipeline.

Every error carries a machine-readable `kind` and the HTTP status it maps to.
The FastAPI handler in `main.py` renders them as {"error", "kind", ...context}.
"""

from typing import Any


class AnalysisError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_payload(self) -> dict:
        return {"error": self.message, "kind": self.kind, **self.context}


class Unauthenticated(AnalysisError):
    kind = "unauthenticated"
    status_code = 401


class AuthServiceUnavailable(AnalysisError):
    kind = "auth_unavailable"
    status_code = 503


class InvalidRequest(AnalysisError):
    kind = "invalid_request"
    status_code = 400


class ProfileNotFound(AnalysisError):
    kind = "profile_not_found"
    status_code = 500


class InsufficientCredit(AnalysisError):
    kind = "insufficient_credit"
    status_code = 402

    def __init__(self, tier: str, credits: int):
        super().__init__(
            "Insufficient credits. Please upgrade your plan.",
            tier=tier,
            credits=credits,
        )
        self.tier = tier
        self.credits = credits


class ProviderUnavailable(AnalysisError):
    kind = "provider_unavailable"
    status_code = 503


class ProviderError(AnalysisError):
    kind = "provider_error"
    status_code = 502

    def __init__(self, message: str, detail: str = ""):
        # Provider body is kept for logs; callers only see a short excerpt
        super().__init__(message, detail=detail[:500])
        self.detail = detail


class EmptyGeneration(AnalysisError):
    kind = "empty_generation"
    status_code = 502


class ServiceNotConfigured(AnalysisError):
    kind = "not_configured"
    status_code = 503
