"""
Shared fixtures: in-memory stand-ins for the identity provider, the
Supabase tables and the generation provider.
"""

import json

import pytest

from gumrukcum.auth.schemas import Identity, UserProfile
from gumrukcum.analysis.schemas import QueryHistory
from gumrukcum.analysis.service import AnalysisPipeline
from gumrukcum.config import Settings
from gumrukcum.errors import Unauthenticated
from gumrukcum.middleware import limiter

VALID_TOKEN = "valid-token"
AUTH_HEADER = f"Bearer {VALID_TOKEN}"
USER_ID = "5f0c2a6e-0000-4000-8000-000000000001"

SAMPLE_RESULT = {
    "gtip": "6404.19.90.00.19",
    "productName": "Dış tabanı kauçuk, yüzü tekstil spor ayakkabı",
    "taxes": [
        {"name": "Gümrük Vergisi", "rate": "%12", "description": "3. ülkeler oranı"},
        {"name": "KDV", "rate": "%10", "description": "İndirimli oran"},
    ],
    "documents": ["Ticari Fatura", "Menşe Şahadetnamesi"],
    "riskAnalysis": "DİKKAT: Gözetim uygulamasına tabidir.",
}

SAMPLE_MARKET = {
    "fobPrice": "$2.50 - $3.00 (Tahmini)",
    "trSalesPrice": "350 TL - 500 TL (Tahmini)",
    "emailDraft": "Dear Supplier, I am interested in your sneakers...",
}


class FakeVerifier:
    def __init__(self, identity=None):
        self.identity = identity or Identity(id=USER_ID, email="ayse@example.com")
        self.calls = 0

    async def verify(self, authorization):
        self.calls += 1
        if authorization != AUTH_HEADER:
            raise Unauthenticated("User could not be verified.")
        return self.identity


class FakeProfileStore:
    def __init__(self, profile=None, fail_decrement=False):
        self.profiles = {profile.id: profile} if profile else {}
        self.fail_decrement = fail_decrement
        self.get_calls = 0
        self.decrement_calls = 0

    def get_profile(self, user_id):
        self.get_calls += 1
        return self.profiles.get(user_id)

    def decrement_credit(self, user_id):
        self.decrement_calls += 1
        if self.fail_decrement:
            raise RuntimeError("function decrement_credit does not exist")
        profile = self.profiles[user_id]
        if profile.credits <= 0:
            return None
        self.profiles[user_id] = profile.model_copy(update={"credits": profile.credits - 1})
        return profile.credits - 1

    def credits(self, user_id=USER_ID):
        return self.profiles[user_id].credits


class FakeHistoryStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.records = []

    def append(self, user_id, user_prompt, result):
        if self.fail:
            raise RuntimeError("insert into queries failed")
        self.records.append((user_id, user_prompt, result))

    def list_for_user(self, user_id, limit=50):
        rows = [r for r in self.records if r[0] == user_id][::-1][:limit]
        return [
            QueryHistory(id=str(i), created_at="2026-10-19T10:00:00+00:00", user_prompt=p, ai_response=res)
            for i, (_, p, res) in enumerate(rows)
        ]


class FakeGenerator:
    def __init__(self, text=None, error=None):
        self.text = json.dumps(SAMPLE_RESULT) if text is None else text
        self.error = error
        self.requests = []

    async def generate(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.text


def make_profile(tier="free", credits=2):
    return UserProfile(id=USER_ID, email="ayse@example.com", credits=credits, subscription_tier=tier)


@pytest.fixture(autouse=True)
def _no_rate_limit():
    limiter.enabled = False
    yield
    limiter.enabled = True


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        openai_api_key="sk-test",
        supabase_url="https://project.supabase.co",
        supabase_service_key="service-key",
    )


@pytest.fixture
def make_pipeline(settings):
    def _make(profile=None, generator=None, history=None, profiles=None, verifier=None):
        parts = {
            "verifier": verifier or FakeVerifier(),
            "profiles": profiles or FakeProfileStore(profile if profile is not None else make_profile()),
            "history": history or FakeHistoryStore(),
            "generator": generator or FakeGenerator(),
        }
        return AnalysisPipeline(settings=settings, **parts), parts
    return _make
