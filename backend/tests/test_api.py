"""
HTTP tests for the FastAPI app. The pipeline's collaborators are in-memory fakes.
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from gumrukcum.main import app
from gumrukcum.analysis import router as analysis_router
from gumrukcum.analysis.ledger import SupabaseHistoryStore
from gumrukcum.analysis.router import get_history_store, get_pipeline
from gumrukcum.auth.dependencies import get_verifier
from gumrukcum.auth.router import get_profile_store
from gumrukcum.config import get_settings, Settings

from conftest import (
    AUTH_HEADER,
    SAMPLE_MARKET,
    SAMPLE_RESULT,
    FakeGenerator,
    FakeHistoryStore,
    FakeProfileStore,
    FakeVerifier,
    make_profile,
)


@pytest.fixture
def client():
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def use_pipeline(make_pipeline):
    def _use(**kwargs):
        pipeline, parts = make_pipeline(**kwargs)
        app.dependency_overrides[get_pipeline] = lambda: pipeline
        return parts
    return _use


@pytest.fixture
def unconfigured(monkeypatch):
    """No OpenAI key and no Supabase client; only the verifier is faked."""
    monkeypatch.setattr(analysis_router, "get_supabase_client", lambda: None)
    app.dependency_overrides[get_settings] = lambda: Settings(_env_file=None)
    app.dependency_overrides[get_verifier] = lambda: FakeVerifier()


class TestAnalyzeEndpoint:
    def test_success_returns_camel_case_result(self, client, use_pipeline):
        use_pipeline()

        resp = client.post("/api/analyze", json={"userPrompt": "spor ayakkabı"}, headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 200
        assert resp.json() == SAMPLE_RESULT

    def test_professional_response_includes_market_data(self, client, use_pipeline):
        use_pipeline(
            profile=make_profile("professional"),
            generator=FakeGenerator(text=json.dumps({**SAMPLE_RESULT, "marketData": SAMPLE_MARKET})),
        )

        resp = client.post("/api/analyze", json={"userPrompt": "x"}, headers={"Authorization": AUTH_HEADER})

        assert resp.json()["marketData"] == SAMPLE_MARKET

    def test_missing_credential_is_401(self, client, use_pipeline):
        parts = use_pipeline()

        resp = client.post("/api/analyze", json={"userPrompt": "x"})

        assert resp.status_code == 401
        assert resp.json()["kind"] == "unauthenticated"
        assert parts["generator"].requests == []

    @pytest.mark.parametrize("kwargs", [
        {"json": {"userPrompt": 123}},
        {"json": ["userPrompt"]},
        {"content": b"not json", "headers": {"Content-Type": "application/json"}},
    ])
    def test_missing_credential_with_bad_body_is_401(self, client, use_pipeline, kwargs):
        parts = use_pipeline()

        resp = client.post("/api/analyze", **kwargs)

        assert resp.status_code == 401
        assert resp.json()["kind"] == "unauthenticated"
        assert parts["profiles"].get_calls == 0

    def test_wrong_field_type_is_400(self, client, use_pipeline):
        use_pipeline()

        resp = client.post("/api/analyze", json={"userPrompt": 123}, headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 400
        assert resp.json()["kind"] == "invalid_request"
        assert resp.json()["fields"] == ["userPrompt"]

    def test_non_json_body_is_400(self, client, use_pipeline):
        use_pipeline()

        resp = client.post(
            "/api/analyze",
            content=b"not json",
            headers={"Authorization": AUTH_HEADER, "Content-Type": "application/json"},
        )

        assert resp.status_code == 400
        assert resp.json()["kind"] == "invalid_request"

    def test_missing_credential_when_unconfigured_is_401(self, client, unconfigured):
        resp = client.post("/api/analyze", json={"userPrompt": "x"})

        assert resp.status_code == 401
        assert resp.json()["kind"] == "unauthenticated"

    def test_unconfigured_service_is_503(self, client, unconfigured):
        resp = client.post("/api/analyze", json={"userPrompt": "x"}, headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 503
        assert resp.json() == {"error": "OpenAI API key not configured.", "kind": "not_configured"}

    def test_insufficient_credit_payload(self, client, use_pipeline):
        use_pipeline(profile=make_profile("entrepreneur", credits=0))

        resp = client.post("/api/analyze", json={"userPrompt": "x"}, headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 402
        body = resp.json()
        assert body["kind"] == "insufficient_credit"
        assert body["tier"] == "entrepreneur"
        assert body["credits"] == 0
        assert body["error"]

    def test_empty_body_is_400(self, client, use_pipeline):
        use_pipeline()

        resp = client.post("/api/analyze", json={}, headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 400
        assert resp.json()["kind"] == "invalid_request"

    def test_degraded_result_is_200(self, client, use_pipeline):
        use_pipeline(generator=FakeGenerator(text="Not JSON at all"))

        resp = client.post("/api/analyze", json={"userPrompt": "x"}, headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 200
        assert resp.json() == {
            "gtip": "Belirlenemedi",
            "productName": "Analiz Hatası",
            "taxes": [],
            "documents": [],
            "riskAnalysis": "Not JSON at all",
        }

    def test_history_failure_is_still_200(self, client, use_pipeline):
        use_pipeline(history=FakeHistoryStore(fail=True))

        resp = client.post("/api/analyze", json={"userPrompt": "x"}, headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 200
        assert resp.json()["gtip"] == SAMPLE_RESULT["gtip"]

    def test_unexpected_error_is_500(self, client, use_pipeline):
        use_pipeline(generator=FakeGenerator(error=RuntimeError("socket closed")))

        resp = client.post("/api/analyze", json={"userPrompt": "x"}, headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 500
        assert resp.json() == {"error": "Analysis failed. Please try again.", "kind": "internal"}


class TestHistoryAndProfile:
    def test_history_newest_first(self, client, use_pipeline):
        parts = use_pipeline()
        history = parts["history"]
        app.dependency_overrides[get_verifier] = lambda: parts["verifier"]
        app.dependency_overrides[get_history_store] = lambda: history

        for prompt in ("ilk", "ikinci"):
            client.post("/api/analyze", json={"userPrompt": prompt}, headers={"Authorization": AUTH_HEADER})
        resp = client.get("/api/history", headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 200
        rows = resp.json()
        assert [r["userPrompt"] for r in rows] == ["ikinci", "ilk"]
        assert rows[0]["aiResponse"]["gtip"] == SAMPLE_RESULT["gtip"]

    def test_history_requires_auth(self, client):
        app.dependency_overrides[get_verifier] = lambda: FakeVerifier()
        app.dependency_overrides[get_history_store] = lambda: FakeHistoryStore()

        assert client.get("/api/history").status_code == 401

    def test_history_without_credential_when_unconfigured_is_401(self, client, unconfigured):
        resp = client.get("/api/history")

        assert resp.status_code == 401
        assert resp.json()["kind"] == "unauthenticated"

    def test_history_unconfigured_is_503(self, client, unconfigured):
        resp = client.get("/api/history", headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 503
        assert resp.json()["kind"] == "not_configured"

    def test_history_skips_unreadable_rows(self, client):
        sb = MagicMock()
        chain = sb.table.return_value.select.return_value.eq.return_value.order.return_value.limit.return_value
        chain.execute.return_value = MagicMock(data=[
            {
                "id": "q-2",
                "created_at": "2026-10-19T11:00:00+00:00",
                "user_prompt": "eski",
                "ai_response": {"gtip": "9503.00.75.00.00", "productName": "Oyuncak", "taxes": "none"},
            },
            {
                "id": "q-1",
                "created_at": "2026-10-19T10:00:00+00:00",
                "user_prompt": "oyuncak",
                "ai_response": {
                    "gtip": "9503.00.75.00.00",
                    "productName": "Oyuncak",
                    "taxes": [{"name": "KDV", "rate": 20}],
                },
            },
        ])
        app.dependency_overrides[get_verifier] = lambda: FakeVerifier()
        app.dependency_overrides[get_history_store] = lambda: SupabaseHistoryStore(sb)

        resp = client.get("/api/history", headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 200
        rows = resp.json()
        assert [r["id"] for r in rows] == ["q-1"]
        assert rows[0]["aiResponse"]["taxes"][0]["rate"] == "20"

    @pytest.mark.parametrize("tier,unlimited", [("free", False), ("corporate", True)])
    def test_me(self, client, tier, unlimited):
        app.dependency_overrides[get_verifier] = lambda: FakeVerifier()
        app.dependency_overrides[get_profile_store] = lambda: FakeProfileStore(make_profile(tier, credits=2))

        resp = client.get("/api/auth/me", headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 200
        assert resp.json()["tier"] == tier
        assert resp.json()["credits"] == 2
        assert resp.json()["unlimited"] is unlimited

    def test_me_without_profile(self, client):
        app.dependency_overrides[get_verifier] = lambda: FakeVerifier()
        app.dependency_overrides[get_profile_store] = lambda: FakeProfileStore()

        resp = client.get("/api/auth/me", headers={"Authorization": AUTH_HEADER})

        assert resp.status_code == 500
        assert resp.json()["kind"] == "profile_not_found"


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy", "service": "gumrukcum-api"}

    def test_security_headers(self, client):
        resp = client.get("/")
        assert resp.headers["X-Content-Type-Options"] == "nosniff"
        assert resp.headers["X-Frame-Options"] == "DENY"

    def test_unknown_route_uses_error_shape(self, client):
        resp = client.get("/api/nope")

        assert resp.status_code == 404
        assert resp.json() == {"error": "Not Found", "kind": "not_found"}

    def test_wrong_method_uses_error_shape(self, client):
        resp = client.get("/api/analyze")

        assert resp.status_code == 405
        assert resp.json()["kind"] == "method_not_allowed"
