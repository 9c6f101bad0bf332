"""API endpoint tests using FastAPI TestClient."""

import asyncio
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from api import server
from api.server import app
from closet_tryon.pipeline import TryOnPipeline
from closet_tryon.services import CreditLedger, InferenceError
from conftest import BASE_IMAGE, FakeTryOnClient, make_session_token, parse_lines


@pytest.fixture
def fake_fal():
    return FakeTryOnClient(["https://fal/top.png", "https://fal/bottom.png"])


@pytest.fixture
def client(monkeypatch, settings, fake_fal):
    monkeypatch.setattr(server, "_settings", settings)
    monkeypatch.setattr(server, "_pipeline", TryOnPipeline(settings, fal=fake_fal))
    monkeypatch.setattr(server, "_ledger", CreditLedger(settings.credits.ledger_path))
    return TestClient(app)


@pytest.fixture
def auth_headers(settings):
    token = make_session_token("user-42", settings.auth, name="Ada")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tryon_body():
    return {
        "humanImage": BASE_IMAGE,
        "clothingItems": [
            {"category": "Tops", "imageUrl": "https://x/top.jpg"},
            {"category": "Bottoms", "imageUrl": "https://x/bottom.jpg"},
        ],
    }


class TestHealthEndpoints:
    """Tests for health check endpoints."""

    def test_root_endpoint(self, client):
        """Root endpoint returns OK status."""
        response = client.get("/")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert "service" in data
        assert "version" in data

    def test_health_endpoint(self, client):
        """Health endpoint reports the fal configuration."""
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["fal"] == "configured"
        assert data["failure_policy"] == "best_effort"

    def test_health_degraded_without_key(self, client, fake_fal):
        fake_fal.is_configured = False

        data = client.get("/health").json()

        assert data["status"] == "degraded"

    def test_shutdown_closes_fal_client(self, client, fake_fal):
        with client:
            assert client.get("/").status_code == 200
            assert not fake_fal.closed

        assert fake_fal.closed


class TestTryOnRejections:
    """Requests rejected before any stream is opened."""

    def test_missing_token(self, client, tryon_body):
        response = client.post("/api/virtual-tryon", json=tryon_body)

        assert response.status_code == 401
        assert response.json()["detail"] == "Authentication required"

    def test_invalid_token(self, client, tryon_body):
        response = client.post(
            "/api/virtual-tryon",
            json=tryon_body,
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    def test_token_signed_with_other_secret(self, client, tryon_body, settings):
        other = settings.auth.model_copy(update={"secret": "someone-else"})
        token = make_session_token("user-42", other)

        response = client.post(
            "/api/virtual-tryon",
            json=tryon_body,
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 401

    def test_empty_garment_list(self, client, auth_headers, fake_fal):
        response = client.post(
            "/api/virtual-tryon",
            json={"humanImage": BASE_IMAGE, "clothingItems": []},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert fake_fal.calls == []

    def test_missing_human_image(self, client, auth_headers, fake_fal):
        response = client.post(
            "/api/virtual-tryon",
            json={"clothingItems": [{"category": "Tops", "imageUrl": "https://x/top.jpg"}]},
            headers=auth_headers,
        )

        assert response.status_code == 422
        assert fake_fal.calls == []

    def test_garments_not_a_list(self, client, auth_headers):
        response = client.post(
            "/api/virtual-tryon",
            json={"humanImage": BASE_IMAGE, "clothingItems": {"category": "Tops"}},
            headers=auth_headers,
        )

        assert response.status_code == 422


class TestTryOnStream:
    """Tests for the streamed try-on response."""

    def test_stream_content(self, client, auth_headers, tryon_body):
        response = client.post("/api/virtual-tryon", json=tryon_body, headers=auth_headers)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("application/x-ndjson")
        assert response.headers["cache-control"] == "no-cache"

        events = parse_lines(response.text)
        assert [e.type for e in events] == [
            "progress", "itemComplete", "progress", "itemComplete", "complete",
        ]
        assert events[-1].result_image == "https://fal/bottom.png"

    def test_wire_field_names(self, client, auth_headers, tryon_body):
        response = client.post("/api/virtual-tryon", json=tryon_body, headers=auth_headers)

        first = response.text.splitlines()[0]
        assert '"stepIndex":0' in first
        assert '"currentCategory":"Tops"' in first

    def test_fatal_error_in_stream(self, client, auth_headers, tryon_body, fake_fal):
        fake_fal.outcomes = [InferenceError("upstream 500")]

        response = client.post("/api/virtual-tryon", json=tryon_body, headers=auth_headers)

        # Failures after the stream starts are reported inside it
        assert response.status_code == 200
        events = parse_lines(response.text)
        assert [e.type for e in events] == ["progress", "error"]
        assert events[-1].fatal is True

    def test_uses_pipeline_from_factory(self, client, auth_headers, tryon_body, settings):
        """The handler asks get_pipeline for the pipeline on each request."""
        with patch("api.server.get_pipeline") as mock_pipeline:
            pipeline = TryOnPipeline(settings, fal=FakeTryOnClient([None, None]))
            mock_pipeline.return_value = pipeline

            response = client.post("/api/virtual-tryon", json=tryon_body, headers=auth_headers)

            mock_pipeline.assert_called_once()
            events = parse_lines(response.text)
            assert events[-1].type == "complete"
            assert events[-1].result_image == BASE_IMAGE


class TestCreditsEndpoints:

    def test_credits_require_auth(self, client):
        assert client.get("/api/user/credits").status_code == 401

    def test_get_credits_defaults_to_zero(self, client, auth_headers):
        response = client.get("/api/user/credits", headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"credits": 0}

    def test_deduct_credits(self, client, auth_headers):
        asyncio.run(server._ledger.grant("user-42", 20))

        response = client.post("/api/user/credits", json={"amount": 5}, headers=auth_headers)

        assert response.status_code == 200
        assert response.json() == {"credits": 15}

    def test_insufficient_credits(self, client, auth_headers):
        response = client.post("/api/user/credits", json={"amount": 5}, headers=auth_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient credits"

    def test_amount_must_be_positive(self, client, auth_headers):
        response = client.post("/api/user/credits", json={"amount": 0}, headers=auth_headers)

        assert response.status_code == 422
