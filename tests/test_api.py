"""Tests for the visit statistics HTTP API."""

import pytest
from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import FakeRedis, StubGeoLookup, fast_config
from visit_stats.storage.connection import RedisConnection
from visit_stats.website_api.config import Settings
from visit_stats.website_api.main import create_app


@pytest.fixture
def settings(monkeypatch):
    monkeypatch.setenv("VISITS_ENV", "development")
    monkeypatch.delenv("VISITS_LOCAL_COUNTRY", raising=False)
    monkeypatch.delenv("VISITS_ALLOW_RESET", raising=False)
    monkeypatch.delenv("VISITS_RATE_LIMIT", raising=False)
    return Settings()


@pytest.fixture
def geo():
    return StubGeoLookup({"203.0.113.5": "FR", "198.51.100.9": "DE"})


@pytest.fixture
def client(settings, geo, fake_redis):
    connection = RedisConnection(fast_config(), client_factory=lambda config: fake_redis)
    app = create_app(settings=settings, connection=connection, geo_lookup=geo)
    with TestClient(app) as test_client:
        yield test_client


class TestRecordVisit:
    """Tests for POST /api/visits."""

    def test_explicit_country(self, client):
        """Test recording a visit for an explicit country."""
        response = client.post("/api/visits", json={"country": "US"})
        assert response.status_code == 200
        assert response.json() == {"country": "us", "count": 1}

        response = client.post("/api/visits", json={"country": " us "})
        assert response.json() == {"country": "us", "count": 2}

    def test_invalid_country(self, client):
        """Test rejecting a malformed country code."""
        response = client.post("/api/visits", json={"country": "usa"})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_country_code"

    def test_empty_country_is_invalid(self, client):
        """Test that an empty country code is rejected."""
        response = client.post("/api/visits", json={"country": ""})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "invalid_country_code"

    def test_unexpected_field(self, client):
        """Test rejecting unknown body fields."""
        response = client.post("/api/visits", json={"country": "us", "city": "Rome"})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "validation_error"

    def test_malformed_json(self, client):
        """Test rejecting a body that is not JSON."""
        response = client.post(
            "/api/visits", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert response.status_code == 400
        assert response.json()["detail"]["detail"] == "Invalid JSON body"

    def test_deeply_nested_json(self, client):
        """Test rejecting JSON nested too deeply to parse."""
        body = b"[" * 100000 + b"]" * 100000
        response = client.post("/api/visits", content=body, headers={"Content-Type": "application/json"})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "validation_error"

    def test_country_from_forwarded_for(self, client, geo):
        """Test detecting the country from X-Forwarded-For."""
        response = client.post(
            "/api/visits",
            json={},
            headers={"X-Forwarded-For": "203.0.113.5, 10.0.0.1", "X-Real-IP": "198.51.100.9"},
        )
        assert response.status_code == 200
        assert response.json() == {"country": "fr", "count": 1}
        assert geo.calls == ["203.0.113.5"]

    def test_country_from_real_ip_without_body(self, client):
        """Test detecting the country from X-Real-IP with no body."""
        response = client.post("/api/visits", headers={"X-Real-IP": "198.51.100.9"})
        assert response.status_code == 200
        assert response.json()["country"] == "de"

    def test_local_address_uses_default(self, client, geo):
        """Test that local addresses get the default country."""
        response = client.post("/api/visits", json={"country": None}, headers={"X-Forwarded-For": "127.0.0.1"})
        assert response.json() == {"country": "us", "count": 1}
        assert geo.calls == []

    def test_undetectable_country(self, client):
        """TestClient's socket address ('testclient') resolves to nothing."""
        response = client.post("/api/visits", json={})
        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "country_undetectable"

    def test_store_failure_is_503(self, client, fake_redis):
        """Test that a store failure becomes a 503."""
        fake_redis.fail_with = RedisConnectionError("Connection reset by peer")
        response = client.post("/api/visits", json={"country": "us"})
        assert response.status_code == 503
        body = response.json()["detail"]
        assert body["error"] == "store_unavailable"
        assert "Connection reset" not in body["detail"]


class TestStats:
    """Tests for the statistics routes."""

    def test_empty_stats(self, client):
        """Test stats before any visit."""
        response = client.get("/api/stats")
        assert response.status_code == 200
        assert response.json() == {}

    def test_all_stats(self, client):
        """Test stats across several countries."""
        for country in ("us", "us", "ru", "it", "it", "it"):
            client.post("/api/visits", json={"country": country})
        assert client.get("/api/stats").json() == {"us": 2, "ru": 1, "it": 3}

    def test_country_stats(self, client):
        """Test stats for a single country."""
        client.post("/api/visits", json={"country": "it"})
        assert client.get("/api/stats/IT").json() == {"country": "it", "count": 1}
        assert client.get("/api/stats/xx").json() == {"country": "xx", "count": 0}

    def test_country_stats_invalid_code(self, client):
        """Test single-country stats with a bad code."""
        response = client.get("/api/stats/ita")
        assert response.status_code == 400

    def test_reset(self, client):
        """Test resetting all statistics."""
        client.post("/api/visits", json={"country": "us"})
        response = client.delete("/api/stats")
        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get("/api/stats").json() == {}

    def test_stats_store_failure_is_503(self, client, fake_redis):
        """Test that a store failure on stats becomes a 503."""
        fake_redis.fail_with = RedisConnectionError("Connection reset by peer")
        assert client.get("/api/stats").status_code == 503


class TestHealth:
    """Tests for GET /api/health."""

    def test_healthy(self, client):
        """Test health with Redis connected."""
        body = client.get("/api/health").json()
        assert body["status"] == "healthy"
        assert body["services"]["redis"] == "connected"
        assert body["timestamp"]

    def test_degraded_when_redis_unreachable(self, settings, geo):
        """Test health when Redis cannot be reached."""
        fake = FakeRedis(ping_failures=100)
        connection = RedisConnection(fast_config(max_retries=1), client_factory=lambda config: fake)
        app = create_app(settings=settings, connection=connection, geo_lookup=geo)
        with TestClient(app) as client:
            body = client.get("/api/health").json()
            assert body["status"] == "degraded"
            assert body["services"]["redis"] == "disconnected"
            assert client.post("/api/visits", json={"country": "us"}).status_code == 503


class TestConfiguredBehaviour:
    """Tests for environment-driven switches."""

    def _client(self, geo, fake_redis):
        connection = RedisConnection(fast_config(), client_factory=lambda config: fake_redis)
        return TestClient(create_app(settings=Settings(), connection=connection, geo_lookup=geo))

    def test_production_disables_reset_and_local_default(self, monkeypatch, geo, fake_redis):
        """Test the production defaults."""
        monkeypatch.setenv("VISITS_ENV", "production")
        monkeypatch.delenv("VISITS_LOCAL_COUNTRY", raising=False)
        monkeypatch.delenv("VISITS_ALLOW_RESET", raising=False)
        with self._client(geo, fake_redis) as client:
            assert client.delete("/api/stats").status_code == 403
            response = client.post("/api/visits", json={}, headers={"X-Forwarded-For": "10.0.0.1"})
            assert response.status_code == 400
            assert response.json()["detail"]["error"] == "country_undetectable"

    def test_rate_limit(self, monkeypatch, geo, fake_redis):
        """Test per-client rate limiting."""
        monkeypatch.setenv("VISITS_RATE_LIMIT", "3")
        with self._client(geo, fake_redis) as client:
            statuses = [client.get("/api/stats").status_code for _ in range(4)]
            assert statuses == [200, 200, 200, 429]
            assert client.get("/api/stats").json()["detail"]["error"] == "rate_limited"
            # a different forwarded client has its own window
            assert client.get("/api/stats", headers={"X-Forwarded-For": "203.0.113.5"}).status_code == 200
