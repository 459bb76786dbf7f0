"""
Tests for health, metrics and root endpoints
"""


def test_health(anon_client):
    response = anon_client.get("/health")

    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["service"] == "Tavlo"


def test_detailed_health_degraded_without_seed_or_llm(anon_client):
    body = anon_client.get("/health/detailed").json()

    assert body["components"]["database"]["status"] == "healthy"
    assert body["components"]["reference_data"]["status"] == "degraded"
    assert body["components"]["integrations"]["configured"]["llm"] is False
    assert body["status"] == "degraded"


def test_detailed_health_healthy(anon_client, seeded, monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    from tavlo.core.config import get_settings
    get_settings.cache_clear()

    body = anon_client.get("/health/detailed").json()

    assert body["components"]["reference_data"]["domains"] == 8
    assert body["components"]["reference_data"]["badges"] == 14
    assert body["components"]["ingestion"]["items_last_24h"] == 0
    assert body["status"] == "healthy"


def test_metrics_endpoint(anon_client):
    anon_client.get("/health")

    response = anon_client.get("/metrics")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "http_requests_total" in response.text


def test_api_root(anon_client):
    body = anon_client.get("/api").json()
    assert body["name"] == "Tavlo"
    assert body["status"] == "running"
