"""
Tests for the quick-add endpoint
"""
import pytest

from tavlo.core.config import get_settings
from tavlo.models import Item


@pytest.fixture
def quick_add_secret(monkeypatch):
    monkeypatch.setenv("QUICK_ADD_SECRET", "shortcut-secret")
    get_settings.cache_clear()
    return "shortcut-secret"


def _post(client, secret=None, **body):
    headers = {"Authorization": f"Bearer {secret}"} if secret else {}
    return client.post("/api/quick-add", json={"url": "https://example.com/post", **body}, headers=headers)


def test_requires_secret(anon_client, user, stub_pipeline, quick_add_secret):
    assert _post(anon_client).status_code == 401
    response = _post(anon_client, secret="wrong")
    assert response.status_code == 401
    assert response.json() == {"ok": False, "error": "Invalid or missing authorization"}


def test_rejects_everything_when_unconfigured(anon_client, user, stub_pipeline):
    assert _post(anon_client, secret="anything").status_code == 401


def test_no_user(anon_client, stub_pipeline, quick_add_secret):
    response = _post(anon_client, secret=quick_add_secret)

    assert response.status_code == 404
    assert response.json()["error"] == "No user found. Please sign in to the web app first."


def test_saves_for_oldest_user(anon_client, db, user, stub_pipeline, quick_add_secret):
    response = _post(anon_client, secret=quick_add_secret, note="from phone")

    assert response.status_code == 200
    body = response.json()
    assert body["ok"] is True
    assert body["title"] == "How consensus works"
    assert body["source"] == "example.com"
    item = db.query(Item).one()
    assert str(item.id) == body["item_id"]
    assert item.user_id == user.id
    assert item.note == "from phone"


def test_pipeline_error_is_400(anon_client, user, stub_pipeline, quick_add_secret):
    response = anon_client.post(
        "/api/quick-add",
        json={"url": "notaurl"},
        headers={"Authorization": f"Bearer {quick_add_secret}"},
    )

    assert response.status_code == 400
    assert response.json() == {"ok": False, "error": "Invalid URL format"}
