"""
Tests for the Clerk and Resend webhooks, signed with a real svix secret
"""
import base64
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest
from svix.webhooks import Webhook

from tavlo.api.routes.webhooks import _primary_email, get_email_processor
from tavlo.core.config import get_settings
from tavlo.models import Item, User
from tavlo.services.email_processor import EmailProcessResult

SECRET = "whsec_" + base64.b64encode(b"tavlo-webhook-test-secret-000000").decode()


@pytest.fixture
def webhook_secrets(monkeypatch):
    monkeypatch.setenv("CLERK_WEBHOOK_SECRET", SECRET)
    monkeypatch.setenv("RESEND_WEBHOOK_SECRET", SECRET)
    get_settings.cache_clear()


def _signed(payload, msg_id="msg_1"):
    body = json.dumps(payload)
    now = datetime.now(tz=timezone.utc)
    headers = {
        "svix-id": msg_id,
        "svix-timestamp": str(int(now.timestamp())),
        "svix-signature": Webhook(SECRET).sign(msg_id, now, body),
        "content-type": "application/json",
    }
    return body, headers


def _clerk_user(clerk_id="user_clerk_9", **data):
    return {
        "id": clerk_id,
        "primary_email_address_id": "idn_2",
        "email_addresses": [
            {"id": "idn_1", "email_address": "old@example.com"},
            {"id": "idn_2", "email_address": "primary@example.com"},
        ],
        **data,
    }


def test_primary_email():
    assert _primary_email(_clerk_user()) == "primary@example.com"
    assert _primary_email({"email_addresses": [{"id": "a", "email_address": "a@example.com"}]}) == "a@example.com"
    assert _primary_email({}) is None


def test_missing_secret_is_500(anon_client):
    response = anon_client.post("/api/webhooks/clerk", content="{}")
    assert response.status_code == 500
    assert response.text == "Webhook secret not configured"


def test_missing_headers_is_400(anon_client, webhook_secrets):
    response = anon_client.post("/api/webhooks/clerk", content="{}")
    assert response.status_code == 400
    assert response.text == "Missing svix headers"


def test_bad_signature_is_400(anon_client, webhook_secrets, db):
    body, headers = _signed({"type": "user.created", "data": _clerk_user()})
    headers["svix-signature"] = "v1,AAAA"

    response = anon_client.post("/api/webhooks/clerk", content=body, headers=headers)

    assert response.status_code == 400
    assert response.text == "Webhook verification failed"
    assert db.query(User).count() == 0


def test_clerk_user_lifecycle(anon_client, webhook_secrets, db):
    body, headers = _signed({"type": "user.created", "data": _clerk_user()})
    assert anon_client.post("/api/webhooks/clerk", content=body, headers=headers).text == "OK"
    user = db.query(User).one()
    assert user.clerk_id == "user_clerk_9"
    assert user.email == "primary@example.com"

    updated = _clerk_user(primary_email_address_id="idn_1")
    body, headers = _signed({"type": "user.updated", "data": updated}, msg_id="msg_2")
    anon_client.post("/api/webhooks/clerk", content=body, headers=headers)
    db.refresh(user)
    assert user.email == "old@example.com"

    body, headers = _signed({"type": "user.deleted", "data": {"id": "user_clerk_9"}}, msg_id="msg_3")
    assert anon_client.post("/api/webhooks/clerk", content=body, headers=headers).status_code == 200
    db.expire_all()
    assert db.query(User).count() == 0


def test_clerk_delete_cascades_items(anon_client, webhook_secrets, db, user):
    db.add(Item(user_id=user.id, url="https://example.com/a"))
    db.commit()

    body, headers = _signed({"type": "user.deleted", "data": {"id": user.clerk_id}})
    anon_client.post("/api/webhooks/clerk", content=body, headers=headers)

    db.expire_all()
    assert db.query(Item).count() == 0


def test_clerk_ignores_other_events(anon_client, webhook_secrets, db):
    body, headers = _signed({"type": "session.created", "data": {"id": "sess_1"}})

    response = anon_client.post("/api/webhooks/clerk", content=body, headers=headers)

    assert response.status_code == 200
    assert db.query(User).count() == 0


@pytest.fixture
def email_processor(app):
    processor = AsyncMock()
    processor.process_email_item.return_value = EmailProcessResult(success=True, item_id="x", message="Email processed")
    app.dependency_overrides[get_email_processor] = lambda: processor
    return processor


def test_email_received(anon_client, webhook_secrets, email_processor):
    payload = {
        "type": "email.received",
        "data": {"to": ["save+abc@in.tavlo.app"], "from": "hello@news.example.com", "subject": "Issue 1"},
    }
    body, headers = _signed(payload)

    response = anon_client.post("/api/webhooks/email", content=body, headers=headers)

    assert response.status_code == 200
    email = email_processor.process_email_item.call_args.args[0]
    assert email.sender == "hello@news.example.com"
    assert email.subject == "Issue 1"


def test_email_other_events_ignored(anon_client, webhook_secrets, email_processor):
    body, headers = _signed({"type": "email.delivered", "data": {}})

    assert anon_client.post("/api/webhooks/email", content=body, headers=headers).status_code == 200
    email_processor.process_email_item.assert_not_called()


def test_email_failures_still_acknowledged(anon_client, webhook_secrets, email_processor):
    email_processor.process_email_item.side_effect = RuntimeError("boom")
    good, headers = _signed({"type": "email.received", "data": {"to": "a@b.c", "from": "x@y.z"}})
    assert anon_client.post("/api/webhooks/email", content=good, headers=headers).status_code == 200

    malformed, headers = _signed({"type": "email.received", "data": {"subject": "no addresses"}}, msg_id="msg_2")
    assert anon_client.post("/api/webhooks/email", content=malformed, headers=headers).status_code == 200
