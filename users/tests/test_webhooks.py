import json
from datetime import datetime, timedelta, timezone

import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from svix.webhooks import Webhook

from users.webhooks import WebhookEventError, WebhookVerificationError, handle_event, verify_webhook

User = get_user_model()


def signed_headers(body, msg_id="msg_1", sent_at=None, secret=None):
    secret = secret or settings.IDENTITY_WEBHOOK_SECRET
    sent_at = sent_at or datetime.now(tz=timezone.utc)
    return {
        "svix-id": msg_id,
        "svix-timestamp": str(int(sent_at.timestamp())),
        "svix-signature": Webhook(secret).sign(msg_id, sent_at, body.decode()),
    }


def user_event(event_type="user.created", provider_id="user_2abc", email="ada@example.com", role=None):
    data = {
        "id": provider_id,
        "email_addresses": [{"email_address": email}],
        "first_name": "Ada",
        "last_name": "Lovelace",
        "image_url": "https://img.example.com/ada.png",
        "public_metadata": {"role": role} if role else {},
    }
    return {"type": event_type, "data": data}


class TestVerification:
    def test_valid_signature(self):
        body = json.dumps(user_event()).encode()
        event = verify_webhook(body, signed_headers(body))
        assert event["type"] == "user.created"

    def test_header_names_are_case_insensitive(self):
        body = json.dumps(user_event()).encode()
        headers = {name.title(): value for name, value in signed_headers(body).items()}
        assert verify_webhook(body, headers)["data"]["id"] == "user_2abc"

    def test_any_listed_signature_may_match(self):
        body = b'{"type": "user.deleted", "data": {"id": "u"}}'
        headers = signed_headers(body)
        headers["svix-signature"] = "v1,bm90LWl0 " + headers["svix-signature"]
        assert verify_webhook(body, headers)["type"] == "user.deleted"

    def test_tampered_body(self):
        body = json.dumps(user_event()).encode()
        headers = signed_headers(body)
        with pytest.raises(WebhookVerificationError):
            verify_webhook(body.replace(b"Ada", b"Eve"), headers)

    def test_other_secret(self):
        body = json.dumps(user_event()).encode()
        headers = signed_headers(body, secret="whsec_b3RoZXItc2VjcmV0LXZhbHVl")
        with pytest.raises(WebhookVerificationError):
            verify_webhook(body, headers)

    def test_stale_timestamp(self):
        body = b"{}"
        old = datetime.now(tz=timezone.utc) - timedelta(minutes=10)
        with pytest.raises(WebhookVerificationError):
            verify_webhook(body, signed_headers(body, sent_at=old))

    def test_missing_headers(self):
        with pytest.raises(WebhookVerificationError):
            verify_webhook(b"{}", {})

    def test_unconfigured_secret(self):
        body = b"{}"
        with pytest.raises(WebhookVerificationError, match="not configured"):
            verify_webhook(body, signed_headers(body), secret="")


@pytest.mark.django_db
class TestHandleEvent:
    def test_create_then_update_then_delete(self):
        assert handle_event(user_event()) == "created"
        user = User.objects.get(identity_provider_id="user_2abc")
        assert user.email == "ada@example.com"
        assert user.role == User.Role.STUDENT
        assert not user.has_usable_password()

        assert handle_event(user_event("user.updated", role="ADMIN")) == "updated"
        user.refresh_from_db()
        assert user.role == User.Role.ADMIN
        assert user.provider_role == "ADMIN"

        assert handle_event(user_event("user.deleted")) == "deleted"
        assert not User.objects.filter(identity_provider_id="user_2abc").exists()

    def test_links_existing_local_account_by_email(self, student):
        assert handle_event(user_event(email=student.email.upper())) == "updated"
        student.refresh_from_db()
        assert student.identity_provider_id == "user_2abc"

    def test_unknown_event_ignored(self):
        assert handle_event({"type": "session.created", "data": {"id": "sess_1"}}) == "ignored"

    def test_event_without_user_id(self):
        with pytest.raises(WebhookEventError):
            handle_event({"type": "user.created", "data": {}})

    def test_create_without_email(self):
        event = user_event()
        event["data"]["email_addresses"] = []
        with pytest.raises(WebhookEventError):
            handle_event(event)
        assert not User.objects.exists()


@pytest.mark.django_db
def test_webhook_endpoint(api_client):
    body = json.dumps(user_event()).encode()
    headers = {f"HTTP_{k.upper().replace('-', '_')}": v for k, v in signed_headers(body).items()}

    response = api_client.generic("POST", "/api/webhooks/identity/", body, content_type="application/json", **headers)
    assert response.status_code == 200
    assert response.data == {"status": "created"}

    rejected = api_client.generic("POST", "/api/webhooks/identity/", body, content_type="application/json")
    assert rejected.status_code == 400


@pytest.mark.django_db
def test_webhook_endpoint_rejects_unusable_event(api_client):
    body = json.dumps({"type": "user.created", "data": {}}).encode()
    headers = {f"HTTP_{k.upper().replace('-', '_')}": v for k, v in signed_headers(body).items()}

    response = api_client.generic("POST", "/api/webhooks/identity/", body, content_type="application/json", **headers)
    assert response.status_code == 400
    assert response.data == {"error": "Event has no user id"}
