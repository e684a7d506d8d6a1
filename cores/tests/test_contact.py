import pytest
from django.core import mail

from cores.models import ContactMessage, EmailLog, PlatformSetting

pytestmark = pytest.mark.django_db


@pytest.fixture
def thread(api_client):
    response = api_client.post("/api/contact/", {
        "name": "Riya", "email": "riya@example.com", "subject": "Refund", "message": "Please refund my order",
    }, format="json")
    assert response.status_code == 201
    return response.data["thread_id"]


def reply(client, thread_id, message="Any update?", email="riya@example.com"):
    return client.post("/api/contact/reply/", {
        "thread_id": thread_id, "name": "Riya", "email": email, "message": message,
    }, format="json")


def test_new_inquiry_notifies_admin(thread):
    inquiry = ContactMessage.objects.get(thread_id=thread)
    assert inquiry.conversation_type == ContactMessage.ConversationType.NEW_INQUIRY
    assert mail.outbox[0].to == ["ops@mockprep.local"]
    assert EmailLog.objects.get(source="contact-new").status == EmailLog.Status.SENT


def test_reply_is_threaded_and_counted(api_client, thread):
    response = reply(api_client, thread)
    assert response.status_code == 201
    data = response.data["data"]
    assert data["subject"] == "Re: Refund"
    assert data["conversation_type"] == "USER_REPLY"
    assert data["daily_message_count"] == 1

    second = reply(api_client, thread)
    assert second.data["data"]["daily_message_count"] == 2


def test_daily_reply_limit(api_client, thread):
    for _ in range(3):
        assert reply(api_client, thread).status_code == 201

    blocked = reply(api_client, thread)
    assert blocked.status_code == 429
    assert blocked.data["limit_exceeded"] is True
    assert ContactMessage.objects.filter(conversation_type="USER_REPLY").count() == 3


def test_limit_comes_from_platform_setting(api_client, thread):
    config = PlatformSetting.load()
    config.contact_daily_reply_limit = 1
    config.save()

    assert reply(api_client, thread).status_code == 201
    assert reply(api_client, thread).status_code == 429


def test_reply_to_unknown_thread(api_client):
    response = reply(api_client, "4f5e2a43-3c52-4a3e-9c0b-55d4a0d1e111")
    assert response.status_code == 404


def test_reply_missing_fields(api_client, thread):
    response = api_client.post("/api/contact/reply/", {"thread_id": thread}, format="json")
    assert response.status_code == 400


def test_thread_view_lists_oldest_first(api_client, thread):
    reply(api_client, thread, message="first follow-up")
    response = api_client.get(f"/api/contact/thread/{thread}/")
    assert response.status_code == 200
    assert [m["conversation_type"] for m in response.data] == ["NEW_INQUIRY", "USER_REPLY"]


def test_admin_reply_emails_user_and_resolves(client_for, admin_user, thread):
    inquiry = ContactMessage.objects.get(thread_id=thread)
    mail.outbox.clear()

    response = client_for(admin_user).post(
        f"/api/admin/contacts/{inquiry.id}/reply/", {"message": "Refund issued", "resolve": True}, format="json"
    )
    assert response.status_code == 201
    assert response.data["email_sent"] is True
    assert mail.outbox[0].to == ["riya@example.com"]
    inquiry.refresh_from_db()
    assert inquiry.status == ContactMessage.Status.RESOLVED


def test_admin_filters_by_status(client_for, admin_user, thread):
    response = client_for(admin_user).get("/api/admin/contacts/?status=pending")
    assert response.status_code == 200
    assert len(response.data) == 1


def test_students_cannot_list_contacts(client_for, student, thread):
    assert client_for(student).get("/api/admin/contacts/").status_code == 403
