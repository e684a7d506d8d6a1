import pytest
from rest_framework_simplejwt.tokens import RefreshToken

from cores.models import AuditLog, PlatformSetting

pytestmark = pytest.mark.django_db


@pytest.fixture
def maintenance():
    config = PlatformSetting.load()
    config.maintenance_mode = True
    config.save()
    return config


def bearer(user):
    return {"HTTP_AUTHORIZATION": f"Bearer {RefreshToken.for_user(user).access_token}"}


def test_writes_are_refused_during_maintenance(api_client, student, maintenance):
    response = api_client.post("/api/newsletter/subscribe/", {"email": "reader@example.com"},
                               format="json", **bearer(student))

    assert response.status_code == 503
    assert "maintenance" in response.json()["error"]


def test_reads_still_work_during_maintenance(api_client, maintenance):
    assert api_client.get("/api/faq/").status_code == 200


def test_admins_keep_writing_during_maintenance(api_client, admin_user, maintenance):
    response = api_client.put("/api/settings/", {"paid_mock_max_attempts": 4}, format="json",
                              **bearer(admin_user))

    assert response.status_code == 200
    assert PlatformSetting.load().paid_mock_max_attempts == 4


def test_login_is_not_blocked_during_maintenance(api_client, student, maintenance):
    response = api_client.post("/api/auth/login/", {"email": student.email, "password": "wrong"}, format="json")

    assert response.status_code != 503


def test_bad_token_is_treated_as_anonymous(api_client, maintenance):
    response = api_client.post("/api/contact/", {}, format="json", HTTP_AUTHORIZATION="Bearer not-a-token")

    assert response.status_code == 503


def test_writes_pass_when_maintenance_is_off(api_client):
    response = api_client.post("/api/newsletter/subscribe/", {"email": "reader@example.com"}, format="json")

    assert response.status_code != 503


def test_audit_log_keeps_forwarded_client_address(client_for, admin_user):
    client_for(admin_user).put("/api/settings/", {"paid_mock_max_attempts": 6}, format="json",
                               HTTP_X_FORWARDED_FOR="203.0.113.7, 10.0.0.1")

    assert AuditLog.objects.get(action="SETTINGS").ip_address == "203.0.113.7"


def test_audit_log_falls_back_to_peer_address(client_for, admin_user):
    client_for(admin_user).put("/api/settings/", {"paid_mock_max_attempts": 6}, format="json",
                               REMOTE_ADDR="198.51.100.4")

    assert AuditLog.objects.get(action="SETTINGS").ip_address == "198.51.100.4"


def test_audit_log_ignores_garbage_forwarded_header(client_for, admin_user):
    client_for(admin_user).put("/api/settings/", {"paid_mock_max_attempts": 6}, format="json",
                               HTTP_X_FORWARDED_FOR="unknown")

    assert AuditLog.objects.get(action="SETTINGS").ip_address is None
