from decimal import Decimal
from unittest import mock

import pytest

from cores.emails import send_email
from cores.models import AuditLog, EmailLog, PlatformSetting
from payments.models import Subscription

pytestmark = pytest.mark.django_db


def test_settings_update_is_audited(client_for, admin_user):
    client = client_for(admin_user)
    assert client.get("/api/settings/").data["paid_mock_max_attempts"] == 10

    response = client.put("/api/settings/", {"paid_mock_max_attempts": 5}, format="json")
    assert response.status_code == 200
    assert PlatformSetting.load().paid_mock_max_attempts == 5
    assert AuditLog.objects.filter(action="SETTINGS").count() == 1


@pytest.mark.parametrize("body", [
    "Order {order_id} confirmed",
    "Paid {amount:zz}",
    "Hello {name",
])
def test_settings_reject_bad_purchase_template(client_for, admin_user, body):
    response = client_for(admin_user).put("/api/settings/", {"purchase_email_body": body}, format="json")

    assert response.status_code == 400
    assert "purchase_email_body" in response.data
    assert PlatformSetting.load().purchase_email_body != body


def test_settings_accept_known_placeholders(client_for, admin_user):
    body = "Thanks {name}! Rs. {amount} received for {item}."
    response = client_for(admin_user).put("/api/settings/", {"purchase_email_body": body}, format="json")

    assert response.status_code == 200
    assert PlatformSetting.load().purchase_email_body == body


def test_settings_are_admin_only(client_for, instructor):
    assert client_for(instructor).get("/api/settings/").status_code == 403


def test_audit_logs_filter_by_action(client_for, admin_user):
    AuditLog.record(admin_user, "CREATE", "MockTest", 1, "Created")
    AuditLog.record(admin_user, "DELETE", "MockTest", 1, "Deleted")

    response = client_for(admin_user).get("/api/audit-logs/?action=DELETE")
    assert [row["details"] for row in response.data] == ["Deleted"]
    assert response.data[0]["actor_email"] == admin_user.email


def test_dashboard_stats(client_for, admin_user, student, make_mock):
    mock_test = make_mock(price=Decimal("100"))
    Subscription.objects.create(user=student, mock_test=mock_test, paid=True, amount_paid=Decimal("100"))

    data = client_for(admin_user).get("/api/admin/stats/").data
    assert data["total_users"] == 2
    assert data["total_students"] == 1
    assert data["total_mock_tests"] == 1
    assert data["paid_subscriptions"] == 1
    assert data["total_revenue"] == Decimal("100")


def test_failed_email_is_logged():
    with mock.patch("cores.emails.send_mail", side_effect=OSError("SMTP down")):
        assert send_email("x@example.com", "Hi", "Body", source="test") is False

    log = EmailLog.objects.get()
    assert log.status == EmailLog.Status.FAILED
    assert "SMTP down" in log.error


def test_email_log_stats(client_for, admin_user):
    send_email("x@example.com", "Hi", "Body", source="purchase")
    with mock.patch("cores.emails.send_mail", side_effect=OSError("SMTP down")):
        send_email("y@example.com", "Hi", "Body", source="newsletter")

    data = client_for(admin_user).get("/api/admin/email-logs/stats/").data
    assert data["total"] == 2
    assert data["sent"] == 1
    assert data["failed"] == 1
    assert data["by_source"] == {"purchase": 1, "newsletter": 1}
