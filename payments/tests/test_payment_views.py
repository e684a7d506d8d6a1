from datetime import timedelta
from decimal import Decimal
from unittest import mock

import pytest
from django.core import mail
from django.utils import timezone

from assessments.access import check_access
from coupons.models import GeneralCoupon, CouponUsage
from cores.models import AuditLog, PlatformSetting
from courses.models import Course, Enrollment
from mocks.models import MockBundle
from payments.gateway import expected_signature
from payments.models import Subscription

pytestmark = pytest.mark.django_db


def fake_order(amount, notes=None):
    return {"id": "order_TEST123", "amount": int(amount * 100), "currency": "INR"}


@pytest.fixture
def paid_mock(make_mock):
    return make_mock(title="Paid Mock", price=Decimal("300.00"))


@pytest.fixture
def bundle(make_mock):
    bundle = MockBundle.objects.create(
        title="Complete Pack", status=MockBundle.Status.PUBLISHED, discounted_price=Decimal("500.00")
    )
    bundle.mock_tests.add(
        make_mock(title="Mock A", price=Decimal("300.00")),
        make_mock(title="Mock B", price=Decimal("400.00")),
    )
    bundle.recalculate_base_price()
    return bundle


def verify(client, order_id="order_TEST123", payment_id="pay_XYZ", signature=None):
    signature = signature or expected_signature(order_id, payment_id)
    return client.post("/api/payments/verify/", {
        "razorpay_order_id": order_id,
        "razorpay_payment_id": payment_id,
        "razorpay_signature": signature,
    }, format="json")


@mock.patch("payments.views.create_order", side_effect=fake_order)
def test_order_and_verify_mock_test(create_order, client_for, student, paid_mock):
    client = client_for(student)

    response = client.post("/api/payments/order/", {"item_type": "mock_test", "item_id": paid_mock.id}, format="json")
    assert response.status_code == 201
    assert response.data["key_id"] == "rzp_test_key"
    assert response.data["final_amount"] == Decimal("300.00")
    assert create_order.call_args.args[0] == Decimal("300.00")

    pending = Subscription.objects.get(user=student)
    assert not pending.paid
    assert pending.gateway_order_id == "order_TEST123"

    result = verify(client)
    assert result.status_code == 200
    pending.refresh_from_db()
    assert pending.paid
    assert pending.gateway_payment_id == "pay_XYZ"
    assert check_access(student, paid_mock).subscription_type == "individual"
    assert AuditLog.objects.filter(action="PAYMENT").count() == 1
    assert len(mail.outbox) == 1


@mock.patch("payments.views.create_order", side_effect=fake_order)
def test_verify_is_idempotent(create_order, client_for, student, paid_mock):
    client = client_for(student)
    client.post("/api/payments/order/", {"item_type": "mock_test", "item_id": paid_mock.id}, format="json")

    assert verify(client).status_code == 200
    assert verify(client).status_code == 200
    assert AuditLog.objects.filter(action="PAYMENT").count() == 1
    assert len(mail.outbox) == 1


@mock.patch("payments.views.create_order", side_effect=fake_order)
def test_bad_signature_is_rejected(create_order, client_for, student, paid_mock):
    client = client_for(student)
    client.post("/api/payments/order/", {"item_type": "mock_test", "item_id": paid_mock.id}, format="json")

    response = verify(client, signature="0" * 64)
    assert response.status_code == 400
    assert not Subscription.objects.filter(paid=True).exists()


@mock.patch("payments.views.create_order", side_effect=fake_order)
def test_broken_receipt_template_does_not_fail_verification(create_order, client_for, student, paid_mock):
    config = PlatformSetting.load()
    config.purchase_email_body = "Order {order_id} for {name}"
    config.save()
    client = client_for(student)
    client.post("/api/payments/order/", {"item_type": "mock_test", "item_id": paid_mock.id}, format="json")

    response = verify(client)

    assert response.status_code == 200
    assert Subscription.objects.get(user=student).paid
    assert len(mail.outbox) == 1
    assert "Rs. 300.00" in mail.outbox[0].body


def test_verify_unknown_order(client_for, student):
    response = verify(client_for(student), order_id="order_unknown")
    assert response.status_code == 404


@mock.patch("payments.views.create_order", side_effect=fake_order)
def test_bundle_order_splits_amount(create_order, client_for, student, bundle):
    client = client_for(student)
    response = client.post("/api/payments/order/", {"item_type": "mock_bundle", "item_id": bundle.id}, format="json")
    assert response.status_code == 201
    assert response.data["original_amount"] == Decimal("500.00")

    rows = Subscription.objects.filter(user=student, mock_bundle=bundle)
    assert rows.count() == 2
    assert sum(r.amount_paid for r in rows) == Decimal("500.00")

    verify(client)
    for mock_test in bundle.mock_tests.all():
        assert check_access(student, mock_test).subscription_type == "bundle"


@mock.patch("payments.views.create_order", side_effect=fake_order)
def test_order_with_coupon_records_usage(create_order, client_for, student, paid_mock):
    coupon = GeneralCoupon.objects.create(
        code="save10", name="Save 10", discount_type=GeneralCoupon.DiscountType.PERCENTAGE,
        discount_value=Decimal("10"), product_type=GeneralCoupon.ProductType.MOCK_TEST,
        valid_from=timezone.now() - timedelta(days=1), valid_till=timezone.now() + timedelta(days=1),
    )
    client = client_for(student)
    response = client.post("/api/payments/order/", {
        "item_type": "mock_test", "item_id": paid_mock.id, "coupon_code": "SAVE10"
    }, format="json")
    assert response.status_code == 201
    assert response.data["final_amount"] == Decimal("270.00")
    assert response.data["discount"] == Decimal("30.00")

    verify(client)
    usage = CouponUsage.objects.get(coupon=coupon)
    assert usage.discount_amount == Decimal("30.00")
    coupon.refresh_from_db()
    assert coupon.usage_count == 1


def test_free_items_cannot_be_ordered(client_for, student, make_mock):
    free = make_mock(price=Decimal("0"))
    response = client_for(student).post("/api/payments/order/", {"item_type": "mock_test", "item_id": free.id}, format="json")
    assert response.status_code == 400


def test_already_owned_mock_cannot_be_ordered(client_for, student, paid_mock):
    Subscription.objects.create(user=student, mock_test=paid_mock, paid=True)
    response = client_for(student).post("/api/payments/order/", {"item_type": "mock_test", "item_id": paid_mock.id}, format="json")
    assert response.status_code == 400


@mock.patch("payments.views.create_order", side_effect=fake_order)
def test_course_payment_creates_enrollment(create_order, client_for, student):
    course = Course.objects.create(title="Crash Course", price=Decimal("999.00"), duration_days=30,
                                   status=Course.Status.PUBLISHED)
    client = client_for(student)
    client.post("/api/payments/order/", {"item_type": "course", "item_id": course.id}, format="json")
    verify(client)

    enrollment = Enrollment.objects.get(user=student, course=course)
    assert enrollment.expires_at is not None
    assert client.get(f"/api/courses/{course.id}/check-access/").data["has_access"] is True


class TestAdminSubscriptions:
    def test_grant_skips_owned_tests(self, client_for, admin_user, student, make_user, paid_mock, make_mock):
        other_mock = make_mock(title="Other", price=Decimal("100"))
        Subscription.objects.create(user=student, mock_test=paid_mock, paid=True)
        second = make_user("second@example.com")

        response = client_for(admin_user).post("/api/admin/subscriptions/grant/", {
            "user_ids": [student.id, second.id],
            "mock_test_ids": [paid_mock.id, other_mock.id],
        }, format="json")

        assert response.status_code == 201
        assert response.data["created"] == 3
        assert Subscription.objects.filter(user=student, mock_test=paid_mock).count() == 1
        assert AuditLog.objects.filter(action="GRANT").exists()

    def test_grant_requires_a_target(self, client_for, admin_user, student):
        response = client_for(admin_user).post("/api/admin/subscriptions/grant/", {"user_ids": [student.id]}, format="json")
        assert response.status_code == 400

    def test_students_cannot_grant(self, client_for, student, paid_mock):
        response = client_for(student).post("/api/admin/subscriptions/grant/", {
            "user_ids": [student.id], "mock_test_ids": [paid_mock.id]
        }, format="json")
        assert response.status_code == 403

    def test_revoke_and_revenue(self, client_for, admin_user, student, paid_mock):
        sub = Subscription.objects.create(user=student, mock_test=paid_mock, paid=True, amount_paid=Decimal("300"))
        client = client_for(admin_user)

        revenue = client.get("/api/admin/subscriptions/revenue/")
        assert revenue.data["total_revenue"] == Decimal("300")

        assert client.delete(f"/api/admin/subscriptions/{sub.id}/").status_code == 204
        assert not Subscription.objects.filter(id=sub.id).exists()
        assert AuditLog.objects.filter(action="REVOKE").exists()
