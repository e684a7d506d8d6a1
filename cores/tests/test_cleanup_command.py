from datetime import timedelta
from decimal import Decimal

import pytest
from django.core.management import call_command
from django.utils import timezone

from assessments.models import MockAttempt
from cores.models import AuditLog
from mentorship.models import Session, SessionEnrollment
from payments.models import Subscription

pytestmark = pytest.mark.django_db


def age(queryset, hours, field):
    queryset.update(**{field: timezone.now() - timedelta(hours=hours)})


def test_cleanup_removes_only_stale_pending_rows(student, make_mock):
    mock_test = make_mock()
    stale_order = Subscription.objects.create(user=student, mock_test=mock_test, paid=False)
    fresh_order = Subscription.objects.create(user=student, mock_test=mock_test, paid=False)
    paid = Subscription.objects.create(user=student, mock_test=mock_test, paid=True)
    stale_attempt = MockAttempt.objects.create(user=student, mock_test=mock_test)
    finished = MockAttempt.objects.create(user=student, mock_test=mock_test, submitted_at=timezone.now())

    age(Subscription.objects.filter(id__in=[stale_order.id, paid.id]), 48, "created_at")
    age(MockAttempt.objects.filter(id__in=[stale_attempt.id, finished.id]), 48, "started_at")

    call_command("cleanup_pending", "--hours", "24")

    assert set(Subscription.objects.values_list("id", flat=True)) == {fresh_order.id, paid.id}
    assert list(MockAttempt.objects.values_list("id", flat=True)) == [finished.id]
    assert AuditLog.objects.filter(action="CLEANUP").count() == 1


def test_dry_run_deletes_nothing(student, make_mock):
    Subscription.objects.create(user=student, mock_test=make_mock(), paid=False)
    age(Subscription.objects.all(), 48, "created_at")

    call_command("cleanup_pending", "--dry-run")

    assert Subscription.objects.count() == 1
    assert not AuditLog.objects.exists()


def test_cleanup_removes_stale_unpaid_session_bookings(student, make_user):
    session = Session.objects.create(title="Strategy Call", price=Decimal("499.00"), status=Session.Status.PUBLISHED)
    other = make_user("other@example.com")
    stale = SessionEnrollment.objects.create(session=session, user=student, student_email=student.email,
                                             student_phone="9999999999")
    confirmed = SessionEnrollment.objects.create(session=session, user=other, student_email=other.email,
                                                 student_phone="8888888888",
                                                 payment_status=SessionEnrollment.PaymentStatus.SUCCESS)
    age(SessionEnrollment.objects.all(), 48, "enrolled_at")

    call_command("cleanup_pending")

    assert list(SessionEnrollment.objects.values_list("id", flat=True)) == [confirmed.id]
    assert not SessionEnrollment.objects.filter(id=stale.id).exists()
