# mentorship/services.py
"""
Booking a guidance session: seat checks, the gateway order and its confirmation.
"""
import logging

from django.db import transaction
from django.utils import timezone

from payments.gateway import create_order, verify_signature

from .models import Session, SessionEnrollment

logger = logging.getLogger(__name__)


class EnrollmentError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code


@transaction.atomic
def reserve_seat(user, session_id, phone_number):
    """
    Creates or refreshes the user's enrollment row for the session.
    Free sessions are confirmed straight away; paid ones stay pending until
    the gateway payment is verified.
    """
    # Lock the session so concurrent bookings see the same seat count
    session = Session.objects.select_for_update().filter(pk=session_id).first()
    if session is None:
        raise EnrollmentError("Session not found", status_code=404)
    if session.status != Session.Status.PUBLISHED:
        raise EnrollmentError("Session is not available")
    if session.is_expired:
        raise EnrollmentError("Session has expired")

    enrollment = SessionEnrollment.objects.filter(session=session, user=user).first()
    if enrollment is not None and enrollment.is_confirmed:
        raise EnrollmentError("Already enrolled in this session")
    if session.is_full():
        raise EnrollmentError("Session is full")

    if enrollment is None:
        enrollment = SessionEnrollment(session=session, user=user)
    enrollment.student_name = user.get_full_name()
    enrollment.student_email = user.email
    enrollment.student_phone = phone_number
    enrollment.amount_paid = session.selling_price
    enrollment.gateway_order_id = ''
    enrollment.gateway_payment_id = ''

    if session.is_free:
        enrollment.payment_status = SessionEnrollment.PaymentStatus.SUCCESS
        enrollment.paid_at = timezone.now()
    else:
        enrollment.payment_status = SessionEnrollment.PaymentStatus.PENDING
        enrollment.paid_at = None
    enrollment.save()
    return enrollment


def open_session_order(enrollment):
    """Opens the gateway order for a pending enrollment. GatewayError propagates."""
    order = create_order(enrollment.amount_paid, notes={
        "user_id": str(enrollment.user_id),
        "item_type": "session",
        "item_id": str(enrollment.session_id),
        "enrollment_id": str(enrollment.id),
    })
    enrollment.gateway_order_id = order['id']
    enrollment.save(update_fields=['gateway_order_id'])
    return order


@transaction.atomic
def confirm_payment(enrollment_id, user, order_id, payment_id, signature):
    """
    Verifies the checkout signature and confirms the seat. Returns
    (enrollment, newly_confirmed); repeated calls for a confirmed seat are no-ops.
    """
    enrollment = (
        SessionEnrollment.objects.select_for_update()
        .select_related('session')
        .filter(pk=enrollment_id, user=user)
        .first()
    )
    if enrollment is None:
        raise EnrollmentError("Enrollment not found", status_code=404)
    if enrollment.is_confirmed:
        return enrollment, False
    if not enrollment.gateway_order_id or enrollment.gateway_order_id != order_id:
        raise EnrollmentError("Order does not belong to this enrollment")

    if not verify_signature(order_id, payment_id, signature):
        logger.warning(f"Invalid payment signature for session enrollment {enrollment.id}")
        enrollment.payment_status = SessionEnrollment.PaymentStatus.FAILED
        enrollment.save(update_fields=['payment_status'])
        return enrollment, False

    enrollment.payment_status = SessionEnrollment.PaymentStatus.SUCCESS
    enrollment.gateway_payment_id = payment_id
    enrollment.paid_at = timezone.now()
    enrollment.save()
    logger.info(f"Session enrollment {enrollment.id} confirmed for {user.email}")
    return enrollment, True
