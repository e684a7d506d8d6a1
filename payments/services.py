# payments/services.py
"""
Order building and fulfilment shared by checkout, verification and admin grants.
"""
import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from django.db import transaction
from django.utils import timezone

from assessments.access import active_subscriptions
from coupons.discounts import apply_coupon, record_usage
from coupons.models import GeneralCoupon
from courses.models import Course, Enrollment
from mocks.models import MockTest, MockBundle

from .models import Subscription

logger = logging.getLogger(__name__)

CENT = Decimal('0.01')

ITEM_TYPES = {
    'mock_test': (MockTest, GeneralCoupon.ProductType.MOCK_TEST),
    'mock_bundle': (MockBundle, GeneralCoupon.ProductType.MOCK_BUNDLE),
    'course': (Course, GeneralCoupon.ProductType.COURSE),
}


class OrderError(Exception):
    def __init__(self, message, status_code=400):
        super().__init__(message)
        self.status_code = status_code


@dataclass
class OrderDraft:
    item_type: str
    item: object
    original_amount: Decimal
    final_amount: Decimal
    coupon: Optional[GeneralCoupon] = None
    # (mock_test or None, original price of that line)
    lines: list = field(default_factory=list)

    @property
    def discount(self):
        return self.original_amount - self.final_amount


def owned_mock_ids(user):
    """Ids of every mock test the user already holds a paid, unexpired grant for."""
    subscriptions = active_subscriptions(user)
    direct = set(subscriptions.exclude(mock_test__isnull=True).values_list('mock_test_id', flat=True))
    via_bundle = set(
        MockTest.objects.filter(bundles__subscriptions__in=subscriptions).values_list('id', flat=True)
    )
    return direct | via_bundle


def resolve_item(item_type, item_id):
    if item_type not in ITEM_TYPES:
        raise OrderError(f"Invalid item type. Must be one of: {', '.join(ITEM_TYPES)}")
    model, _ = ITEM_TYPES[item_type]
    item = model.objects.filter(pk=item_id, status=model.Status.PUBLISHED).first()
    if item is None:
        raise OrderError("Item not found", status_code=404)
    return item


def draft_order(user, item_type, item_id, coupon_code=None):
    item = resolve_item(item_type, item_id)

    if item_type == 'mock_test':
        price = item.price
        if item.id in owned_mock_ids(user):
            raise OrderError("You already have access to this mock test")
        lines = [(item, price)]
    elif item_type == 'mock_bundle':
        price = item.selling_price
        owned = owned_mock_ids(user)
        lines = [(m, m.price) for m in item.mock_tests.all() if m.id not in owned]
        if not lines:
            raise OrderError("You already have access to every mock test in this bundle")
    else:
        price = item.price
        enrollment = Enrollment.objects.filter(user=user, course=item).first()
        if enrollment and not enrollment.is_expired:
            raise OrderError("Already enrolled in this course")
        lines = [(None, price)]

    if not price or price <= 0:
        raise OrderError("Invalid or free item")

    coupon = None
    final_amount = price
    if coupon_code:
        _, product_type = ITEM_TYPES[item_type]
        # CouponError propagates to the caller
        coupon, discount = apply_coupon(coupon_code, user, product_type, item.id, price)
        final_amount = discount.final_amount

    return OrderDraft(item_type, item, Decimal(price), Decimal(final_amount), coupon, lines)


def _split_evenly(total, count):
    share = (total / count).quantize(CENT, rounding=ROUND_HALF_UP)
    shares = [share] * count
    # Last line absorbs the rounding difference
    shares[-1] = total - share * (count - 1)
    return shares


def _subscription_target(draft, mock):
    if draft.item_type == 'course':
        return {'course': draft.item}
    if draft.item_type == 'mock_bundle':
        return {'mock_test': mock, 'mock_bundle': draft.item}
    return {'mock_test': mock}


def _clear_pending(user, draft):
    pending = Subscription.objects.filter(user=user, paid=False)
    if draft.item_type == 'course':
        pending = pending.filter(course=draft.item)
    elif draft.item_type == 'mock_bundle':
        pending = pending.filter(mock_bundle=draft.item)
    else:
        pending = pending.filter(mock_test=draft.item, mock_bundle__isnull=True)
    pending.delete()


@transaction.atomic
def record_pending_order(user, draft, order_id):
    """Replaces stale unpaid rows for the same item with fresh ones tied to `order_id`."""
    _clear_pending(user, draft)

    shares = _split_evenly(draft.final_amount, len(draft.lines))
    rows = []
    for (mock, original), paid_share in zip(draft.lines, shares):
        original = Decimal(original)
        if draft.item_type == 'mock_bundle':
            discount = original - paid_share
        else:
            discount = draft.discount
        rows.append(Subscription(
            user=user,
            original_price=original,
            amount_paid=paid_share,
            discount_applied=discount,
            coupon=draft.coupon,
            gateway_order_id=order_id,
            paid=False,
            **_subscription_target(draft, mock),
        ))
    return Subscription.objects.bulk_create(rows)


def _grant_course(user, course, start, expires_at=None):
    expires_at = expires_at or course.enrollment_expiry(start)
    enrollment, created = Enrollment.objects.get_or_create(
        user=user, course=course, defaults={'expires_at': expires_at}
    )
    if not created:
        enrollment.expires_at = expires_at
        enrollment.save(update_fields=['expires_at'])
    return expires_at


@transaction.atomic
def fulfil_order(user, order_id, payment_id):
    """
    Marks every subscription of the order paid, grants course enrollments and
    books the coupon usage. Returns the subscriptions; already-paid orders are
    returned unchanged.
    """
    subscriptions = list(
        Subscription.objects.select_for_update().filter(user=user, gateway_order_id=order_id)
    )
    if not subscriptions or all(s.paid for s in subscriptions):
        return subscriptions

    now = timezone.now()
    for sub in subscriptions:
        sub.paid = True
        sub.gateway_payment_id = payment_id
        sub.paid_at = now
        if sub.course_id:
            sub.expires_at = _grant_course(user, sub.course, now)
        sub.save()

    coupon = subscriptions[0].coupon
    if coupon is not None:
        item = subscriptions[0].mock_bundle or subscriptions[0].course or subscriptions[0].mock_test
        original = sum((s.original_price for s in subscriptions), Decimal('0'))
        paid = sum((s.amount_paid for s in subscriptions), Decimal('0'))
        record_usage(coupon, user, original - paid, order_id=order_id, product_id=item.pk)

    logger.info(f"Order {order_id} fulfilled for {user.email}: {len(subscriptions)} subscription(s)")
    return subscriptions


@transaction.atomic
def grant_subscriptions(users, mock_tests=(), bundle=None, course=None, expires_at=None):
    """
    Admin grant without payment. Skips tests a user already holds a paid grant
    for. Returns the number of subscriptions created.
    """
    created = 0
    now = timezone.now()
    for user in users:
        owned = owned_mock_ids(user)
        targets = [(m, None) for m in mock_tests]
        if bundle is not None:
            targets += [(m, bundle) for m in bundle.mock_tests.all()]
        for mock, via_bundle in targets:
            if mock.id in owned:
                continue
            owned.add(mock.id)
            Subscription.objects.create(
                user=user, mock_test=mock, mock_bundle=via_bundle, paid=True, paid_at=now,
                expires_at=expires_at, original_price=mock.price,
            )
            created += 1
        if course is not None:
            Subscription.objects.create(
                user=user, course=course, paid=True, paid_at=now, expires_at=expires_at,
                original_price=course.price,
            )
            _grant_course(user, course, now, expires_at)
            created += 1
    return created
