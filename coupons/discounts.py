# coupons/discounts.py
import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import F
from django.utils import timezone

from .models import GeneralCoupon, CouponUsage

CENT = Decimal('0.01')


class CouponError(Exception):
    """A coupon that exists but cannot be used for this order."""


@dataclass(frozen=True)
class Discount:
    amount: Decimal
    original_amount: Decimal
    final_amount: Decimal

    @property
    def percentage(self):
        if not self.original_amount:
            return Decimal('0')
        return (self.amount / self.original_amount * 100).quantize(CENT, rounding=ROUND_HALF_UP)

    def as_dict(self):
        return {
            "amount": self.amount,
            "original_amount": self.original_amount,
            "final_amount": self.final_amount,
            "savings": self.amount,
            "percentage": self.percentage,
        }


def find_coupon(code):
    if not code:
        return None
    return GeneralCoupon.objects.filter(code=code.strip().upper()).first()


def validate_coupon(coupon, user, product_type, product_id, order_value, now=None):
    """Raises CouponError with a user-facing message when the coupon does not apply."""
    now = now or timezone.now()
    order_value = Decimal(str(order_value))

    if not coupon.is_active:
        raise CouponError("This coupon is no longer active")
    if coupon.valid_from > now:
        raise CouponError("This coupon is not yet active")
    if coupon.valid_till <= now:
        raise CouponError("This coupon has expired")

    if coupon.product_type != product_type:
        label = coupon.get_product_type_display().lower()
        raise CouponError(f"This coupon is only valid for {label}s")

    allowed_ids = [str(p) for p in coupon.product_ids or []]
    if allowed_ids and product_id is not None and str(product_id) not in allowed_ids:
        raise CouponError("This coupon is not valid for this specific product")

    if coupon.min_order_value and order_value < coupon.min_order_value:
        raise CouponError(f"Minimum order value of Rs. {coupon.min_order_value} required for this coupon")

    if coupon.usage_limit is not None and coupon.usage_count >= coupon.usage_limit:
        raise CouponError("This coupon has reached its usage limit")

    if coupon.user_limit is not None:
        used_by_user = CouponUsage.objects.filter(coupon=coupon, user=user).count()
        if used_by_user >= coupon.user_limit:
            raise CouponError("You have already used this coupon the maximum number of times")


def calculate_discount(coupon, order_value):
    order_value = Decimal(str(order_value))

    if coupon.discount_type == GeneralCoupon.DiscountType.PERCENTAGE:
        amount = order_value * coupon.discount_value / 100
        if coupon.max_discount_amount and amount > coupon.max_discount_amount:
            amount = coupon.max_discount_amount
    else:
        amount = min(coupon.discount_value, order_value)

    amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
    final_amount = max(Decimal('0.00'), order_value - amount)
    return Discount(amount=amount, original_amount=order_value, final_amount=final_amount)


def apply_coupon(code, user, product_type, product_id, order_value):
    """Looks up, validates and prices a coupon. Returns (coupon, Discount)."""
    coupon = find_coupon(code)
    if coupon is None:
        raise CouponError("Invalid coupon code")
    validate_coupon(coupon, user, product_type, product_id, order_value)
    return coupon, calculate_discount(coupon, order_value)


def record_usage(coupon, user, discount_amount, order_id='', product_id=''):
    CouponUsage.objects.create(
        coupon=coupon,
        user=user,
        order_id=order_id,
        product_id=str(product_id),
        discount_amount=discount_amount,
    )
    GeneralCoupon.objects.filter(pk=coupon.pk).update(usage_count=F('usage_count') + 1)


def course_coupon_discount(price, discount_pct):
    """Course coupons discount whole rupees only: the discount is floored."""
    discount = Decimal(math.floor(Decimal(price) * discount_pct / 100))
    return discount, Decimal(price) - discount
