# payments/models.py
from decimal import Decimal

from django.db import models
from django.conf import settings
from mocks.models import MockTest, MockBundle
from courses.models import Course
from coupons.models import GeneralCoupon

class Subscription(models.Model):
    """
    A paid-access grant linking a user to a mock test, a bundle or a course.
    Created unpaid when a gateway order is opened and flipped to paid on
    verification. At most one paid row may grant a given test to a user.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='subscriptions')
    mock_test = models.ForeignKey(MockTest, on_delete=models.CASCADE, null=True, blank=True, related_name='subscriptions')
    mock_bundle = models.ForeignKey(MockBundle, on_delete=models.SET_NULL, null=True, blank=True, related_name='subscriptions')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, null=True, blank=True, related_name='subscriptions')

    paid = models.BooleanField(default=False)
    original_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    discount_applied = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    coupon = models.ForeignKey(GeneralCoupon, on_delete=models.SET_NULL, null=True, blank=True)

    gateway_order_id = models.CharField(max_length=100, blank=True, db_index=True)
    gateway_payment_id = models.CharField(max_length=100, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        item = self.mock_test or self.course or self.mock_bundle
        return f"{self.user} - {item} - {'paid' if self.paid else 'pending'}"
