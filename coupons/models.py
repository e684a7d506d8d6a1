# coupons/models.py
from django.conf import settings
from django.db import models


class GeneralCoupon(models.Model):
    class DiscountType(models.TextChoices):
        PERCENTAGE = "PERCENTAGE", "Percentage"
        FIXED = "FIXED", "Fixed Amount"

    class ProductType(models.TextChoices):
        MOCK_TEST = "MOCK_TEST", "Mock Test"
        MOCK_BUNDLE = "MOCK_BUNDLE", "Mock Bundle"
        COURSE = "COURSE", "Course"

    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=150)
    description = models.TextField(blank=True)

    discount_type = models.CharField(max_length=20, choices=DiscountType.choices, default=DiscountType.PERCENTAGE)
    discount_value = models.DecimalField(max_digits=10, decimal_places=2)
    max_discount_amount = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    min_order_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)

    product_type = models.CharField(max_length=20, choices=ProductType.choices)
    # Empty list means every product of product_type
    product_ids = models.JSONField(default=list, blank=True)

    usage_limit = models.PositiveIntegerField(null=True, blank=True)
    usage_count = models.PositiveIntegerField(default=0)
    user_limit = models.PositiveIntegerField(null=True, blank=True, help_text="Uses allowed per user")

    valid_from = models.DateTimeField()
    valid_till = models.DateTimeField()
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def save(self, *args, **kwargs):
        self.code = self.code.strip().upper()
        super().save(*args, **kwargs)

    def __str__(self):
        return self.code


class CouponUsage(models.Model):
    coupon = models.ForeignKey(GeneralCoupon, related_name='usages', on_delete=models.CASCADE)
    user = models.ForeignKey(settings.AUTH_USER_MODEL, related_name='coupon_usages', on_delete=models.CASCADE)
    order_id = models.CharField(max_length=100, blank=True)
    product_id = models.CharField(max_length=50, blank=True)
    discount_amount = models.DecimalField(max_digits=10, decimal_places=2)
    used_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.coupon.code} by {self.user}"


class CourseCoupon(models.Model):
    """Simple percent-off code attached to one course."""
    course = models.ForeignKey('courses.Course', related_name='coupons', on_delete=models.CASCADE)
    code = models.CharField(max_length=50)
    discount_pct = models.PositiveIntegerField()
    valid_till = models.DateTimeField()
    is_public = models.BooleanField(default=False, help_text="Shown on the course page")

    class Meta:
        unique_together = ('course', 'code')

    def __str__(self):
        return f"{self.code} ({self.discount_pct}%)"
