# mentorship/models.py
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


class Session(models.Model):
    """A bookable guidance session, sold outside the mock-test subscriptions."""
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PUBLISHED = "PUBLISHED", "Published"

    class SessionType(models.TextChoices):
        ONE_ON_ONE = "ONE_ON_ONE", "One-on-one"
        GROUP = "GROUP", "Group"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    content = models.TextField(blank=True, help_text="What the session covers, shown on the detail page")
    tags = models.JSONField(default=list, blank=True)
    session_type = models.CharField(max_length=20, choices=SessionType.choices, default=SessionType.ONE_ON_ONE)
    duration_minutes = models.PositiveIntegerField(default=60)

    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    discounted_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    # Only confirmed (paid) enrollments count against the cap
    max_enrollment = models.PositiveIntegerField(null=True, blank=True)
    expiry_date = models.DateTimeField(null=True, blank=True)

    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['order', '-created_at']

    def __str__(self):
        return self.title

    @property
    def selling_price(self):
        if self.discounted_price is not None:
            return self.discounted_price
        return self.price

    @property
    def is_free(self):
        return not self.selling_price or self.selling_price <= 0

    @property
    def is_expired(self):
        return self.expiry_date is not None and self.expiry_date < timezone.now()

    def confirmed_count(self):
        return self.enrollments.filter(payment_status=SessionEnrollment.PaymentStatus.SUCCESS).count()

    def is_full(self):
        return self.max_enrollment is not None and self.confirmed_count() >= self.max_enrollment


class SessionEnrollment(models.Model):
    class PaymentStatus(models.TextChoices):
        PENDING = "PENDING", "Pending"
        SUCCESS = "SUCCESS", "Success"
        FAILED = "FAILED", "Failed"

    session = models.ForeignKey(Session, on_delete=models.CASCADE, related_name='enrollments')
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='session_enrollments')

    # Contact snapshot taken at booking time
    student_name = models.CharField(max_length=150, blank=True)
    student_email = models.EmailField()
    student_phone = models.CharField(max_length=20)

    payment_status = models.CharField(max_length=20, choices=PaymentStatus.choices, default=PaymentStatus.PENDING)
    amount_paid = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    gateway_order_id = models.CharField(max_length=100, blank=True, db_index=True)
    gateway_payment_id = models.CharField(max_length=100, blank=True)
    enrolled_at = models.DateTimeField(auto_now_add=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ('session', 'user')
        ordering = ['-enrolled_at']

    def __str__(self):
        return f"{self.student_email} - {self.session} - {self.payment_status}"

    @property
    def is_confirmed(self):
        return self.payment_status == self.PaymentStatus.SUCCESS
