import uuid

from django.db import models
from django.core.cache import cache
from django.core.exceptions import ValidationError
from django.core.validators import validate_ipv46_address
from django.conf import settings


def client_ip(request):
    """First address of X-Forwarded-For when behind a proxy, else the socket peer."""
    if request is None:
        return None
    forwarded = request.META.get('HTTP_X_FORWARDED_FOR', '')
    candidate = forwarded.split(',')[0].strip() if forwarded else request.META.get('REMOTE_ADDR')
    if not candidate:
        return None
    try:
        validate_ipv46_address(candidate)
    except ValidationError:
        return None
    return candidate


class PlatformSetting(models.Model):
    # --- General & Branding ---
    site_name = models.CharField(max_length=100, default="MockPrep")
    support_email = models.EmailField(default="support@mockprep.local")
    admin_notification_email = models.EmailField(blank=True, help_text="Falls back to ADMIN_NOTIFICATION_EMAIL")
    maintenance_mode = models.BooleanField(default=False)

    # --- Mock Test Attempts ---
    free_mock_max_attempts = models.PositiveIntegerField(default=3)
    paid_mock_max_attempts = models.PositiveIntegerField(default=10)

    # --- Contact ---
    contact_daily_reply_limit = models.PositiveIntegerField(default=3, help_text="User replies allowed per email per day")

    # --- Email Templates ---
    purchase_email_subject = models.CharField(max_length=200, default="Your purchase is confirmed")
    purchase_email_body = models.TextField(
        default="Hello {name}, your payment of Rs. {amount} for {item} was successful. Happy preparing!"
    )

    def save(self, *args, **kwargs):
        self.pk = 1  # Singleton pattern
        super().save(*args, **kwargs)
        cache.set('platform_settings', self)

    def delete(self, *args, **kwargs):
        pass

    @classmethod
    def load(cls):
        obj = cache.get('platform_settings')
        if obj is None:
            obj, created = cls.objects.get_or_create(pk=1)
            cache.set('platform_settings', obj)
        return obj

    def get_admin_email(self):
        return self.admin_notification_email or settings.ADMIN_NOTIFICATION_EMAIL

    def __str__(self):
        return "Platform Settings"


class AuditLog(models.Model):
    ACTION_CHOICES = [
        ('CREATE', 'Create'),
        ('UPDATE', 'Update'),
        ('DELETE', 'Delete'),
        ('ROLE', 'Role Changed'),
        ('PAYMENT', 'Payment Verified'),
        ('GRANT', 'Subscription Granted'),
        ('REVOKE', 'Subscription Revoked'),
        ('SETTINGS', 'Settings Changed'),
        ('CLEANUP', 'Database Cleanup'),
    ]

    actor = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=20, choices=ACTION_CHOICES)
    target_model = models.CharField(max_length=50, help_text="e.g., MockTest, User, Subscription")
    target_object_id = models.CharField(max_length=100, blank=True, null=True)
    details = models.TextField(blank=True, help_text="Description of changes")
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    timestamp = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-timestamp']

    def __str__(self):
        return f"{self.actor} - {self.action} - {self.timestamp}"

    @classmethod
    def record(cls, actor, action, target_model, target_object_id=None, details='', request=None):
        if actor is not None and not actor.is_authenticated:
            actor = None
        return cls.objects.create(
            actor=actor,
            action=action,
            target_model=target_model,
            target_object_id=str(target_object_id) if target_object_id is not None else None,
            details=details,
            ip_address=client_ip(request),
        )


class ContactMessage(models.Model):
    class Status(models.TextChoices):
        PENDING = "PENDING", "Pending"
        RESOLVED = "RESOLVED", "Resolved"

    class ConversationType(models.TextChoices):
        NEW_INQUIRY = "NEW_INQUIRY", "New Inquiry"
        ADMIN_REPLY = "ADMIN_REPLY", "Admin Reply"
        USER_REPLY = "USER_REPLY", "User Reply"

    name = models.CharField(max_length=150)
    email = models.EmailField()
    subject = models.CharField(max_length=255)
    message = models.TextField()
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)

    # Threading: every message of a conversation shares the thread id
    thread_id = models.UUIDField(default=uuid.uuid4, db_index=True)
    parent = models.ForeignKey('self', null=True, blank=True, on_delete=models.SET_NULL, related_name='replies')
    conversation_type = models.CharField(
        max_length=20, choices=ConversationType.choices, default=ConversationType.NEW_INQUIRY
    )

    # Rate limiting snapshot: how many user replies this email had sent today, this one included
    daily_message_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.email} - {self.subject}"


class NewsletterSubscriber(models.Model):
    email = models.EmailField(unique=True)
    is_active = models.BooleanField(default=True)
    subscribed_at = models.DateTimeField(auto_now_add=True)
    unsubscribed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-subscribed_at']

    def __str__(self):
        return self.email


class EmailLog(models.Model):
    class Status(models.TextChoices):
        SENT = "SENT", "Sent"
        FAILED = "FAILED", "Failed"

    recipient = models.EmailField()
    subject = models.CharField(max_length=255)
    source = models.CharField(max_length=50, help_text="e.g., contact-reply, purchase, newsletter")
    status = models.CharField(max_length=10, choices=Status.choices)
    error = models.TextField(blank=True)
    sent_by = models.CharField(max_length=255, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.recipient} - {self.subject} ({self.status})"
