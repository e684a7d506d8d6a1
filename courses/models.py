# courses/models.py
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.utils import timezone


class Course(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PUBLISHED = "PUBLISHED", "Published"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    # How long an enrollment stays valid; null means lifetime access
    duration_days = models.PositiveIntegerField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['order', '-created_at']

    def __str__(self):
        return self.title

    @property
    def is_free(self):
        return not self.price or self.price <= 0

    def enrollment_expiry(self, start=None):
        if not self.duration_days:
            return None
        return (start or timezone.now()) + timedelta(days=self.duration_days)


class Enrollment(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='enrollments')
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='enrollments')
    enrolled_at = models.DateTimeField(auto_now_add=True)
    expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        unique_together = ('user', 'course')
        ordering = ['-enrolled_at']

    def __str__(self):
        return f"{self.user} - {self.course}"

    @property
    def is_expired(self):
        return self.expires_at is not None and self.expires_at < timezone.now()


class CourseContent(models.Model):
    """A section of a course; lectures hang off it in display order."""
    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name='contents')
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return f"{self.course} / {self.title}"


class Lecture(models.Model):
    content = models.ForeignKey(CourseContent, on_delete=models.CASCADE, related_name='lectures')
    title = models.CharField(max_length=255)
    video_url = models.URLField(blank=True)
    youtube_embed_url = models.URLField(blank=True)
    pdf_url = models.URLField(blank=True)
    summary = models.TextField(blank=True)
    # 1-based position inside the section
    order = models.PositiveIntegerField(default=1)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return self.title
