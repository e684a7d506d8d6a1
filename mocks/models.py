# mocks/models.py
from decimal import Decimal

from django.db import models


class MockTest(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PUBLISHED = "PUBLISHED", "Published"

    class Difficulty(models.TextChoices):
        EASY = "EASY", "Easy"
        MEDIUM = "MEDIUM", "Medium"
        HARD = "HARD", "Hard"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    # 0 means the test is free
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    difficulty = models.CharField(max_length=20, choices=Difficulty.choices, default=Difficulty.MEDIUM)
    tags = models.JSONField(default=list, blank=True)
    duration_minutes = models.PositiveIntegerField(default=180)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.title

    @property
    def is_free(self):
        return not self.price or self.price <= 0

    @property
    def is_published(self):
        return self.status == self.Status.PUBLISHED


class Question(models.Model):
    class QuestionType(models.TextChoices):
        MCQ = "MCQ", "Single Choice"
        MSQ = "MSQ", "Multiple Select"
        NAT = "NAT", "Numerical Answer"
        DESCRIPTIVE = "DESCRIPTIVE", "Descriptive"

    mock_test = models.ForeignKey(MockTest, related_name='questions', on_delete=models.CASCADE)

    text = models.TextField()
    question_type = models.CharField(max_length=20, choices=QuestionType.choices, default=QuestionType.MCQ)
    # MSQ answers are ';' separated, NAT answers are numeric strings
    answer = models.TextField()
    options = models.JSONField(default=list, blank=True)
    explanation = models.TextField(blank=True)
    order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ['order', 'id']

    def __str__(self):
        return f"{self.text[:50]}..."


class MockBundle(models.Model):
    class Status(models.TextChoices):
        DRAFT = "DRAFT", "Draft"
        PUBLISHED = "PUBLISHED", "Published"

    title = models.CharField(max_length=255)
    description = models.TextField(blank=True)
    mock_tests = models.ManyToManyField(MockTest, related_name='bundles', blank=True)

    # Sum of the member test prices
    base_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    discounted_price = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['order', '-created_at']

    def __str__(self):
        return self.title

    def recalculate_base_price(self):
        self.base_price = sum((m.price for m in self.mock_tests.all()), Decimal('0.00'))
        self.save(update_fields=['base_price'])
        return self.base_price

    @property
    def selling_price(self):
        if self.discounted_price is not None:
            return self.discounted_price
        return self.base_price
