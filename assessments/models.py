# assessments/models.py
from django.db import models
from django.conf import settings
from mocks.models import MockTest

class MockAttempt(models.Model):
    """
    Tracks a candidate's specific attempt at a mock test.
    Created when the test is started, written once more on submission, after
    which it is terminal.
    """
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='mock_attempts')
    mock_test = models.ForeignKey(MockTest, on_delete=models.CASCADE, related_name='attempts')

    # { "<question id>": "<submitted answer>" }
    answers = models.JSONField(default=dict, blank=True)

    score = models.PositiveIntegerField(default=0)
    correct_count = models.PositiveIntegerField(default=0)
    incorrect_count = models.PositiveIntegerField(default=0)
    unanswered_count = models.PositiveIntegerField(default=0)
    total_questions = models.PositiveIntegerField(default=0)
    percentage = models.PositiveIntegerField(default=0)

    started_at = models.DateTimeField(auto_now_add=True)
    submitted_at = models.DateTimeField(null=True, blank=True)  # When they submitted

    class Meta:
        ordering = ['-started_at']

    def __str__(self):
        return f"{self.user} - {self.mock_test.title}"

    @property
    def is_submitted(self):
        return self.submitted_at is not None
