from rest_framework import serializers
from .models import MockAttempt
from mocks.serializers import MockTestListSerializer, QuestionPublicSerializer

class MockAttemptSerializer(serializers.ModelSerializer):
    """Lightweight serializer for lists / dashboard history."""
    mock_test = MockTestListSerializer(read_only=True)
    status = serializers.SerializerMethodField()

    class Meta:
        model = MockAttempt
        fields = [
            'id', 'mock_test', 'started_at', 'submitted_at', 'score', 'correct_count',
            'incorrect_count', 'unanswered_count', 'total_questions', 'percentage', 'status'
        ]
        read_only_fields = fields

    def get_status(self, obj):
        if obj.submitted_at:
            return "completed"
        return "in_progress"

class ActiveAttemptSerializer(MockAttemptSerializer):
    """Heavy serializer for taking the test. Includes QUESTIONS without answers."""
    questions = QuestionPublicSerializer(source='mock_test.questions', many=True, read_only=True)
    duration_minutes = serializers.IntegerField(source='mock_test.duration_minutes', read_only=True)
    time_remaining_seconds = serializers.SerializerMethodField()

    class Meta(MockAttemptSerializer.Meta):
        fields = MockAttemptSerializer.Meta.fields + ['answers', 'questions', 'duration_minutes', 'time_remaining_seconds']
        read_only_fields = fields

    def get_time_remaining_seconds(self, obj):
        from django.utils import timezone
        if obj.submitted_at: return 0
        elapsed = (timezone.now() - obj.started_at).total_seconds()
        total = obj.mock_test.duration_minutes * 60
        return max(0, int(total - elapsed))

class AttemptSubmitSerializer(serializers.Serializer):
    # { "<question id>": "<answer>" }
    answers = serializers.DictField(
        child=serializers.CharField(allow_blank=True, allow_null=True, trim_whitespace=False)
    )
