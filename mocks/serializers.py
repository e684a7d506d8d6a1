# mocks/serializers.py
from rest_framework import serializers
from .models import MockTest, Question, MockBundle

# --- Question Serializers ---

class QuestionSerializer(serializers.ModelSerializer):
    """Full question, answer included. Admin and review use only."""
    # Map frontend 'question' to backend 'text'
    question = serializers.CharField(source='text')
    type = serializers.ChoiceField(source='question_type', choices=Question.QuestionType.choices)
    options = serializers.ListField(child=serializers.CharField(), required=False)

    class Meta:
        model = Question
        fields = ['id', 'mock_test', 'question', 'type', 'answer', 'options', 'explanation', 'order']
        read_only_fields = ['mock_test']

    def validate(self, attrs):
        q_type = attrs.get('question_type', getattr(self.instance, 'question_type', None))
        options = attrs.get('options', getattr(self.instance, 'options', []))
        if q_type in (Question.QuestionType.MCQ, Question.QuestionType.MSQ) and len(options or []) < 2:
            raise serializers.ValidationError({"options": "MCQ/MSQ questions require at least 2 options"})
        if q_type == Question.QuestionType.NAT:
            try:
                float(attrs.get('answer', getattr(self.instance, 'answer', '')))
            except (TypeError, ValueError):
                raise serializers.ValidationError({"answer": "NAT questions require a numerical answer"})
        return attrs

class QuestionPublicSerializer(serializers.ModelSerializer):
    """What a candidate sees while attempting: no answer, no explanation."""
    question = serializers.CharField(source='text', read_only=True)
    type = serializers.CharField(source='question_type', read_only=True)

    class Meta:
        model = Question
        fields = ['id', 'question', 'type', 'options', 'order']

# --- Mock Test Serializers ---

class MockTestSerializer(serializers.ModelSerializer):
    # Read-only counts
    total_questions = serializers.IntegerField(source='questions.count', read_only=True)

    class Meta:
        model = MockTest
        fields = [
            'id', 'title', 'description', 'price', 'difficulty', 'tags',
            'duration_minutes', 'status', 'total_questions', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate_price(self, value):
        if value < 0:
            raise serializers.ValidationError("Price cannot be negative")
        return value

class MockTestListSerializer(serializers.ModelSerializer):
    total_questions = serializers.IntegerField(source='questions.count', read_only=True)
    is_free = serializers.BooleanField(read_only=True)

    class Meta:
        model = MockTest
        fields = ['id', 'title', 'description', 'price', 'is_free', 'difficulty', 'tags', 'duration_minutes', 'total_questions']

class MockTestDetailSerializer(MockTestSerializer):
    """Detailed view for admins and instructors, answers included"""
    questions = QuestionSerializer(many=True, read_only=True)

    class Meta(MockTestSerializer.Meta):
        fields = MockTestSerializer.Meta.fields + ['questions']

# --- Bundle Serializers ---

class MockBundleSerializer(serializers.ModelSerializer):
    mock_tests = MockTestListSerializer(many=True, read_only=True)
    mock_test_ids = serializers.PrimaryKeyRelatedField(
        source='mock_tests', queryset=MockTest.objects.all(), many=True, write_only=True
    )
    selling_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)

    class Meta:
        model = MockBundle
        fields = [
            'id', 'title', 'description', 'mock_tests', 'mock_test_ids', 'base_price',
            'discounted_price', 'selling_price', 'status', 'order', 'created_at'
        ]
        read_only_fields = ['base_price', 'created_at']

    def validate_mock_test_ids(self, value):
        if not value:
            raise serializers.ValidationError("A bundle needs at least one mock test")
        return value

    def create(self, validated_data):
        mock_tests = validated_data.pop('mock_tests')
        bundle = MockBundle.objects.create(**validated_data)
        bundle.mock_tests.set(mock_tests)
        bundle.recalculate_base_price()
        return bundle

    def update(self, instance, validated_data):
        mock_tests = validated_data.pop('mock_tests', None)
        instance = super().update(instance, validated_data)
        if mock_tests is not None:
            instance.mock_tests.set(mock_tests)
            instance.recalculate_base_price()
        return instance
