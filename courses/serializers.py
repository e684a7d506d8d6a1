from rest_framework import serializers
from .models import Course, CourseContent, Enrollment, Lecture
from .youtube import embed_url

class CourseSerializer(serializers.ModelSerializer):
    total_enrollments = serializers.IntegerField(source='enrollments.count', read_only=True)
    is_free = serializers.BooleanField(read_only=True)

    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'price', 'is_free', 'duration_days', 'status', 'order', 'total_enrollments', 'created_at']
        read_only_fields = ['created_at']

class CourseListSerializer(serializers.ModelSerializer):
    is_free = serializers.BooleanField(read_only=True)

    class Meta:
        model = Course
        fields = ['id', 'title', 'description', 'price', 'is_free', 'duration_days']

class EnrollmentSerializer(serializers.ModelSerializer):
    course = CourseListSerializer(read_only=True)
    is_expired = serializers.BooleanField(read_only=True)

    class Meta:
        model = Enrollment
        fields = ['id', 'course', 'enrolled_at', 'expires_at', 'is_expired']

class ApplyCourseCouponSerializer(serializers.Serializer):
    code = serializers.CharField()

# --- Course content ---

class LectureSerializer(serializers.ModelSerializer):
    order = serializers.IntegerField(min_value=1, required=False)

    class Meta:
        model = Lecture
        fields = ['id', 'content', 'title', 'video_url', 'youtube_embed_url', 'pdf_url', 'summary', 'order', 'created_at']
        read_only_fields = ['content', 'created_at']

    def validate(self, attrs):
        # Derive the player URL from a pasted YouTube link
        if not attrs.get('youtube_embed_url') and attrs.get('video_url'):
            attrs['youtube_embed_url'] = embed_url(attrs['video_url']) or ''
        return attrs

class CourseContentSerializer(serializers.ModelSerializer):
    lectures = LectureSerializer(many=True, read_only=True)

    class Meta:
        model = CourseContent
        fields = ['id', 'course', 'title', 'description', 'order', 'lectures', 'created_at']
        read_only_fields = ['course', 'created_at']

class ReorderSerializer(serializers.Serializer):
    # Ids in their new display order
    ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
