from rest_framework import serializers

from courses.models import Course
from .models import FAQ, CourseFeedback, FeedbackReply, CourseAnnouncement

# --- FAQ ---

class FAQSerializer(serializers.ModelSerializer):
    class Meta:
        model = FAQ
        fields = ['id', 'question', 'answer', 'category', 'visible', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

class FAQBulkItemSerializer(serializers.Serializer):
    question = serializers.CharField(required=False, allow_blank=True)
    answer = serializers.CharField(required=False, allow_blank=True)
    category = serializers.CharField(required=False, allow_blank=True, max_length=100)

# --- Feedback ---

class FeedbackReplySerializer(serializers.ModelSerializer):
    admin_name = serializers.SerializerMethodField()

    class Meta:
        model = FeedbackReply
        fields = ['id', 'feedback', 'admin', 'admin_name', 'message', 'read', 'read_at', 'created_at', 'updated_at']
        read_only_fields = ['feedback', 'admin', 'read', 'read_at', 'created_at', 'updated_at']

    def get_admin_name(self, obj):
        if obj.admin is None:
            return None
        return obj.admin.get_full_name() or obj.admin.email

class CourseFeedbackSerializer(serializers.ModelSerializer):
    course = serializers.PrimaryKeyRelatedField(queryset=Course.objects.filter(status=Course.Status.PUBLISHED))
    course_title = serializers.CharField(source='course.title', read_only=True)
    user_email = serializers.CharField(source='user.email', read_only=True)
    replies = FeedbackReplySerializer(many=True, read_only=True)

    class Meta:
        model = CourseFeedback
        fields = ['id', 'course', 'course_title', 'user_email', 'content', 'status', 'replies', 'created_at']
        read_only_fields = ['status', 'created_at']

class FeedbackReplyCreateSerializer(serializers.Serializer):
    message = serializers.CharField()

class MarkReadSerializer(serializers.Serializer):
    feedback_id = serializers.IntegerField(required=False)
    mark_all = serializers.BooleanField(default=False)

    def validate(self, attrs):
        if not attrs['mark_all'] and attrs.get('feedback_id') is None:
            raise serializers.ValidationError("Either feedback_id or mark_all must be provided")
        return attrs

# --- Announcements ---

class CourseAnnouncementSerializer(serializers.ModelSerializer):
    course_title = serializers.CharField(source='course.title', read_only=True)
    total_recipients = serializers.IntegerField(read_only=True)
    read_count = serializers.IntegerField(read_only=True)
    email_delivered_count = serializers.IntegerField(read_only=True)

    class Meta:
        model = CourseAnnouncement
        fields = [
            'id', 'course', 'course_title', 'title', 'message', 'send_email', 'total_recipients',
            'read_count', 'email_delivered_count', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

class StudentAnnouncementSerializer(serializers.ModelSerializer):
    read = serializers.SerializerMethodField()

    class Meta:
        model = CourseAnnouncement
        fields = ['id', 'course', 'title', 'message', 'read', 'created_at']

    def get_read(self, obj):
        return obj.id in self.context.get('read_ids', ())
