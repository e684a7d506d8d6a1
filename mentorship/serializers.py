from rest_framework import serializers

from mocks.models import MockTest
from .models import Session, SessionEnrollment

class SessionSerializer(serializers.ModelSerializer):
    """Admin view of a session, seat usage included."""
    selling_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    confirmed_enrollments = serializers.IntegerField(source='confirmed_count', read_only=True)

    class Meta:
        model = Session
        fields = [
            'id', 'title', 'description', 'content', 'tags', 'session_type', 'duration_minutes',
            'price', 'discounted_price', 'selling_price', 'max_enrollment', 'expiry_date',
            'status', 'order', 'confirmed_enrollments', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']

    def validate(self, attrs):
        price = attrs.get('price', getattr(self.instance, 'price', None))
        discounted = attrs.get('discounted_price', getattr(self.instance, 'discounted_price', None))
        if discounted is not None and price is not None and discounted > price:
            raise serializers.ValidationError({"discounted_price": "Discounted price cannot exceed the price"})
        return attrs

class SessionPublicSerializer(serializers.ModelSerializer):
    selling_price = serializers.DecimalField(max_digits=10, decimal_places=2, read_only=True)
    is_enrolled = serializers.SerializerMethodField()

    class Meta:
        model = Session
        fields = [
            'id', 'title', 'description', 'content', 'session_type', 'duration_minutes', 'price',
            'discounted_price', 'selling_price', 'max_enrollment', 'expiry_date', 'is_enrolled', 'created_at'
        ]

    def get_is_enrolled(self, obj):
        return obj.id in self.context.get('enrolled_ids', ())

class SessionEnrollmentSerializer(serializers.ModelSerializer):
    session_title = serializers.CharField(source='session.title', read_only=True)

    class Meta:
        model = SessionEnrollment
        fields = [
            'id', 'session', 'session_title', 'user', 'student_name', 'student_email', 'student_phone',
            'payment_status', 'amount_paid', 'gateway_order_id', 'gateway_payment_id', 'enrolled_at', 'paid_at'
        ]
        read_only_fields = fields

class EnrollSerializer(serializers.Serializer):
    phone_number = serializers.RegexField(r'^\+?[0-9 \-]{7,20}$', max_length=20)

class EnrollmentIdsSerializer(serializers.Serializer):
    enrollment_ids = serializers.PrimaryKeyRelatedField(
        queryset=SessionEnrollment.objects.all(), many=True, allow_empty=False
    )

class EnrollmentEmailSerializer(EnrollmentIdsSerializer):
    subject = serializers.CharField(max_length=255)
    message = serializers.CharField()

class AddMocksSerializer(EnrollmentIdsSerializer):
    mock_test_ids = serializers.PrimaryKeyRelatedField(queryset=MockTest.objects.all(), many=True, allow_empty=False)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)
