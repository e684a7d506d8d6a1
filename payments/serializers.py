from rest_framework import serializers
from django.contrib.auth import get_user_model

from courses.models import Course
from mocks.models import MockTest, MockBundle
from .models import Subscription

User = get_user_model()

class SubscriptionSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True)
    mock_test_title = serializers.CharField(source='mock_test.title', read_only=True, default=None)
    mock_bundle_title = serializers.CharField(source='mock_bundle.title', read_only=True, default=None)
    course_title = serializers.CharField(source='course.title', read_only=True, default=None)
    coupon_code = serializers.CharField(source='coupon.code', read_only=True, default=None)

    class Meta:
        model = Subscription
        fields = [
            'id', 'user', 'user_email', 'mock_test', 'mock_test_title', 'mock_bundle', 'mock_bundle_title',
            'course', 'course_title', 'paid', 'original_price', 'amount_paid', 'discount_applied',
            'coupon_code', 'gateway_order_id', 'gateway_payment_id', 'paid_at', 'expires_at', 'created_at'
        ]
        read_only_fields = fields

class CreateOrderSerializer(serializers.Serializer):
    item_type = serializers.ChoiceField(choices=['mock_test', 'mock_bundle', 'course'])
    item_id = serializers.IntegerField()
    coupon_code = serializers.CharField(required=False, allow_blank=True)

class VerifyPaymentSerializer(serializers.Serializer):
    razorpay_order_id = serializers.CharField()
    razorpay_payment_id = serializers.CharField()
    razorpay_signature = serializers.CharField()

class GrantSubscriptionSerializer(serializers.Serializer):
    user_ids = serializers.PrimaryKeyRelatedField(queryset=User.objects.all(), many=True)
    mock_test_ids = serializers.PrimaryKeyRelatedField(queryset=MockTest.objects.all(), many=True, required=False)
    mock_bundle_id = serializers.PrimaryKeyRelatedField(queryset=MockBundle.objects.all(), required=False, allow_null=True)
    course_id = serializers.PrimaryKeyRelatedField(queryset=Course.objects.all(), required=False, allow_null=True)
    expires_at = serializers.DateTimeField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs.get('mock_test_ids') and not attrs.get('mock_bundle_id') and not attrs.get('course_id'):
            raise serializers.ValidationError("Choose at least one mock test, bundle or course to grant")
        return attrs
