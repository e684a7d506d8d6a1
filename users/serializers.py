from rest_framework import serializers
from django.contrib.auth import get_user_model
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer

# Import models for aggregation
from assessments.models import MockAttempt
from payments.models import Subscription

User = get_user_model()

class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            'id', 'email', 'first_name', 'last_name', 'role', 'is_staff',
            'phone_number', 'bio', 'avatar', 'profile_image_url', 'date_joined'
        ]
        read_only_fields = ['is_staff', 'role', 'date_joined']

class AdminUserSerializer(UserSerializer):
    """Admins may also see and edit role and provider linkage."""
    class Meta(UserSerializer.Meta):
        fields = UserSerializer.Meta.fields + ['identity_provider_id', 'provider_metadata', 'is_active']
        read_only_fields = ['is_staff', 'date_joined', 'identity_provider_id', 'provider_metadata']

class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)

    class Meta:
        model = User
        fields = ['email', 'first_name', 'last_name', 'password', 'phone_number']

    def create(self, validated_data):
        user = User.objects.create_user(
            username=validated_data['email'],
            email=validated_data['email'],
            password=validated_data['password'],
            first_name=validated_data['first_name'],
            last_name=validated_data['last_name'],
            phone_number=validated_data.get('phone_number', ''),
        )
        return user

class RoleUpdateSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=User.Role.choices)

class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        data['user'] = UserSerializer(self.user).data
        return data

class StudentListSerializer(serializers.ModelSerializer):
    mocks_attempted = serializers.SerializerMethodField()
    paid_subscriptions = serializers.SerializerMethodField()
    last_activity = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'email', 'first_name', 'last_name', 'role', 'mocks_attempted', 'paid_subscriptions', 'last_activity']

    def get_mocks_attempted(self, obj):
        return MockAttempt.objects.filter(user=obj, submitted_at__isnull=False).count()

    def get_paid_subscriptions(self, obj):
        return Subscription.objects.filter(user=obj, paid=True).count()

    def get_last_activity(self, obj):
        last_attempt = MockAttempt.objects.filter(user=obj).order_by('-started_at').first()
        if last_attempt:
            return last_attempt.started_at
        return obj.date_joined
