import string
from decimal import Decimal

from rest_framework import serializers
from .models import PlatformSetting, AuditLog, ContactMessage, NewsletterSubscriber, EmailLog

class PlatformSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = PlatformSetting
        fields = '__all__'
        read_only_fields = ['id']

    # Placeholders the purchase receipt fills in
    PURCHASE_PLACEHOLDERS = {'name', 'amount', 'item'}

    def validate_purchase_email_body(self, value):
        try:
            fields = [field for _, field, _, _ in string.Formatter().parse(value) if field is not None]
        except ValueError as exc:
            raise serializers.ValidationError(f"Invalid template: {exc}")
        unknown = sorted({f for f in fields if f not in self.PURCHASE_PLACEHOLDERS})
        if unknown:
            raise serializers.ValidationError(
                f"Unknown placeholders: {', '.join(unknown)}. Allowed: {{name}}, {{amount}}, {{item}}"
            )
        try:
            value.format(name="Student", amount=Decimal("0.00"), item="Mock Test")
        except (IndexError, ValueError) as exc:
            raise serializers.ValidationError(f"Invalid template: {exc}")
        return value

class AuditLogSerializer(serializers.ModelSerializer):
    # This field fetches the email from the related User model
    actor_email = serializers.CharField(source='actor.email', read_only=True, default=None)
    actor_role = serializers.CharField(source='actor.role', read_only=True, default=None)

    class Meta:
        model = AuditLog
        fields = ['id', 'actor', 'actor_email', 'actor_role', 'action', 'target_model', 'target_object_id', 'ip_address', 'timestamp', 'details']

class ContactMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ContactMessage
        fields = [
            'id', 'name', 'email', 'subject', 'message', 'status', 'thread_id', 'parent',
            'conversation_type', 'daily_message_count', 'created_at'
        ]
        read_only_fields = ['status', 'thread_id', 'parent', 'conversation_type', 'daily_message_count', 'created_at']

class ContactReplySerializer(serializers.Serializer):
    thread_id = serializers.UUIDField()
    parent_id = serializers.IntegerField(required=False, allow_null=True)
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    message = serializers.CharField()

class AdminReplySerializer(serializers.Serializer):
    message = serializers.CharField()
    resolve = serializers.BooleanField(default=False)

class NewsletterSubscriberSerializer(serializers.ModelSerializer):
    class Meta:
        model = NewsletterSubscriber
        fields = ['id', 'email', 'is_active', 'subscribed_at', 'unsubscribed_at']
        read_only_fields = ['is_active', 'subscribed_at', 'unsubscribed_at']

class BroadcastSerializer(serializers.Serializer):
    subject = serializers.CharField(max_length=255)
    message = serializers.CharField()

class EmailLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmailLog
        fields = ['id', 'recipient', 'subject', 'source', 'status', 'error', 'sent_by', 'metadata', 'created_at']
