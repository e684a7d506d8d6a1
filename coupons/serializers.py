from rest_framework import serializers
from .models import GeneralCoupon, CouponUsage, CourseCoupon

class GeneralCouponSerializer(serializers.ModelSerializer):
    times_used = serializers.IntegerField(source='usage_count', read_only=True)

    class Meta:
        model = GeneralCoupon
        fields = [
            'id', 'code', 'name', 'description', 'discount_type', 'discount_value',
            'max_discount_amount', 'min_order_value', 'product_type', 'product_ids',
            'usage_limit', 'times_used', 'user_limit', 'valid_from', 'valid_till',
            'is_active', 'created_at'
        ]
        read_only_fields = ['created_at']

    def validate_code(self, value):
        return value.strip().upper()

    def validate(self, attrs):
        valid_from = attrs.get('valid_from', getattr(self.instance, 'valid_from', None))
        valid_till = attrs.get('valid_till', getattr(self.instance, 'valid_till', None))
        if valid_from and valid_till and valid_till <= valid_from:
            raise serializers.ValidationError({"valid_till": "Must be after valid_from"})

        discount_type = attrs.get('discount_type', getattr(self.instance, 'discount_type', None))
        discount_value = attrs.get('discount_value', getattr(self.instance, 'discount_value', None))
        if discount_value is not None and discount_value <= 0:
            raise serializers.ValidationError({"discount_value": "Must be positive"})
        if discount_type == GeneralCoupon.DiscountType.PERCENTAGE and discount_value and discount_value > 100:
            raise serializers.ValidationError({"discount_value": "Percentage cannot exceed 100"})
        return attrs

class CouponUsageSerializer(serializers.ModelSerializer):
    user_email = serializers.CharField(source='user.email', read_only=True)

    class Meta:
        model = CouponUsage
        fields = ['id', 'user_email', 'order_id', 'product_id', 'discount_amount', 'used_at']

class CourseCouponSerializer(serializers.ModelSerializer):
    class Meta:
        model = CourseCoupon
        fields = ['id', 'course', 'code', 'discount_pct', 'valid_till', 'is_public']

    def validate_discount_pct(self, value):
        if not 0 < value <= 100:
            raise serializers.ValidationError("Discount must be between 1 and 100")
        return value

class CouponValidateSerializer(serializers.Serializer):
    code = serializers.CharField()
    product_type = serializers.ChoiceField(choices=GeneralCoupon.ProductType.choices)
    product_id = serializers.CharField(required=False, allow_blank=True)
    order_value = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0)
