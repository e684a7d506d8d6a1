from django.db.models import Count, Sum
from rest_framework import viewsets, permissions, status, views
from rest_framework.decorators import action
from rest_framework.response import Response

from cores.models import AuditLog
from users.permissions import IsPlatformAdmin, IsAdminOrInstructor

from .discounts import CouponError, calculate_discount, find_coupon, validate_coupon
from .models import GeneralCoupon, CouponUsage, CourseCoupon
from .serializers import (
    GeneralCouponSerializer, CouponUsageSerializer, CourseCouponSerializer, CouponValidateSerializer
)


class ValidateCouponView(views.APIView):
    """
    Checks a general coupon against an order before checkout.
    Payload: { "code": "SAVE10", "product_type": "MOCK_TEST", "product_id": "3", "order_value": "499.00" }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CouponValidateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Missing required fields", "details": serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        coupon = find_coupon(data['code'])
        if coupon is None:
            return Response({"valid": False, "error": "Invalid coupon code"}, status=status.HTTP_404_NOT_FOUND)

        try:
            validate_coupon(coupon, request.user, data['product_type'], data.get('product_id') or None, data['order_value'])
        except CouponError as e:
            return Response({"valid": False, "error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        discount = calculate_discount(coupon, data['order_value'])
        return Response({
            "valid": True,
            "coupon": {
                "id": coupon.id,
                "code": coupon.code,
                "name": coupon.name,
                "description": coupon.description,
                "discount_type": coupon.discount_type,
                "discount_value": coupon.discount_value,
            },
            "discount": discount.as_dict(),
        })


class GeneralCouponViewSet(viewsets.ModelViewSet):
    queryset = GeneralCoupon.objects.all()
    serializer_class = GeneralCouponSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        product_type = self.request.query_params.get('product_type')
        if product_type:
            queryset = queryset.filter(product_type=product_type)
        return queryset

    def perform_create(self, serializer):
        coupon = serializer.save()
        AuditLog.record(self.request.user, 'CREATE', 'GeneralCoupon', coupon.id, f"Created coupon {coupon.code}", request=self.request)

    @action(detail=True, methods=['get'])
    def usages(self, request, pk=None):
        coupon = self.get_object()
        return Response(CouponUsageSerializer(coupon.usages.select_related('user'), many=True).data)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        totals = CouponUsage.objects.aggregate(uses=Count('id'), discount=Sum('discount_amount'))
        return Response({
            "total_coupons": GeneralCoupon.objects.count(),
            "active_coupons": GeneralCoupon.objects.filter(is_active=True).count(),
            "total_uses": totals['uses'],
            "total_discount_given": totals['discount'] or 0,
        })


class CourseCouponViewSet(viewsets.ModelViewSet):
    """Admin and instructor management of per-course codes. Filter with ?course_id=."""
    queryset = CourseCoupon.objects.all().order_by('-valid_till')
    serializer_class = CourseCouponSerializer
    permission_classes = [IsAdminOrInstructor]

    def get_queryset(self):
        queryset = super().get_queryset()
        course_id = self.request.query_params.get('course_id')
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        return queryset
