import logging

from django.conf import settings
from django.db.models import Count, Sum
from rest_framework import mixins, viewsets, views, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from coupons.discounts import CouponError
from cores.emails import send_email
from cores.models import AuditLog, PlatformSetting
from users.permissions import IsPlatformAdmin

from .gateway import GatewayError, create_order, verify_signature
from .models import Subscription
from .serializers import (
    SubscriptionSerializer, CreateOrderSerializer, VerifyPaymentSerializer, GrantSubscriptionSerializer
)
from .services import OrderError, draft_order, record_pending_order, fulfil_order, grant_subscriptions

logger = logging.getLogger(__name__)


class CreateOrderView(views.APIView):
    """
    Opens a gateway order for a mock test, bundle or course.
    Payload: { "item_type": "mock_bundle", "item_id": 4, "coupon_code": "SAVE10" }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = CreateOrderSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Missing required fields", "details": serializer.errors}, status=400)
        data = serializer.validated_data

        try:
            draft = draft_order(request.user, data['item_type'], data['item_id'], data.get('coupon_code'))
        except OrderError as e:
            return Response({"error": str(e)}, status=e.status_code)
        except CouponError as e:
            return Response({"error": str(e)}, status=400)

        if draft.final_amount <= 0:
            return Response({"error": "Order amount must be greater than zero"}, status=400)

        try:
            order = create_order(draft.final_amount, notes={
                "user_id": str(request.user.id),
                "item_type": draft.item_type,
                "item_id": str(draft.item.id),
            })
        except GatewayError as e:
            return Response({"error": str(e)}, status=e.status_code)

        record_pending_order(request.user, draft, order['id'])

        return Response({
            "order": order,
            "key_id": settings.RAZORPAY_KEY_ID,
            "original_amount": draft.original_amount,
            "discount": draft.discount,
            "final_amount": draft.final_amount,
        }, status=status.HTTP_201_CREATED)


class VerifyPaymentView(views.APIView):
    """
    Checkout callback: checks the gateway signature and activates the order.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        serializer = VerifyPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Missing required fields"}, status=400)
        data = serializer.validated_data
        order_id = data['razorpay_order_id']
        payment_id = data['razorpay_payment_id']

        if not verify_signature(order_id, payment_id, data['razorpay_signature']):
            logger.warning(f"Invalid payment signature for order {order_id}")
            return Response({"error": "Invalid signature"}, status=400)

        if not Subscription.objects.filter(user=request.user, gateway_order_id=order_id).exists():
            return Response({"error": "Order not found"}, status=404)

        already_paid = not Subscription.objects.filter(
            user=request.user, gateway_order_id=order_id, paid=False
        ).exists()
        subscriptions = fulfil_order(request.user, order_id, payment_id)

        if not already_paid:
            total = sum(s.amount_paid for s in subscriptions)
            AuditLog.record(request.user, 'PAYMENT', 'Subscription', order_id, f"Payment {payment_id} verified, Rs. {total}", request=request)
            self._send_receipt(request.user, subscriptions, total)

        return Response({
            "success": True,
            "message": "Payment verified! You can now start.",
            "subscriptions": SubscriptionSerializer(subscriptions, many=True).data,
        })

    def _send_receipt(self, user, subscriptions, total):
        config = PlatformSetting.load()
        first = subscriptions[0]
        item = first.mock_bundle or first.course or first.mock_test
        values = {"name": user.get_full_name() or user.email, "amount": total, "item": item}
        try:
            body = config.purchase_email_body.format(**values)
        except (KeyError, IndexError, ValueError):
            logger.exception("Purchase email template is broken, sending the default receipt")
            body = PlatformSetting._meta.get_field('purchase_email_body').default.format(**values)
        send_email(user.email, config.purchase_email_subject, body, source='purchase',
                   metadata={"order_id": first.gateway_order_id})


class SubscriptionAdminViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin,
                               mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """
    Admin view of every subscription. Filters: ?user_id= ?mock_id= ?paid=true
    DELETE revokes a grant.
    """
    queryset = Subscription.objects.select_related('user', 'mock_test', 'mock_bundle', 'course', 'coupon').all()
    serializer_class = SubscriptionSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('user_id'):
            queryset = queryset.filter(user_id=params['user_id'])
        if params.get('mock_id'):
            queryset = queryset.filter(mock_test_id=params['mock_id'])
        if params.get('paid') is not None:
            queryset = queryset.filter(paid=params['paid'].lower() == 'true')
        return queryset

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'REVOKE', 'Subscription', instance.id, f"Revoked {instance}", request=self.request)
        instance.delete()

    @action(detail=False, methods=['post'])
    def grant(self, request):
        """
        Grants access without payment.
        Payload: { "user_ids": [1, 2], "mock_test_ids": [5], "mock_bundle_id": 2, "expires_at": null }
        """
        serializer = GrantSubscriptionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        created = grant_subscriptions(
            data['user_ids'],
            mock_tests=data.get('mock_test_ids', []),
            bundle=data.get('mock_bundle_id'),
            course=data.get('course_id'),
            expires_at=data.get('expires_at'),
        )
        AuditLog.record(request.user, 'GRANT', 'Subscription', None,
                        f"Granted {created} subscription(s) to {len(data['user_ids'])} user(s)", request=request)
        return Response({"status": "Subscriptions granted", "created": created}, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def revenue(self, request):
        paid = Subscription.objects.filter(paid=True)
        totals = paid.aggregate(revenue=Sum('amount_paid'), discounts=Sum('discount_applied'), count=Count('id'))
        return Response({
            "total_revenue": totals['revenue'] or 0,
            "total_discounts": totals['discounts'] or 0,
            "paid_subscriptions": totals['count'],
            "mock_tests": paid.filter(mock_test__isnull=False, mock_bundle__isnull=True).aggregate(v=Sum('amount_paid'))['v'] or 0,
            "mock_bundles": paid.filter(mock_bundle__isnull=False).aggregate(v=Sum('amount_paid'))['v'] or 0,
            "courses": paid.filter(course__isnull=False).aggregate(v=Sum('amount_paid'))['v'] or 0,
        })


class MySubscriptionsView(views.APIView):
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        subscriptions = Subscription.objects.filter(user=request.user, paid=True).select_related(
            'mock_test', 'mock_bundle', 'course'
        )
        return Response(SubscriptionSerializer(subscriptions, many=True).data)
