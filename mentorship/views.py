import logging
from datetime import timedelta

from django.conf import settings
from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone
from rest_framework import mixins, viewsets, views, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from cores.emails import send_email
from cores.models import AuditLog
from payments.gateway import GatewayError
from payments.serializers import VerifyPaymentSerializer
from payments.services import grant_subscriptions
from users.permissions import IsPlatformAdmin, is_platform_admin

from .models import Session, SessionEnrollment
from .serializers import (
    SessionSerializer, SessionPublicSerializer, SessionEnrollmentSerializer, EnrollSerializer,
    EnrollmentIdsSerializer, EnrollmentEmailSerializer, AddMocksSerializer,
)
from .services import EnrollmentError, reserve_seat, open_session_order, confirm_payment

logger = logging.getLogger(__name__)

GIFTED_MOCK_ACCESS = timedelta(days=365)


def _send_booking_email(enrollment):
    session = enrollment.session
    body = (
        f"Hello {enrollment.student_name or enrollment.student_email},\n\n"
        f"Your seat for \"{session.title}\" is confirmed. We will reach you on {enrollment.student_phone} "
        f"with the joining details.\n\n{settings.FRONTEND_URL}/sessions"
    )
    send_email(enrollment.student_email, f"Session booked: {session.title}", body, source='session',
               metadata={"session_id": session.id, "enrollment_id": enrollment.id})


class SessionViewSet(viewsets.ModelViewSet):
    """
    Guidance sessions. Everyone may browse published sessions; only admins edit.
    """
    queryset = Session.objects.all()

    def get_queryset(self):
        queryset = super().get_queryset()
        if not is_platform_admin(self.request.user):
            queryset = queryset.filter(status=Session.Status.PUBLISHED)
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter)
        return queryset

    def get_serializer_class(self):
        if is_platform_admin(self.request.user):
            return SessionSerializer
        return SessionPublicSerializer

    def get_serializer_context(self):
        context = super().get_serializer_context()
        user = self.request.user
        if user and user.is_authenticated:
            context['enrolled_ids'] = set(
                SessionEnrollment.objects.filter(
                    user=user, payment_status=SessionEnrollment.PaymentStatus.SUCCESS
                ).values_list('session_id', flat=True)
            )
        return context

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.AllowAny()]
        if self.action in ['enroll', 'enrollment_status', 'enrolled']:
            return [permissions.IsAuthenticated()]
        return [IsPlatformAdmin()]

    def perform_create(self, serializer):
        session = serializer.save()
        AuditLog.record(self.request.user, 'CREATE', 'Session', session.id, f"Created session: {session.title}", request=self.request)

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', 'Session', instance.id, f"Deleted session: {instance.title}", request=self.request)
        instance.delete()

    @action(detail=True, methods=['post'])
    def enroll(self, request, pk=None):
        """
        Books a seat. Payload: { "phone_number": "+91 98765 43210" }
        Paid sessions answer with a gateway order to complete at checkout.
        """
        serializer = EnrollSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Phone number is required", "details": serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)

        try:
            enrollment = reserve_seat(request.user, pk, serializer.validated_data['phone_number'])
        except EnrollmentError as e:
            return Response({"error": str(e)}, status=e.status_code)

        if enrollment.is_confirmed:
            _send_booking_email(enrollment)
            return Response({
                "enrollment": SessionEnrollmentSerializer(enrollment).data,
                "payment_required": False,
            }, status=status.HTTP_201_CREATED)

        try:
            order = open_session_order(enrollment)
        except GatewayError as e:
            enrollment.payment_status = SessionEnrollment.PaymentStatus.FAILED
            enrollment.save(update_fields=['payment_status'])
            return Response({"error": str(e)}, status=e.status_code)

        return Response({
            "enrollment": SessionEnrollmentSerializer(enrollment).data,
            "payment_required": True,
            "order": order,
            "key_id": settings.RAZORPAY_KEY_ID,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['get'], url_path='enrollment-status')
    def enrollment_status(self, request, pk=None):
        enrollment = SessionEnrollment.objects.filter(session_id=pk, user=request.user).first()
        return Response({
            "is_enrolled": bool(enrollment and enrollment.is_confirmed),
            "payment_status": enrollment.payment_status if enrollment else None,
        })

    @action(detail=False, methods=['get'])
    def enrolled(self, request):
        """Ids of the sessions the user holds a confirmed seat in."""
        session_ids = SessionEnrollment.objects.filter(
            user=request.user, payment_status=SessionEnrollment.PaymentStatus.SUCCESS
        ).values_list('session_id', flat=True)
        return Response({"session_ids": list(session_ids)})

    @action(detail=False, methods=['post'])
    def reorder(self, request):
        """Payload: { "ids": [3, 1, 2] } sets display order to the list position."""
        ids = request.data.get('ids', [])
        with transaction.atomic():
            for position, session_id in enumerate(ids):
                Session.objects.filter(id=session_id).update(order=position)
        return Response({"status": "Sessions reordered"})


class SessionPaymentVerifyView(views.APIView):
    """Checkout callback for a paid session booking."""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, enrollment_id):
        serializer = VerifyPaymentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Missing required fields"}, status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        try:
            enrollment, newly_confirmed = confirm_payment(
                enrollment_id, request.user, data['razorpay_order_id'],
                data['razorpay_payment_id'], data['razorpay_signature'],
            )
        except EnrollmentError as e:
            return Response({"error": str(e)}, status=e.status_code)

        if not enrollment.is_confirmed:
            return Response({"error": "Payment verification failed"}, status=status.HTTP_400_BAD_REQUEST)

        if newly_confirmed:
            AuditLog.record(request.user, 'PAYMENT', 'SessionEnrollment', enrollment.id,
                            f"Session payment {enrollment.gateway_payment_id} verified, Rs. {enrollment.amount_paid}",
                            request=request)
            _send_booking_email(enrollment)

        return Response({
            "success": True,
            "message": "Payment verified successfully",
            "enrollment": SessionEnrollmentSerializer(enrollment).data,
        })


class SessionEnrollmentAdminViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin,
                                    mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """
    Bookings across all sessions. Filters: ?session_id= ?payment_status=SUCCESS
    """
    queryset = SessionEnrollment.objects.select_related('session', 'user').all()
    serializer_class = SessionEnrollmentSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('session_id'):
            queryset = queryset.filter(session_id=params['session_id'])
        if params.get('payment_status'):
            queryset = queryset.filter(payment_status=params['payment_status'].upper())
        return queryset

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', 'SessionEnrollment', instance.id,
                        f"Deleted enrollment of {instance.student_email} in {instance.session.title}",
                        request=self.request)
        instance.delete()

    @action(detail=False, methods=['post'], url_path='delete')
    def bulk_delete(self, request):
        serializer = EnrollmentIdsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        ids = [e.id for e in serializer.validated_data['enrollment_ids']]
        deleted, _ = SessionEnrollment.objects.filter(id__in=ids).delete()
        AuditLog.record(request.user, 'DELETE', 'SessionEnrollment', None,
                        f"Deleted {deleted} session enrollment(s)", request=request)
        return Response({"deleted": deleted})

    @action(detail=False, methods=['post'], url_path='send-email')
    def broadcast(self, request):
        serializer = EnrollmentEmailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        sent = failed = 0
        for enrollment in data['enrollment_ids']:
            body = f"Hi {enrollment.student_name or 'there'},\n\n{data['message']}\n\nSession: {enrollment.session.title}"
            delivered = send_email(enrollment.student_email, data['subject'], body, source='session-enrollments',
                                   sent_by=request.user.email,
                                   metadata={"session_id": enrollment.session_id, "enrollment_id": enrollment.id})
            if delivered:
                sent += 1
            else:
                failed += 1
        logger.info(f"Session email by {request.user.email}: {sent} sent, {failed} failed")
        return Response({"sent": sent, "failed": failed})

    @action(detail=False, methods=['post'], url_path='add-mocks')
    def add_mocks(self, request):
        """Gifts mock tests to the students behind the given bookings."""
        serializer = AddMocksSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        users = {e.user_id: e.user for e in data['enrollment_ids']}
        expires_at = data.get('expires_at') or timezone.now() + GIFTED_MOCK_ACCESS
        created = grant_subscriptions(users.values(), mock_tests=data['mock_test_ids'], expires_at=expires_at)
        AuditLog.record(request.user, 'GRANT', 'Subscription', None,
                        f"Gifted {created} mock subscription(s) to {len(users)} session student(s)",
                        request=request)
        return Response({"created": created, "students": len(users)}, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['get'])
    def stats(self, request):
        confirmed = Q(enrollments__payment_status=SessionEnrollment.PaymentStatus.SUCCESS)
        per_session = Session.objects.annotate(
            total=Count('enrollments'),
            confirmed=Count('enrollments', filter=confirmed),
            revenue=Sum('enrollments__amount_paid', filter=confirmed),
        ).order_by('order', '-created_at')
        by_status = dict(
            SessionEnrollment.objects.order_by().values_list('payment_status').annotate(n=Count('id'))
        )
        return Response({
            "total_enrollments": sum(by_status.values()),
            "by_status": {choice: by_status.get(choice, 0) for choice in SessionEnrollment.PaymentStatus.values},
            "total_revenue": SessionEnrollment.objects.filter(
                payment_status=SessionEnrollment.PaymentStatus.SUCCESS
            ).aggregate(v=Sum('amount_paid'))['v'] or 0,
            "sessions": [
                {
                    "id": s.id,
                    "title": s.title,
                    "enrollments": s.total,
                    "confirmed": s.confirmed,
                    "revenue": s.revenue or 0,
                    "max_enrollment": s.max_enrollment,
                }
                for s in per_session
            ],
        })
