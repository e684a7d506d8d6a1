import csv
import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.core.validators import validate_email
from django.db.models import Count, Sum
from django.http import HttpResponse
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, mixins, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView
from rest_framework.response import Response

from assessments.models import MockAttempt
from courses.models import Course, Enrollment
from mocks.models import MockTest, MockBundle
from payments.models import Subscription
from users.permissions import IsPlatformAdmin, IsAdminOrInstructor

from .emails import send_email, send_bulk_email
from .models import PlatformSetting, AuditLog, ContactMessage, NewsletterSubscriber, EmailLog
from .serializers import (
    PlatformSettingSerializer, AuditLogSerializer, ContactMessageSerializer, ContactReplySerializer,
    AdminReplySerializer, NewsletterSubscriberSerializer, BroadcastSerializer, EmailLogSerializer,
)

logger = logging.getLogger(__name__)

User = get_user_model()

class PlatformSettingView(APIView):
    permission_classes = [IsPlatformAdmin]

    def get(self, request):
        settings = PlatformSetting.load()
        serializer = PlatformSettingSerializer(settings)
        return Response(serializer.data)

    def put(self, request):
        settings = PlatformSetting.load()
        serializer = PlatformSettingSerializer(settings, data=request.data, partial=True)
        if serializer.is_valid():
            serializer.save()
            # Auto-Log this action
            AuditLog.record(request.user, 'SETTINGS', 'PlatformSetting', settings.pk,
                            'Updated platform configuration variables', request=request)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

class AuditLogListView(generics.ListAPIView):
    # Select related avoids N+1 queries when fetching users
    queryset = AuditLog.objects.select_related('actor').all().order_by('-timestamp')
    serializer_class = AuditLogSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        action = self.request.query_params.get('action')
        if action:
            queryset = queryset.filter(action=action)
        return queryset

class AdminStatsView(APIView):
    """
    Returns aggregated statistics for the Admin Dashboard.
    """
    permission_classes = [IsPlatformAdmin]

    def get(self, request):
        paid = Subscription.objects.filter(paid=True)
        return Response({
            "total_users": User.objects.count(),
            "total_students": User.objects.filter(role=User.Role.STUDENT).count(),
            "total_mock_tests": MockTest.objects.count(),
            "total_bundles": MockBundle.objects.count(),
            "total_courses": Course.objects.count(),
            "total_enrollments": Enrollment.objects.count(),
            "submitted_attempts": MockAttempt.objects.filter(submitted_at__isnull=False).count(),
            "paid_subscriptions": paid.count(),
            "total_revenue": paid.aggregate(total=Sum('amount_paid'))['total'] or 0,
            "pending_contacts": ContactMessage.objects.filter(status=ContactMessage.Status.PENDING).count(),
            "newsletter_subscribers": NewsletterSubscriber.objects.filter(is_active=True).count(),
        })

# --- Contact Us ---

class ContactCreateView(generics.CreateAPIView):
    """Public contact form. Starts a new conversation thread."""
    serializer_class = ContactMessageSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def perform_create(self, serializer):
        contact = serializer.save(conversation_type=ContactMessage.ConversationType.NEW_INQUIRY)
        config = PlatformSetting.load()
        send_email(
            config.get_admin_email(),
            f"[Contact] {contact.subject}",
            f"From: {contact.name} <{contact.email}>\n\n{contact.message}",
            source='contact-new',
            sent_by=contact.email,
            metadata={"thread_id": str(contact.thread_id), "contact_id": contact.id},
        )

class ContactReplyView(APIView):
    """
    A user replies on an existing thread.
    Limited to a few replies per email per calendar day.
    """
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request):
        serializer = ContactReplySerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Missing required fields", "details": serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        thread = ContactMessage.objects.filter(thread_id=data['thread_id']).order_by('created_at', 'id')
        original = thread.first()
        if original is None:
            return Response({"error": "Thread not found"}, status=status.HTTP_404_NOT_FOUND)

        # Check rate limiting before insert
        config = PlatformSetting.load()
        start_of_day = timezone.localtime().replace(hour=0, minute=0, second=0, microsecond=0)
        messages_today = ContactMessage.objects.filter(
            email__iexact=data['email'],
            conversation_type=ContactMessage.ConversationType.USER_REPLY,
            created_at__gte=start_of_day,
        ).count()
        if messages_today >= config.contact_daily_reply_limit:
            return Response({
                "error": f"Daily limit exceeded. You can send up to {config.contact_daily_reply_limit} messages per day. Please try again tomorrow.",
                "limit_exceeded": True,
            }, status=status.HTTP_429_TOO_MANY_REQUESTS)

        parent = None
        if data.get('parent_id'):
            parent = thread.filter(id=data['parent_id']).first()

        reply = ContactMessage.objects.create(
            name=data['name'],
            email=data['email'],
            subject=f"Re: {original.subject}",
            message=data['message'],
            thread_id=original.thread_id,
            parent=parent or thread.last(),
            conversation_type=ContactMessage.ConversationType.USER_REPLY,
            daily_message_count=messages_today + 1,
        )
        # Any user reply reopens the thread
        thread.update(status=ContactMessage.Status.PENDING)

        send_email(
            config.get_admin_email(),
            f"[Reply] {original.subject}",
            f"{reply.name} <{reply.email}> replied on thread {reply.thread_id}:\n\n{reply.message}",
            source='contact-reply',
            sent_by=reply.email,
            metadata={"thread_id": str(reply.thread_id), "contact_id": reply.id},
        )
        return Response({
            "success": True,
            "message": "Reply sent successfully",
            "data": ContactMessageSerializer(reply).data,
        }, status=status.HTTP_201_CREATED)

class ContactThreadView(generics.ListAPIView):
    """Every message of one conversation, oldest first."""
    serializer_class = ContactMessageSerializer
    permission_classes = [permissions.AllowAny]
    authentication_classes = []
    pagination_class = None

    def get_queryset(self):
        return ContactMessage.objects.filter(thread_id=self.kwargs['thread_id']).order_by('created_at', 'id')

class ContactAdminViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin,
                          mixins.UpdateModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """Admins and Instructors triage contact messages. Filter with ?status=PENDING."""
    queryset = ContactMessage.objects.all()
    serializer_class = ContactMessageSerializer
    permission_classes = [IsAdminOrInstructor]

    def get_queryset(self):
        queryset = super().get_queryset()
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status=status_filter.upper())
        return queryset

    def perform_update(self, serializer):
        new_status = self.request.data.get('status')
        if new_status in ContactMessage.Status.values:
            serializer.save(status=new_status)
        else:
            serializer.save()

    @action(detail=True, methods=['post'])
    def reply(self, request, pk=None):
        contact = self.get_object()
        serializer = AdminReplySerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        reply = ContactMessage.objects.create(
            name=request.user.get_full_name() or 'Support',
            email=request.user.email,
            subject=f"Re: {contact.subject}",
            message=serializer.validated_data['message'],
            thread_id=contact.thread_id,
            parent=contact,
            conversation_type=ContactMessage.ConversationType.ADMIN_REPLY,
            status=ContactMessage.Status.RESOLVED,
        )
        if serializer.validated_data['resolve']:
            ContactMessage.objects.filter(thread_id=contact.thread_id).update(status=ContactMessage.Status.RESOLVED)

        sent = send_email(
            contact.email,
            reply.subject,
            reply.message,
            source='contact-admin-reply',
            sent_by=request.user.email,
            metadata={"thread_id": str(contact.thread_id), "contact_id": reply.id},
        )
        return Response({"success": True, "email_sent": sent, "data": ContactMessageSerializer(reply).data},
                        status=status.HTTP_201_CREATED)

# --- Newsletter ---

class NewsletterSubscribeView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request):
        email = (request.data.get('email') or '').strip().lower()
        if not email:
            return Response({"error": "Email is required"}, status=status.HTTP_400_BAD_REQUEST)
        try:
            validate_email(email)
        except ValidationError:
            return Response({"error": "Please enter a valid email address"}, status=status.HTTP_400_BAD_REQUEST)

        existing = NewsletterSubscriber.objects.filter(email=email).first()
        if existing:
            if existing.is_active:
                return Response({"error": "This email is already subscribed"}, status=status.HTTP_409_CONFLICT)
            existing.is_active = True
            existing.unsubscribed_at = None
            existing.save(update_fields=['is_active', 'unsubscribed_at'])
            return Response({"success": True, "message": "Welcome back! You are subscribed again."})

        NewsletterSubscriber.objects.create(email=email)
        return Response({"success": True, "message": "Subscribed successfully"}, status=status.HTTP_201_CREATED)

class NewsletterUnsubscribeView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def post(self, request):
        email = (request.data.get('email') or '').strip().lower()
        subscriber = get_object_or_404(NewsletterSubscriber, email=email, is_active=True)
        subscriber.is_active = False
        subscriber.unsubscribed_at = timezone.now()
        subscriber.save(update_fields=['is_active', 'unsubscribed_at'])
        return Response({"success": True, "message": "Unsubscribed"})

class NewsletterAdminViewSet(mixins.ListModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet):
    queryset = NewsletterSubscriber.objects.all()
    serializer_class = NewsletterSubscriberSerializer
    permission_classes = [IsPlatformAdmin]

    @action(detail=False, methods=['get'])
    def export(self, request):
        response = HttpResponse(content_type='text/csv')
        response['Content-Disposition'] = 'attachment; filename="newsletter_subscribers.csv"'
        writer = csv.writer(response)
        writer.writerow(['email', 'is_active', 'subscribed_at'])
        for subscriber in self.get_queryset():
            writer.writerow([subscriber.email, subscriber.is_active, subscriber.subscribed_at.isoformat()])
        return response

    @action(detail=False, methods=['post'], url_path='send-email')
    def broadcast(self, request):
        serializer = BroadcastSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        recipients = NewsletterSubscriber.objects.filter(is_active=True).values_list('email', flat=True)
        sent, failed = send_bulk_email(
            list(recipients),
            serializer.validated_data['subject'],
            serializer.validated_data['message'],
            source='newsletter',
            sent_by=request.user.email,
        )
        logger.info(f"Newsletter broadcast by {request.user.email}: {sent} sent, {failed} failed")
        return Response({"sent": sent, "failed": failed})

# --- Email Logs ---

class EmailLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = EmailLog.objects.all()
    serializer_class = EmailLogSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        for param in ('status', 'source'):
            value = self.request.query_params.get(param)
            if value:
                queryset = queryset.filter(**{param: value})
        return queryset

    @action(detail=False, methods=['get'])
    def stats(self, request):
        by_status = dict(EmailLog.objects.order_by().values_list('status').annotate(n=Count('id')))
        by_source = dict(EmailLog.objects.order_by().values_list('source').annotate(n=Count('id')))
        return Response({
            "total": EmailLog.objects.count(),
            "sent": by_status.get(EmailLog.Status.SENT, 0),
            "failed": by_status.get(EmailLog.Status.FAILED, 0),
            "by_source": by_source,
        })
