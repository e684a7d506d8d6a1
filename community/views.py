import logging

from django.db import transaction
from django.db.models import Count, Q
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, mixins, viewsets, views, permissions, status
from rest_framework.decorators import action
from rest_framework.response import Response

from cores.emails import send_email
from cores.models import AuditLog
from courses.models import Course, Enrollment
from courses.access import has_course_access
from users.permissions import IsPlatformAdmin

from .models import FAQ, CourseFeedback, FeedbackReply, CourseAnnouncement, AnnouncementRecipient
from .serializers import (
    FAQSerializer, FAQBulkItemSerializer, CourseFeedbackSerializer, FeedbackReplySerializer,
    FeedbackReplyCreateSerializer, MarkReadSerializer, CourseAnnouncementSerializer,
    StudentAnnouncementSerializer,
)

logger = logging.getLogger(__name__)

FAQ_PAGE_LIMIT = 100


def _int_param(params, name, default):
    try:
        return max(0, int(params.get(name, default)))
    except (TypeError, ValueError):
        return default


# --- FAQ ---

class FAQListView(generics.ListAPIView):
    """Public FAQ. Filters: ?category= ?q= ?limit= ?skip="""
    permission_classes = [permissions.AllowAny]
    serializer_class = FAQSerializer

    def get_queryset(self):
        queryset = FAQ.objects.filter(visible=True)
        params = self.request.query_params
        if params.get('category'):
            queryset = queryset.filter(category=params['category'])
        if params.get('q'):
            queryset = queryset.filter(Q(question__icontains=params['q']) | Q(answer__icontains=params['q']))
        return queryset

    def list(self, request, *args, **kwargs):
        limit = min(FAQ_PAGE_LIMIT, _int_param(request.query_params, 'limit', FAQ_PAGE_LIMIT))
        skip = _int_param(request.query_params, 'skip', 0)
        faqs = self.get_queryset()[skip:skip + limit]
        data = self.get_serializer(faqs, many=True).data
        return Response({"data": data, "count": len(data)})


class FAQAdminViewSet(viewsets.ModelViewSet):
    """FAQ editing. Filters: ?category= ?visible=true|false"""
    queryset = FAQ.objects.all()
    serializer_class = FAQSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('category'):
            queryset = queryset.filter(category=params['category'])
        if params.get('visible') in ('true', 'false'):
            queryset = queryset.filter(visible=params['visible'] == 'true')
        return queryset

    @action(detail=False, methods=['post'])
    def bulk(self, request):
        """
        Payload: a list of { "question", "answer", "category" }.
        Entries missing a question or an answer are skipped.
        """
        if not isinstance(request.data, list):
            return Response({"error": "Expected an array of FAQs"}, status=status.HTTP_400_BAD_REQUEST)

        items = FAQBulkItemSerializer(data=request.data, many=True)
        items.is_valid(raise_exception=True)
        rows = [
            FAQ(question=item['question'], answer=item['answer'], category=item.get('category') or "GENERAL")
            for item in items.validated_data
            if item.get('question', '').strip() and item.get('answer', '').strip()
        ]
        created = FAQ.objects.bulk_create(rows)
        AuditLog.record(request.user, 'CREATE', 'FAQ', None, f"Bulk imported {len(created)} FAQ(s)", request=request)
        return Response({
            "message": "FAQs inserted successfully",
            "count": len(created),
            "data": FAQSerializer(created, many=True).data,
        }, status=status.HTTP_201_CREATED)


# --- Course feedback ---

class StudentFeedbackView(generics.ListCreateAPIView):
    """The logged-in student's feedback, with admin replies and their read state."""
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = CourseFeedbackSerializer

    def get_queryset(self):
        return (CourseFeedback.objects.filter(user=self.request.user)
                .select_related('course', 'user').prefetch_related('replies__admin'))

    def perform_create(self, serializer):
        serializer.save(user=self.request.user)


class FeedbackReadView(views.APIView):
    """Payload: { "reply_id": 4 }"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        reply_id = request.data.get('reply_id')
        if not str(reply_id or '').isdigit():
            return Response({"error": "Missing reply_id"}, status=status.HTTP_400_BAD_REQUEST)
        updated = FeedbackReply.objects.filter(id=reply_id, feedback__user=request.user).update(
            read=True, read_at=timezone.now()
        )
        if not updated:
            return Response({"error": "Reply not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response({"success": True})


class FeedbackAdminViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin,
                           mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """All course feedback. Filters: ?course_id= ?status=PENDING"""
    queryset = CourseFeedback.objects.select_related('course', 'user').prefetch_related('replies__admin')
    serializer_class = CourseFeedbackSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = super().get_queryset()
        params = self.request.query_params
        if params.get('course_id'):
            queryset = queryset.filter(course_id=params['course_id'])
        if params.get('status'):
            queryset = queryset.filter(status=params['status'].upper())
        return queryset

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', 'CourseFeedback', instance.id,
                        f"Deleted feedback of {instance.user.email} on {instance.course.title}",
                        request=self.request)
        instance.delete()

    @action(detail=True, methods=['post'])
    def reply(self, request, pk=None):
        feedback = self.get_object()
        serializer = FeedbackReplyCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        reply = FeedbackReply.objects.create(
            feedback=feedback, admin=request.user, message=serializer.validated_data['message']
        )
        return Response(FeedbackReplySerializer(reply).data, status=status.HTTP_201_CREATED)

    @action(detail=False, methods=['post'], url_path='mark-read')
    def mark_read(self, request):
        """Payload: { "feedback_id": 3 } or { "mark_all": true }. Marks feedback resolved."""
        serializer = MarkReadSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        pending = CourseFeedback.objects.filter(status=CourseFeedback.Status.PENDING)
        if data['mark_all']:
            count = pending.update(status=CourseFeedback.Status.RESOLVED)
        else:
            feedback = get_object_or_404(CourseFeedback, id=data['feedback_id'])
            feedback.status = CourseFeedback.Status.RESOLVED
            feedback.save(update_fields=['status'])
            count = 1
        return Response({"success": True, "count": count})

    @action(detail=False, methods=['get'], url_path='unread-count')
    def unread_count(self, request):
        """Pending feedback nobody has answered yet."""
        count = CourseFeedback.objects.filter(
            status=CourseFeedback.Status.PENDING, replies__isnull=True
        ).count()
        return Response({"count": count})


class FeedbackReplyAdminViewSet(mixins.UpdateModelMixin, mixins.DestroyModelMixin, viewsets.GenericViewSet):
    queryset = FeedbackReply.objects.select_related('admin')
    serializer_class = FeedbackReplySerializer
    permission_classes = [IsPlatformAdmin]


# --- Course announcements ---

class AnnouncementAdminViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, mixins.CreateModelMixin,
                               mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """
    Announcements to the students of a course. Filter: ?course_id=
    Every student enrolled at posting time becomes a recipient.
    """
    serializer_class = CourseAnnouncementSerializer
    permission_classes = [IsPlatformAdmin]

    def get_queryset(self):
        queryset = CourseAnnouncement.objects.select_related('course').annotate(
            total_recipients=Count('recipients'),
            read_count=Count('recipients', filter=Q(recipients__read=True)),
            email_delivered_count=Count('recipients', filter=Q(recipients__delivered_email=True)),
        )
        course_id = self.request.query_params.get('course_id')
        if course_id:
            queryset = queryset.filter(course_id=course_id)
        return queryset

    def create(self, request, *args, **kwargs):
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        with transaction.atomic():
            announcement = serializer.save()
            students = [e.user for e in Enrollment.objects.filter(course=announcement.course).select_related('user')]
            AnnouncementRecipient.objects.bulk_create(
                [AnnouncementRecipient(announcement=announcement, user=user) for user in students]
            )

        sent = failed = 0
        if announcement.send_email:
            subject = f"[{announcement.course.title}] {announcement.title}"
            for user in students:
                if send_email(user.email, subject, announcement.message, source='announcement',
                              sent_by=request.user.email, metadata={"announcement_id": announcement.id}):
                    AnnouncementRecipient.objects.filter(announcement=announcement, user=user).update(
                        delivered_email=True
                    )
                    sent += 1
                else:
                    failed += 1

        AuditLog.record(request.user, 'CREATE', 'CourseAnnouncement', announcement.id,
                        f"Announced {announcement.title} to {len(students)} student(s)", request=request)
        data = self.get_serializer(self.get_queryset().get(pk=announcement.pk)).data
        return Response({**data, "emails_sent": sent, "emails_failed": failed}, status=status.HTTP_201_CREATED)


class StudentAnnouncementsView(views.APIView):
    """Announcements of a course the student can access. ?course_id= is required."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        course_id = request.query_params.get('course_id')
        if not course_id:
            return Response({"error": "course_id required"}, status=status.HTTP_400_BAD_REQUEST)
        course = get_object_or_404(Course, id=course_id)
        if not has_course_access(request.user, course):
            return Response({"error": "Not enrolled in this course"}, status=status.HTTP_403_FORBIDDEN)

        announcements = course.announcements.all()
        read_ids = set(AnnouncementRecipient.objects.filter(
            user=request.user, announcement__course=course, read=True
        ).values_list('announcement_id', flat=True))
        serializer = StudentAnnouncementSerializer(announcements, many=True, context={'read_ids': read_ids})
        return Response({"announcements": serializer.data})


class AnnouncementReadView(views.APIView):
    """Payload: { "announcement_id": 7 }"""
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request):
        announcement_id = request.data.get('announcement_id')
        if not str(announcement_id or '').isdigit():
            return Response({"error": "announcement_id required"}, status=status.HTTP_400_BAD_REQUEST)
        updated = AnnouncementRecipient.objects.filter(
            announcement_id=announcement_id, user=request.user
        ).update(read=True, read_at=timezone.now())
        if not updated:
            return Response({"error": "Announcement not found"}, status=status.HTTP_404_NOT_FOUND)
        return Response({"success": True})
