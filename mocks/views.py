import csv
import io
import logging

from django.db import transaction
from django.db.models import Max
from rest_framework import viewsets, permissions, status, filters
from rest_framework.decorators import action
from rest_framework.parsers import JSONParser, MultiPartParser, FormParser
from rest_framework.response import Response

from cores.models import AuditLog
from users.permissions import IsAdminOrInstructor, is_content_manager

from .models import MockTest, Question, MockBundle
from .serializers import (
    MockTestSerializer, MockTestDetailSerializer, MockTestListSerializer,
    QuestionSerializer, MockBundleSerializer,
)
from .validators import QuestionValidationError, validate_question_batch

logger = logging.getLogger(__name__)

PUBLISHED_LOCK_ERROR = "Questions of a published mock test cannot be modified. Move it back to draft first."


def _next_order(mock):
    current = mock.questions.aggregate(top=Max('order'))['top']
    return 0 if current is None else current + 1


class MockTestViewSet(viewsets.ModelViewSet):
    queryset = MockTest.objects.all().order_by('-created_at')

    # Enable search on title and tags
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'description']

    def get_queryset(self):
        queryset = super().get_queryset()
        # Candidates only ever see published tests
        if not is_content_manager(self.request.user):
            queryset = queryset.filter(status=MockTest.Status.PUBLISHED)
        return queryset

    def get_serializer_class(self):
        if is_content_manager(self.request.user):
            if self.action == 'retrieve':
                return MockTestDetailSerializer
            return MockTestSerializer
        return MockTestListSerializer

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.AllowAny()]
        return [IsAdminOrInstructor()]

    def perform_create(self, serializer):
        mock = serializer.save()
        AuditLog.record(self.request.user, 'CREATE', 'MockTest', mock.id, f"Created mock test: {mock.title}", request=self.request)

    def perform_update(self, serializer):
        mock = serializer.save()
        # Keep bundle prices in sync with member prices
        for bundle in mock.bundles.all():
            bundle.recalculate_base_price()

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', 'MockTest', instance.id, f"Deleted mock test: {instance.title}", request=self.request)
        bundles = list(instance.bundles.all())
        instance.delete()
        for bundle in bundles:
            bundle.recalculate_base_price()

    @action(detail=True, methods=['get', 'post'], url_path='questions')
    def questions(self, request, pk=None):
        """
        GET lists the questions with answers.
        POST adds a single question: { "question": "...", "type": "MCQ", "answer": "A", "options": [...] }
        """
        mock = self.get_object()
        if request.method == 'GET':
            return Response(QuestionSerializer(mock.questions.all(), many=True).data)

        if mock.is_published:
            return Response({"error": PUBLISHED_LOCK_ERROR}, status=status.HTTP_400_BAD_REQUEST)

        serializer = QuestionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        if 'order' not in request.data:
            serializer.validated_data['order'] = _next_order(mock)
        serializer.save(mock_test=mock)
        return Response(serializer.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'], url_path='questions/bulk')
    def bulk_questions(self, request, pk=None):
        """
        Adds many questions at once. Payload: { "questions": [ {...}, {...} ] }
        A single invalid item rejects the whole batch.
        """
        mock = self.get_object()
        if mock.is_published:
            return Response({"error": PUBLISHED_LOCK_ERROR}, status=status.HTTP_400_BAD_REQUEST)

        try:
            cleaned = validate_question_batch(request.data.get('questions'))
        except QuestionValidationError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        start = _next_order(mock)
        with transaction.atomic():
            created = Question.objects.bulk_create([
                Question(mock_test=mock, order=start + i, **fields)
                for i, fields in enumerate(cleaned)
            ])

        logger.info(f"Added {len(created)} questions to mock {mock.id}")
        return Response({
            "success": True,
            "count": len(created),
            "questions": QuestionSerializer(mock.questions.all(), many=True).data,
        }, status=status.HTTP_201_CREATED)

    @action(
        detail=True, methods=['post'], url_path='questions/upload',
        parser_classes=[MultiPartParser, FormParser, JSONParser]
    )
    def upload_questions(self, request, pk=None):
        """
        Upload questions via CSV.
        Expected CSV Header: question, type, options, answer, explanation
        Options are '|' separated.
        """
        mock = self.get_object()
        if mock.is_published:
            return Response({"error": PUBLISHED_LOCK_ERROR}, status=status.HTTP_400_BAD_REQUEST)

        file_obj = request.FILES.get('file')
        if not file_obj:
            return Response({"error": "No file uploaded"}, status=status.HTTP_400_BAD_REQUEST)

        try:
            decoded_file = file_obj.read().decode('utf-8-sig')
        except UnicodeDecodeError:
            return Response({"error": "File must be UTF-8 encoded CSV"}, status=status.HTTP_400_BAD_REQUEST)

        rows = []
        for row in csv.DictReader(io.StringIO(decoded_file)):
            raw_options = row.get('options') or ''
            rows.append({
                'question': (row.get('question') or '').strip(),
                'type': (row.get('type') or 'MCQ').strip(),
                'answer': (row.get('answer') or '').strip(),
                'options': [o.strip() for o in raw_options.split('|') if o.strip()],
                'explanation': (row.get('explanation') or '').strip(),
            })

        try:
            cleaned = validate_question_batch(rows)
        except QuestionValidationError as e:
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        start = _next_order(mock)
        with transaction.atomic():
            Question.objects.bulk_create([
                Question(mock_test=mock, order=start + i, **fields)
                for i, fields in enumerate(cleaned)
            ])

        return Response(
            {"status": f"Successfully uploaded {len(cleaned)} questions", "count": len(cleaned)},
            status=status.HTTP_201_CREATED
        )

    @action(detail=True, methods=['post'], url_path='questions/clear')
    def clear_questions(self, request, pk=None):
        mock = self.get_object()
        if mock.is_published:
            return Response({"error": PUBLISHED_LOCK_ERROR}, status=status.HTTP_400_BAD_REQUEST)

        deleted, _ = mock.questions.all().delete()
        return Response({"status": "Questions cleared", "deleted": deleted})


class QuestionViewSet(viewsets.ModelViewSet):
    """Edit or remove a single question; creation goes through the mock test."""
    queryset = Question.objects.select_related('mock_test').all()
    serializer_class = QuestionSerializer
    permission_classes = [IsAdminOrInstructor]
    http_method_names = ['get', 'put', 'patch', 'delete']

    def get_queryset(self):
        queryset = super().get_queryset()
        # Filter by mock if provided ?mock_id=1
        mock_id = self.request.query_params.get('mock_id')
        if mock_id:
            queryset = queryset.filter(mock_test_id=mock_id)
        return queryset

    def update(self, request, *args, **kwargs):
        if self.get_object().mock_test.is_published:
            return Response({"error": PUBLISHED_LOCK_ERROR}, status=status.HTTP_400_BAD_REQUEST)
        return super().update(request, *args, **kwargs)

    def destroy(self, request, *args, **kwargs):
        if self.get_object().mock_test.is_published:
            return Response({"error": PUBLISHED_LOCK_ERROR}, status=status.HTTP_400_BAD_REQUEST)
        return super().destroy(request, *args, **kwargs)


class MockBundleViewSet(viewsets.ModelViewSet):
    queryset = MockBundle.objects.prefetch_related('mock_tests').all()
    serializer_class = MockBundleSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        if not is_content_manager(self.request.user):
            queryset = queryset.filter(status=MockBundle.Status.PUBLISHED)
        return queryset

    def get_permissions(self):
        if self.action in ['list', 'retrieve']:
            return [permissions.AllowAny()]
        return [IsAdminOrInstructor()]

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', 'MockBundle', instance.id, f"Deleted bundle: {instance.title}", request=self.request)
        instance.delete()

    @action(detail=False, methods=['post'], url_path='reorder')
    def reorder(self, request):
        """Payload: { "ids": [3, 1, 2] } sets display order to the list position."""
        ids = request.data.get('ids', [])
        with transaction.atomic():
            for position, bundle_id in enumerate(ids):
                MockBundle.objects.filter(id=bundle_id).update(order=position)
        return Response({"status": "Bundles reordered"})
