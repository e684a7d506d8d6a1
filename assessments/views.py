import logging

from django.db.models import Avg, Count, Max
from django.shortcuts import get_object_or_404
from rest_framework import generics, permissions, status, views
from rest_framework.response import Response

from mocks.models import MockTest
from users.permissions import is_content_manager

from .access import check_access, attempt_quota
from .models import MockAttempt
from .scoring import AlreadySubmitted, review, submit_attempt
from .serializers import MockAttemptSerializer, ActiveAttemptSerializer, AttemptSubmitSerializer

logger = logging.getLogger(__name__)


def visible_mock(user, mock_id):
    """Drafts only exist for the staff that author them."""
    queryset = MockTest.objects.all()
    if not is_content_manager(user):
        queryset = queryset.filter(status=MockTest.Status.PUBLISHED)
    return get_object_or_404(queryset, id=mock_id)


# --- STUDENT VIEWS ---

class MockAccessView(views.APIView):
    """Can the logged-in student attempt this mock, and how many tries are left."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, mock_id):
        mock = visible_mock(request.user, mock_id)
        decision = check_access(request.user, mock)
        quota = attempt_quota(request.user, mock)
        return Response({**decision.as_dict(), "attempts": quota.as_dict()})


class StartAttemptView(views.APIView):
    """
    Student starts a mock test.
    Resumes an unsubmitted attempt when one exists, otherwise creates a new one
    after checking access and the attempt quota.
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, mock_id):
        mock = visible_mock(request.user, mock_id)

        decision = check_access(request.user, mock)
        if not decision.allowed:
            return Response(
                {"error": "Purchase required to attempt this mock test", "reason": decision.reason},
                status=status.HTTP_403_FORBIDDEN
            )

        # Check if active attempt already exists
        active_attempt = MockAttempt.objects.filter(
            user=request.user,
            mock_test=mock,
            submitted_at__isnull=True
        ).first()
        if active_attempt:
            return Response(ActiveAttemptSerializer(active_attempt).data)

        quota = attempt_quota(request.user, mock)
        if quota.remaining == 0:
            return Response(
                {"error": f"You have reached the maximum of {quota.max_attempts} attempts for this test."},
                status=status.HTTP_403_FORBIDDEN
            )

        attempt = MockAttempt.objects.create(
            user=request.user,
            mock_test=mock,
            total_questions=mock.questions.count(),
        )
        return Response(ActiveAttemptSerializer(attempt).data, status=status.HTTP_201_CREATED)


class SubmitAttemptView(views.APIView):
    """
    Student submits answers. Scores immediately.
    Payload: { "answers": { "<question id>": "<answer>" } }
    """
    permission_classes = [permissions.IsAuthenticated]

    def post(self, request, attempt_id):
        attempt = get_object_or_404(MockAttempt, id=attempt_id, user=request.user)

        serializer = AttemptSubmitSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({"error": "Missing required fields", "details": serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)

        answers = {k: v for k, v in serializer.validated_data['answers'].items() if v is not None}
        try:
            result = submit_attempt(attempt, answers)
        except AlreadySubmitted:
            return Response({"error": "Mock test already submitted"}, status=status.HTTP_400_BAD_REQUEST)

        return Response({
            "success": True,
            "attempt_id": attempt.id,
            "data": {"score": attempt.score, **result.as_dict()},
        })


class AttemptDetailView(views.APIView):
    """An attempt of the logged-in student; the answer review is included once submitted."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request, attempt_id):
        attempt = get_object_or_404(
            MockAttempt.objects.select_related('mock_test'), id=attempt_id, user=request.user
        )
        data = ActiveAttemptSerializer(attempt).data
        if attempt.is_submitted:
            data['review'] = review(attempt.mock_test.questions.all(), attempt.answers)
        return Response(data)


class StudentAttemptsView(generics.ListAPIView):
    """List all mock attempts for the logged-in student (Lightweight). Optional ?mock_id=."""
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = MockAttemptSerializer

    def get_queryset(self):
        queryset = MockAttempt.objects.filter(user=self.request.user).select_related('mock_test')
        mock_id = self.request.query_params.get('mock_id')
        if mock_id:
            queryset = queryset.filter(mock_test_id=mock_id)
        return queryset.order_by('-started_at')


class PerformanceView(views.APIView):
    """Aggregate performance of the logged-in student over submitted attempts."""
    permission_classes = [permissions.IsAuthenticated]

    def get(self, request):
        submitted = MockAttempt.objects.filter(user=request.user, submitted_at__isnull=False)
        overall = submitted.aggregate(
            attempts=Count('id'), average=Avg('percentage'), best=Max('percentage')
        )
        per_test = (
            submitted.values('mock_test_id', 'mock_test__title')
            .annotate(attempts=Count('id'), average=Avg('percentage'), best=Max('percentage'))
            .order_by('mock_test__title')
        )
        return Response({
            "attempts": overall['attempts'],
            "average_percentage": round(overall['average'] or 0, 2),
            "best_percentage": overall['best'] or 0,
            "tests": [
                {
                    "mock_test_id": row['mock_test_id'],
                    "title": row['mock_test__title'],
                    "attempts": row['attempts'],
                    "average_percentage": round(row['average'] or 0, 2),
                    "best_percentage": row['best'],
                }
                for row in per_test
            ],
        })
