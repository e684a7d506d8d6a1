from django.urls import path
from .views import (
    MockAccessView,
    StartAttemptView,
    SubmitAttemptView,
    AttemptDetailView,
    StudentAttemptsView,
    PerformanceView,
)

urlpatterns = [
    # Student Mock Flow
    path('mocks/<int:mock_id>/access/', MockAccessView.as_view(), name='mock-access'),
    path('mocks/<int:mock_id>/attempts/', StartAttemptView.as_view(), name='start-attempt'),
    path('attempts/', StudentAttemptsView.as_view(), name='student-attempts'),
    path('attempts/<int:attempt_id>/', AttemptDetailView.as_view(), name='attempt-detail'),
    path('attempts/<int:attempt_id>/submit/', SubmitAttemptView.as_view(), name='submit-attempt'),
    path('performance/', PerformanceView.as_view(), name='performance'),
]
