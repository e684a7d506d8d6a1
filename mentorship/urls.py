from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import SessionViewSet, SessionEnrollmentAdminViewSet, SessionPaymentVerifyView

router = DefaultRouter()
router.register(r'sessions', SessionViewSet, basename='sessions')
router.register(r'admin/session-enrollments', SessionEnrollmentAdminViewSet, basename='admin-session-enrollments')

urlpatterns = [
    path('sessions/enrollments/<int:enrollment_id>/verify-payment/', SessionPaymentVerifyView.as_view(),
         name='session-verify-payment'),
    path('', include(router.urls)),
]
