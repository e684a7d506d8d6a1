from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    FAQListView, FAQAdminViewSet, StudentFeedbackView, FeedbackReadView, FeedbackAdminViewSet,
    FeedbackReplyAdminViewSet, AnnouncementAdminViewSet, StudentAnnouncementsView, AnnouncementReadView,
)

router = DefaultRouter()
router.register(r'admin/faq', FAQAdminViewSet, basename='admin-faq')
router.register(r'admin/feedback', FeedbackAdminViewSet, basename='admin-feedback')
router.register(r'admin/feedback-replies', FeedbackReplyAdminViewSet, basename='admin-feedback-replies')
router.register(r'admin/announcements', AnnouncementAdminViewSet, basename='admin-announcements')

urlpatterns = [
    path('faq/', FAQListView.as_view(), name='faq'),
    path('feedback/', StudentFeedbackView.as_view(), name='feedback'),
    path('feedback/read/', FeedbackReadView.as_view(), name='feedback-read'),
    path('announcements/', StudentAnnouncementsView.as_view(), name='announcements'),
    path('announcements/read/', AnnouncementReadView.as_view(), name='announcements-read'),
    path('', include(router.urls)),
]
