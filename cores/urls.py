from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    PlatformSettingView,
    AuditLogListView,
    AdminStatsView,
    ContactCreateView,
    ContactReplyView,
    ContactThreadView,
    ContactAdminViewSet,
    NewsletterSubscribeView,
    NewsletterUnsubscribeView,
    NewsletterAdminViewSet,
    EmailLogViewSet,
)

router = DefaultRouter()
router.register(r'admin/contacts', ContactAdminViewSet, basename='admin-contacts')
router.register(r'admin/newsletter', NewsletterAdminViewSet, basename='admin-newsletter')
router.register(r'admin/email-logs', EmailLogViewSet, basename='admin-email-logs')

urlpatterns = [
    # --- Admin Configuration ---
    path('settings/', PlatformSettingView.as_view(), name='platform-settings'),
    path('audit-logs/', AuditLogListView.as_view(), name='audit-logs'),
    path('admin/stats/', AdminStatsView.as_view(), name='admin-stats'),

    # --- Contact Us ---
    path('contact/', ContactCreateView.as_view(), name='contact-create'),
    path('contact/reply/', ContactReplyView.as_view(), name='contact-reply'),
    path('contact/thread/<uuid:thread_id>/', ContactThreadView.as_view(), name='contact-thread'),

    # --- Newsletter ---
    path('newsletter/subscribe/', NewsletterSubscribeView.as_view(), name='newsletter-subscribe'),
    path('newsletter/unsubscribe/', NewsletterUnsubscribeView.as_view(), name='newsletter-unsubscribe'),

    path('', include(router.urls)),
]
