from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import (
    RegisterView,
    CustomLoginView,
    UserViewSet,
    UserProfileView,
    IdentityWebhookView,
)

# Create a router for ViewSets
router = DefaultRouter()
router.register(r'admin/users', UserViewSet, basename='users')

urlpatterns = [
    # --- Authentication ---
    path('auth/register/', RegisterView.as_view(), name='register'),
    path('auth/login/', CustomLoginView.as_view(), name='login'),
    path('profile/', UserProfileView.as_view(), name='user-profile'),

    # --- Identity provider sync ---
    path('webhooks/identity/', IdentityWebhookView.as_view(), name='identity-webhook'),

    # --- User Management (CRUD) ---
    path('', include(router.urls)),
]
