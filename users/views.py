import logging

from rest_framework import generics, permissions, status, viewsets
from rest_framework.decorators import action
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework_simplejwt.views import TokenObtainPairView
from django.contrib.auth import get_user_model
from django.db.models import Q

from assessments.models import MockAttempt
from cores.models import AuditLog

from .permissions import IsPlatformAdmin
from .serializers import (
    RegisterSerializer,
    CustomTokenObtainPairSerializer,
    StudentListSerializer,
    UserSerializer,
    AdminUserSerializer,
    RoleUpdateSerializer,
)
from .webhooks import WebhookEventError, WebhookVerificationError, verify_webhook, handle_event

logger = logging.getLogger(__name__)

User = get_user_model()

# --- 1. User Management (CRUD for Admin) ---
class UserViewSet(viewsets.ModelViewSet):
    """
    Admin-only endpoint to manage all users, with audit logging.
    Supports ?role=STUDENT and ?search=<email or name>.
    """
    queryset = User.objects.all().order_by('-date_joined')
    permission_classes = [IsPlatformAdmin]

    def get_serializer_class(self):
        if self.action == 'create':
            return RegisterSerializer
        if self.action == 'list':
            return StudentListSerializer
        return AdminUserSerializer

    def get_queryset(self):
        queryset = super().get_queryset()
        role = self.request.query_params.get('role')
        if role:
            queryset = queryset.filter(role=role.upper())
        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(email__icontains=search) | Q(first_name__icontains=search) | Q(last_name__icontains=search)
            )
        return queryset

    def perform_create(self, serializer):
        user = serializer.save()
        AuditLog.record(self.request.user, 'CREATE', 'User', user.id, f"Created new user: {user.email}", request=self.request)

    def perform_update(self, serializer):
        user = serializer.save()
        # Handle password update if present
        if self.request.data.get('password'):
            user.set_password(self.request.data['password'])
            user.save()
        AuditLog.record(self.request.user, 'UPDATE', 'User', user.id, f"Updated profile for: {user.email}", request=self.request)

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', 'User', instance.id, f"Deleted user account: {instance.email}", request=self.request)
        instance.delete()

    @action(detail=True, methods=['patch'], url_path='role')
    def change_role(self, request, pk=None):
        user = self.get_object()
        serializer = RoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        old_role = user.role
        user.role = serializer.validated_data['role']
        user.is_staff = user.role == User.Role.ADMIN
        user.save(update_fields=['role', 'is_staff'])

        AuditLog.record(request.user, 'ROLE', 'User', user.id, f"Role for {user.email}: {old_role} -> {user.role}", request=request)
        return Response(AdminUserSerializer(user).data)

    @action(detail=True, methods=['delete'], url_path='clear-mocks')
    def clear_mocks(self, request, pk=None):
        """Removes every mock attempt of this user, restoring their attempt quota."""
        user = self.get_object()
        deleted, _ = MockAttempt.objects.filter(user=user).delete()
        AuditLog.record(request.user, 'DELETE', 'MockAttempt', user.id, f"Cleared {deleted} attempts for {user.email}", request=request)
        return Response({"status": "Mock attempts cleared", "deleted": deleted})

# --- 2. Authentication Views ---
class RegisterView(generics.CreateAPIView):
    serializer_class = RegisterSerializer
    permission_classes = [permissions.AllowAny]

class CustomLoginView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer

class UserProfileView(generics.RetrieveUpdateAPIView):
    serializer_class = UserSerializer
    permission_classes = [permissions.IsAuthenticated]

    def get_object(self):
        return self.request.user

# --- 3. Identity provider sync ---
class IdentityWebhookView(APIView):
    """Receives signed user lifecycle events from the hosted identity provider."""
    authentication_classes = []
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        try:
            event = verify_webhook(request.body, request.headers)
            result = handle_event(event)
        except (WebhookVerificationError, WebhookEventError) as e:
            logger.warning(f"Rejected identity webhook: {e}")
            return Response({"error": str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({"status": result})
