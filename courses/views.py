from django.db import transaction
from django.db.models import F, Max
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import generics, mixins, viewsets, permissions, status, filters
from rest_framework.decorators import action
from rest_framework.response import Response

from coupons.discounts import course_coupon_discount
from coupons.models import CourseCoupon
from coupons.serializers import CourseCouponSerializer
from cores.models import AuditLog
from payments.models import Subscription
from users.permissions import IsAdminOrInstructor, is_content_manager

from .access import has_course_access
from .models import Course, CourseContent, Enrollment, Lecture
from .serializers import (
    CourseSerializer, CourseListSerializer, EnrollmentSerializer, ApplyCourseCouponSerializer,
    CourseContentSerializer, LectureSerializer, ReorderSerializer,
)


def _reorder(queryset, ids, start=0):
    with transaction.atomic():
        for position, pk in enumerate(ids, start=start):
            queryset.filter(pk=pk).update(order=position)


class CourseViewSet(viewsets.ModelViewSet):
    queryset = Course.objects.all()
    filter_backends = [filters.SearchFilter]
    search_fields = ['title', 'description']

    def get_queryset(self):
        queryset = super().get_queryset()
        if not is_content_manager(self.request.user):
            queryset = queryset.filter(status=Course.Status.PUBLISHED)
        return queryset

    def get_serializer_class(self):
        if is_content_manager(self.request.user):
            return CourseSerializer
        return CourseListSerializer

    def get_permissions(self):
        if self.action in ['list', 'retrieve', 'public_coupons', 'apply_coupon']:
            return [permissions.AllowAny()]
        if self.action in ['enroll', 'check_access', 'contents']:
            return [permissions.IsAuthenticated()]
        return [IsAdminOrInstructor()]

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', 'Course', instance.id, f"Deleted course: {instance.title}", request=self.request)
        instance.delete()

    @action(detail=True, methods=['post'])
    def enroll(self, request, pk=None):
        """Direct enrollment; paid courses go through the payment order flow."""
        course = self.get_object()
        if not course.is_free:
            return Response({"error": "This course requires payment"}, status=status.HTTP_402_PAYMENT_REQUIRED)

        enrollment, created = Enrollment.objects.get_or_create(
            user=request.user, course=course,
            defaults={'expires_at': course.enrollment_expiry()}
        )
        return Response(
            EnrollmentSerializer(enrollment).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK
        )

    @action(detail=True, methods=['get'], url_path='check-access')
    def check_access(self, request, pk=None):
        course = get_object_or_404(Course, pk=pk)
        enrollment = Enrollment.objects.filter(user=request.user, course=course).first()

        if not enrollment:
            return Response({"has_access": False, "reason": "Not enrolled in this course"}, status=status.HTTP_403_FORBIDDEN)

        if enrollment.is_expired:
            return Response({
                "has_access": False,
                "reason": "Course access has expired",
                "expires_at": enrollment.expires_at,
            }, status=status.HTTP_403_FORBIDDEN)

        subscription = Subscription.objects.filter(user=request.user, course=course, paid=True).order_by('-paid_at').first()
        if subscription and subscription.expires_at and subscription.expires_at < timezone.now():
            return Response({
                "has_access": False,
                "reason": "Subscription has expired",
                "expires_at": subscription.expires_at,
            }, status=status.HTTP_403_FORBIDDEN)

        return Response({
            "has_access": True,
            "enrollment_expires_at": enrollment.expires_at,
            "subscription_expires_at": subscription.expires_at if subscription else None,
        })

    @action(detail=True, methods=['post'], url_path='apply-coupon')
    def apply_coupon(self, request, pk=None):
        course = self.get_object()
        serializer = ApplyCourseCouponSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        coupon = CourseCoupon.objects.filter(
            course=course, code=serializer.validated_data['code'].strip(), valid_till__gte=timezone.now()
        ).first()
        if not coupon:
            return Response({"valid": False, "message": "Invalid or expired coupon"})

        discount, new_price = course_coupon_discount(course.price, coupon.discount_pct)
        return Response({
            "valid": True,
            "discount_pct": coupon.discount_pct,
            "discount_amount": discount,
            "new_price": new_price,
            "coupon_id": coupon.id,
        })

    @action(detail=True, methods=['get'], url_path='public-coupons')
    def public_coupons(self, request, pk=None):
        course = self.get_object()
        coupons = course.coupons.filter(is_public=True, valid_till__gte=timezone.now())
        return Response(CourseCouponSerializer(coupons, many=True).data)

    @action(detail=True, methods=['get', 'post'])
    def contents(self, request, pk=None):
        """Sections with their lectures for enrolled students; staff may also add sections."""
        course = self.get_object()
        if request.method == 'POST':
            if not is_content_manager(request.user):
                return Response({"error": "Only admins and instructors can edit course content"},
                                status=status.HTTP_403_FORBIDDEN)
            serializer = CourseContentSerializer(data=request.data)
            serializer.is_valid(raise_exception=True)
            extra = {}
            if 'order' not in serializer.validated_data:
                top = course.contents.aggregate(top=Max('order'))['top']
                extra['order'] = 0 if top is None else top + 1
            serializer.save(course=course, **extra)
            return Response(serializer.data, status=status.HTTP_201_CREATED)

        if not has_course_access(request.user, course):
            return Response({"error": "Not enrolled in this course"}, status=status.HTTP_403_FORBIDDEN)
        contents = course.contents.prefetch_related('lectures')
        return Response(CourseContentSerializer(contents, many=True).data)


class MyEnrollmentsView(generics.ListAPIView):
    permission_classes = [permissions.IsAuthenticated]
    serializer_class = EnrollmentSerializer

    def get_queryset(self):
        return Enrollment.objects.filter(user=self.request.user).select_related('course')


# --- Course content editing (admins and instructors) ---

def _next_lecture_order(content):
    top = content.lectures.aggregate(top=Max('order'))['top']
    return 1 if top is None else top + 1


def _open_lecture_slot(content, order):
    """Shifts lectures at or after `order` down one place when the slot is taken."""
    if content.lectures.filter(order=order).exists():
        content.lectures.filter(order__gte=order).update(order=F('order') + 1)


def _move_lecture(lecture, new_order):
    siblings = lecture.content.lectures.exclude(pk=lecture.pk)
    old_order = lecture.order
    if new_order == old_order or not siblings.filter(order=new_order).exists():
        return
    if new_order < old_order:
        siblings.filter(order__gte=new_order, order__lt=old_order).update(order=F('order') + 1)
    else:
        siblings.filter(order__gt=old_order, order__lte=new_order).update(order=F('order') - 1)


class CourseContentViewSet(mixins.RetrieveModelMixin, mixins.UpdateModelMixin,
                           mixins.DestroyModelMixin, viewsets.GenericViewSet):
    """A course section. Sections are created through /courses/{id}/contents/."""
    queryset = CourseContent.objects.select_related('course').prefetch_related('lectures')
    serializer_class = CourseContentSerializer
    permission_classes = [IsAdminOrInstructor]

    def perform_destroy(self, instance):
        AuditLog.record(self.request.user, 'DELETE', 'CourseContent', instance.id,
                        f"Deleted section {instance.title} of {instance.course.title}",
                        request=self.request)
        instance.delete()

    @action(detail=False, methods=['post'])
    def reorder(self, request):
        """Payload: { "ids": [3, 1, 2] } sets display order to the list position."""
        serializer = ReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        _reorder(CourseContent.objects.all(), serializer.validated_data['ids'])
        return Response({"status": "Contents reordered"})

    @action(detail=True, methods=['get', 'post'])
    def lectures(self, request, pk=None):
        content = self.get_object()
        if request.method == 'GET':
            return Response(LectureSerializer(content.lectures.all(), many=True).data)

        serializer = LectureSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        with transaction.atomic():
            order = serializer.validated_data.get('order')
            if order is None:
                order = _next_lecture_order(content)
            else:
                _open_lecture_slot(content, order)
            serializer.save(content=content, order=order)
        return Response(serializer.data, status=status.HTTP_201_CREATED)


class LectureViewSet(mixins.RetrieveModelMixin, mixins.UpdateModelMixin,
                     mixins.DestroyModelMixin, viewsets.GenericViewSet):
    queryset = Lecture.objects.select_related('content')
    serializer_class = LectureSerializer
    permission_classes = [IsAdminOrInstructor]

    @transaction.atomic
    def perform_update(self, serializer):
        new_order = serializer.validated_data.get('order')
        if new_order is not None:
            _move_lecture(serializer.instance, new_order)
        serializer.save()

    @action(detail=False, methods=['post'])
    def reorder(self, request):
        """Payload: { "ids": [...] } of one section's lectures, numbered from 1."""
        serializer = ReorderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        _reorder(Lecture.objects.all(), serializer.validated_data['ids'], start=1)
        return Response({"status": "Lectures reordered"})
