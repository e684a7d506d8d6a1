from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import ValidateCouponView, GeneralCouponViewSet, CourseCouponViewSet

router = DefaultRouter()
router.register(r'admin/general-coupons', GeneralCouponViewSet, basename='general-coupons')
router.register(r'admin/course-coupons', CourseCouponViewSet, basename='course-coupons')

urlpatterns = [
    path('coupons/validate/', ValidateCouponView.as_view(), name='validate-coupon'),
    path('', include(router.urls)),
]
