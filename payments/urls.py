from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import CreateOrderView, VerifyPaymentView, SubscriptionAdminViewSet, MySubscriptionsView

router = DefaultRouter()
router.register(r'admin/subscriptions', SubscriptionAdminViewSet, basename='admin-subscriptions')

urlpatterns = [
    path('payments/order/', CreateOrderView.as_view(), name='create-order'),
    path('payments/verify/', VerifyPaymentView.as_view(), name='verify-payment'),
    path('subscriptions/', MySubscriptionsView.as_view(), name='my-subscriptions'),
    path('', include(router.urls)),
]
