from django.contrib import admin
from .models import Subscription

@admin.register(Subscription)
class SubscriptionAdmin(admin.ModelAdmin):
    list_display = ('user', 'mock_test', 'mock_bundle', 'course', 'paid', 'amount_paid', 'gateway_order_id', 'created_at')
    list_filter = ('paid',)
    search_fields = ('user__email', 'gateway_order_id', 'gateway_payment_id')
