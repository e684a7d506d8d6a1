from django.contrib import admin
from .models import PlatformSetting, AuditLog, ContactMessage, NewsletterSubscriber, EmailLog

@admin.register(PlatformSetting)
class PlatformSettingAdmin(admin.ModelAdmin):
    list_display = ('site_name', 'support_email', 'maintenance_mode')

@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ('timestamp', 'actor', 'action', 'target_model', 'target_object_id')
    list_filter = ('action',)

@admin.register(ContactMessage)
class ContactMessageAdmin(admin.ModelAdmin):
    list_display = ('email', 'subject', 'conversation_type', 'status', 'created_at')
    list_filter = ('status', 'conversation_type')
    search_fields = ('email', 'subject')

admin.site.register(NewsletterSubscriber)

@admin.register(EmailLog)
class EmailLogAdmin(admin.ModelAdmin):
    list_display = ('recipient', 'subject', 'source', 'status', 'created_at')
    list_filter = ('status', 'source')
