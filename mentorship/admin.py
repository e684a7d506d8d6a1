from django.contrib import admin

from .models import Session, SessionEnrollment

admin.site.register(Session)
admin.site.register(SessionEnrollment)
