from django.contrib import admin
from .models import MockAttempt

admin.site.register(MockAttempt)
