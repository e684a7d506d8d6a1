from django.contrib import admin

# Register your models here.
from .models import MockTest, Question, MockBundle

admin.site.register(MockTest)
admin.site.register(Question)
admin.site.register(MockBundle)
