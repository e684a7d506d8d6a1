from django.contrib import admin

from .models import Course, CourseContent, Enrollment, Lecture

admin.site.register(Course)
admin.site.register(Enrollment)
admin.site.register(CourseContent)
admin.site.register(Lecture)
