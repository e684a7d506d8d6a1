from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import CourseViewSet, CourseContentViewSet, LectureViewSet, MyEnrollmentsView

router = DefaultRouter()
router.register(r'courses', CourseViewSet, basename='courses')
router.register(r'admin/contents', CourseContentViewSet, basename='admin-contents')
router.register(r'admin/lectures', LectureViewSet, basename='admin-lectures')

urlpatterns = [
    path('my-courses/', MyEnrollmentsView.as_view(), name='my-courses'),
    path('', include(router.urls)),
]
