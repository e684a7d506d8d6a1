from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import MockTestViewSet, QuestionViewSet, MockBundleViewSet

router = DefaultRouter()
router.register(r'mocks', MockTestViewSet, basename='mocks')
router.register(r'questions', QuestionViewSet, basename='questions')
router.register(r'mock-bundles', MockBundleViewSet, basename='mock-bundles')

urlpatterns = [
    path('', include(router.urls)),
]
