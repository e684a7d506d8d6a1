import base64
from decimal import Decimal

import pytest
from django.contrib.auth import get_user_model
from django.core.cache import cache
from rest_framework.test import APIClient

from mocks.models import MockTest, Question

User = get_user_model()

WEBHOOK_SECRET = "whsec_" + base64.b64encode(b"identity-test-secret").decode()


@pytest.fixture(autouse=True)
def fresh_cache():
    # PlatformSetting is cached between requests
    cache.clear()
    yield
    cache.clear()


@pytest.fixture(autouse=True)
def platform_settings(settings):
    settings.RAZORPAY_KEY_ID = "rzp_test_key"
    settings.RAZORPAY_KEY_SECRET = "rzp_test_secret"
    settings.IDENTITY_WEBHOOK_SECRET = WEBHOOK_SECRET
    settings.EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
    settings.ADMIN_NOTIFICATION_EMAIL = "ops@mockprep.local"
    return settings


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def make_user(db):
    def _make(email="student@example.com", role=User.Role.STUDENT, **extra):
        return User.objects.create_user(
            username=email, email=email, password="s3cret-pass",
            first_name=extra.pop('first_name', 'Test'), last_name=extra.pop('last_name', 'User'),
            role=role, **extra
        )
    return _make


@pytest.fixture
def student(make_user):
    return make_user()


@pytest.fixture
def admin_user(make_user):
    return make_user("admin@example.com", role=User.Role.ADMIN)


@pytest.fixture
def instructor(make_user):
    return make_user("instructor@example.com", role=User.Role.INSTRUCTOR)


@pytest.fixture
def client_for(api_client):
    def _client(user):
        api_client.force_authenticate(user=user)
        return api_client
    return _client


@pytest.fixture
def make_mock(db):
    def _make(title="Full Length Mock 1", price=Decimal("0.00"), status=MockTest.Status.PUBLISHED, **extra):
        return MockTest.objects.create(title=title, price=price, status=status, **extra)
    return _make


@pytest.fixture
def mock_with_questions(make_mock):
    """Five questions: three MCQ, one NAT and one MSQ."""
    mock = make_mock(title="Physics Mock", price=Decimal("199.00"))
    Question.objects.create(mock_test=mock, text="Unit of force?", question_type="MCQ",
                            answer="Newton", options=["Newton", "Joule", "Watt", "Pascal"], order=1)
    Question.objects.create(mock_test=mock, text="Unit of energy?", question_type="MCQ",
                            answer="B", options=["Newton", "Joule", "Watt", "Pascal"], order=2)
    Question.objects.create(mock_test=mock, text="Unit of power?", question_type="MCQ",
                            answer="Watt", options=["Newton", "Joule", "Watt", "Pascal"], order=3)
    Question.objects.create(mock_test=mock, text="g in m/s^2?", question_type="NAT", answer="9.81", order=4)
    Question.objects.create(mock_test=mock, text="Vector quantities?", question_type="MSQ",
                            answer="Velocity;Force", options=["Speed", "Velocity", "Force", "Mass"], order=5)
    return mock
