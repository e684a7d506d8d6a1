"""
Who may attempt a mock test, and how many more times.
"""
from dataclasses import dataclass, asdict
from typing import Optional

from django.db.models import Q
from django.utils import timezone

from cores.models import PlatformSetting
from payments.models import Subscription
from users.permissions import is_platform_admin

from .models import MockAttempt


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    reason: str
    subscription_type: Optional[str]

    def as_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class AttemptQuota:
    max_attempts: int
    used: int
    remaining: int

    def as_dict(self):
        return asdict(self)


def active_subscriptions(user):
    """Paid subscriptions of `user` that have not expired."""
    now = timezone.now()
    return Subscription.objects.filter(user=user, paid=True).filter(
        Q(expires_at__isnull=True) | Q(expires_at__gt=now)
    )


def check_access(user, mock_test):
    # 1. Admin override
    if is_platform_admin(user):
        return AccessDecision(True, 'admin', 'admin')

    # 2. Free tests are open to everyone
    if mock_test.is_free:
        return AccessDecision(True, 'free', 'free')

    if user is not None and user.is_authenticated:
        subscriptions = active_subscriptions(user)
        # 3a. Bought individually
        if subscriptions.filter(mock_test=mock_test, mock_bundle__isnull=True).exists():
            return AccessDecision(True, 'subscribed', 'individual')
        # 3b. Bought as part of a bundle containing this test
        if subscriptions.filter(
            Q(mock_test=mock_test, mock_bundle__isnull=False) | Q(mock_bundle__mock_tests=mock_test)
        ).exists():
            return AccessDecision(True, 'subscribed', 'bundle')

    return AccessDecision(False, 'no_subscription', None)


def max_attempts_for(mock_test):
    config = PlatformSetting.load()
    if mock_test.is_free:
        return config.free_mock_max_attempts
    return config.paid_mock_max_attempts


def attempt_quota(user, mock_test):
    max_attempts = max_attempts_for(mock_test)
    used = MockAttempt.objects.filter(user=user, mock_test=mock_test).count()
    return AttemptQuota(max_attempts, used, max(0, max_attempts - used))
