"""
Who may read a course's sections, lectures and announcements.
"""
from users.permissions import is_content_manager

from .models import Enrollment


def has_course_access(user, course):
    if is_content_manager(user):
        return True
    enrollment = Enrollment.objects.filter(user=user, course=course).first()
    return enrollment is not None and not enrollment.is_expired
