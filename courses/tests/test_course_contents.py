from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from courses.models import Course, CourseContent, Enrollment, Lecture
from courses.youtube import embed_url

pytestmark = pytest.mark.django_db


@pytest.fixture
def course():
    return Course.objects.create(title="Mechanics", price=Decimal("499.00"), status=Course.Status.PUBLISHED)


@pytest.fixture
def section(course):
    return CourseContent.objects.create(course=course, title="Kinematics", order=0)


def lecture_titles(section):
    return list(section.lectures.order_by('order').values_list('title', 'order'))


class TestYoutubeEmbed:
    @pytest.mark.parametrize("url, expected", [
        ("https://youtu.be/abc123", "https://www.youtube.com/embed/abc123"),
        ("https://www.youtube.com/watch?v=abc123&t=42", "https://www.youtube.com/embed/abc123"),
        ("https://www.youtube.com/embed/abc123", "https://www.youtube.com/embed/abc123"),
        ("https://vimeo.com/12345", None),
        ("", None),
    ])
    def test_embed_url(self, url, expected):
        assert embed_url(url) == expected


def test_staff_adds_sections_in_order(client_for, instructor, course):
    client = client_for(instructor)
    first = client.post(f"/api/courses/{course.id}/contents/", {"title": "Vectors"}, format="json")
    second = client.post(f"/api/courses/{course.id}/contents/", {"title": "Motion"}, format="json")

    assert first.status_code == 201
    assert (first.data["order"], second.data["order"]) == (0, 1)


def test_students_cannot_add_sections(client_for, student, course):
    Enrollment.objects.create(user=student, course=course)
    response = client_for(student).post(f"/api/courses/{course.id}/contents/", {"title": "X"}, format="json")
    assert response.status_code == 403
    assert not CourseContent.objects.exists()


def test_contents_require_live_enrollment(client_for, student, course, section):
    Lecture.objects.create(content=section, title="Displacement", order=1)
    client = client_for(student)
    assert client.get(f"/api/courses/{course.id}/contents/").status_code == 403

    enrollment = Enrollment.objects.create(user=student, course=course)
    response = client.get(f"/api/courses/{course.id}/contents/")
    assert response.status_code == 200
    assert response.data[0]["title"] == "Kinematics"
    assert response.data[0]["lectures"][0]["title"] == "Displacement"

    enrollment.expires_at = timezone.now() - timedelta(days=1)
    enrollment.save()
    assert client.get(f"/api/courses/{course.id}/contents/").status_code == 403


def test_lecture_appends_and_derives_embed(client_for, instructor, section):
    client = client_for(instructor)
    response = client.post(f"/api/admin/contents/{section.id}/lectures/", {
        "title": "Speed", "video_url": "https://youtu.be/xyz789",
    }, format="json")

    assert response.status_code == 201
    assert response.data["order"] == 1
    assert response.data["youtube_embed_url"] == "https://www.youtube.com/embed/xyz789"
    assert client.post(f"/api/admin/contents/{section.id}/lectures/", {"title": "Velocity"},
                       format="json").data["order"] == 2


def test_lecture_inserted_into_taken_slot_shifts_the_rest(client_for, instructor, section):
    for position, title in enumerate(["A", "B", "C"], start=1):
        Lecture.objects.create(content=section, title=title, order=position)

    response = client_for(instructor).post(f"/api/admin/contents/{section.id}/lectures/",
                                           {"title": "New", "order": 2}, format="json")

    assert response.status_code == 201
    assert lecture_titles(section) == [("A", 1), ("New", 2), ("B", 3), ("C", 4)]


@pytest.mark.parametrize("title, new_order, expected", [
    ("D", 2, [("A", 1), ("D", 2), ("B", 3), ("C", 4)]),
    ("A", 3, [("B", 1), ("C", 2), ("A", 3), ("D", 4)]),
])
def test_moving_a_lecture_keeps_positions_unique(client_for, instructor, section, title, new_order, expected):
    for position, name in enumerate(["A", "B", "C", "D"], start=1):
        Lecture.objects.create(content=section, title=name, order=position)
    lecture = section.lectures.get(title=title)

    response = client_for(instructor).patch(f"/api/admin/lectures/{lecture.id}/", {"order": new_order}, format="json")

    assert response.status_code == 200
    assert lecture_titles(section) == expected


def test_reorder_sections_and_lectures(client_for, admin_user, course, section):
    other = CourseContent.objects.create(course=course, title="Dynamics", order=1)
    a = Lecture.objects.create(content=section, title="A", order=1)
    b = Lecture.objects.create(content=section, title="B", order=2)
    client = client_for(admin_user)

    assert client.post("/api/admin/contents/reorder/", {"ids": [other.id, section.id]}, format="json").status_code == 200
    assert list(course.contents.values_list('title', flat=True)) == ["Dynamics", "Kinematics"]

    assert client.post("/api/admin/lectures/reorder/", {"ids": [b.id, a.id]}, format="json").status_code == 200
    assert lecture_titles(section) == [("B", 1), ("A", 2)]


def test_only_admins_delete_sections(client_for, instructor, admin_user, section):
    assert client_for(instructor).delete(f"/api/admin/contents/{section.id}/").status_code == 403
    assert client_for(admin_user).delete(f"/api/admin/contents/{section.id}/").status_code == 204
    assert not CourseContent.objects.exists()
