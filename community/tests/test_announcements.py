import pytest
from django.core import mail

from community.models import AnnouncementRecipient, CourseAnnouncement
from courses.models import Course, Enrollment

pytestmark = pytest.mark.django_db


@pytest.fixture
def course(student):
    course = Course.objects.create(title="Physics Crash Course", status=Course.Status.PUBLISHED)
    Enrollment.objects.create(user=student, course=course)
    return course


def announce(client, course, send_email=False):
    return client.post("/api/admin/announcements/", {
        "course": course.id, "title": "Live class moved", "message": "Now at 6pm.", "send_email": send_email,
    }, format="json")


def test_announcement_reaches_enrolled_students(client_for, admin_user, make_user, course):
    make_user("not-enrolled@example.com")
    response = announce(client_for(admin_user), course, send_email=True)

    assert response.status_code == 201
    assert response.data["total_recipients"] == 1
    assert response.data["email_delivered_count"] == 1
    assert response.data["emails_sent"] == 1
    assert len(mail.outbox) == 1
    assert mail.outbox[0].subject == "[Physics Crash Course] Live class moved"


def test_announcement_without_email(client_for, admin_user, course):
    response = announce(client_for(admin_user), course)
    assert response.data["total_recipients"] == 1
    assert response.data["emails_sent"] == 0
    assert not mail.outbox


def test_student_reads_announcements(client_for, admin_user, student, course):
    announcement_id = announce(client_for(admin_user), course).data["id"]
    client = client_for(student)

    listed = client.get(f"/api/announcements/?course_id={course.id}")
    assert listed.data["announcements"][0]["read"] is False

    assert client.post("/api/announcements/read/", {"announcement_id": announcement_id}, format="json").status_code == 200
    assert AnnouncementRecipient.objects.get(user=student).read
    assert client.get(f"/api/announcements/?course_id={course.id}").data["announcements"][0]["read"] is True

    admin_view = client_for(admin_user).get(f"/api/admin/announcements/?course_id={course.id}")
    assert admin_view.data[0]["read_count"] == 1


def test_announcements_need_course_access(client_for, make_user, course):
    CourseAnnouncement.objects.create(course=course, title="Hi", message="Hello")
    outsider = client_for(make_user("outsider@example.com"))

    assert outsider.get(f"/api/announcements/?course_id={course.id}").status_code == 403
    assert outsider.get("/api/announcements/").status_code == 400


def test_read_requires_recipient_row(client_for, make_user, course):
    announcement = CourseAnnouncement.objects.create(course=course, title="Hi", message="Hello")
    outsider = client_for(make_user("outsider@example.com"))
    response = outsider.post("/api/announcements/read/", {"announcement_id": announcement.id}, format="json")
    assert response.status_code == 404
