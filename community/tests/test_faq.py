import pytest

from community.models import FAQ

pytestmark = pytest.mark.django_db


@pytest.fixture
def faqs():
    FAQ.objects.create(question="How do refunds work?", answer="Within 7 days.", category="PAYMENTS")
    FAQ.objects.create(question="Can I retake a mock?", answer="Up to the attempt limit.", category="MOCKS")
    FAQ.objects.create(question="Hidden?", answer="Yes", category="MOCKS", visible=False)


def test_public_faq_shows_visible_entries(api_client, faqs):
    response = api_client.get("/api/faq/")
    assert response.status_code == 200
    assert response.data["count"] == 2

    by_category = api_client.get("/api/faq/?category=MOCKS").data["data"]
    assert [f["question"] for f in by_category] == ["Can I retake a mock?"]

    searched = api_client.get("/api/faq/?q=refund").data["data"]
    assert [f["category"] for f in searched] == ["PAYMENTS"]


def test_public_faq_paging(api_client, faqs):
    assert api_client.get("/api/faq/?limit=1").data["count"] == 1
    assert api_client.get("/api/faq/?limit=1&skip=1").data["count"] == 1
    assert api_client.get("/api/faq/?limit=abc").data["count"] == 2


def test_admin_filters_by_visibility(client_for, admin_user, faqs):
    response = client_for(admin_user).get("/api/admin/faq/?visible=false")
    assert [f["question"] for f in response.data] == ["Hidden?"]


def test_bulk_import_skips_incomplete_rows(client_for, admin_user):
    response = client_for(admin_user).post("/api/admin/faq/bulk/", [
        {"question": "Is there a mobile app?", "answer": "Not yet."},
        {"question": "No answer here"},
        {"question": "Which exams?", "answer": "JEE and NEET.", "category": "EXAMS"},
    ], format="json")

    assert response.status_code == 201
    assert response.data["count"] == 2
    assert set(FAQ.objects.values_list("category", flat=True)) == {"GENERAL", "EXAMS"}


def test_bulk_import_needs_a_list(client_for, admin_user):
    response = client_for(admin_user).post("/api/admin/faq/bulk/", {"question": "Q", "answer": "A"}, format="json")
    assert response.status_code == 400


def test_students_cannot_edit_faq(client_for, student):
    response = client_for(student).post("/api/admin/faq/", {"question": "Q", "answer": "A"}, format="json")
    assert response.status_code == 403
