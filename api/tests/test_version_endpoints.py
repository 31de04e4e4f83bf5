from __future__ import annotations

import pytest
from rest_framework.test import APIClient

from courses.models import CourseVersion


@pytest.fixture
def client_for():
    def _client(user=None):
        c = APIClient()
        if user is not None:
            c.force_authenticate(user)
        return c
    return _client


@pytest.mark.django_db
def test_author_creates_version_copied_from_previous(course, instructor, client_for, version_factory):
    v1 = version_factory(course, 1, ["Intro", "Basics"], active=True)

    r = client_for(instructor).post(
        "/api/v1/versions/", {"course": course.pk, "copy_from": v1.pk, "changelog": "Refresh"}, format="json"
    )

    assert r.status_code == 201
    body = r.json()
    assert body["version"] == 2
    assert body["state"] == "draft"
    assert body["chapters_count"] == 2


@pytest.mark.django_db
def test_activate_publish_deactivate(course, instructor, client_for, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    v2 = version_factory(course, 2, [], published=False)
    c = client_for(instructor)

    r = c.post(f"/api/v1/versions/{v2.pk}/publish/", {"activate": True}, format="json")
    assert r.status_code == 200 and r.json()["is_active"] is True
    assert list(CourseVersion.objects.filter(is_active=True).values_list("pk", flat=True)) == [v2.pk]

    r = c.post(f"/api/v1/versions/{v1.pk}/activate/")
    assert r.status_code == 200
    r = c.post(f"/api/v1/versions/{v1.pk}/deactivate/")
    assert r.status_code == 200 and r.json()["is_active"] is False
    assert not CourseVersion.objects.filter(is_active=True).exists()


@pytest.mark.django_db
def test_students_and_other_instructors_cannot_activate(course, student, user_factory, client_for, version_factory):
    from accounts.models import Role

    v1 = version_factory(course, 1, [])
    stranger = user_factory("stranger", Role.INSTRUCTOR)

    assert client_for(student).post(f"/api/v1/versions/{v1.pk}/activate/").status_code == 403
    assert client_for(stranger).post(f"/api/v1/versions/{v1.pk}/activate/").status_code == 403
    assert client_for().post(f"/api/v1/versions/{v1.pk}/activate/").status_code in (401, 403)


@pytest.mark.django_db
def test_admin_manages_any_course(course, admin_user, client_for, version_factory):
    v1 = version_factory(course, 1, [])
    assert client_for(admin_user).post(f"/api/v1/versions/{v1.pk}/activate/").status_code == 200


@pytest.mark.django_db
def test_deleting_active_version_is_a_conflict(course, instructor, client_for, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    v2 = version_factory(course, 2, [])
    c = client_for(instructor)

    r = c.delete(f"/api/v1/versions/{v1.pk}/")
    assert r.status_code == 409
    assert "active version" in r.json()["detail"]
    assert c.delete(f"/api/v1/versions/{v2.pk}/").status_code == 204


@pytest.mark.django_db
def test_link_chapters_and_suggestions(course, instructor, client_for, version_factory):
    version_factory(course, 1, ["Intro", "Basics", "Closing"])
    v2 = version_factory(course, 2, ["Intro!", "Basics", "Closing remarks"])
    c = client_for(instructor)

    r = c.get(f"/api/v1/versions/{v2.pk}/suggestions/")
    assert r.status_code == 200
    assert len(r.json()["suggestions"]) == 2

    r = c.post(f"/api/v1/versions/{v2.pk}/link-chapters/", {}, format="json")
    assert r.status_code == 200
    assert r.json()["linked"] == 2
    assert r.json()["source_version"] == 1


@pytest.mark.django_db
def test_link_chapters_on_first_version_is_rejected(course, instructor, client_for, version_factory):
    v1 = version_factory(course, 1, ["Intro"])
    r = client_for(instructor).post(f"/api/v1/versions/{v1.pk}/link-chapters/", {}, format="json")
    assert r.status_code == 400


@pytest.mark.django_db
def test_manual_chapter_link(course, instructor, client_for, version_factory):
    v1 = version_factory(course, 1, ["Intro"])
    v2 = version_factory(course, 2, ["Welcome"])
    old, new = v1.chapters.get(), v2.chapters.get()
    c = client_for(instructor)

    r = c.post(f"/api/v1/chapters/{new.pk}/link/", {"original_chapter": old.pk}, format="json")
    assert r.status_code == 200 and r.json()["original_chapter"] == old.pk

    # Linking backwards breaks the earlier-version rule
    r = c.post(f"/api/v1/chapters/{old.pk}/link/", {"original_chapter": new.pk}, format="json")
    assert r.status_code == 409


@pytest.mark.django_db
def test_compare_endpoint(course, client_for, version_factory):
    v1 = version_factory(course, 1, ["Intro"])
    v2 = version_factory(course, 2, ["Intro", "Advanced"])

    r = client_for().get(f"/api/v1/versions/{v2.pk}/compare/", {"with": v1.pk})
    assert r.status_code == 200
    assert r.json()["differences"]["new_chapters"] == ["Advanced"]

    assert client_for().get(f"/api/v1/versions/{v2.pk}/compare/").status_code == 400
    assert client_for().get(f"/api/v1/versions/{v2.pk}/compare/", {"with": 999}).status_code == 404


@pytest.mark.django_db
def test_drafts_hidden_from_public(course, client_for, version_factory):
    draft = version_factory(course, 1, [], published=False)
    assert client_for().get(f"/api/v1/versions/{draft.pk}/").status_code == 404


@pytest.mark.django_db
def test_author_sets_upgrade_price(course, instructor, client_for, version_factory):
    version_factory(course, 1, [], active=True)
    v2 = version_factory(course, 2, [])
    c = client_for(instructor)

    r = c.patch(
        f"/api/v1/versions/{v2.pk}/",
        {"upgrade_price_type": "percentage", "upgrade_price_value": "40.00"},
        format="json",
    )
    assert r.status_code == 200
    assert r.json()["upgrade_price"] == "40.00"

    r = c.patch(f"/api/v1/versions/{v2.pk}/", {"upgrade_discount_type": "fixed"}, format="json")
    assert r.status_code == 400
    assert "upgrade_discount_value" in r.json()
