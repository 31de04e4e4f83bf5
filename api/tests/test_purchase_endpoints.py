from __future__ import annotations

from unittest import mock

import pytest
from django.db import OperationalError
from rest_framework.test import APIClient

from activity.models import Notification
from courses.models_progress import ChapterProgress
from purchases.models import PromoCode, Purchase


def _client(user):
    c = APIClient()
    c.force_authenticate(user)
    return c


@pytest.mark.django_db
def test_purchase_flow(course, student, admin_user, version_factory):
    v1 = version_factory(course, 1, ["Intro"], active=True)
    PromoCode.objects.create(code="HALF", discount_percentage=50)
    buyer, staff = _client(student), _client(admin_user)

    r = buyer.post("/api/v1/purchases/", {"course": course.pk, "promo_code": "HALF"}, format="json")
    assert r.status_code == 201
    purchase_id = r.json()["id"]
    assert r.json()["final_amount"] == "50.00"
    assert r.json()["status"] == "pending"

    # Buyers cannot complete their own purchases
    assert buyer.post(f"/api/v1/purchases/{purchase_id}/complete/").status_code == 403

    r = staff.post(f"/api/v1/purchases/{purchase_id}/complete/")
    assert r.status_code == 200
    assert r.json()["course_version"] == v1.pk

    access = buyer.get("/api/v1/access/").json()["results"]
    assert [(a["course_version"], a["is_active"]) for a in access] == [(v1.pk, True)]

    notes = buyer.get("/api/v1/notifications/").json()["results"]
    assert [n["type"] for n in notes] == ["access_granted"]

    r = staff.post(f"/api/v1/purchases/{purchase_id}/refund/")
    assert r.status_code == 200 and r.json()["status"] == "refunded"
    assert buyer.get("/api/v1/access/", {"is_active": "true"}).json()["count"] == 0

    # Refunded purchases cannot be refunded again
    assert staff.post(f"/api/v1/purchases/{purchase_id}/refund/").status_code == 409


@pytest.mark.django_db
def test_purchases_are_private(course, student, user_factory, version_factory):
    version_factory(course, 1, [], active=True)
    other = user_factory("other")
    Purchase.objects.create(user=other, course=course, amount=course.price, final_amount=course.price)

    assert _client(student).get("/api/v1/purchases/").json()["count"] == 0
    assert APIClient().get("/api/v1/purchases/").status_code in (401, 403)


@pytest.mark.django_db
def test_unknown_promo_code_is_not_found(course, student):
    r = _client(student).post("/api/v1/purchases/", {"course": course.pk, "promo_code": "NOPE"}, format="json")
    assert r.status_code == 404


@pytest.mark.django_db
def test_database_outage_maps_to_503(course, student, admin_user, version_factory):
    version_factory(course, 1, [], active=True)
    purchase = Purchase.objects.create(user=student, course=course, amount=course.price, final_amount=course.price)

    with mock.patch("purchases.services.grant_version_access", side_effect=OperationalError("database is locked")):
        r = _client(admin_user).post(f"/api/v1/purchases/{purchase.pk}/complete/")

    assert r.status_code == 503
    purchase.refresh_from_db()
    assert purchase.status == "pending"


@pytest.mark.django_db
def test_progress_transfer_endpoint(course, student, admin_user, version_factory):
    from courses.linking import auto_link_chapters

    v1 = version_factory(course, 1, ["Intro"])
    v2 = version_factory(course, 2, ["Intro"], active=True)
    auto_link_chapters()
    ChapterProgress.objects.create(user=student, chapter=v1.chapters.get(), course_version=v1, is_completed=True)
    payload = {"from_version": v1.pk, "to_version": v2.pk}
    buyer = _client(student)

    # No access to the target version yet
    assert buyer.post("/api/v1/progress/transfer", payload, format="json").status_code == 403

    purchase = Purchase.objects.create(user=student, course=course, amount=course.price, final_amount=course.price)
    _client(admin_user).post(f"/api/v1/purchases/{purchase.pk}/complete/")
    r = buyer.post("/api/v1/progress/transfer", payload, format="json")
    assert r.status_code == 200
    assert r.json()["transferred"] == 1


@pytest.mark.django_db
def test_notifications_mark_read(student):
    n1 = Notification.objects.create(user=student, type=Notification.TYPE_ACCESS_GRANTED, message="a")
    Notification.objects.create(user=student, type=Notification.TYPE_ACCESS_GRANTED, message="b")
    c = _client(student)

    assert c.post(f"/api/v1/notifications/{n1.pk}/mark-read/").json()["read"] is True
    assert c.post("/api/v1/notifications/mark-all-read/").json() == {"updated": 1}
    assert c.get("/api/v1/notifications/", {"read": "false"}).json()["count"] == 0


@pytest.mark.django_db
def test_site_settings_endpoint(student, admin_user):
    assert APIClient().get("/api/v1/site-settings").json()["site_name"] == "Lectora"
    assert _client(student).patch("/api/v1/site-settings", {"site_name": "X"}, format="json").status_code == 403
    r = _client(admin_user).patch("/api/v1/site-settings", {"maintenance_mode": True}, format="json")
    assert r.status_code == 200 and r.json()["maintenance_mode"] is True


@pytest.mark.django_db
def test_draft_version_cannot_be_bought(course, student, version_factory):
    version_factory(course, 1, [], active=True)
    draft = version_factory(course, 2, [], published=False)

    r = _client(student).post("/api/v1/purchases/", {"course": course.pk, "course_version": draft.pk}, format="json")

    assert r.status_code == 400
    assert "course_version" in r.json()
    assert not Purchase.objects.exists()


@pytest.mark.django_db
def test_second_purchase_of_held_version_is_a_conflict(course, student, admin_user, version_factory):
    version_factory(course, 1, [], active=True)
    buyer = _client(student)
    purchase_id = buyer.post("/api/v1/purchases/", {"course": course.pk}, format="json").json()["id"]
    _client(admin_user).post(f"/api/v1/purchases/{purchase_id}/complete/")

    assert buyer.post("/api/v1/purchases/", {"course": course.pk}, format="json").status_code == 409
