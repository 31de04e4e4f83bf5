from __future__ import annotations

import datetime as dt
from decimal import Decimal

import pytest
from django.utils import timezone

from courses.exceptions import ConstraintViolation, InvalidTransition, NotFoundError
from courses.models import CourseStatus
from purchases import services
from purchases.models import PromoCode, Purchase, PurchaseStatus, UserVersionAccess
from purchases.signals import access_granted


@pytest.mark.django_db
def test_create_purchase_applies_promo_code(course, student, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    PromoCode.objects.create(code="SPRING25", discount_percentage=25)

    purchase = services.create_purchase(student, course, course_version=v1, promo_code=" spring25 ")

    assert purchase.status == PurchaseStatus.PENDING
    assert purchase.amount == Decimal("100.00")
    assert purchase.final_amount == Decimal("75.00")
    assert purchase.promo_code.code == "SPRING25"


@pytest.mark.django_db
def test_create_purchase_rejections(course, student, version_factory):
    PromoCode.objects.create(code="OLD", discount_percentage=10, valid_until=timezone.now() - dt.timedelta(days=1))
    PromoCode.objects.create(code="USED", discount_percentage=10, max_uses=1, used_count=1)

    with pytest.raises(NotFoundError):
        services.create_purchase(student, course, promo_code="NOPE")
    for code in ("OLD", "USED"):
        with pytest.raises(ConstraintViolation):
            services.create_purchase(student, course, promo_code=code)

    course.status = CourseStatus.DRAFT
    course.save(update_fields=["status"])
    with pytest.raises(ConstraintViolation):
        services.create_purchase(student, course)
    assert not Purchase.objects.exists()


@pytest.mark.django_db
def test_complete_grants_access_in_same_step(course, student, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    promo = PromoCode.objects.create(code="X", discount_percentage=50)
    purchase = services.create_purchase(student, course, course_version=v1, promo_code="X")
    events = []

    def listener(sender, access, created, **kwargs):
        events.append((access.course_version_id, created))

    access_granted.connect(listener, sender=UserVersionAccess)
    try:
        completed = services.complete_purchase(purchase)
    finally:
        access_granted.disconnect(listener, sender=UserVersionAccess)

    assert completed.status == PurchaseStatus.COMPLETED
    assert services.has_version_access(student, v1)
    assert services.has_course_access(student, course)
    access = UserVersionAccess.objects.get(user=student)
    assert access.purchase_id == purchase.pk
    assert events == [(v1.pk, True)]
    promo.refresh_from_db()
    assert promo.used_count == 1


@pytest.mark.django_db
def test_purchase_without_version_is_pinned_to_active_version(course, student, version_factory):
    version_factory(course, 1, [])
    v2 = version_factory(course, 2, [], active=True)
    purchase = services.create_purchase(student, course)

    completed = services.complete_purchase(purchase)

    assert completed.course_version_id == v2.pk
    assert services.has_version_access(student, v2)


@pytest.mark.django_db
def test_status_transitions_are_enforced(course, student, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    purchase = services.create_purchase(student, course, course_version=v1)

    with pytest.raises(InvalidTransition):
        services.refund_purchase(purchase)
    services.fail_purchase(purchase)
    with pytest.raises(InvalidTransition):
        services.complete_purchase(purchase)
    purchase.refresh_from_db()
    assert purchase.status == PurchaseStatus.FAILED
    assert not UserVersionAccess.objects.exists()


@pytest.mark.django_db
def test_refund_revokes_only_grants_from_that_purchase(course, student, version_factory):
    v1 = version_factory(course, 1, [])
    v2 = version_factory(course, 2, [], active=True)
    first = services.complete_purchase(services.create_purchase(student, course, course_version=v1))
    services.complete_purchase(services.create_purchase(student, course, course_version=v2))

    services.refund_purchase(first)

    assert not services.has_version_access(student, v1)
    assert services.has_version_access(student, v2)
    revoked = UserVersionAccess.objects.get(course_version=v1)
    assert revoked.revoked_at is not None
    first.refresh_from_db()
    assert first.status == PurchaseStatus.REFUNDED


@pytest.mark.django_db
def test_repurchase_reactivates_revoked_grant(course, student, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    first = services.complete_purchase(services.create_purchase(student, course, course_version=v1))
    services.refund_purchase(first)

    second = services.complete_purchase(services.create_purchase(student, course, course_version=v1))

    access = UserVersionAccess.objects.get()
    assert access.is_active and access.revoked_at is None
    assert access.purchase_id == second.pk


@pytest.mark.django_db
def test_access_checks_for_anonymous_user(course, version_factory):
    from django.contrib.auth.models import AnonymousUser

    v1 = version_factory(course, 1, [], active=True)
    assert not services.has_version_access(AnonymousUser(), v1)
    assert not services.has_course_access(AnonymousUser(), course)


def test_promo_code_rounding():
    assert PromoCode(discount_percentage=33).apply(Decimal("9.99")) == Decimal("6.69")
    assert PromoCode(discount_percentage=100).apply(Decimal("10.00")) == Decimal("0.00")


@pytest.mark.django_db
def test_buying_a_held_version_again_is_rejected(course, student, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    services.complete_purchase(services.create_purchase(student, course, course_version=v1))

    with pytest.raises(ConstraintViolation):
        services.create_purchase(student, course, course_version=v1)
    # Without a version the purchase would land on the same active version
    with pytest.raises(ConstraintViolation):
        services.create_purchase(student, course)
    assert Purchase.objects.count() == 1


@pytest.mark.django_db
def test_course_without_versions_cannot_be_bought_twice(course, student):
    services.complete_purchase(services.create_purchase(student, course))

    with pytest.raises(ConstraintViolation):
        services.create_purchase(student, course)


@pytest.mark.django_db
def test_completing_a_duplicate_pending_purchase_is_rejected(course, student, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    first = services.create_purchase(student, course, course_version=v1)
    duplicate = services.create_purchase(student, course, course_version=v1)
    services.complete_purchase(first)

    with pytest.raises(ConstraintViolation):
        services.complete_purchase(duplicate)

    duplicate.refresh_from_db()
    assert duplicate.status == PurchaseStatus.PENDING
    assert UserVersionAccess.objects.get().purchase_id == first.pk


@pytest.mark.django_db
def test_promo_code_cannot_exceed_max_uses_at_completion(course, student, user_factory, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    promo = PromoCode.objects.create(code="ONCE", discount_percentage=20, max_uses=1)
    first = services.create_purchase(student, course, course_version=v1, promo_code="ONCE")
    second = services.create_purchase(user_factory("other"), course, course_version=v1, promo_code="ONCE")
    services.complete_purchase(first)

    with pytest.raises(ConstraintViolation):
        services.complete_purchase(second)

    promo.refresh_from_db()
    assert promo.used_count == 1
    second.refresh_from_db()
    assert second.status == PurchaseStatus.PENDING
    assert not UserVersionAccess.objects.filter(user__username="other").exists()


@pytest.mark.django_db
def test_draft_version_is_not_on_sale(course, student, version_factory):
    version_factory(course, 1, [], active=True)
    draft = version_factory(course, 2, [], published=False)

    with pytest.raises(ConstraintViolation):
        services.create_purchase(student, course, course_version=draft)
    assert not Purchase.objects.exists()


@pytest.mark.django_db
def test_holders_of_an_older_version_pay_the_upgrade_price(course, student, user_factory, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    v2 = version_factory(course, 2, [])
    v2.upgrade_price_type = "fixed"
    v2.upgrade_price_value = Decimal("30.00")
    v2.save()
    PromoCode.objects.create(code="HALF", discount_percentage=50)
    services.complete_purchase(services.create_purchase(student, course, course_version=v1))

    upgrade = services.create_purchase(student, course, course_version=v2, promo_code="HALF")
    newcomer = services.create_purchase(user_factory("new"), course, course_version=v2)

    assert upgrade.amount == Decimal("30.00")
    assert upgrade.final_amount == Decimal("15.00")
    assert newcomer.amount == Decimal("100.00")


@pytest.mark.django_db
def test_upgrade_without_upgrade_pricing_costs_full_price(course, student, version_factory):
    v1 = version_factory(course, 1, [], active=True)
    v2 = version_factory(course, 2, [])
    services.complete_purchase(services.create_purchase(student, course, course_version=v1))

    assert services.create_purchase(student, course, course_version=v2).amount == Decimal("100.00")
