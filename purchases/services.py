"""Purchase lifecycle and access checks.

Completing a purchase flips its status and upserts the access grant in one
transaction, so no committed state shows a completed version purchase
without its grant. Refunds deactivate the grants that came from the
purchase.
"""
from __future__ import annotations

import logging

from django.db import DatabaseError, transaction
from django.db.models import F
from django.utils import timezone

from courses.exceptions import ConstraintViolation, InvalidTransition, NotFoundError, PersistenceFailure
from courses.models import Course, CourseStatus, CourseVersion
from courses.pricing import upgrade_price
from .models import PromoCode, Purchase, PurchaseStatus, UserVersionAccess
from .signals import access_granted, purchase_refunded

logger = logging.getLogger(__name__)


def _lock_purchase(purchase_id: int) -> Purchase:
    try:
        return Purchase.objects.select_for_update().get(pk=purchase_id)
    except Purchase.DoesNotExist as exc:
        raise NotFoundError(f"Purchase {purchase_id} does not exist.") from exc


def _check_transition(purchase: Purchase, status: str) -> None:
    if not purchase.can_transition(status):
        raise InvalidTransition(f"Purchase {purchase.pk} cannot move from {purchase.status} to {status}.")


def _holds_earlier_version(user, version: CourseVersion) -> bool:
    return UserVersionAccess.objects.filter(
        user=user,
        course_version__course_id=version.course_id,
        course_version__version__lt=version.version,
        is_active=True,
    ).exists()


def create_purchase(
    user,
    course: Course,
    *,
    course_version: CourseVersion | None = None,
    promo_code: str | None = None,
) -> Purchase:
    """Open a pending purchase at the course price, less any promo discount.

    Holders of an earlier version of the course pay the version's upgrade
    price when one is configured. Buyers who already hold the version they
    would get are turned away.
    """
    if course.status != CourseStatus.PUBLISHED:
        raise ConstraintViolation(f"Course {course.pk} is not on sale.")
    if course_version is not None:
        if course_version.course_id != course.pk:
            raise ConstraintViolation("The version does not belong to this course.")
        if not course_version.is_published:
            raise ConstraintViolation(f"Version {course_version.version} of course {course.pk} is not published.")
    target = course_version or course.active_version
    if target is not None:
        if has_version_access(user, target):
            raise ConstraintViolation(f"User {user.pk} already has access to version {target.version}.")
    elif Purchase.objects.filter(user=user, course=course, status=PurchaseStatus.COMPLETED).exists():
        raise ConstraintViolation(f"User {user.pk} has already bought course {course.pk}.")
    promo = None
    if promo_code:
        promo = PromoCode.objects.filter(code__iexact=promo_code.strip()).first()
        if promo is None:
            raise NotFoundError(f"Promo code {promo_code!r} does not exist.")
        if not promo.is_usable():
            raise ConstraintViolation(f"Promo code {promo.code!r} is no longer valid.")
    amount = course.price
    if target is not None and _holds_earlier_version(user, target):
        price = upgrade_price(target)
        if price is not None:
            amount = price
    return Purchase.objects.create(
        user=user,
        course=course,
        course_version=course_version,
        amount=amount,
        final_amount=promo.apply(amount) if promo else amount,
        promo_code=promo,
    )


def grant_version_access(purchase: Purchase, *, granted_at=None) -> tuple[UserVersionAccess, bool]:
    """Upsert the grant for (purchase.user, purchase.course_version).

    A revoked grant is reactivated and re-pointed at `purchase`.
    """
    access, created = UserVersionAccess.objects.get_or_create(
        user_id=purchase.user_id,
        course_version_id=purchase.course_version_id,
        defaults={
            "purchase": purchase,
            "granted_at": granted_at or timezone.now(),
            "is_active": True,
        },
    )
    if not created and not access.is_active:
        access.is_active = True
        access.revoked_at = None
        access.purchase = purchase
        access.granted_at = granted_at or timezone.now()
        access.save(update_fields=["is_active", "revoked_at", "purchase", "granted_at"])
    return access, created


def complete_purchase(purchase: Purchase) -> Purchase:
    """PENDING -> COMPLETED, granting access to the purchased version.

    A purchase made without a version is pinned to the course's active
    version at completion time; with no active version it completes
    without a grant. Raises ConstraintViolation, leaving the purchase
    pending, when the buyer already holds the version through another
    grant or the promo code ran out in the meantime.
    """
    grant = None
    try:
        with transaction.atomic():
            locked = _lock_purchase(purchase.pk)
            _check_transition(locked, PurchaseStatus.COMPLETED)
            if locked.course_version_id is None:
                locked.course_version = CourseVersion.objects.filter(
                    course_id=locked.course_id, is_active=True
                ).first()
            if locked.course_version_id is not None and (
                UserVersionAccess.objects.filter(
                    user_id=locked.user_id, course_version_id=locked.course_version_id, is_active=True
                )
                .exclude(purchase=locked)
                .exists()
            ):
                raise ConstraintViolation(
                    f"User {locked.user_id} already has access to version {locked.course_version_id}."
                )
            if locked.promo_code_id:
                # used_count never passes max_uses
                promo = PromoCode.objects.select_for_update().get(pk=locked.promo_code_id)
                if not promo.is_usable():
                    raise ConstraintViolation(f"Promo code {promo.code!r} is no longer valid.")
                PromoCode.objects.filter(pk=promo.pk).update(used_count=F("used_count") + 1)
            locked.status = PurchaseStatus.COMPLETED
            locked.save(update_fields=["status", "course_version", "updated_at"])
            if locked.course_version_id is not None:
                grant = grant_version_access(locked)
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not complete purchase {purchase.pk}.") from exc

    logger.info("Purchase %s completed (user %s, version %s)", locked.pk, locked.user_id, locked.course_version_id)
    if grant is not None:
        access, created = grant
        access_granted.send(sender=UserVersionAccess, access=access, created=created)
    return locked


def fail_purchase(purchase: Purchase) -> Purchase:
    try:
        with transaction.atomic():
            locked = _lock_purchase(purchase.pk)
            _check_transition(locked, PurchaseStatus.FAILED)
            locked.status = PurchaseStatus.FAILED
            locked.save(update_fields=["status", "updated_at"])
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not fail purchase {purchase.pk}.") from exc
    logger.info("Purchase %s failed", locked.pk)
    return locked


def refund_purchase(purchase: Purchase) -> Purchase:
    """COMPLETED -> REFUNDED; grants from this purchase are deactivated, not deleted."""
    try:
        with transaction.atomic():
            locked = _lock_purchase(purchase.pk)
            _check_transition(locked, PurchaseStatus.REFUNDED)
            locked.status = PurchaseStatus.REFUNDED
            locked.save(update_fields=["status", "updated_at"])
            revoked = UserVersionAccess.objects.filter(purchase=locked, is_active=True).update(
                is_active=False, revoked_at=timezone.now()
            )
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not refund purchase {purchase.pk}.") from exc
    logger.info("Purchase %s refunded; %s access grant(s) revoked", locked.pk, revoked)
    purchase_refunded.send(sender=Purchase, purchase=locked, revoked=revoked)
    return locked


def has_version_access(user, version: CourseVersion) -> bool:
    if not getattr(user, "is_authenticated", False):
        return False
    return UserVersionAccess.objects.filter(user=user, course_version=version, is_active=True).exists()


def has_course_access(user, course: Course) -> bool:
    """Any active grant for a version of the course, or a completed purchase of it."""
    if not getattr(user, "is_authenticated", False):
        return False
    if UserVersionAccess.objects.filter(user=user, course_version__course=course, is_active=True).exists():
        return True
    return Purchase.objects.filter(user=user, course=course, status=PurchaseStatus.COMPLETED).exists()
