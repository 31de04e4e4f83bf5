from __future__ import annotations

from django.dispatch import receiver

from courses.models import CourseVersion
from courses.pricing import upgrade_discount_running, upgrade_price
from courses.signals import version_activated
from purchases.models import Purchase, UserVersionAccess
from purchases.signals import access_granted, purchase_refunded
from .models import Notification


@receiver(access_granted, sender=UserVersionAccess)
def notify_access_granted(sender, access: UserVersionAccess, created: bool, **kwargs):
    version = access.course_version
    course = version.course
    Notification.objects.create(
        user_id=access.user_id,
        type=Notification.TYPE_ACCESS_GRANTED,
        course=course,
        message=f"You now have access to {course.title} (v{version.version})"[:200],
    )


def _release_message(version: CourseVersion) -> str:
    message = f"Version {version.version} of {version.course.title} is now available"
    price = upgrade_price(version)
    if price is not None:
        message += f". Upgrade for {price}"
        if upgrade_discount_running(version):
            message += f" until {version.upgrade_discount_end:%Y-%m-%d}"
    return message[:200]


@receiver(version_activated, sender=CourseVersion)
def notify_version_released(sender, version: CourseVersion, previous=None, **kwargs):
    # Students holding an older version, but not this one, hear about it
    course = version.course
    holders = set(
        UserVersionAccess.objects.filter(course_version__course=course, is_active=True)
        .exclude(course_version=version)
        .values_list("user_id", flat=True)
    )
    if not holders:
        return
    holders -= set(
        UserVersionAccess.objects.filter(course_version=version, is_active=True).values_list("user_id", flat=True)
    )
    message = _release_message(version)
    Notification.objects.bulk_create(
        [
            Notification(user_id=uid, type=Notification.TYPE_VERSION_RELEASED, course=course, message=message)
            for uid in sorted(holders)
        ]
    )


@receiver(purchase_refunded, sender=Purchase)
def notify_purchase_refunded(sender, purchase: Purchase, revoked: int = 0, **kwargs):
    course = purchase.course
    Notification.objects.create(
        user_id=purchase.user_id,
        type=Notification.TYPE_PURCHASE_REFUNDED,
        course=course,
        message=f"Your purchase of {course.title} was refunded"[:200],
    )
