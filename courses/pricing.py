"""Upgrade pricing for students moving to a newer version of a course."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP

from django.utils import timezone

from .models import CourseVersion, UpgradePriceType

_CENT = Decimal("0.01")


def _price(kind: str, value: Decimal | None, course_price: Decimal) -> Decimal | None:
    if not kind or value is None:
        return None
    if kind == UpgradePriceType.PERCENTAGE:
        amount = course_price * value / Decimal(100)
    else:
        amount = value
    return min(max(amount, Decimal("0")), course_price).quantize(_CENT, rounding=ROUND_HALF_UP)


def upgrade_discount_running(version: CourseVersion, now: datetime | None = None) -> bool:
    now = now or timezone.now()
    return bool(
        version.upgrade_discount_type
        and version.upgrade_discount_value is not None
        and version.upgrade_discount_start
        and version.upgrade_discount_end
        and version.upgrade_discount_start <= now <= version.upgrade_discount_end
    )


def upgrade_price(version: CourseVersion, now: datetime | None = None) -> Decimal | None:
    """Price of `version` for a holder of an earlier version of the course.

    A running upgrade discount wins over the regular upgrade price. Returns
    None when the version has no upgrade pricing; such upgrades are charged
    the full course price. Never exceeds the course price.
    """
    course_price = version.course.price
    if upgrade_discount_running(version, now):
        return _price(version.upgrade_discount_type, version.upgrade_discount_value, course_price)
    return _price(version.upgrade_price_type, version.upgrade_price_value, course_price)
