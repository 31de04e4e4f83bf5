"""Purchases, promo codes and per-version access grants.

A completed `Purchase` of a specific course version yields one
`UserVersionAccess` row for (user, version). Refunds deactivate the grant
but keep the row for audit.
"""
from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from django.conf import settings
from django.core.validators import MaxValueValidator
from django.db import models
from django.utils import timezone

from courses.models import Course, CourseVersion


class PurchaseStatus(models.TextChoices):
    PENDING = "pending", "Pending"
    COMPLETED = "completed", "Completed"
    FAILED = "failed", "Failed"
    REFUNDED = "refunded", "Refunded"


# Status changes a purchase may go through; anything else is rejected.
ALLOWED_TRANSITIONS = {
    PurchaseStatus.PENDING: {PurchaseStatus.COMPLETED, PurchaseStatus.FAILED},
    PurchaseStatus.COMPLETED: {PurchaseStatus.REFUNDED},
}


class PromoCode(models.Model):
    code = models.CharField(max_length=50, unique=True)
    discount_percentage = models.PositiveSmallIntegerField(validators=[MaxValueValidator(100)])
    is_active = models.BooleanField(default=True)
    valid_until = models.DateTimeField(null=True, blank=True)
    max_uses = models.PositiveIntegerField(null=True, blank=True)
    used_count = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["code"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.code} (-{self.discount_percentage}%)"

    def is_usable(self) -> bool:
        if not self.is_active:
            return False
        if self.valid_until and timezone.now() > self.valid_until:
            return False
        if self.max_uses is not None and self.used_count >= self.max_uses:
            return False
        return True

    def apply(self, amount: Decimal) -> Decimal:
        discounted = amount * (Decimal(100) - self.discount_percentage) / Decimal(100)
        return discounted.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class Purchase(models.Model):
    """A payment for a course, optionally pinned to one version."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="purchases")
    course = models.ForeignKey(Course, on_delete=models.PROTECT, related_name="purchases")
    course_version = models.ForeignKey(
        CourseVersion, on_delete=models.PROTECT, null=True, blank=True, related_name="purchases"
    )
    amount = models.DecimalField(max_digits=10, decimal_places=2)
    final_amount = models.DecimalField(max_digits=10, decimal_places=2)
    status = models.CharField(max_length=16, choices=PurchaseStatus.choices, default=PurchaseStatus.PENDING, db_index=True)
    promo_code = models.ForeignKey(PromoCode, on_delete=models.SET_NULL, null=True, blank=True, related_name="purchases")
    # Settable so imported purchases keep their original timestamp.
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["status", "course_version"], name="purchase_status_version_idx")]

    def __str__(self) -> str:  # pragma: no cover
        return f"Purchase {self.pk}: {self.user_id}->{self.course_id} ({self.status})"

    def can_transition(self, status: str) -> bool:
        return status in ALLOWED_TRANSITIONS.get(self.status, set())


class UserVersionAccess(models.Model):
    """Durable right of a user to view one course version's chapters."""

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="version_access")
    course_version = models.ForeignKey(CourseVersion, on_delete=models.CASCADE, related_name="access_grants")
    purchase = models.ForeignKey(Purchase, on_delete=models.SET_NULL, null=True, blank=True, related_name="access_grants")
    granted_at = models.DateTimeField(default=timezone.now)
    is_active = models.BooleanField(default=True, db_index=True)
    revoked_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-granted_at"]
        verbose_name_plural = "user version access"
        constraints = [
            models.UniqueConstraint(fields=["user", "course_version"], name="uniq_access_per_user_version"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.user_id}->{self.course_version_id}{'' if self.is_active else ' (revoked)'}"
