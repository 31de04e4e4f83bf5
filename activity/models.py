"""Activity models: in-app notifications."""
from __future__ import annotations

from django.conf import settings
from django.db import models


class Notification(models.Model):
    TYPE_ACCESS_GRANTED = "access_granted"
    TYPE_VERSION_RELEASED = "version_released"
    TYPE_PURCHASE_REFUNDED = "purchase_refunded"
    TYPE_CHOICES = (
        (TYPE_ACCESS_GRANTED, "Access granted"),
        (TYPE_VERSION_RELEASED, "New version released"),
        (TYPE_PURCHASE_REFUNDED, "Purchase refunded"),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="notifications")
    type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    course = models.ForeignKey('courses.Course', on_delete=models.CASCADE, null=True, blank=True, related_name="notifications")
    message = models.CharField(max_length=200)
    created_at = models.DateTimeField(auto_now_add=True)
    read = models.BooleanField(default=False, db_index=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.user_id}:{self.type}:{self.message[:20]}"
