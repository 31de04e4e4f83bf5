"""Site-wide settings stored as a single database row."""
from __future__ import annotations

from django.db import models

from courses.exceptions import ConstraintViolation

SINGLETON_PK = 1


class SiteSettings(models.Model):
    """Singleton: the row always has primary key 1.

    Use `SiteSettings.load()`; it creates the row with defaults on first read.
    """

    site_name = models.CharField(max_length=100, default="Lectora")
    support_email = models.EmailField(blank=True)
    maintenance_mode = models.BooleanField(default=False)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "site settings"
        verbose_name_plural = "site settings"

    def __str__(self) -> str:  # pragma: no cover
        return self.site_name

    def save(self, *args, **kwargs):
        self.pk = SINGLETON_PK
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ConstraintViolation("Site settings cannot be deleted.")

    @classmethod
    def load(cls) -> "SiteSettings":
        obj, _ = cls.objects.get_or_create(pk=SINGLETON_PK)
        return obj
