"""Course catalogue models: courses, their versions and chapters.

A `Course` owns numbered `CourseVersion` revisions of its curriculum; each
version owns an ordered list of `Chapter` rows. At most one version per
course is active, enforced by a partial unique constraint so that no
committed state can show two active versions.

Chapters may point at the chapter they replace in an earlier version
(`original_chapter`). The link is only used to carry student progress
across versions and is nulled, never cascaded, when the earlier chapter is
deleted.
"""
from __future__ import annotations

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import Q


class CourseStatus(models.TextChoices):
    DRAFT = "draft", "Draft"
    PUBLISHED = "published", "Published"
    ARCHIVED = "archived", "Archived"


class Category(models.Model):
    name = models.CharField(max_length=120)
    slug = models.SlugField(max_length=140, unique=True, allow_unicode=True)

    class Meta:
        ordering = ["name"]
        verbose_name_plural = "categories"

    def __str__(self) -> str:  # pragma: no cover
        return self.name


class Course(models.Model):
    """A course on sale in the catalogue."""

    title = models.CharField(max_length=200)
    slug = models.SlugField(max_length=220, unique=True, allow_unicode=True)
    description = models.TextField(blank=True)
    price = models.DecimalField(
        max_digits=10, decimal_places=2, default=Decimal("0.00"), validators=[MinValueValidator(Decimal("0.00"))]
    )
    status = models.CharField(max_length=16, choices=CourseStatus.choices, default=CourseStatus.DRAFT, db_index=True)
    category = models.ForeignKey(Category, on_delete=models.PROTECT, related_name="courses")
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="authored_courses")
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["title"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.title}"

    @property
    def active_version(self) -> "CourseVersion | None":
        return self.versions.filter(is_active=True).first()


class UpgradePriceType(models.TextChoices):
    FIXED = "fixed", "Fixed amount"
    PERCENTAGE = "percentage", "Percentage of course price"


class CourseVersion(models.Model):
    """A numbered, independently publishable revision of a course.

    `published_at` is null while the version is a draft. `version` numbers
    are allocated by `courses.versioning.create_version` under a lock on the
    course row, so they increase monotonically per course.
    """

    course = models.ForeignKey(Course, on_delete=models.CASCADE, related_name="versions")
    version = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    changelog = models.TextField(blank=True)
    is_active = models.BooleanField(default=False)
    published_at = models.DateTimeField(null=True, blank=True)
    # What holders of an earlier version pay for this one; blank means full price.
    upgrade_price_type = models.CharField(max_length=16, choices=UpgradePriceType.choices, blank=True)
    upgrade_price_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    # Time-limited upgrade offer, replaces the regular upgrade price while it runs.
    upgrade_discount_type = models.CharField(max_length=16, choices=UpgradePriceType.choices, blank=True)
    upgrade_discount_value = models.DecimalField(max_digits=10, decimal_places=2, null=True, blank=True)
    upgrade_discount_start = models.DateTimeField(null=True, blank=True)
    upgrade_discount_end = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["course_id", "version"]
        constraints = [
            models.UniqueConstraint(fields=["course", "version"], name="uniq_course_version_number"),
            models.UniqueConstraint(
                fields=["course"], condition=Q(is_active=True), name="uniq_active_version_per_course"
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.course_id} v{self.version}"

    @property
    def is_published(self) -> bool:
        return self.published_at is not None

    @property
    def state(self) -> str:
        if self.is_active:
            return "active"
        return "published" if self.is_published else "draft"


class Chapter(models.Model):
    course_version = models.ForeignKey(CourseVersion, on_delete=models.CASCADE, related_name="chapters")
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    order = models.PositiveIntegerField(default=0)
    is_free = models.BooleanField(default=False)
    original_chapter = models.ForeignKey(
        "self", on_delete=models.SET_NULL, null=True, blank=True, related_name="successors"
    )

    class Meta:
        ordering = ["course_version_id", "order"]
        constraints = [
            models.UniqueConstraint(fields=["course_version", "order"], name="uniq_chapter_order_per_version"),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.order}. {self.title}"


from .models_progress import ChapterProgress  # noqa: E402,F401
