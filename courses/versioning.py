"""Course version lifecycle: create, publish, activate, delete, compare.

Activation is the only operation with a cross-row invariant (at most one
active version per course). It runs as one transaction that first locks
the owning course row, so concurrent activations of versions of the same
course are serialised on backends with row locks. The partial unique
index `uniq_active_version_per_course` rejects anything that slips past
the lock; such a conflict is retried a bounded number of times.
"""
from __future__ import annotations

import logging
from typing import Any

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Max
from django.utils import timezone

from .exceptions import ConstraintViolation, NotFoundError, PersistenceFailure
from .models import Chapter, Course, CourseVersion
from .models_progress import ChapterProgress
from .signals import version_activated

logger = logging.getLogger(__name__)


def _lock_course(course_id: int) -> Course:
    try:
        return Course.objects.select_for_update().get(pk=course_id)
    except Course.DoesNotExist as exc:
        raise NotFoundError(f"Course {course_id} does not exist.") from exc


def _lock_version(version_id: int) -> CourseVersion:
    try:
        return CourseVersion.objects.select_for_update().get(pk=version_id)
    except CourseVersion.DoesNotExist as exc:
        raise NotFoundError(f"Course version {version_id} does not exist.") from exc


def create_version(
    course: Course,
    *,
    title: str = "",
    description: str = "",
    changelog: str = "",
    copy_from: CourseVersion | None = None,
) -> CourseVersion:
    """Create the next draft version of `course`.

    The version number is one above the highest existing number. When
    `copy_from` is given its chapters are copied (without links; run the
    auto-linker to link them).
    """
    try:
        with transaction.atomic():
            locked = _lock_course(course.pk)
            if copy_from is not None and copy_from.course_id != locked.pk:
                raise ConstraintViolation("Source version belongs to a different course.")
            last = locked.versions.aggregate(last=Max("version"))["last"] or 0
            number = last + 1
            version = CourseVersion.objects.create(
                course=locked,
                version=number,
                title=title or f"{locked.title} v{number}",
                description=description,
                changelog=changelog,
            )
            if copy_from is not None:
                Chapter.objects.bulk_create(
                    [
                        Chapter(
                            course_version=version,
                            title=ch.title,
                            description=ch.description,
                            order=ch.order,
                            is_free=ch.is_free,
                        )
                        for ch in copy_from.chapters.order_by("order")
                    ]
                )
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not create a version of course {course.pk}.") from exc
    logger.info("Created course %s v%s%s", course.pk, number, f" from v{copy_from.version}" if copy_from else "")
    return version


def publish_version(version: CourseVersion, *, activate: bool = False) -> CourseVersion:
    """Stamp `published_at` on a draft; optionally make it the active version."""
    if activate:
        return activate_version(version)
    try:
        with transaction.atomic():
            locked = _lock_version(version.pk)
            if locked.published_at is None:
                locked.published_at = timezone.now()
                locked.save(update_fields=["published_at", "updated_at"])
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not publish version {version.pk}.") from exc
    return locked


def activate_version(version: CourseVersion) -> CourseVersion:
    """Make `version` the only active version of its course.

    Publishes the version if it is still a draft. Sends `version_activated`
    when the version was not already active.
    """
    attempts = max(1, int(getattr(settings, "VERSION_ACTIVATION_RETRIES", 3)))
    for attempt in range(1, attempts + 1):
        try:
            with transaction.atomic():
                target = _lock_version(version.pk)
                _lock_course(target.course_id)
                previous = (
                    CourseVersion.objects.filter(course_id=target.course_id, is_active=True)
                    .exclude(pk=target.pk)
                    .first()
                )
                was_active = target.is_active
                CourseVersion.objects.filter(course_id=target.course_id, is_active=True).exclude(pk=target.pk).update(
                    is_active=False, updated_at=timezone.now()
                )
                target.is_active = True
                if target.published_at is None:
                    target.published_at = timezone.now()
                target.save(update_fields=["is_active", "published_at", "updated_at"])
        except IntegrityError:
            logger.warning(
                "Concurrent activation on course %s (attempt %s/%s)", version.course_id, attempt, attempts
            )
            continue
        except DatabaseError as exc:
            raise PersistenceFailure(f"Could not activate version {version.pk}.") from exc

        logger.info("Activated course %s v%s", target.course_id, target.version)
        if not was_active:
            version_activated.send(sender=CourseVersion, version=target, previous=previous)
        return target

    raise ConstraintViolation(
        f"Version {version.pk} could not be activated: another version of course "
        f"{version.course_id} was activated concurrently."
    )


def deactivate_version(version: CourseVersion) -> CourseVersion:
    """Clear the active flag. A course may be left with no active version."""
    try:
        with transaction.atomic():
            locked = _lock_version(version.pk)
            if locked.is_active:
                locked.is_active = False
                locked.save(update_fields=["is_active", "updated_at"])
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not deactivate version {version.pk}.") from exc
    return locked


def delete_version(version: CourseVersion) -> None:
    """Delete a version unless it is active, has student progress or purchases."""
    if version.is_active:
        raise ConstraintViolation("Cannot delete the active version. Activate another version first.")
    if ChapterProgress.objects.filter(course_version=version).exists():
        raise ConstraintViolation("Cannot delete a version with student progress. Archive the course instead.")
    if version.purchases.exists():
        raise ConstraintViolation("Cannot delete a version that has purchases.")
    try:
        version.delete()
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not delete version {version.pk}.") from exc
    logger.info("Deleted course %s v%s", version.course_id, version.version)


def compare_versions(first: CourseVersion, second: CourseVersion) -> dict[str, Any]:
    """Summarise how `second` differs from `first` (exact title comparison)."""
    if first.course_id != second.course_id:
        raise ConstraintViolation("Versions must belong to the same course.")
    first_titles = list(first.chapters.order_by("order").values_list("title", flat=True))
    second_titles = list(second.chapters.order_by("order").values_list("title", flat=True))

    def _summary(v: CourseVersion, titles: list[str]) -> dict[str, Any]:
        return {
            "id": v.pk,
            "version": v.version,
            "title": v.title,
            "chapters_count": len(titles),
            "published_at": v.published_at,
        }

    return {
        "version1": _summary(first, first_titles),
        "version2": _summary(second, second_titles),
        "differences": {
            "chapter_count_diff": len(second_titles) - len(first_titles),
            "new_chapters": [t for t in second_titles if t not in first_titles],
            "removed_chapters": [t for t in first_titles if t not in second_titles],
            "changelog": second.changelog,
        },
    }
