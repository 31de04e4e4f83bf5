"""Carry a student's chapter progress over to another version of a course."""
from __future__ import annotations

import logging
from typing import Any

from django.db import DatabaseError, transaction

from .exceptions import ConstraintViolation, PersistenceFailure
from .models import CourseVersion
from .models_progress import ChapterProgress

logger = logging.getLogger(__name__)

_COPIED_FIELDS = ("is_completed", "watch_percentage", "last_position", "total_watch_time")


def transfer_progress(user, from_version: CourseVersion, to_version: CourseVersion) -> dict[str, Any]:
    """Copy progress onto the linked chapters of `to_version`.

    For every chapter of `to_version` whose `original_chapter` has progress
    recorded in `from_version`, a progress row is created unless the student
    already has one for that chapter (`skipped`). Linked chapters whose
    original has no progress are reported as `no_progress`.

    Returns: { 'transferred': int, 'skipped': int, 'details': [ {chapter_id, chapter_title, status} ] }
    """
    if from_version.course_id != to_version.course_id:
        raise ConstraintViolation("Progress can only move between versions of the same course.")

    old = {
        p.chapter_id: p
        for p in ChapterProgress.objects.filter(user=user, course_version=from_version)
    }
    existing = set(
        ChapterProgress.objects.filter(user=user, course_version=to_version).values_list("chapter_id", flat=True)
    )
    result: dict[str, Any] = {"transferred": 0, "skipped": 0, "details": []}

    try:
        with transaction.atomic():
            for chapter in to_version.chapters.filter(original_chapter__isnull=False).order_by("order"):
                source = old.get(chapter.original_chapter_id)
                if source is None:
                    status = "no_progress"
                elif chapter.pk in existing:
                    status = "skipped"
                    result["skipped"] += 1
                else:
                    ChapterProgress.objects.create(
                        user=user,
                        chapter=chapter,
                        course_version=to_version,
                        **{name: getattr(source, name) for name in _COPIED_FIELDS},
                    )
                    status = "transferred"
                    result["transferred"] += 1
                result["details"].append({"chapter_id": chapter.pk, "chapter_title": chapter.title, "status": status})
    except DatabaseError as exc:
        raise PersistenceFailure(
            f"Could not transfer progress from version {from_version.pk} to {to_version.pk}."
        ) from exc

    logger.info(
        "Transferred %s chapter(s) of progress for user %s: v%s -> v%s",
        result["transferred"], user.pk, from_version.version, to_version.version,
    )
    return result
