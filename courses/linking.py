"""Cross-version chapter linking.

A chapter's `original_chapter` points at the chapter it replaces in the
previous version of the course, so a student's progress can follow them
to a new version. Links are found by comparing normalised titles:

    >>> normalize_title("  Intro!  ")
    'intro'
    >>> normalize_title("Basics -  Part 1")
    'basics part 1'

`auto_link_chapters` is the catalogue-wide maintenance job. It only ever
fills empty links, so reruns link nothing new and partial runs are
completed by running again.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Iterable

from django.conf import settings
from django.db import DatabaseError, transaction
from django.db.models import Prefetch

from .batch import BatchReport, StopCheck, never_stop
from .exceptions import ConstraintViolation, NotFoundError, PersistenceFailure
from .models import Chapter, Course, CourseVersion

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")


@lru_cache(maxsize=8)
def _punctuation_pattern(script_range: str) -> re.Pattern[str]:
    return re.compile(rf"[^\w\s{script_range}]")


def normalize_title(title: str) -> str:
    """Lowercase, drop punctuation, collapse whitespace, trim."""
    pattern = _punctuation_pattern(getattr(settings, "CHAPTER_TITLE_SCRIPT_RANGE", ""))
    stripped = pattern.sub("", (title or "").lower())
    return _WHITESPACE.sub(" ", stripped).strip()


def title_similarity(a: str, b: str) -> float:
    """Jaccard similarity of the word sets of two normalised titles."""
    words_a = set(normalize_title(a).split())
    words_b = set(normalize_title(b).split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


@dataclass
class TitleIndex:
    """Normalised title -> chapter id for one version.

    Keys shared by two or more chapters are kept out of `lookup` and listed
    in `ambiguous`; linking against them would have to pick one at random.
    """

    lookup: dict[str, int] = field(default_factory=dict)
    ambiguous: set[str] = field(default_factory=set)

    @classmethod
    def build(cls, chapters: Iterable[Chapter]) -> "TitleIndex":
        index = cls()
        for chapter in chapters:
            key = normalize_title(chapter.title)
            if not key or key in index.ambiguous:
                continue
            if key in index.lookup:
                del index.lookup[key]
                index.ambiguous.add(key)
                continue
            index.lookup[key] = chapter.pk
        return index


@dataclass
class VersionLinkCount:
    course_id: int
    from_version: int
    to_version: int
    linked: int


@dataclass
class LinkReport(BatchReport):
    courses_processed: int = 0
    versions: list[VersionLinkCount] = field(default_factory=list)
    ambiguous: list[int] = field(default_factory=list)  # chapter ids left unlinked

    @property
    def total_linked(self) -> int:
        return sum(v.linked for v in self.versions)


def _link_pair(
    previous: CourseVersion,
    current: CourseVersion,
    report: LinkReport,
    should_stop: StopCheck,
) -> None:
    index = TitleIndex.build(previous.chapters.all())
    linked = 0
    for chapter in current.chapters.all():
        if should_stop():
            report.interrupted = True
            break
        if chapter.original_chapter_id is not None:
            continue
        key = normalize_title(chapter.title)
        if key in index.ambiguous:
            logger.warning(
                "Chapter %s %r matches several chapters of v%s; left unlinked",
                chapter.pk, chapter.title, previous.version,
            )
            report.ambiguous.append(chapter.pk)
            continue
        match = index.lookup.get(key)
        if match is None:
            continue
        if not report.dry_run:
            try:
                with transaction.atomic():
                    updated = Chapter.objects.filter(pk=chapter.pk, original_chapter__isnull=True).update(
                        original_chapter_id=match
                    )
            except DatabaseError:
                logger.exception("Failed to link chapter %s", chapter.pk)
                report.failed.append(chapter.pk)
                continue
            if not updated:
                continue
            chapter.original_chapter_id = match
        linked += 1
        logger.info("Linked chapter %s %r -> %s", chapter.pk, chapter.title, match)
    report.versions.append(VersionLinkCount(current.course_id, previous.version, current.version, linked))
    logger.info("Linked %s chapters in v%s of course %s", linked, current.version, current.course_id)


def _versions_with_chapters():
    return Prefetch(
        "versions",
        queryset=CourseVersion.objects.order_by("version").prefetch_related(
            Prefetch("chapters", queryset=Chapter.objects.order_by("order"))
        ),
    )


def auto_link_chapters(
    course_id: int | None = None,
    *,
    dry_run: bool = False,
    should_stop: StopCheck = never_stop,
) -> LinkReport:
    """Link every version of every course (or one course) to its predecessor.

    Each link is written independently; a rejected write is recorded in
    `report.failed` and the run continues.
    """
    report = LinkReport(dry_run=dry_run)
    courses = Course.objects.order_by("pk")
    if course_id is not None:
        courses = courses.filter(pk=course_id)
        if not courses.exists():
            raise NotFoundError(f"Course {course_id} does not exist.")

    for course in courses.prefetch_related(_versions_with_chapters()):
        versions = list(course.versions.all())
        if len(versions) < 2:
            continue
        # Only courses the run actually starts on are counted
        if report.interrupted or should_stop():
            report.interrupted = True
            return report
        report.courses_processed += 1
        logger.info("Processing course %s %r", course.pk, course.title)
        for position, (previous, current) in enumerate(zip(versions, versions[1:])):
            if position and should_stop():
                report.interrupted = True
            if report.interrupted:
                return report
            _link_pair(previous, current, report, should_stop)
    return report


def link_versions(source: CourseVersion, target: CourseVersion, *, dry_run: bool = False) -> LinkReport:
    """Link the unlinked chapters of `target` against one earlier version."""
    if source.course_id != target.course_id:
        raise ConstraintViolation("Versions must belong to the same course.")
    if source.version >= target.version:
        raise ConstraintViolation("Chapters can only be linked to an earlier version.")
    report = LinkReport(dry_run=dry_run, courses_processed=1)
    _link_pair(source, target, report, never_stop)
    return report


def previous_version(version: CourseVersion) -> CourseVersion | None:
    return (
        CourseVersion.objects.filter(course_id=version.course_id, version__lt=version.version)
        .order_by("-version")
        .first()
    )


def link_chapter(chapter: Chapter, original: Chapter | None) -> Chapter:
    """Set or clear the link of one chapter by hand."""
    if original is not None:
        source = original.course_version
        target = chapter.course_version
        if source.course_id != target.course_id:
            raise ConstraintViolation("Linked chapters must belong to the same course.")
        if source.version >= target.version:
            raise ConstraintViolation("A chapter can only be linked to a chapter of an earlier version.")
    try:
        Chapter.objects.filter(pk=chapter.pk).update(original_chapter=original)
    except DatabaseError as exc:
        raise PersistenceFailure(f"Could not link chapter {chapter.pk}.") from exc
    chapter.original_chapter = original
    return chapter


def suggest_links(version: CourseVersion) -> list[dict[str, Any]]:
    """Candidate links for the unlinked chapters of `version`.

    Compares against the immediately preceding version; a pair is suggested
    on an exact normalised match or when word overlap exceeds
    LINK_SUGGESTION_THRESHOLD.
    """
    source = previous_version(version)
    if source is None:
        return []
    threshold = float(getattr(settings, "LINK_SUGGESTION_THRESHOLD", 0.7))
    source_chapters = list(source.chapters.order_by("order"))
    suggestions: list[dict[str, Any]] = []
    for target in version.chapters.filter(original_chapter__isnull=True).order_by("order"):
        target_key = normalize_title(target.title)
        for candidate in source_chapters:
            exact = bool(target_key) and target_key == normalize_title(candidate.title)
            score = 1.0 if exact else title_similarity(target.title, candidate.title)
            if exact or score > threshold:
                suggestions.append(
                    {
                        "source_chapter_id": candidate.pk,
                        "source_title": candidate.title,
                        "target_chapter_id": target.pk,
                        "target_title": target.title,
                        "is_exact_match": exact,
                        "similarity": round(score, 2),
                    }
                )
    return suggestions
