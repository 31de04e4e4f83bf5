from __future__ import annotations

import pytest

from courses import versioning
from courses.exceptions import ConstraintViolation
from courses.models import CourseVersion
from courses.models_progress import ChapterProgress
from purchases.models import Purchase, PurchaseStatus


@pytest.mark.django_db
def test_create_version_numbers_increase(course, version_factory):
    version_factory(course, 1, [])
    version_factory(course, 3, [])

    created = versioning.create_version(course, changelog="New module")

    assert created.version == 4
    assert created.title == "Course X v4"
    assert created.state == "draft"
    assert created.changelog == "New module"


@pytest.mark.django_db
def test_first_version_is_number_one(course):
    assert versioning.create_version(course, title="Launch").version == 1


@pytest.mark.django_db
def test_copy_from_duplicates_chapters_without_links(course, version_factory):
    v1 = version_factory(course, 1, ["Intro", "Basics"])

    v2 = versioning.create_version(course, copy_from=v1)

    chapters = list(v2.chapters.order_by("order"))
    assert [(c.order, c.title) for c in chapters] == [(1, "Intro"), (2, "Basics")]
    assert all(c.original_chapter_id is None for c in chapters)


@pytest.mark.django_db
def test_copy_from_other_course_rejected(course, version_factory, category, instructor):
    from courses.models import Course

    other = Course.objects.create(title="Y", slug="y", category=category, author=instructor)
    foreign = version_factory(other, 1, ["Intro"])

    with pytest.raises(ConstraintViolation):
        versioning.create_version(course, copy_from=foreign)
    assert not course.versions.exists()


@pytest.mark.django_db
def test_publish_sets_timestamp_once(course, version_factory):
    draft = version_factory(course, 1, [], published=False)

    first = versioning.publish_version(draft)
    stamp = first.published_at
    again = versioning.publish_version(first)

    assert stamp is not None
    assert again.published_at == stamp
    assert not again.is_active


@pytest.mark.django_db
def test_publish_with_activate(course, version_factory):
    draft = version_factory(course, 1, [], published=False)

    assert versioning.publish_version(draft, activate=True).is_active


@pytest.mark.django_db
def test_delete_guards(course, student, version_factory):
    active = version_factory(course, 1, ["Intro"], active=True)
    with_progress = version_factory(course, 2, ["Intro"])
    purchased = version_factory(course, 3, ["Intro"])
    spare = version_factory(course, 4, ["Intro"])
    ChapterProgress.objects.create(user=student, chapter=with_progress.chapters.get(), course_version=with_progress)
    Purchase.objects.create(
        user=student, course=course, course_version=purchased,
        amount=course.price, final_amount=course.price, status=PurchaseStatus.COMPLETED,
    )

    for blocked in (active, with_progress, purchased):
        with pytest.raises(ConstraintViolation):
            versioning.delete_version(blocked)

    versioning.delete_version(spare)
    assert list(CourseVersion.objects.filter(course=course).values_list("version", flat=True)) == [1, 2, 3]


@pytest.mark.django_db
def test_compare_versions(course, version_factory):
    v1 = version_factory(course, 1, ["Intro", "Basics", "Legacy"])
    v2 = version_factory(course, 2, ["Intro", "Basics", "Advanced", "Projects"])
    v2.changelog = "Dropped legacy, added projects"
    v2.save(update_fields=["changelog"])

    diff = versioning.compare_versions(v1, v2)

    assert diff["version1"]["chapters_count"] == 3
    assert diff["version2"]["version"] == 2
    assert diff["differences"] == {
        "chapter_count_diff": 1,
        "new_chapters": ["Advanced", "Projects"],
        "removed_chapters": ["Legacy"],
        "changelog": "Dropped legacy, added projects",
    }
