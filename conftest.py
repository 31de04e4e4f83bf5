import logging
from decimal import Decimal

import pytest
from django.contrib.auth.models import User
from django.utils import timezone

from accounts.models import Role
from courses.models import Category, Chapter, Course, CourseStatus, CourseVersion


@pytest.fixture(autouse=True)
def silence_django_request_logger():
    """Reduce noise from expected 4xx in passing tests.

    Many tests intentionally exercise 403/404/409 paths. Django logs these
    at WARNING via 'django.request'; lower that logger to ERROR during tests.
    """
    logger = logging.getLogger("django.request")
    old = logger.level
    logger.setLevel(logging.ERROR)
    try:
        yield
    finally:
        logger.setLevel(old)


def make_user(username: str, role: str = Role.STUDENT, **extra) -> User:
    user = User.objects.create_user(username=username, password="pw", **extra)
    if user.profile.role != role:
        user.profile.role = role
        user.profile.save(update_fields=["role"])
    return user


@pytest.fixture
def student(db):
    return make_user("student")


@pytest.fixture
def instructor(db):
    return make_user("instructor", Role.INSTRUCTOR)


@pytest.fixture
def admin_user(db):
    return make_user("admin", Role.ADMIN)


@pytest.fixture
def category(db):
    return Category.objects.create(name="Programming", slug="programming")


@pytest.fixture
def course(instructor, category):
    return Course.objects.create(
        title="Course X",
        slug="course-x",
        price=Decimal("100.00"),
        status=CourseStatus.PUBLISHED,
        category=category,
        author=instructor,
    )


def add_version(course: Course, number: int, titles, *, active: bool = False, published: bool = True) -> CourseVersion:
    version = CourseVersion.objects.create(
        course=course,
        version=number,
        title=f"{course.title} v{number}",
        is_active=active,
        published_at=timezone.now() if published or active else None,
    )
    for order, title in enumerate(titles, start=1):
        Chapter.objects.create(course_version=version, title=title, order=order)
    return version


@pytest.fixture
def version_factory(db):
    return add_version


@pytest.fixture
def user_factory(db):
    return make_user
