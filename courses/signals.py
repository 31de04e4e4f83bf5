from django.dispatch import Signal

# Sent after a version became the active version of its course.
# Arguments: version (CourseVersion), previous (CourseVersion | None).
version_activated = Signal()
