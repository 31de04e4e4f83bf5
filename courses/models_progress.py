"""Per-student chapter progress."""
from __future__ import annotations

from django.conf import settings
from django.db import models

from .models import Chapter, CourseVersion


class ChapterProgress(models.Model):
    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="chapter_progress")
    chapter = models.ForeignKey(Chapter, on_delete=models.CASCADE, related_name="progress")
    course_version = models.ForeignKey(CourseVersion, on_delete=models.CASCADE, related_name="progress")
    is_completed = models.BooleanField(default=False)
    watch_percentage = models.FloatField(default=0.0)
    last_position = models.PositiveIntegerField(default=0)  # seconds into the video
    total_watch_time = models.PositiveIntegerField(default=0)  # seconds
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ("user", "chapter")
        indexes = [models.Index(fields=["user", "course_version"], name="progress_user_version_idx")]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.user_id}@{self.chapter_id}: {self.watch_percentage:.0f}%"
