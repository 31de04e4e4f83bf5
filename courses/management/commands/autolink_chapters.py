"""Link chapters of each course version to the matching chapters of its predecessor.

Usage: python manage.py autolink_chapters [--course ID] [--dry-run]

Safe to rerun: chapters that already carry a link are never touched.
SIGINT/SIGTERM stop the run after the write in progress; the summary is
still printed.
"""
from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError

from courses.batch import StopFlag, stop_on_signals
from courses.exceptions import CatalogError
from courses.linking import LinkReport, auto_link_chapters


class Command(BaseCommand):
    help = "Link chapters across consecutive course versions by matching normalised titles."

    def add_arguments(self, parser):
        parser.add_argument("--course", type=int, dest="course_id", help="Only process this course id.")
        parser.add_argument("--dry-run", action="store_true", help="Report matches without writing them.")

    def handle(self, *args, **options):
        flag = StopFlag()
        try:
            with stop_on_signals(flag):
                report = auto_link_chapters(options["course_id"], dry_run=options["dry_run"], should_stop=flag)
        except (CatalogError, DatabaseError) as exc:
            raise CommandError(f"Auto-linking failed: {exc}") from exc

        self._write_summary(report)
        if report.failed:
            ids = ", ".join(str(pk) for pk in report.failed)
            raise CommandError(f"{len(report.failed)} chapter(s) could not be linked: {ids}")
        if report.interrupted:
            raise CommandError("Interrupted before completion; rerun to link the remaining chapters.")

    def _write_summary(self, report: LinkReport) -> None:
        out = self.stdout
        for entry in report.versions:
            out.write(
                f"  course {entry.course_id}: v{entry.to_version} -> v{entry.from_version}: "
                f"linked {entry.linked} chapter(s)"
            )
        prefix = "[dry run] " if report.dry_run else ""
        out.write(self.style.SUCCESS(f"{prefix}Auto-linking completed:"))
        out.write(f"  - Processed {report.courses_processed} course(s) with multiple versions")
        out.write(f"  - Linked {report.total_linked} chapter(s) total")
        if report.ambiguous:
            ids = ", ".join(str(pk) for pk in report.ambiguous)
            out.write(self.style.WARNING(f"  - Ambiguous title matches left unlinked: {ids}"))
