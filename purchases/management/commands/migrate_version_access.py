"""Create missing per-version access grants for completed purchases.

Usage: python manage.py migrate_version_access [--dry-run]

Run once after introducing version access; reruns report created=0.
SIGINT/SIGTERM stop the scan after the write in progress.
"""
from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError
from django.db import DatabaseError

from courses.batch import StopFlag, stop_on_signals
from purchases.backfill import migrate_version_access


class Command(BaseCommand):
    help = "Backfill UserVersionAccess rows from completed purchases of a course version."

    def add_arguments(self, parser):
        parser.add_argument("--dry-run", action="store_true", help="Count missing grants without creating them.")

    def handle(self, *args, **options):
        flag = StopFlag()
        try:
            with stop_on_signals(flag):
                report = migrate_version_access(dry_run=options["dry_run"], should_stop=flag)
        except DatabaseError as exc:
            raise CommandError(f"Access migration failed: {exc}") from exc

        prefix = "[dry run] " if report.dry_run else ""
        self.stdout.write(self.style.SUCCESS(f"{prefix}Migration completed:"))
        self.stdout.write(f"  - Scanned: {report.scanned} completed purchase(s) with a course version")
        self.stdout.write(f"  - Created: {report.created} new access record(s)")
        self.stdout.write(f"  - Skipped: {report.skipped} (already existed)")
        if report.failed:
            ids = ", ".join(str(pk) for pk in report.failed)
            raise CommandError(f"{len(report.failed)} purchase(s) could not be migrated: {ids}")
        if report.interrupted:
            raise CommandError("Interrupted before completion; rerun to migrate the remaining purchases.")
