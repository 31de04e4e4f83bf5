"""Backfill `UserVersionAccess` from completed purchases.

Purchases recorded before per-version grants existed have no grant row.
This job creates the missing ones with the purchase's own timestamp. It
never modifies an existing grant (including revoked ones), so running it
again reports everything as skipped.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

from django.db import DatabaseError, IntegrityError, transaction

from courses.batch import BatchReport, StopCheck, never_stop
from .models import Purchase, PurchaseStatus, UserVersionAccess

logger = logging.getLogger(__name__)


@dataclass
class AccessMigrationReport(BatchReport):
    scanned: int = 0
    created: int = 0
    skipped: int = 0


def migrate_version_access(*, dry_run: bool = False, should_stop: StopCheck = never_stop) -> AccessMigrationReport:
    """Create a grant for every completed, version-pinned purchase lacking one.

    Each grant is written in its own transaction; a rejected write is logged,
    its purchase id recorded in `report.failed`, and the scan continues.
    """
    report = AccessMigrationReport(dry_run=dry_run)
    purchases = (
        Purchase.objects.filter(status=PurchaseStatus.COMPLETED, course_version__isnull=False)
        .order_by("created_at", "pk")
        .only("pk", "user_id", "course_version_id", "created_at")
    )
    logger.info("Scanning completed purchases with a course version")

    for purchase in purchases.iterator(chunk_size=500):
        if should_stop():
            report.interrupted = True
            break
        report.scanned += 1
        exists = UserVersionAccess.objects.filter(
            user_id=purchase.user_id, course_version_id=purchase.course_version_id
        ).exists()
        if exists:
            report.skipped += 1
            continue
        if dry_run:
            report.created += 1
            continue
        try:
            with transaction.atomic():
                UserVersionAccess.objects.create(
                    user_id=purchase.user_id,
                    course_version_id=purchase.course_version_id,
                    purchase_id=purchase.pk,
                    granted_at=purchase.created_at,
                    is_active=True,
                )
        except IntegrityError:
            # Granted by a concurrent writer between the check and the insert.
            report.skipped += 1
            continue
        except DatabaseError:
            logger.exception("Failed to create access for purchase %s", purchase.pk)
            report.failed.append(purchase.pk)
            continue
        report.created += 1
        logger.info(
            "Granted user %s access to version %s (purchase %s)",
            purchase.user_id, purchase.course_version_id, purchase.pk,
        )

    logger.info(
        "Access migration finished: scanned=%s created=%s skipped=%s failed=%s",
        report.scanned, report.created, report.skipped, len(report.failed),
    )
    return report
