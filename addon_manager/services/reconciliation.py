"""
Compare installed packages against catalog lookups.
"""
from __future__ import annotations

import logging
from typing import Dict

from addon_manager.domain.catalog_utils import is_newer_file_id, normalize_addon_id
from addon_manager.domain.models import (
    Manifest,
    Package,
    PackageStatus,
    ReconciliationReport,
    StatusRow,
)

logger = logging.getLogger(__name__)


def reconcile(installed: Manifest, updates: Dict[str, Package]) -> ReconciliationReport:
    """
    Build the status table for ``installed`` and the set of pending updates.

    The file id is the source of truth: a package is Outdated exactly when
    the catalog offers a file with a greater id. The displayed version label
    is compared as well, and a disagreement between the two checks is logged
    and flagged on the row.

    A package missing from ``updates`` is reported Up-to-date with its own
    version and URL, even if it has been removed from the catalog.
    """
    report = ReconciliationReport()

    for package in installed.addons:
        update = updates.get(package.id) or updates.get(normalize_addon_id(package.id))
        if update is not None and update.id != package.id:
            # Keep the manifest's spelling so later lookups by installed id still match.
            update = update.model_copy(update={"id": package.id})
        newer = update is not None and is_newer_file_id(update.file_id, package.file_id)

        if newer:
            display_version = update.version
            display_url = update.download_url
            report.candidates.append(update)
        else:
            display_version = package.version
            display_url = package.download_url

        status = PackageStatus.OUTDATED if newer else PackageStatus.UP_TO_DATE
        label_says_outdated = display_version != package.version
        mismatch = label_says_outdated != newer
        if mismatch:
            logger.warning(
                f"Status checks disagree for {package.name} ({package.id}): "
                f"file {package.file_id} -> {update.file_id if update else '-'}, "
                f"version {package.version!r} -> {display_version!r}"
            )

        report.rows.append(
            StatusRow(
                status=status,
                display_version=display_version,
                display_download_url=display_url,
                package=package,
                status_mismatch=mismatch,
            )
        )

    return report
