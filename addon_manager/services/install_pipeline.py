"""
Install, update and remove add-ons while keeping the manifest in step with
the AddOns directory.

Every operation runs its steps in order and stops at the first failure. No
step is retried or rolled back; the returned OperationResult names the step
that failed so the user can reconcile by hand:

* install: check, fetch, record. The check refuses an id already in the
  manifest. A failed record leaves files on disk unregistered.
* update: remove, fetch, record. A failed fetch leaves the add-on uninstalled.
* remove: remove.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Union

from addon_manager.domain.catalog_utils import normalize_addon_id, parse_addon_ids
from addon_manager.domain.errors import AddonManagerError, StorageError
from addon_manager.domain.models import (
    GameVersion,
    Manifest,
    OperationResult,
    Package,
    ReconciliationReport,
)
from addon_manager.services.catalog_client import CatalogClient
from addon_manager.services.reconciliation import reconcile
from addon_manager.storage.manifest_manager import ManifestManager

logger = logging.getLogger(__name__)

RootPath = Union[str, Path]
Step = Callable[[], Awaitable[None]]


class InstallPipeline:
    """
    Engine operations over an explicit installation root.

    Holds only its collaborators: the manifest store and the catalog client.
    """

    def __init__(self, store: ManifestManager, client: CatalogClient):
        self.store = store
        self.client = client

    async def refresh(self, root: RootPath, game_version: GameVersion) -> ReconciliationReport:
        """
        Reconcile the manifest of ``root`` against the catalog.

        An unreadable manifest is logged and treated as empty. Catalog
        failures (ApiError) propagate to the caller.
        """
        try:
            installed = self.store.load(root)
            logger.info(f"Found {len(installed.addons)} installed add-ons in {root}")
        except StorageError as e:
            logger.error(f"Couldn't parse add-ons in {root}: {e}")
            installed = Manifest()

        ids = parse_addon_ids(installed.addons)
        updates = {}
        if ids:
            updates = await self.client.check_for_updates(ids, game_version)
        return reconcile(installed, updates)

    async def install(self, root: RootPath, package: Package) -> OperationResult:
        async def check() -> None:
            wanted = normalize_addon_id(package.id)
            if any(normalize_addon_id(a.id) == wanted for a in self.store.load(root).addons):
                raise StorageError(
                    f"{package.name} ({package.id}) is already installed",
                    operation="install",
                    package_id=package.id,
                )

        async def fetch() -> None:
            await self.client.fetch_archive(package.download_url, root, package.id)

        async def record() -> None:
            self.store.append(root, package)

        return await self._run(
            "install",
            package,
            [("check", check), ("fetch", fetch), ("record", record)],
            success_message=f"{package.name} successfully installed.",
            failure_notes={
                "check": "Update or remove the installed copy instead.",
                "record": "Files were extracted but the add-on is not registered; "
                "reinstall it or remove its folders manually.",
            },
        )

    async def update(self, root: RootPath, old: Package, new: Package) -> OperationResult:
        async def remove() -> None:
            self.store.remove(root, old)

        async def fetch() -> None:
            await self.client.fetch_archive(new.download_url, root, new.id)

        async def record() -> None:
            self.store.append(root, new)

        return await self._run(
            "update",
            new,
            [("remove", remove), ("fetch", fetch), ("record", record)],
            success_message=f"{new.name} successfully updated.",
            failure_notes={
                "remove": "Some module folders may already be deleted; the manifest was not changed.",
                "fetch": f"Version {old.version} was removed and the add-on is no longer installed; "
                "install it again from search.",
                "record": "Files were extracted but the add-on is not registered; "
                "reinstall it or remove its folders manually.",
            },
        )

    async def update_all(
        self,
        root: RootPath,
        candidates: List[Package],
        installed: Manifest,
    ) -> List[OperationResult]:
        """
        Update every candidate in order. Each update succeeds or fails on its own.
        """
        results: List[OperationResult] = []
        for candidate in candidates:
            old = installed.find(candidate.id)
            if old is None:
                message = f"Couldn't update {candidate.name}.\n{candidate.id} is not installed."
                logger.error(message)
                results.append(
                    OperationResult(
                        operation="update",
                        package_id=candidate.id,
                        package_name=candidate.name,
                        success=False,
                        message=message,
                        failed_step="remove",
                        error_kind=StorageError.kind,
                    )
                )
                continue
            results.append(await self.update(root, old, candidate))
        return results

    async def remove(self, root: RootPath, package: Package) -> OperationResult:
        async def remove() -> None:
            self.store.remove(root, package)

        return await self._run(
            "remove",
            package,
            [("remove", remove)],
            success_message=f"{package.name} successfully deleted.",
            failure_notes={
                "remove": "Some module folders may already be deleted; the manifest was not changed.",
            },
        )

    async def _run(self, operation, package, steps, success_message, failure_notes) -> OperationResult:
        for step_name, step in steps:
            try:
                await step()
            except AddonManagerError as e:
                note = failure_notes.get(step_name, "")
                message = f"Couldn't {operation} {package.name} ({step_name} step failed).\n{e}"
                if note:
                    message = f"{message}\n{note}"
                logger.error(message)
                return OperationResult(
                    operation=operation,
                    package_id=package.id,
                    package_name=package.name,
                    success=False,
                    message=message,
                    failed_step=step_name,
                    error_kind=e.kind,
                )

        logger.info(success_message)
        return OperationResult(
            operation=operation,
            package_id=package.id,
            package_name=package.name,
            success=True,
            message=success_message,
        )
