"""
HTTP endpoints exposing the add-on engine to a front end.

Every route is scoped to one game version, whose installation root comes
from settings.json. Operation failures are reported in the body
(``success: false``) rather than as HTTP errors; catalog outages map to 502.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from addon_manager.core.dependencies import (
    get_catalog_client,
    get_manifest_manager,
    get_operation_lock,
    get_pipeline,
    get_settings,
)
from addon_manager.domain.catalog_utils import normalize_addon_id
from addon_manager.domain.errors import ApiError, StorageError
from addon_manager.domain.models import (
    GameVersion,
    Manifest,
    OperationResult,
    Package,
    ReconciliationReport,
    SearchResult,
    Settings,
)
from addon_manager.services.catalog_client import CatalogClient
from addon_manager.services.install_pipeline import InstallPipeline
from addon_manager.storage.manifest_manager import ManifestManager

logger = logging.getLogger(__name__)
router = APIRouter()


def _root_for(settings: Settings, game_version: GameVersion) -> str:
    root = settings.root_for(game_version)
    if not root:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No add-on directory configured for {game_version.value}",
        )
    return root


def _load_manifest(store: ManifestManager, root: str) -> Manifest:
    try:
        return store.load(root)
    except StorageError as e:
        logger.error(f"Couldn't parse add-ons in {root}: {e}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


async def _refresh(pipeline: InstallPipeline, root: str, game_version: GameVersion) -> ReconciliationReport:
    try:
        return await pipeline.refresh(root, game_version)
    except ApiError as e:
        logger.error(f"Update check failed for {game_version.value}: {e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


# ---------------------------------------------------------------------------
# Manifest lifecycle
# ---------------------------------------------------------------------------

@router.post("/{game_version}/initialize")
async def initialize(
    game_version: GameVersion,
    settings: Settings = Depends(get_settings),
    store: ManifestManager = Depends(get_manifest_manager),
) -> OperationResult:
    root = _root_for(settings, game_version)
    try:
        store.initialize(root)
    except StorageError as e:
        message = f"Couldn't load {game_version.value} add-on directory.\n{e}"
        logger.error(message)
        return OperationResult(operation="initialize", success=False, message=message, error_kind=e.kind)
    return OperationResult(
        operation="initialize",
        success=True,
        message=f"{game_version.value.capitalize()} add-on directory successfully loaded.",
    )


@router.get("/{game_version}/installed")
async def list_installed(
    game_version: GameVersion,
    settings: Settings = Depends(get_settings),
    pipeline: InstallPipeline = Depends(get_pipeline),
    lock: asyncio.Lock = Depends(get_operation_lock),
) -> ReconciliationReport:
    root = _root_for(settings, game_version)
    async with lock:
        return await _refresh(pipeline, root, game_version)


# ---------------------------------------------------------------------------
# Catalog search
# ---------------------------------------------------------------------------

@router.get("/{game_version}/search")
async def search(
    game_version: GameVersion,
    q: str = Query(..., min_length=1, description="Free-text search term."),
    client: CatalogClient = Depends(get_catalog_client),
) -> List[SearchResult]:
    try:
        return await client.search(q, game_version)
    except ApiError as e:
        logger.error(f"Couldn't find any add-ons for {q}.\n{e}")
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))


# ---------------------------------------------------------------------------
# Install / update / remove
# ---------------------------------------------------------------------------

@router.post("/{game_version}/install")
async def install(
    game_version: GameVersion,
    package: Package,
    settings: Settings = Depends(get_settings),
    store: ManifestManager = Depends(get_manifest_manager),
    pipeline: InstallPipeline = Depends(get_pipeline),
    lock: asyncio.Lock = Depends(get_operation_lock),
) -> OperationResult:
    root = _root_for(settings, game_version)
    async with lock:
        wanted = normalize_addon_id(package.id)
        existing = next(
            (a for a in _load_manifest(store, root).addons if normalize_addon_id(a.id) == wanted),
            None,
        )
        if existing is not None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{existing.name} is already installed; update or remove it instead",
            )
        return await pipeline.install(root, package)


@router.post("/{game_version}/update-all")
async def update_all(
    game_version: GameVersion,
    settings: Settings = Depends(get_settings),
    pipeline: InstallPipeline = Depends(get_pipeline),
    lock: asyncio.Lock = Depends(get_operation_lock),
) -> List[OperationResult]:
    root = _root_for(settings, game_version)
    async with lock:
        report = await _refresh(pipeline, root, game_version)
        installed = Manifest(addons=[row.package for row in report.rows])
        return await pipeline.update_all(root, report.candidates, installed)


@router.post("/{game_version}/update/{addon_id}")
async def update(
    game_version: GameVersion,
    addon_id: str,
    settings: Settings = Depends(get_settings),
    pipeline: InstallPipeline = Depends(get_pipeline),
    lock: asyncio.Lock = Depends(get_operation_lock),
) -> OperationResult:
    root = _root_for(settings, game_version)
    async with lock:
        report = await _refresh(pipeline, root, game_version)
        installed = next((row.package for row in report.rows if row.package.id == addon_id), None)
        if installed is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Add-on {addon_id} is not installed")
        candidate = report.candidate_for(addon_id)
        if candidate is None:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f"{installed.name} is already up-to-date",
            )
        return await pipeline.update(root, installed, candidate)


@router.delete("/{game_version}/{addon_id}")
async def remove(
    game_version: GameVersion,
    addon_id: str,
    settings: Settings = Depends(get_settings),
    store: ManifestManager = Depends(get_manifest_manager),
    pipeline: InstallPipeline = Depends(get_pipeline),
    lock: asyncio.Lock = Depends(get_operation_lock),
) -> OperationResult:
    root = _root_for(settings, game_version)
    async with lock:
        package = _load_manifest(store, root).find(addon_id)
        if package is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Add-on {addon_id} is not installed")
        return await pipeline.remove(root, package)
