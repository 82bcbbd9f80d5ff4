"""
Client for the remote add-on catalog.

This service handles:
- Free-text searches against the catalog
- Batch version lookups for installed add-on ids
- Downloading add-on archives and extracting them into an AddOns directory
"""
from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Union

import aiofiles
import httpx

from addon_manager.domain.catalog_utils import parse_catalog_entry
from addon_manager.domain.errors import ApiError, StorageError
from addon_manager.domain.models import GameVersion, Package, SearchResult

logger = logging.getLogger(__name__)

CATALOG_BASE_URL = "https://addons-ecs.forgesvc.net/api/v2"
WOW_GAME_ID = "1"
DEFAULT_TIMEOUT_SECONDS = 30.0


class CatalogClient:
    """
    Async client for the add-on catalog and its archive host.

    Every request is bounded by ``timeout``; transport, status and decoding
    failures are raised as ApiError. ``transport`` lets tests plug in an
    ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str = CATALOG_BASE_URL,
        game_id: str = WOW_GAME_ID,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.game_id = game_id
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(follow_redirects=True, timeout=self.timeout, transport=self.transport)

    # ========================================================================
    # Catalog Queries
    # ========================================================================

    async def search(self, query: str, game_version: GameVersion) -> List[SearchResult]:
        """
        Search the catalog and map every hit to its latest stable file for
        ``game_version``. Hits without such a file are skipped.
        """
        url = f"{self.base_url}/addon/search"
        params = {"gameId": self.game_id, "searchFilter": query}
        logger.debug(f"Searching catalog for {query!r} ({game_version.value})")

        entries = await self._request_entries("search", "GET", url, params=params)

        results: List[SearchResult] = []
        for entry in entries:
            package = parse_catalog_entry(entry, game_version)
            if package is None:
                continue
            results.append(
                SearchResult(
                    cells=[package.name, package.game_version, package.file_date, package.download_count],
                    download_url=package.download_url,
                    package=package,
                )
            )
        logger.info(f"Found {len(results)} add-ons for {query!r}")
        return results

    async def check_for_updates(self, ids: List[int], game_version: GameVersion) -> Dict[str, Package]:
        """
        Look up the latest stable file of every id in one batch request.

        ``ids`` must not be empty: the catalog's behavior for an empty batch
        is undefined, so callers skip the lookup instead.
        """
        if not ids:
            raise ValueError("check_for_updates requires at least one add-on id")

        url = f"{self.base_url}/addon"
        logger.debug(f"Checking {len(ids)} add-ons for updates ({game_version.value})")
        entries = await self._request_entries("check_for_updates", "POST", url, json=list(ids))

        updates: Dict[str, Package] = {}
        for entry in entries:
            package = parse_catalog_entry(entry, game_version)
            if package is not None:
                updates[package.id] = package
        return updates

    async def _request_entries(self, operation: str, method: str, url: str, **kwargs: Any) -> List[Dict[str, Any]]:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ApiError(
                f"Catalog returned HTTP {e.response.status_code} for {url}", operation=operation
            ) from e
        except httpx.HTTPError as e:
            raise ApiError(f"Catalog request to {url} failed: {e!r}", operation=operation) from e

        try:
            data = response.json()
        except ValueError as e:
            raise ApiError(f"Catalog response from {url} is not valid JSON: {e}", operation=operation) from e

        if not isinstance(data, list) or not all(isinstance(entry, dict) for entry in data):
            raise ApiError(f"Unexpected catalog response shape from {url}", operation=operation)
        return data

    # ========================================================================
    # Archive Download / Extraction
    # ========================================================================

    async def fetch_archive(self, url: str, destination: Union[str, Path], package_id: Optional[str] = None) -> List[str]:
        """
        Download the archive at ``url`` and extract it into ``destination``.

        Returns the relative paths written. Partially extracted files are left
        in place on failure; the manifest decides what counts as installed.
        """
        with tempfile.TemporaryDirectory(prefix="addon-") as tmp_dir:
            archive_path = Path(tmp_dir) / "archive.zip"
            await self._download(url, archive_path, package_id)
            return extract_archive(archive_path, Path(destination), package_id)

    async def _download(self, url: str, target_path: Path, package_id: Optional[str]) -> None:
        logger.debug(f"Downloading archive from {url}")
        try:
            async with self._client() as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()

                    total_size = int(response.headers.get("content-length", 0) or 0)
                    downloaded = 0

                    async with aiofiles.open(target_path, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            await f.write(chunk)
                            downloaded += len(chunk)
                            if total_size > 0:
                                percent = (downloaded / total_size) * 100
                                logger.debug(f"Progress: {percent:.1f}%")
        except httpx.HTTPStatusError as e:
            raise ApiError(
                f"Archive host returned HTTP {e.response.status_code} for {url}",
                operation="fetch_archive",
                package_id=package_id,
            ) from e
        except httpx.HTTPError as e:
            raise ApiError(
                f"Archive download from {url} failed: {e!r}", operation="fetch_archive", package_id=package_id
            ) from e
        except OSError as e:
            raise StorageError(
                f"Could not write downloaded archive {target_path}: {e}",
                operation="fetch_archive",
                package_id=package_id,
            ) from e


def safe_entry_path(name: str) -> Optional[PurePosixPath]:
    """
    Normalize a ZIP entry name into a relative path.

    Returns None for names that would escape the destination: absolute
    paths, drive-qualified paths and any ``..`` segment.
    """
    normalized = name.replace("\\", "/")
    if normalized.startswith("/"):
        return None
    parts = [p for p in normalized.split("/") if p not in ("", ".")]
    if not parts or ".." in parts or ":" in parts[0]:
        return None
    return PurePosixPath(*parts)


def extract_archive(archive_path: Path, destination: Path, package_id: Optional[str] = None) -> List[str]:
    """
    Extract every entry of a ZIP archive under ``destination``.

    Each file is written to a sibling ``.part`` file and renamed into place,
    so a failed entry never leaves a half-written file under its final name.
    """
    written: List[str] = []
    try:
        destination.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(archive_path, "r") as zip_ref:
            for info in zip_ref.infolist():
                relative = safe_entry_path(info.filename)
                if relative is None:
                    logger.warning(f"Skipping unsafe archive entry {info.filename!r}")
                    continue

                out_path = destination.joinpath(*relative.parts)
                if info.is_dir():
                    out_path.mkdir(parents=True, exist_ok=True)
                    continue

                out_path.parent.mkdir(parents=True, exist_ok=True)
                part_path = out_path.with_name(out_path.name + ".part")
                try:
                    with zip_ref.open(info, "r") as src, open(part_path, "wb") as dst:
                        shutil.copyfileobj(src, dst)
                    os.replace(part_path, out_path)
                finally:
                    if part_path.exists():
                        part_path.unlink(missing_ok=True)
                written.append(relative.as_posix())
    except zipfile.BadZipFile as e:
        raise StorageError(f"Downloaded file is not a valid archive: {e}", operation="extract", package_id=package_id) from e
    except OSError as e:
        raise StorageError(f"Extraction into {destination} failed: {e}", operation="extract", package_id=package_id) from e

    logger.debug(f"Extracted {len(written)} files into {destination}")
    return written
