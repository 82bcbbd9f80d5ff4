"""
Pydantic models for the add-on manager.

This module defines all data models used throughout the application, including:
- Installed/catalog packages and the per-root manifest
- Search results and reconciliation status rows
- Operation outcomes reported to the presentation layer
- Application settings

All models use Pydantic for validation, serialization, and type safety.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator


# ---------------------------------------------------------------------------
# Game Versions
# ---------------------------------------------------------------------------


class GameVersion(str, Enum):
    """
    Game line tracked by one installation root.

    Each value maps to the flavor tag the catalog uses on its file
    descriptors (``gameVersionFlavor``).
    """

    CLASSIC = "classic"
    TBC = "tbc"
    RETAIL = "retail"

    @property
    def flavor(self) -> str:
        return GAME_VERSION_FLAVORS[self]


GAME_VERSION_FLAVORS: Dict[GameVersion, str] = {
    GameVersion.CLASSIC: "wow_classic",
    GameVersion.TBC: "wow_burning_crusade",
    GameVersion.RETAIL: "wow_retail",
}


# ---------------------------------------------------------------------------
# Package / Manifest Models
# ---------------------------------------------------------------------------


class Package(BaseModel):
    """
    One installed or catalog-listed add-on version.

    All scalar fields are strings, including numeric-looking identifiers,
    so identifier comparison stays exact across save/load.

    Persisted in: <ROOT>/.addons.json (inside the "addons" list)
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(
        description="Catalog identifier of the add-on (string form of a numeric id).",
    )
    name: str = Field(
        default="",
        description="Display name of the add-on.",
    )
    file_id: str = Field(
        default="",
        alias="fileId",
        description="Catalog identifier of the archive version; increases monotonically.",
    )
    file_date: str = Field(
        default="",
        alias="fileDate",
        description="Calendar date (YYYY-MM-DD) of the archive.",
    )
    modules: List[str] = Field(
        default_factory=list,
        description="Top-level directories the archive unpacks into; removed on uninstall.",
    )
    download_url: str = Field(
        default="",
        alias="downloadUrl",
        description="URL of the archive for this version.",
    )
    version: str = Field(
        default="",
        description="Human-readable version label.",
    )
    game_version: str = Field(
        default="",
        alias="gameVersion",
        description="Game client version tag the archive targets.",
    )
    download_count: str = Field(
        default="0",
        alias="downloadCount",
        description="Thousands-grouped popularity counter (display only).",
    )

    @model_validator(mode="before")
    @classmethod
    def _migrate_legacy_keys(cls, data):
        # Manifests written by older releases used "addon_id" for the id.
        if isinstance(data, dict) and "id" not in data and "addon_id" in data:
            data = dict(data)
            data["id"] = data.pop("addon_id")
        return data


class Manifest(BaseModel):
    """
    Ordered record of the packages installed under one root directory.

    The store performs no deduplication: callers remove an existing entry
    before appending a replacement with the same id.
    """

    addons: List[Package] = Field(
        default_factory=list,
        description="Installed packages in installation order.",
    )

    def find(self, addon_id: str) -> Optional[Package]:
        for package in self.addons:
            if package.id == addon_id:
                return package
        return None

    def ids(self) -> List[str]:
        return [package.id for package in self.addons]


# ---------------------------------------------------------------------------
# Catalog / Reconciliation Models
# ---------------------------------------------------------------------------


class SearchResult(BaseModel):
    """
    A catalog search hit, mapped to a package plus its display cells.

    ``cells`` holds name, game version, file date and download count.
    """

    cells: List[str] = Field(default_factory=list)
    download_url: str = ""
    package: Package


class PackageStatus(str, Enum):
    UP_TO_DATE = "Up-to-date"
    OUTDATED = "Outdated"


class StatusRow(BaseModel):
    """
    Reconciliation outcome for a single installed package.
    """

    status: PackageStatus
    display_version: str
    display_download_url: str
    package: Package
    status_mismatch: bool = Field(
        default=False,
        description="True when the file-id check and the version-label check disagree.",
    )

    @computed_field
    @property
    def cells(self) -> List[str]:
        return [
            self.status.value,
            self.package.name,
            self.package.game_version,
            self.package.version,
            self.display_version,
        ]


class ReconciliationReport(BaseModel):
    """
    Status table (manifest order) plus the packages that have a newer file.
    """

    rows: List[StatusRow] = Field(default_factory=list)
    candidates: List[Package] = Field(default_factory=list)

    def candidate_for(self, addon_id: str) -> Optional[Package]:
        for candidate in self.candidates:
            if candidate.id == addon_id:
                return candidate
        return None


# ---------------------------------------------------------------------------
# Operation Outcomes
# ---------------------------------------------------------------------------


class OperationResult(BaseModel):
    """
    Outcome of an engine operation, carrying a human-readable message for logging.

    ``failed_step`` names the pipeline step that aborted the operation
    ("remove", "fetch" or "record") so a partial failure can be reconciled by hand.
    """

    operation: str
    package_id: Optional[str] = None
    package_name: Optional[str] = None
    success: bool
    message: str
    failed_step: Optional[str] = None
    error_kind: Optional[str] = None


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


class InstallPaths(BaseModel):
    """
    Add-on directories (``Interface/AddOns``) of each installed game client.
    """

    classic: Optional[str] = Field(
        default=None,
        description="AddOns directory of the classic client.",
    )
    tbc: Optional[str] = Field(
        default=None,
        description="AddOns directory of the Burning Crusade client.",
    )
    retail: Optional[str] = Field(
        default=None,
        description="AddOns directory of the retail client.",
    )


class Settings(BaseModel):
    """
    Top-level configuration for the add-on manager.

    Persisted at: <CONFIG_DIR>/settings.json
    """

    paths: InstallPaths = Field(
        default_factory=InstallPaths,
        description="Tracked installation roots, one per game version.",
    )
    catalog_base_url: str = Field(
        default="https://addons-ecs.forgesvc.net/api/v2",
        description="Base URL of the remote add-on catalog.",
    )
    game_id: str = Field(
        default="1",
        description="Catalog identifier of the game searched for add-ons.",
    )
    request_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to every catalog and archive request.",
    )
    log_level: str = Field(
        default="INFO",
        description="Root logging level.",
    )

    def root_for(self, game_version: GameVersion) -> Optional[str]:
        return getattr(self.paths, game_version.value) or None
