import functools
import logging
from typing import Any, Dict, List, Optional

from addon_manager.domain.models import GameVersion, Package

logger = logging.getLogger(__name__)

# Catalog release channels: 1 = release, 2 = beta, 3 = alpha.
STABLE_RELEASE = 1
BETA_RELEASE = 2
ALPHA_RELEASE = 3


def as_text(value: Any) -> str:
    """
    Render a JSON scalar as the string form stored in the manifest.

    Integral floats lose their ".0" so numeric ids stay comparable.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return str(value).lower()
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def compare_file_ids(a: str, b: str) -> int:
    """
    Compare two catalog file identifiers.

    Identifiers increase monotonically, so digit strings are compared as
    integers (``"10" > "9"``). Anything else, and numeric ties such as
    ``"07"`` vs ``"7"``, falls back to plain string comparison.
    """
    a = as_text(a)
    b = as_text(b)
    if a.isdigit() and b.isdigit():
        ia, ib = int(a), int(b)
        if ia != ib:
            return 1 if ia > ib else -1
    if a == b:
        return 0
    return 1 if a > b else -1


def is_newer_file_id(candidate: str, current: str) -> bool:
    return compare_file_ids(candidate, current) > 0


def format_download_count(value: Any) -> str:
    """
    Format a download counter as a thousands-grouped integer string.

    The fractional part is truncated: ``1234567.0`` -> ``"1,234,567"``.
    Missing or non-numeric values render as ``"0"``.
    """
    try:
        count = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return "0"
    return f"{count:,}"


def format_file_date(value: Any) -> str:
    """Return the calendar-date prefix (first 10 characters) of a catalog timestamp."""
    if not isinstance(value, str):
        return ""
    return value[:10]


def select_latest_file(entry: Dict[str, Any], game_version: GameVersion) -> Optional[Dict[str, Any]]:
    """
    Pick the newest stable file of a catalog entry for one game flavor.

    Files on other release channels or other flavors are ignored. Returns
    None when no file survives the filter.
    """
    files = entry.get("latestFiles")
    if not isinstance(files, list):
        return None

    flavor = game_version.flavor
    candidates = [
        f for f in files
        if isinstance(f, dict)
        and as_text(f.get("releaseType")) == str(STABLE_RELEASE)
        and f.get("gameVersionFlavor") == flavor
    ]
    if not candidates:
        return None

    return max(
        candidates,
        key=functools.cmp_to_key(
            lambda x, y: compare_file_ids(as_text(x.get("id")), as_text(y.get("id")))
        ),
    )


def parse_catalog_entry(entry: Dict[str, Any], game_version: GameVersion) -> Optional[Package]:
    """
    Map a catalog entry to a Package using its latest applicable file.
    """
    latest_file = select_latest_file(entry, game_version)
    if latest_file is None:
        logger.debug(f"No stable {game_version.flavor} file for catalog entry {entry.get('id')}")
        return None

    modules: List[str] = []
    for module in latest_file.get("modules") or []:
        if isinstance(module, dict) and module.get("foldername"):
            modules.append(as_text(module["foldername"]))

    game_versions = latest_file.get("gameVersion") or []
    game_version_tag = as_text(game_versions[0]) if isinstance(game_versions, list) and game_versions else ""

    return Package(
        id=as_text(entry.get("id")),
        name=as_text(entry.get("name")),
        file_id=as_text(latest_file.get("id")),
        file_date=format_file_date(latest_file.get("fileDate")),
        modules=modules,
        download_url=as_text(latest_file.get("downloadUrl")),
        version=as_text(latest_file.get("displayName")),
        game_version=game_version_tag,
        download_count=format_download_count(entry.get("downloadCount")),
    )


def normalize_addon_id(addon_id: str) -> str:
    """Canonical catalog form of a numeric id (``"0042"`` -> ``"42"``); other ids unchanged."""
    if addon_id.isdecimal():
        return str(int(addon_id))
    return addon_id


def parse_addon_ids(packages: List[Package]) -> List[int]:
    """
    Convert manifest ids into the integer list the batch lookup expects.

    Ids that are not positive integers are dropped.
    """
    ids: List[int] = []
    for package in packages:
        try:
            addon_id = int(package.id)
        except (TypeError, ValueError):
            logger.warning(f"Skipping non-numeric add-on id {package.id!r} ({package.name})")
            continue
        if addon_id <= 0:
            continue
        if str(addon_id) != package.id:
            logger.debug(f"Add-on id {package.id!r} ({package.name}) is looked up as {addon_id}")
        ids.append(addon_id)
    return ids
