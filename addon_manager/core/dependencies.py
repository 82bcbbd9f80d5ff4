import asyncio
from typing import Optional

from addon_manager.data.settings import load_settings
from addon_manager.domain.models import Settings
from addon_manager.services.catalog_client import CatalogClient
from addon_manager.services.install_pipeline import InstallPipeline
from addon_manager.storage.json_manifest_manager import JsonManifestManager
from addon_manager.storage.manifest_manager import ManifestManager

_settings: Optional[Settings] = None
_manifest_manager: Optional[ManifestManager] = None
_catalog_client: Optional[CatalogClient] = None
_pipeline: Optional[InstallPipeline] = None
_operation_lock: Optional[asyncio.Lock] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def get_manifest_manager() -> ManifestManager:
    global _manifest_manager
    if _manifest_manager is None:
        _manifest_manager = JsonManifestManager()
    return _manifest_manager


def get_catalog_client() -> CatalogClient:
    global _catalog_client
    if _catalog_client is None:
        settings = get_settings()
        _catalog_client = CatalogClient(
            base_url=settings.catalog_base_url,
            game_id=settings.game_id,
            timeout=settings.request_timeout_seconds,
        )
    return _catalog_client


def get_pipeline() -> InstallPipeline:
    global _pipeline
    if _pipeline is None:
        _pipeline = InstallPipeline(get_manifest_manager(), get_catalog_client())
    return _pipeline


def get_operation_lock() -> asyncio.Lock:
    """
    Lock serializing operations: only one of them touches a manifest at a time.
    """
    global _operation_lock
    if _operation_lock is None:
        _operation_lock = asyncio.Lock()
    return _operation_lock
