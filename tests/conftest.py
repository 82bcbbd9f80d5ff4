"""Shared fixtures: catalog payload builders, in-memory archives and mock transports."""

from __future__ import annotations

import io
import json
import zipfile
from typing import Callable, Dict, List, Optional

import httpx
import pytest

from addon_manager.domain.models import Package
from addon_manager.services.catalog_client import CatalogClient
from addon_manager.services.install_pipeline import InstallPipeline
from addon_manager.storage.json_manifest_manager import JsonManifestManager

BASE_URL = "https://catalog.test/api/v2"


def make_file(
    file_id,
    flavor: str = "wow_classic",
    release_type: int = 1,
    modules: Optional[List[str]] = None,
    display_name: Optional[str] = None,
    file_date: str = "2020-05-17T12:34:56.789Z",
    game_version: Optional[List[str]] = None,
) -> Dict:
    return {
        "id": file_id,
        "displayName": display_name or f"v{file_id}",
        "fileDate": file_date,
        "downloadUrl": f"https://files.test/{file_id}/addon.zip",
        "releaseType": release_type,
        "gameVersionFlavor": flavor,
        "gameVersion": game_version if game_version is not None else ["1.13.4"],
        "modules": [{"foldername": m} for m in (modules or ["AddonFolder"])],
    }


def make_entry(addon_id, name: str = "Addon", files: Optional[List[Dict]] = None, download_count=1234567.0) -> Dict:
    return {
        "id": addon_id,
        "name": name,
        "downloadCount": download_count,
        "latestFiles": files or [],
    }


def make_zip(files: Dict[str, bytes]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


def make_package(addon_id: str = "1", file_id: str = "5", modules: Optional[List[str]] = None, **kwargs) -> Package:
    values = {
        "id": addon_id,
        "name": kwargs.pop("name", f"Addon {addon_id}"),
        "file_id": file_id,
        "file_date": "2020-05-17",
        "modules": modules if modules is not None else ["AddonFolder"],
        "download_url": kwargs.pop("download_url", f"https://files.test/{file_id}/addon.zip"),
        "version": kwargs.pop("version", f"v{file_id}"),
        "game_version": "1.13.4",
        "download_count": "1,234",
    }
    values.update(kwargs)
    return Package(**values)


class CatalogServer:
    """
    Minimal stand-in for the catalog and archive host, served through
    ``httpx.MockTransport``. Records every request it receives.
    """

    def __init__(self):
        self.search_entries: List[Dict] = []
        self.lookup_entries: List[Dict] = []
        self.archives: Dict[str, bytes] = {}
        self.fail_paths: Dict[str, int] = {}
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path in self.fail_paths:
            return httpx.Response(self.fail_paths[path], request=request)
        if request.url.host == "catalog.test" and path.endswith("/addon/search"):
            return httpx.Response(200, json=self.search_entries, request=request)
        if request.url.host == "catalog.test" and path.endswith("/addon") and request.method == "POST":
            return httpx.Response(200, json=self.lookup_entries, request=request)
        url = str(request.url)
        if url in self.archives:
            return httpx.Response(200, content=self.archives[url], request=request)
        return httpx.Response(404, request=request)

    def lookup_bodies(self) -> List:
        return [json.loads(r.content) for r in self.requests if r.method == "POST"]


@pytest.fixture
def catalog_server() -> CatalogServer:
    return CatalogServer()


@pytest.fixture
def catalog_client(catalog_server: CatalogServer) -> CatalogClient:
    return CatalogClient(base_url=BASE_URL, timeout=5.0, transport=httpx.MockTransport(catalog_server.handler))


@pytest.fixture
def store() -> JsonManifestManager:
    return JsonManifestManager()


@pytest.fixture
def pipeline(store: JsonManifestManager, catalog_client: CatalogClient) -> InstallPipeline:
    return InstallPipeline(store, catalog_client)


@pytest.fixture
def addon_root(tmp_path, store: JsonManifestManager):
    root = tmp_path / "Interface" / "AddOns"
    root.mkdir(parents=True)
    store.initialize(root)
    return root


@pytest.fixture
def transport_factory() -> Callable[[Callable[[httpx.Request], httpx.Response]], CatalogClient]:
    def factory(handler: Callable[[httpx.Request], httpx.Response]) -> CatalogClient:
        return CatalogClient(base_url=BASE_URL, timeout=5.0, transport=httpx.MockTransport(handler))

    return factory
