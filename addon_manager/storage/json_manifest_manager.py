import json
import logging
import os
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path, PurePath
from typing import Iterator, List

from pydantic import ValidationError

from addon_manager.domain.errors import StorageError
from addon_manager.domain.models import Manifest, Package
from addon_manager.storage.manifest_manager import ManifestManager, RootPath

logger = logging.getLogger(__name__)

MANIFEST_FILE_NAME = ".addons.json"


class JsonManifestManager(ManifestManager):
    def manifest_path(self, root: RootPath) -> Path:
        return Path(root) / MANIFEST_FILE_NAME

    def initialize(self, root: RootPath) -> None:
        path = self.manifest_path(root)
        if path.exists():
            return
        if not Path(root).is_dir():
            raise StorageError(f"Add-on directory {root} does not exist", operation="initialize")
        self.save(root, Manifest())
        logger.info(f"Created empty manifest at {path}")

    def load(self, root: RootPath) -> Manifest:
        path = self.manifest_path(root)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            raise StorageError(f"Manifest not found: {path}", operation="load")
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read manifest {path}: {e}", operation="load") from e
        except json.JSONDecodeError as e:
            raise StorageError(f"Manifest {path} is not valid JSON: {e}", operation="load") from e

        try:
            return Manifest.model_validate(raw)
        except ValidationError as e:
            raise StorageError(f"Manifest {path} has an invalid structure: {e}", operation="load") from e

    def save(self, root: RootPath, manifest: Manifest) -> None:
        path = self.manifest_path(root)
        try:
            content = manifest.model_dump_json(by_alias=True, indent=2)
        except (TypeError, ValueError) as e:
            raise StorageError(f"Could not serialize manifest: {e}", operation="save") from e

        # Write to a temp file first so a crash never leaves a partial manifest behind.
        tmp_name = None
        try:
            fd, tmp_name = tempfile.mkstemp(prefix=f"{MANIFEST_FILE_NAME}.", suffix=".tmp", dir=str(path.parent))
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as e:
            raise StorageError(f"Could not write manifest {path}: {e}", operation="save") from e
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

    @contextmanager
    def transaction(self, root: RootPath) -> Iterator[Manifest]:
        manifest = self.load(root)
        yield manifest
        self.save(root, manifest)

    def append(self, root: RootPath, package: Package) -> None:
        with self.transaction(root) as manifest:
            manifest.addons.append(package)
        logger.debug(f"Recorded {package.name} ({package.id}) in {self.manifest_path(root)}")

    def remove(self, root: RootPath, package: Package) -> None:
        with self.transaction(root) as manifest:
            for index, existing in enumerate(manifest.addons):
                if existing.id == package.id:
                    del manifest.addons[index]
                    # Module list comes from the package passed in, as the caller sees it.
                    self._delete_modules(root, package.modules, package.id)
                    break
            else:
                logger.debug(f"Package {package.id} not in manifest, nothing to remove")

    def _delete_modules(self, root: RootPath, modules: List[str], package_id: str) -> None:
        root_dir = Path(root)
        for module in modules:
            name = PurePath(os.path.normpath(module)) if module else PurePath()
            # Checked on the unresolved name: module folders may be symlinks to elsewhere.
            if not name.parts or name.is_absolute() or name.drive or ".." in name.parts:
                raise StorageError(
                    f"Module directory {module!r} is outside {root_dir}",
                    operation="remove",
                    package_id=package_id,
                )
            module_dir = root_dir / name
            try:
                if module_dir.is_symlink():
                    module_dir.unlink()
                elif not module_dir.exists():
                    logger.warning(f"Module directory {module_dir} already absent")
                else:
                    shutil.rmtree(module_dir)
            except OSError as e:
                raise StorageError(
                    f"Could not remove module directory {module_dir}: {e}",
                    operation="remove",
                    package_id=package_id,
                ) from e
