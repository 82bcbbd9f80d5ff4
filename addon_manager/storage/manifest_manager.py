from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Union

from addon_manager.domain.models import Manifest, Package

RootPath = Union[str, Path]


class ManifestManager(ABC):
    """
    Abstract base class for manifest persistence.

    A manifest is owned by exactly one installation root; every method takes
    that root explicitly so implementations hold no per-root state.
    """

    @abstractmethod
    def initialize(self, root: RootPath) -> None:
        """Ensure a manifest exists for the root, writing an empty one if absent."""
        pass

    @abstractmethod
    def load(self, root: RootPath) -> Manifest:
        """Read and parse the manifest of the root."""
        pass

    @abstractmethod
    def save(self, root: RootPath, manifest: Manifest) -> None:
        """Overwrite the manifest of the root in full."""
        pass

    @abstractmethod
    def transaction(self, root: RootPath) -> AbstractContextManager:
        """
        Load the manifest, yield it for mutation and save it when the block
        completes without raising.
        """
        pass

    @abstractmethod
    def append(self, root: RootPath, package: Package) -> None:
        """Record a newly installed package."""
        pass

    @abstractmethod
    def remove(self, root: RootPath, package: Package) -> None:
        """
        Drop the package with the same id and delete its module directories.
        Unknown ids leave the manifest unchanged.
        """
        pass
