from __future__ import annotations

from typing import Optional


class AddonManagerError(Exception):
    """
    Base class for recoverable engine failures.

    Carries the name of the failing operation and, when known, the id of the
    affected package so the presentation layer can log useful context.
    """

    kind = "AddonManagerError"

    def __init__(self, message: str, operation: str = "", package_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.package_id = package_id

    def __str__(self) -> str:
        prefix = f"[{self.operation}] " if self.operation else ""
        return f"{prefix}{self.message}"


class StorageError(AddonManagerError):
    """Manifest I/O or parse failure, or a directory that could not be created/removed."""

    kind = "StorageError"


class ApiError(AddonManagerError):
    """Transport, status or parse failure against the catalog or the archive host."""

    kind = "ApiError"


class ConfigurationError(Exception):
    """The configuration directory could not be established. Fatal at startup."""
