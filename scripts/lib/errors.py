from __future__ import annotations

from typing import Any, List, Optional


class CatalogError(Exception):
    """Base class for failures surfaced by catalog operations."""


class ConfigurationError(CatalogError):
    pass


class NotFoundError(CatalogError):
    pass


class EntryNotFound(NotFoundError):
    """Requested path is not present inside an archive."""

    def __init__(self, path: str) -> None:
        super().__init__(f"Entry not found in archive: {path}")
        self.path = path


class FolderMissingError(CatalogError):
    """Neither the enabled nor the disabled form of a mod folder exists."""

    def __init__(self, clean_path: str) -> None:
        super().__init__(f"Mod folder not found on disk: {clean_path}")
        self.clean_path = clean_path


class ConflictError(CatalogError):
    pass


class ArchiveFormatError(CatalogError):
    pass


class BatchOperationError(CatalogError):
    """A batch ran to completion but some items failed.

    Side effects already applied for successful items are kept; ``summary``
    holds whatever result object the batch produced.
    """

    def __init__(self, operation: str, errors: List[str], summary: Optional[Any] = None) -> None:
        self.operation = operation
        self.errors = list(errors)
        self.summary = summary
        super().__init__(self.itemized())

    def itemized(self) -> str:
        lines = [f"{self.operation} finished with {len(self.errors)} error(s):"]
        lines.extend(f"- {e}" for e in self.errors)
        return "\n".join(lines)
