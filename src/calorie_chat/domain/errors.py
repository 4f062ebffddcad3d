"""Error types shared across the persistence and sync layers."""

from pathlib import Path


class CalorieChatError(Exception):
    """Base class for application errors."""


class InvalidSnapshotError(CalorieChatError, ValueError):
    """Raised when a payload cannot be interpreted as a snapshot."""


class SnapshotStoreError(CalorieChatError):
    """Raised when the durable store cannot read or commit a snapshot."""


class StorageUnavailableError(SnapshotStoreError):
    """Raised when the store file or its directory cannot be opened."""


class LegacyFileNotFoundError(CalorieChatError, FileNotFoundError):
    """Raised when there is no legacy JSON file to import."""


class BackupRenameError(CalorieChatError):
    """Raised when a legacy import committed but the source file was not moved."""

    imported = True

    def __init__(self, source: Path, backup: Path, reason: str) -> None:
        super().__init__(
            f"Imported {source} but could not rename it to {backup}: {reason}"
        )
        self.source = source
        self.backup = backup
        self.reason = reason


class NutritionEstimationError(CalorieChatError):
    """Raised when nutrition facts cannot be estimated for a description."""


class SyncError(CalorieChatError):
    """Raised by snapshot clients when the persistence service is unusable."""


class SnapshotNotFoundError(SyncError):
    """Raised when the persistence service reports no saved data."""
