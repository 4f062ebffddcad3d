"""One-shot import of the legacy flat JSON snapshot into the relational store."""

import json
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from calorie_chat.domain.errors import (
    BackupRenameError,
    InvalidSnapshotError,
    LegacyFileNotFoundError,
    SnapshotStoreError,
)
from calorie_chat.services.snapshots import SnapshotService, SnapshotStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegacyImportResult:
    """Outcome of a successful import."""

    backup_file: Path
    stats: SnapshotStats


def _epoch_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class LegacyImportService:
    """Feeds the legacy file through the normal save path, then retires it."""

    snapshot_service: SnapshotService
    legacy_path: Path
    clock: Callable[[], int] = field(default=_epoch_millis)

    def has_legacy_file(self) -> bool:
        """Return True when there is something to import."""
        return self.legacy_path.is_file()

    def run(self) -> LegacyImportResult:
        """Import the legacy file and rename it to a timestamped backup."""
        if not self.has_legacy_file():
            raise LegacyFileNotFoundError(f"No JSON file found at {self.legacy_path}")

        try:
            payload = json.loads(self.legacy_path.read_text(encoding="utf-8"))
        except OSError as exc:
            raise SnapshotStoreError(
                f"Could not read legacy file {self.legacy_path}: {exc}"
            ) from exc
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise InvalidSnapshotError(f"Invalid JSON data format: {exc}") from exc

        stats = self.snapshot_service.save(payload)

        source = self.legacy_path
        backup = source.with_name(f"{source.name}.bak.{self.clock()}")
        try:
            self.legacy_path.rename(backup)
        except OSError as exc:
            logger.exception(
                "Legacy data imported but the source file was not renamed",
                extra={"source": str(self.legacy_path), "backup": str(backup)},
            )
            raise BackupRenameError(self.legacy_path, backup, str(exc)) from exc

        logger.info(
            "JSON data migrated to SQLite. Original file backed up to %s", backup
        )
        return LegacyImportResult(backup_file=backup, stats=stats)
