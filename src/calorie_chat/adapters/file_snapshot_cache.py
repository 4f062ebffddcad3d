"""Local JSON file holding the last known snapshot."""

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from calorie_chat.domain.snapshot import AppSnapshot
from calorie_chat.services.sync import SnapshotCache

logger = logging.getLogger(__name__)


@dataclass
class FileSnapshotCache(SnapshotCache):
    """Snapshot cache stored as a single JSON document."""

    path: Path

    def read(self) -> AppSnapshot | None:
        """Return the cached snapshot, ignoring unreadable files."""
        if not self.path.is_file():
            return None
        try:
            return AppSnapshot.from_wire(
                json.loads(self.path.read_text(encoding="utf-8"))
            )
        except (OSError, ValueError, ValidationError):
            logger.warning("Ignoring unreadable snapshot cache at %s", self.path)
            return None

    def write(self, snapshot: AppSnapshot) -> None:
        """Write the snapshot through a temporary file."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(snapshot.to_wire(), indent=2), encoding="utf-8")
        tmp.replace(self.path)

    def clear(self) -> None:
        """Delete the cache file if present."""
        self.path.unlink(missing_ok=True)
