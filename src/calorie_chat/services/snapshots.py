"""Snapshot gateway: validates payloads and fronts the durable store."""

import json
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from calorie_chat.domain.errors import InvalidSnapshotError
from calorie_chat.domain.snapshot import AppSnapshot

logger = logging.getLogger(__name__)


class SnapshotRepository(Protocol):
    """Persistence interface for whole-state snapshots."""

    backend_name: str

    def init_schema(self) -> None:
        """Create storage structures if they are missing."""

    def read_snapshot(self, today: str | None = None) -> AppSnapshot:
        """Return the stored snapshot, with defaults for missing data."""

    def replace_snapshot(self, snapshot: AppSnapshot) -> None:
        """Atomically replace all stored state with the snapshot."""


@dataclass(frozen=True)
class SnapshotStats:
    """Row counts reported after each load or save."""

    settings: int
    custom_foods: int
    daily_entries: int
    consumed_foods: int
    chat_messages: int

    def as_dict(self) -> dict[str, int]:
        """Return the counts keyed by wire names."""
        return {
            "settings": self.settings,
            "customFoods": self.custom_foods,
            "dailyEntries": self.daily_entries,
            "consumedFoods": self.consumed_foods,
            "chatMessages": self.chat_messages,
        }


@dataclass
class SnapshotService:
    """Application service for loading and saving full snapshots."""

    repository: SnapshotRepository

    @property
    def backend_name(self) -> str:
        """Name of the storage backend, reported by health checks."""
        return self.repository.backend_name

    def load(self, today: str | None = None) -> AppSnapshot:
        """Return the stored snapshot."""
        snapshot = self.repository.read_snapshot(today)
        stats = snapshot_stats(snapshot)
        logger.info(
            "Data loaded from database: %d daily entries, %d custom foods, "
            "%d chat messages",
            stats.daily_entries,
            stats.custom_foods,
            stats.chat_messages,
        )
        return snapshot

    def save(self, payload: object) -> SnapshotStats:
        """Validate a payload and replace the stored state with it."""
        snapshot = parse_payload(payload)
        self.repository.replace_snapshot(snapshot)
        stats = snapshot_stats(snapshot)
        logger.info("Data saved to database: %s", json.dumps(stats.as_dict()))
        return stats


def parse_payload(payload: object) -> AppSnapshot:
    """Unwrap an optional ``{"data": ...}`` envelope and validate the snapshot.

    The envelope value may be the snapshot object itself or its JSON string.
    """
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except json.JSONDecodeError as exc:
                raise InvalidSnapshotError(
                    f"Envelope data is not valid JSON: {exc}"
                ) from exc
    if not isinstance(payload, dict):
        raise InvalidSnapshotError("Invalid data provided. Expected state object.")
    try:
        return AppSnapshot.from_wire(payload)
    except ValidationError as exc:
        raise InvalidSnapshotError(f"Snapshot failed validation: {exc}") from exc


def snapshot_stats(snapshot: AppSnapshot) -> SnapshotStats:
    """Count the records carried by a snapshot."""
    return SnapshotStats(
        settings=1 if "settings" in snapshot.model_fields_set else 0,
        custom_foods=len(snapshot.custom_foods),
        daily_entries=len(snapshot.daily_entries),
        consumed_foods=sum(len(entry.foods) for entry in snapshot.daily_entries),
        chat_messages=snapshot.message_count,
    )
