"""Client-side synchronisation between the state store and the persistence API."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from calorie_chat.domain.commands import Command, ReplaceSnapshot
from calorie_chat.domain.errors import SnapshotNotFoundError, SyncError
from calorie_chat.domain.snapshot import AppSnapshot, local_today
from calorie_chat.services.state_store import StateStore

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_DELAY = 0.5


class SnapshotClient(Protocol):
    """Interface to the persistence service."""

    async def load(self) -> AppSnapshot:
        """Fetch the authoritative snapshot.

        Raises SnapshotNotFoundError when the service has no data and
        SyncError for any other failure.
        """

    async def save(self, snapshot: AppSnapshot) -> None:
        """Send a full snapshot; raises SyncError on failure."""


class SnapshotCache(Protocol):
    """Local copy of the last known snapshot."""

    def read(self) -> AppSnapshot | None:
        """Return the cached snapshot, if any."""

    def write(self, snapshot: AppSnapshot) -> None:
        """Replace the cached snapshot."""

    def clear(self) -> None:
        """Drop the cached snapshot."""


class LoadOutcome(StrEnum):
    """Where the active snapshot came from after a load cycle."""

    SERVER = "server"
    NOT_FOUND = "not_found"
    CACHE = "cache"
    DEFAULT = "default"
    STALE = "stale"
    LOCAL = "local"


@dataclass
class SyncCoordinator:
    """Loads the snapshot at startup and debounces saves afterwards."""

    store: StateStore
    client: SnapshotClient
    cache: SnapshotCache
    autosave_delay: float = DEFAULT_AUTOSAVE_DELAY
    today: Callable[[], str] = field(default=local_today)
    _started: bool = field(default=False, init=False)
    _armed: bool = field(default=False, init=False)
    _refreshes: int = field(default=0, init=False)
    _generation: int = field(default=0, init=False)
    _pending: asyncio.Task[None] | None = field(default=None, init=False)
    _in_flight: set[asyncio.Task[None]] = field(default_factory=set, init=False)
    _unsubscribe: Callable[[], None] | None = field(default=None, init=False)
    _edited_during_refresh: bool = field(default=False, init=False)

    @property
    def autosave_armed(self) -> bool:
        """True once the startup load has finished."""
        return self._armed

    @property
    def is_refreshing(self) -> bool:
        """True while a manual refresh is waiting for the service."""
        return self._refreshes > 0

    @property
    def has_pending_save(self) -> bool:
        """True while a debounced save is scheduled but not yet sent."""
        return self._pending is not None

    async def start(self) -> LoadOutcome:
        """Run the one-time startup load and arm autosave."""
        if self._started:
            raise RuntimeError("SyncCoordinator.start() may only run once")
        self._started = True
        # The cached copy is only a fallback now; the service is authoritative.
        fallback = self.cache.read()
        self.cache.clear()
        outcome = await self._load(fallback, self._generation)
        self._unsubscribe = self.store.subscribe(self._on_change)
        self._armed = True
        logger.info("Startup load finished", extra={"outcome": outcome.value})
        return outcome

    async def refresh(self) -> LoadOutcome:
        """Reload from the service on demand, suppressing autosave meanwhile.

        A scheduled save is sent before the load. Whenever the service copy
        cannot safely replace unsynced edits, the in-memory snapshot is kept
        and LOCAL is returned. Edits made during the refresh are saved after it.
        """
        self._generation += 1
        generation = self._generation
        self._refreshes += 1
        try:
            if self._pending is not None:
                self._cancel_pending()
                if not await self._save(self.store.snapshot):
                    logger.warning("Refresh skipped: local edits are not synced yet")
                    return LoadOutcome.LOCAL
            return await self._load(None, generation, keep_local=True)
        finally:
            self._refreshes -= 1
            if self._edited_during_refresh and not self.is_refreshing:
                self._edited_during_refresh = False
                if self._armed:
                    self._schedule_save()

    async def flush(self) -> bool:
        """Send a scheduled save right away. Returns False if nothing was sent."""
        if self._pending is None or self.is_refreshing:
            return False
        self._cancel_pending()
        return await self._save(self.store.snapshot)

    async def close(self) -> None:
        """Disarm autosave and wait for saves already on the wire."""
        self._armed = False
        self._cancel_pending()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        if self._in_flight:
            await asyncio.gather(*self._in_flight, return_exceptions=True)

    async def _load(
        self,
        fallback: AppSnapshot | None,
        generation: int,
        *,
        keep_local: bool = False,
    ) -> LoadOutcome:
        try:
            snapshot = await self.client.load()
        except SnapshotNotFoundError:
            if generation != self._generation:
                return LoadOutcome.STALE
            logger.info("No previously saved data found, keeping defaults")
            self.store.mark_ready()
            return LoadOutcome.NOT_FOUND
        except SyncError as exc:
            if generation != self._generation:
                return LoadOutcome.STALE
            logger.warning("Could not load data from the service: %s", exc)
            if keep_local:
                self.cache.write(self.store.snapshot)
                return LoadOutcome.LOCAL
            if fallback is None:
                self.store.mark_ready()
                return LoadOutcome.DEFAULT
            self.store.install(fallback, self.today())
            self.cache.write(self.store.snapshot)
            return LoadOutcome.CACHE

        if generation != self._generation:
            logger.info("Ignoring superseded load response")
            return LoadOutcome.STALE
        if keep_local and self._edited_during_refresh:
            logger.info("Keeping local edits made while the refresh was running")
            return LoadOutcome.LOCAL
        self.store.install(snapshot, self.today())
        self.cache.write(self.store.snapshot)
        return LoadOutcome.SERVER

    def _on_change(self, _snapshot: AppSnapshot, command: Command) -> None:
        if not self._armed or isinstance(command, ReplaceSnapshot):
            return
        if self.is_refreshing:
            self._edited_during_refresh = True
            return
        self._schedule_save()

    def _schedule_save(self) -> None:
        self._cancel_pending()
        self._pending = asyncio.get_running_loop().create_task(
            self._save_after_delay()
        )

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def _save_after_delay(self) -> None:
        await asyncio.sleep(self.autosave_delay)
        task = asyncio.current_task()
        if self._pending is task:
            self._pending = None
        if self.is_refreshing:
            self._edited_during_refresh = True
            return
        if task is not None:
            self._in_flight.add(task)
        try:
            await self._save(self.store.snapshot)
        finally:
            if task is not None:
                self._in_flight.discard(task)

    async def _save(self, snapshot: AppSnapshot) -> bool:
        try:
            await self.client.save(snapshot)
        except SyncError:
            logger.exception("Failed to save data to the service")
            return False
        else:
            logger.info("Data saved to the service")
            return True
        finally:
            self.cache.write(snapshot)
