"""Shared test fixtures."""

import asyncio
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from calorie_chat.adapters.sqlalchemy_snapshot_repository import (
    SqlAlchemySnapshotRepository,
)
from calorie_chat.config import Settings
from calorie_chat.containers import AppContainer, build_container
from calorie_chat.domain.errors import SnapshotNotFoundError, SyncError
from calorie_chat.domain.snapshot import (
    AppSnapshot,
    ChatMessage,
    ConsumedFood,
    CustomFood,
    DailyEntry,
    MacroRatio,
    UserSettings,
)
from calorie_chat.services.nutrition import NutritionClient
from calorie_chat.services.snapshots import SnapshotService
from calorie_chat.services.sync import SnapshotCache, SnapshotClient

TODAY = "2024-01-02"


@dataclass
class FakeSnapshotClient(SnapshotClient):
    """Persistence client serving canned snapshots and recording saves."""

    snapshot: AppSnapshot | None = None
    load_error: SyncError | None = None
    save_error: SyncError | None = None
    gate: asyncio.Event | None = None
    loads: int = 0
    saved: list[AppSnapshot] = field(default_factory=list)

    async def load(self) -> AppSnapshot:
        self.loads += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.load_error is not None:
            raise self.load_error
        if self.snapshot is None:
            raise SnapshotNotFoundError("No saved data found")
        return self.snapshot

    async def save(self, snapshot: AppSnapshot) -> None:
        if self.save_error is not None:
            raise self.save_error
        self.saved.append(snapshot)
        self.snapshot = snapshot


@dataclass
class InMemorySnapshotCache(SnapshotCache):
    """Snapshot cache kept in memory."""

    snapshot: AppSnapshot | None = None
    writes: int = 0
    clears: int = 0

    def read(self) -> AppSnapshot | None:
        return self.snapshot

    def write(self, snapshot: AppSnapshot) -> None:
        self.writes += 1
        self.snapshot = snapshot

    def clear(self) -> None:
        self.clears += 1
        self.snapshot = None


@dataclass
class FakeNutritionClient(NutritionClient):
    """Nutrition client returning a fixed JSON answer."""

    payload: object = field(
        default_factory=lambda: {
            "foods": [
                {
                    "name": "Banana",
                    "servingSize": "1 medium",
                    "calories": 105,
                    "protein": 1.3,
                    "carbs": 27,
                    "fat": 0.4,
                }
            ]
        }
    )
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def estimate(self, *, model: str, system_prompt: str, text: str) -> object:
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return self.payload


def make_snapshot(current_date: str = TODAY) -> AppSnapshot:
    """A snapshot touching every collection."""
    oatmeal = ConsumedFood(
        food_id="f-1",
        name="Oatmeal",
        serving_size="1 cup",
        calories=150,
        protein=5,
        carbs=27,
        fat=3,
        meal_type="breakfast",
        time="2024-01-01T08:00:00+00:00",
    )
    eggs = ConsumedFood(
        food_id="f-2",
        name="Eggs",
        serving_size="2 large",
        quantity=2,
        calories=140,
        protein=12,
        carbs=1,
        fat=10,
        meal_type="lunch",
        time="2024-01-01T12:30:00+00:00",
    )
    soup = ConsumedFood(food_id="f-3", name="Soup", calories=220, meal_type="dinner")
    return AppSnapshot(
        settings=UserSettings(
            target_calories=1800,
            macro_ratio=MacroRatio(protein=25, carbs=45, fat=30),
            theme="dark",
        ),
        custom_foods=(
            CustomFood(
                id="c-1",
                name="Protein Shake",
                serving_size="1 scoop",
                calories=120,
                protein=24,
                carbs=3,
                fat=1.5,
                created_at="2023-12-31T10:00:00+00:00",
            ),
        ),
        daily_entries=(
            DailyEntry.with_foods("e-1", "2024-01-01", (oatmeal, eggs)),
            DailyEntry.with_foods("e-2", "2024-01-02", (soup,)),
        ),
        chat_history={
            "2024-01-01": (
                ChatMessage(
                    id="m-1",
                    role="user",
                    content="I had oatmeal",
                    timestamp="2024-01-01T08:01:00+00:00",
                ),
                ChatMessage(
                    id="m-2",
                    role="assistant",
                    content="Logged oatmeal, 150 kcal.",
                    timestamp="2024-01-01T08:01:05+00:00",
                    food_items=(oatmeal,),
                ),
            ),
        },
        current_date=current_date,
    )


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        environment="development",
        data_dir=tmp_path / "data",
        openai_api_key=None,
        autosave_delay_seconds=0.01,
    )


@pytest.fixture
def sample_snapshot() -> AppSnapshot:
    return make_snapshot()


@pytest.fixture
def repository(settings: Settings) -> Iterator[SqlAlchemySnapshotRepository]:
    repo = SqlAlchemySnapshotRepository.create(settings.database_path)
    repo.init_schema()
    yield repo
    repo.engine.dispose()


@pytest.fixture
def snapshot_service(repository: SqlAlchemySnapshotRepository) -> SnapshotService:
    return SnapshotService(repository)


@pytest.fixture
def container(settings: Settings) -> AppContainer:
    return build_container(settings)


@pytest.fixture
def snapshot_client() -> FakeSnapshotClient:
    return FakeSnapshotClient()


@pytest.fixture
def snapshot_cache() -> InMemorySnapshotCache:
    return InMemorySnapshotCache()
