"""SQLAlchemy implementation of the snapshot store on a single SQLite file."""

import json
import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import ValidationError
from sqlalchemy import Connection, Engine, create_engine, event, inspect, select, text
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from calorie_chat.adapters.sqlalchemy_tables import (
    SETTINGS_ROW_ID,
    chat_messages_table,
    consumed_foods_table,
    custom_foods_table,
    daily_entries_table,
    metadata,
    settings_table,
)
from calorie_chat.domain.errors import SnapshotStoreError, StorageUnavailableError
from calorie_chat.domain.snapshot import (
    DEFAULT_TARGET_CALORIES,
    AppSnapshot,
    ChatMessage,
    ConsumedFood,
    CustomFood,
    DailyEntry,
    MacroRatio,
    UserSettings,
    local_today,
)
from calorie_chat.services.snapshots import SnapshotRepository

logger = logging.getLogger(__name__)

BACKEND_NAME = "SQLite"


@dataclass
class SqlAlchemySnapshotRepository(SnapshotRepository):
    """Stores snapshots in five tables and replaces them transactionally."""

    engine: Engine
    database_path: Path | None = None

    backend_name = BACKEND_NAME

    @classmethod
    def create(cls, database_path: Path) -> "SqlAlchemySnapshotRepository":
        """Create a repository bound to an SQLite file."""
        engine = create_engine(
            f"sqlite:///{database_path}",
            connect_args={"check_same_thread": False},
        )
        event.listen(engine, "connect", _enable_foreign_keys)
        return cls(engine=engine, database_path=database_path)

    def init_schema(self) -> None:
        """Create the data directory and any missing tables."""
        if self.database_path is not None:
            try:
                self.database_path.parent.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise StorageUnavailableError(
                    f"Cannot create data directory {self.database_path.parent}: {exc}"
                ) from exc
        try:
            metadata.create_all(self.engine)
            self._upgrade_chat_messages()
        except SQLAlchemyError as exc:
            raise StorageUnavailableError(f"Cannot open database: {exc}") from exc
        logger.info(
            "Database tables initialized", extra={"path": str(self.database_path)}
        )

    def read_snapshot(self, today: str | None = None) -> AppSnapshot:
        """Read every table and rebuild the nested snapshot."""
        try:
            with self.engine.connect() as conn:
                settings_row = conn.execute(
                    select(settings_table).where(settings_table.c.id == SETTINGS_ROW_ID)
                ).first()
                food_rows = conn.execute(
                    select(custom_foods_table).order_by(text("rowid"))
                ).all()
                entry_rows = conn.execute(
                    select(daily_entries_table).order_by(text("rowid"))
                ).all()
                line_rows = conn.execute(
                    select(consumed_foods_table).order_by(text("rowid"))
                ).all()
                message_rows = conn.execute(
                    select(chat_messages_table).order_by(text("rowid"))
                ).all()
        except SQLAlchemyError as exc:
            raise SnapshotStoreError(f"Failed to read snapshot: {exc}") from exc

        try:
            return _build_snapshot(
                settings_row, food_rows, entry_rows, line_rows, message_rows, today
            )
        except (ValidationError, json.JSONDecodeError, KeyError) as exc:
            raise SnapshotStoreError(f"Stored data is corrupt: {exc}") from exc

    def replace_snapshot(self, snapshot: AppSnapshot) -> None:
        """Replace the stored state with the snapshot in one transaction."""
        updated_at = datetime.now(tz=UTC).isoformat()
        try:
            with self.engine.begin() as conn:
                if "settings" in snapshot.model_fields_set:
                    self._write_settings(conn, snapshot.settings, updated_at)
                self._replace_custom_foods(conn, snapshot.custom_foods, updated_at)
                self._replace_daily_entries(conn, snapshot.daily_entries, updated_at)
                self._replace_chat_messages(conn, snapshot.chat_history)
        except SQLAlchemyError as exc:
            raise SnapshotStoreError(f"Failed to save snapshot: {exc}") from exc

    def _write_settings(
        self, conn: Connection, settings: UserSettings, updated_at: str
    ) -> None:
        values = {
            "targetCalories": settings.target_calories,
            "proteinRatio": settings.macro_ratio.protein,
            "carbsRatio": settings.macro_ratio.carbs,
            "fatRatio": settings.macro_ratio.fat,
            "theme": settings.theme,
            "lastUpdated": updated_at,
        }
        statement = sqlite_insert(settings_table).values(id=SETTINGS_ROW_ID, **values)
        conn.execute(
            statement.on_conflict_do_update(index_elements=["id"], set_=values)
        )

    def _replace_custom_foods(
        self, conn: Connection, foods: tuple[CustomFood, ...], updated_at: str
    ) -> None:
        conn.execute(custom_foods_table.delete())
        if not foods:
            return
        conn.execute(
            custom_foods_table.insert(),
            [
                {
                    "id": food.id,
                    "name": food.name,
                    "calories": food.calories,
                    "protein": food.protein,
                    "carbs": food.carbs,
                    "fat": food.fat,
                    "servingSize": food.serving_size,
                    "createdAt": food.created_at,
                    "isCustom": 1 if food.is_custom else 0,
                    "lastUpdated": updated_at,
                }
                for food in foods
            ],
        )

    def _replace_daily_entries(
        self, conn: Connection, entries: tuple[DailyEntry, ...], updated_at: str
    ) -> None:
        # Line items reference entries, so they go first on delete and last on insert.
        conn.execute(consumed_foods_table.delete())
        conn.execute(daily_entries_table.delete())
        for entry in entries:
            conn.execute(
                daily_entries_table.insert().values(
                    id=entry.id,
                    date=entry.date,
                    totalCalories=entry.total_calories,
                    totalProtein=entry.total_protein,
                    totalCarbs=entry.total_carbs,
                    totalFat=entry.total_fat,
                    lastUpdated=updated_at,
                )
            )
            if not entry.foods:
                continue
            conn.execute(
                consumed_foods_table.insert(),
                [
                    {
                        **_consumed_food_row(food),
                        "dailyEntryId": entry.id,
                        "lastUpdated": updated_at,
                    }
                    for food in entry.foods
                ],
            )

    def _replace_chat_messages(
        self, conn: Connection, history: dict[str, tuple[ChatMessage, ...]]
    ) -> None:
        conn.execute(chat_messages_table.delete())
        rows = [
            {
                "id": message.id,
                "date": day,
                "role": message.role,
                "content": message.content,
                "timestamp": message.timestamp,
                "foodItems": (
                    _dump_food_items(message.food_items)
                    if message.food_items is not None
                    else None
                ),
            }
            for day, messages in history.items()
            for message in messages
        ]
        if rows:
            conn.execute(chat_messages_table.insert(), rows)

    def _upgrade_chat_messages(self) -> None:
        """Add the foodItems column to stores created before it existed."""
        columns = {
            column["name"]
            for column in inspect(self.engine).get_columns(chat_messages_table.name)
        }
        if "foodItems" in columns:
            return
        with self.engine.begin() as conn:
            conn.execute(text("ALTER TABLE chat_messages ADD COLUMN foodItems TEXT"))
        logger.info("Added foodItems column to chat_messages")


def _enable_foreign_keys(dbapi_connection: Any, _connection_record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _float(value: object) -> float:
    return float(value) if value is not None else 0.0


def _build_snapshot(  # type: ignore[no-untyped-def]
    settings_row, food_rows, entry_rows, line_rows, message_rows, today
) -> AppSnapshot:
    """Assemble the nested snapshot from the flat table rows."""
    foods_by_entry: dict[str, list[ConsumedFood]] = defaultdict(list)
    for row in line_rows:
        foods_by_entry[row.dailyEntryId].append(_parse_consumed_food(row._mapping))

    chat_history: dict[str, list[ChatMessage]] = defaultdict(list)
    for row in message_rows:
        chat_history[row.date].append(_parse_chat_message(row))

    return AppSnapshot(
        settings=_parse_settings(settings_row),
        custom_foods=tuple(_parse_custom_food(row) for row in food_rows),
        daily_entries=tuple(
            DailyEntry(
                id=row.id,
                date=row.date or "",
                foods=tuple(foods_by_entry.get(row.id, ())),
                total_calories=_float(row.totalCalories),
                total_protein=_float(row.totalProtein),
                total_carbs=_float(row.totalCarbs),
                total_fat=_float(row.totalFat),
            )
            for row in entry_rows
        ),
        chat_history={day: tuple(items) for day, items in chat_history.items()},
        current_date=today or local_today(),
    )


def _parse_settings(row) -> UserSettings:  # type: ignore[no-untyped-def]
    """Map the settings row to a model, filling defaults when absent."""
    if row is None:
        return UserSettings()
    defaults = MacroRatio()
    return UserSettings(
        target_calories=_or_default(row.targetCalories, DEFAULT_TARGET_CALORIES),
        macro_ratio=MacroRatio(
            protein=_or_default(row.proteinRatio, defaults.protein),
            carbs=_or_default(row.carbsRatio, defaults.carbs),
            fat=_or_default(row.fatRatio, defaults.fat),
        ),
        theme=row.theme or "light",
    )


def _or_default(value: Any, default: Any) -> Any:
    # 0 is a valid stored value; only NULL falls back.
    return default if value is None else value


def _parse_custom_food(row) -> CustomFood:  # type: ignore[no-untyped-def]
    return CustomFood(
        id=row.id,
        name=row.name or "",
        serving_size=row.servingSize or "",
        calories=_float(row.calories),
        protein=_float(row.protein),
        carbs=_float(row.carbs),
        fat=_float(row.fat),
        created_at=row.createdAt or "",
        is_custom=bool(row.isCustom),
    )


def _consumed_food_row(food: ConsumedFood) -> dict[str, object]:
    return {
        "foodId": food.food_id,
        "name": food.name,
        "servingSize": food.serving_size,
        "quantity": food.quantity,
        "calories": food.calories,
        "protein": food.protein,
        "carbs": food.carbs,
        "fat": food.fat,
        "mealType": food.meal_type,
        "time": food.time,
    }


def _dump_food_items(items: tuple[ConsumedFood, ...]) -> str:
    return json.dumps([_consumed_food_row(item) for item in items])


def _parse_consumed_food(row: dict[str, object]) -> ConsumedFood:
    quantity = row.get("quantity")
    return ConsumedFood(
        food_id=str(row["foodId"]),
        name=str(row.get("name") or ""),
        serving_size=str(row.get("servingSize") or ""),
        quantity=float(quantity) if quantity is not None else 1.0,
        calories=_float(row.get("calories")),
        protein=_float(row.get("protein")),
        carbs=_float(row.get("carbs")),
        fat=_float(row.get("fat")),
        meal_type=row.get("mealType") or "snack",
        time=str(row.get("time") or ""),
    )


def _parse_chat_message(row) -> ChatMessage:  # type: ignore[no-untyped-def]
    food_items = None
    if row.foodItems:
        items = json.loads(row.foodItems)
        if not isinstance(items, list) or not all(isinstance(i, dict) for i in items):
            raise SnapshotStoreError(f"Malformed foodItems for message {row.id}")
        food_items = tuple(_parse_consumed_food(item) for item in items)
    return ChatMessage(
        id=row.id,
        role=row.role,
        content=row.content or "",
        timestamp=row.timestamp or "",
        food_items=food_items,
    )
