"""Client state container: a pure reducer over immutable snapshots."""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from uuid import uuid4

from pydantic import ValidationError

from calorie_chat.domain.commands import (
    AddChatMessage,
    AddConsumedFood,
    AddCustomFood,
    Command,
    DeleteConsumedFood,
    DeleteCustomFood,
    ReplaceSnapshot,
    SetCurrentDate,
    UpdateCustomFood,
    UpdateSettings,
)
from calorie_chat.domain.errors import InvalidSnapshotError
from calorie_chat.domain.snapshot import (
    AppSnapshot,
    ChatMessage,
    ConsumedFood,
    CustomFood,
    DailyEntry,
    MealType,
    Role,
    UserSettings,
    calories_from_macros,
    local_today,
)

logger = logging.getLogger(__name__)

Listener = Callable[[AppSnapshot, Command], None]


def reduce(snapshot: AppSnapshot, command: Command) -> AppSnapshot:  # noqa: PLR0911
    """Apply a command and return the resulting snapshot."""
    if isinstance(command, AddCustomFood):
        return snapshot.model_copy(
            update={"custom_foods": (*snapshot.custom_foods, command.food)}
        )
    if isinstance(command, UpdateCustomFood):
        return snapshot.model_copy(
            update={
                "custom_foods": tuple(
                    command.food if food.id == command.food.id else food
                    for food in snapshot.custom_foods
                )
            }
        )
    if isinstance(command, DeleteCustomFood):
        return snapshot.model_copy(
            update={
                "custom_foods": tuple(
                    food for food in snapshot.custom_foods if food.id != command.food_id
                )
            }
        )
    if isinstance(command, AddChatMessage):
        history = dict(snapshot.chat_history)
        history[command.date] = (*history.get(command.date, ()), command.message)
        return snapshot.model_copy(update={"chat_history": history})
    if isinstance(command, AddConsumedFood):
        return _add_consumed_food(snapshot, command)
    if isinstance(command, DeleteConsumedFood):
        return snapshot.model_copy(
            update={
                "daily_entries": tuple(
                    DailyEntry.with_foods(
                        entry.id,
                        entry.date,
                        (f for f in entry.foods if f.food_id != command.food_id),
                    )
                    if entry.date == command.date
                    else entry
                    for entry in snapshot.daily_entries
                )
            }
        )
    if isinstance(command, UpdateSettings):
        return snapshot.model_copy(
            update={"settings": merge_settings(snapshot.settings, command.changes)}
        )
    if isinstance(command, SetCurrentDate):
        return snapshot.model_copy(update={"current_date": command.date})
    if isinstance(command, ReplaceSnapshot):
        return command.snapshot
    raise TypeError(f"Unsupported command: {type(command).__name__}")


def _add_consumed_food(snapshot: AppSnapshot, command: AddConsumedFood) -> AppSnapshot:
    entries = list(snapshot.daily_entries)
    for index, entry in enumerate(entries):
        if entry.date == command.date:
            entries[index] = DailyEntry.with_foods(
                entry.id, entry.date, (*entry.foods, command.food)
            )
            break
    else:
        entries.append(
            DailyEntry.with_foods(command.entry_id, command.date, (command.food,))
        )
    return snapshot.model_copy(update={"daily_entries": tuple(entries)})


def merge_settings(
    settings: UserSettings, changes: Mapping[str, object]
) -> UserSettings:
    """Overwrite top-level settings fields with the given changes."""
    merged = settings.model_dump(by_alias=True)
    for key, value in changes.items():
        field_info = UserSettings.model_fields.get(key)
        merged[field_info.alias if field_info and field_info.alias else key] = value
    try:
        return UserSettings.model_validate(merged)
    except ValidationError as exc:
        raise InvalidSnapshotError(f"Invalid settings update: {exc}") from exc


class StoreStatus(StrEnum):
    """Lifecycle of the state container."""

    INITIALIZING = "initializing"
    READY = "ready"


def _now_iso() -> str:
    return datetime.now(tz=UTC).isoformat()


def _new_id() -> str:
    return str(uuid4())


@dataclass
class StateStore:
    """Holds the current snapshot and applies commands to it."""

    snapshot: AppSnapshot = field(default_factory=AppSnapshot)
    status: StoreStatus = StoreStatus.INITIALIZING
    clock: Callable[[], str] = field(default=_now_iso)
    id_factory: Callable[[], str] = field(default=_new_id)
    _listeners: list[Listener] = field(default_factory=list, init=False, repr=False)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener and return a function removing it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def dispatch(self, command: Command) -> AppSnapshot:
        """Apply a command, publish the new snapshot and return it."""
        self.snapshot = reduce(self.snapshot, command)
        for listener in list(self._listeners):
            listener(self.snapshot, command)
        return self.snapshot

    def install(self, snapshot: AppSnapshot, today: str | None = None) -> AppSnapshot:
        """Replace the whole snapshot, pinning the current date to today."""
        pinned = snapshot.model_copy(update={"current_date": today or local_today()})
        self.status = StoreStatus.READY
        logger.debug(
            "Installing snapshot with %d daily entries", len(pinned.daily_entries)
        )
        return self.dispatch(ReplaceSnapshot(pinned))

    def mark_ready(self) -> None:
        """Accept the current (default) snapshot as the active one."""
        self.status = StoreStatus.READY

    @property
    def is_ready(self) -> bool:
        """True once a snapshot has been installed or accepted."""
        return self.status is StoreStatus.READY

    def add_custom_food(  # noqa: PLR0913
        self,
        *,
        name: str,
        serving_size: str,
        protein: float,
        carbs: float,
        fat: float,
        calories: float | None = None,
    ) -> CustomFood:
        """Create a custom food; calories default to the 4/4/9 derivation."""
        food = CustomFood(
            id=self.id_factory(),
            name=name,
            serving_size=serving_size,
            calories=(
                calories
                if calories is not None
                else calories_from_macros(protein, carbs, fat)
            ),
            protein=protein,
            carbs=carbs,
            fat=fat,
            created_at=self.clock(),
            is_custom=True,
        )
        self.dispatch(AddCustomFood(food))
        return food

    def update_custom_food(self, food: CustomFood) -> None:
        """Replace a custom food wholesale."""
        self.dispatch(UpdateCustomFood(food))

    def delete_custom_food(self, food_id: str) -> None:
        """Remove a custom food."""
        self.dispatch(DeleteCustomFood(food_id))

    def add_chat_message(
        self,
        role: Role,
        content: str,
        food_items: tuple[ConsumedFood, ...] | None = None,
    ) -> ChatMessage:
        """Append a message to today's transcript."""
        message = ChatMessage(
            id=self.id_factory(),
            role=role,
            content=content,
            timestamp=self.clock(),
            food_items=food_items,
        )
        self.dispatch(AddChatMessage(date=self.snapshot.current_date, message=message))
        return message

    def add_consumed_food(  # noqa: PLR0913
        self,
        *,
        name: str,
        calories: float,
        protein: float = 0.0,
        carbs: float = 0.0,
        fat: float = 0.0,
        serving_size: str = "",
        quantity: float = 1.0,
        meal_type: MealType = "snack",
        time: str | None = None,
    ) -> ConsumedFood:
        """Log a food for the current date under a freshly minted id."""
        food = ConsumedFood(
            food_id=self.id_factory(),
            name=name,
            serving_size=serving_size,
            quantity=quantity,
            calories=calories,
            protein=protein,
            carbs=carbs,
            fat=fat,
            meal_type=meal_type,
            time=time or self.clock(),
        )
        self._log(food)
        return food

    def log_food(self, food: ConsumedFood) -> ConsumedFood:
        """Log an already-built food (e.g. accepted from a chat proposal)."""
        return self._log(food.model_copy(update={"food_id": self.id_factory()}))

    def _log(self, food: ConsumedFood) -> ConsumedFood:
        entry_id = self.todays_entry().id or self.id_factory()
        self.dispatch(
            AddConsumedFood(
                date=self.snapshot.current_date, food=food, entry_id=entry_id
            )
        )
        return food

    def delete_consumed_food(self, food_id: str) -> None:
        """Remove a logged food from the current date."""
        self.dispatch(
            DeleteConsumedFood(date=self.snapshot.current_date, food_id=food_id)
        )

    def update_settings(self, **changes: object) -> UserSettings:
        """Merge settings fields into the current settings."""
        self.dispatch(UpdateSettings(changes))
        return self.snapshot.settings

    def set_current_date(self, day: str) -> None:
        """Switch the viewed date."""
        self.dispatch(SetCurrentDate(day))

    def todays_chat(self) -> tuple[ChatMessage, ...]:
        """Messages for the current date, or an empty tuple."""
        return self.snapshot.chat_history.get(self.snapshot.current_date, ())

    def todays_entry(self) -> DailyEntry:
        """The current date's entry, or a zero-valued one."""
        for entry in self.snapshot.daily_entries:
            if entry.date == self.snapshot.current_date:
                return entry
        return DailyEntry.empty(self.snapshot.current_date)

    def find_custom_food(self, name: str) -> CustomFood | None:
        """First custom food whose name contains the query, case-insensitively."""
        needle = name.lower()
        for food in self.snapshot.custom_foods:
            if needle in food.name.lower():
                return food
        return None
