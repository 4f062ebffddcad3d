"""Snapshot models exchanged between the client state and the durable store.

Field names are snake_case in Python and camelCase on the wire. Every model is
frozen and every collection is a tuple, so a snapshot value can be shared
freely without anyone mutating it in place.
"""

import datetime
from collections.abc import Iterable
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

MealType = Literal["breakfast", "lunch", "dinner", "snack"]
Role = Literal["user", "assistant"]
Theme = Literal["light", "dark"]

DEFAULT_TARGET_CALORIES = 2000
BALANCED_TOTAL = 100


class WireModel(BaseModel):
    """Base model with camelCase aliases and immutable instances."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class MacroRatio(WireModel):
    """Macro-nutrient split as integer percentages."""

    protein: int = 30
    carbs: int = 40
    fat: int = 30

    def is_balanced(self) -> bool:
        """Return True when the three percentages add up to 100."""
        return self.protein + self.carbs + self.fat == BALANCED_TOTAL


class UserSettings(WireModel):
    """Singleton user settings."""

    target_calories: int = DEFAULT_TARGET_CALORIES
    macro_ratio: MacroRatio = Field(default_factory=MacroRatio)
    theme: Theme = "light"


class CustomFood(WireModel):
    """A user-defined food kept in the personal library."""

    id: str
    name: str
    serving_size: str = ""
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    created_at: str = ""
    is_custom: bool = True


class ConsumedFood(WireModel):
    """A food line item logged against a daily entry."""

    food_id: str
    name: str
    serving_size: str = ""
    quantity: float = 1.0
    calories: float = 0.0
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0
    meal_type: MealType = "snack"
    time: str = ""


class DailyEntry(WireModel):
    """All food logged for one calendar date plus derived totals."""

    id: str
    date: str
    foods: tuple[ConsumedFood, ...] = ()
    total_calories: float = 0.0
    total_protein: float = 0.0
    total_carbs: float = 0.0
    total_fat: float = 0.0

    @classmethod
    def empty(cls, day: str) -> "DailyEntry":
        """Return a zero-valued entry for a date that has no log yet."""
        return cls(id="", date=day)

    @classmethod
    def with_foods(
        cls, entry_id: str, day: str, foods: Iterable[ConsumedFood]
    ) -> "DailyEntry":
        """Build an entry whose totals are derived from its foods."""
        items = tuple(foods)
        return cls(
            id=entry_id,
            date=day,
            foods=items,
            total_calories=sum(food.calories for food in items),
            total_protein=sum(food.protein for food in items),
            total_carbs=sum(food.carbs for food in items),
            total_fat=sum(food.fat for food in items),
        )


class ChatMessage(WireModel):
    """A chat transcript message, optionally proposing food items."""

    id: str
    role: Role
    content: str
    timestamp: str
    food_items: tuple[ConsumedFood, ...] | None = None


def local_today() -> str:
    """Return the caller's local date as YYYY-MM-DD."""
    return datetime.date.today().isoformat()


class AppSnapshot(WireModel):
    """Complete application state at one instant."""

    settings: UserSettings = Field(default_factory=UserSettings)
    custom_foods: tuple[CustomFood, ...] = ()
    daily_entries: tuple[DailyEntry, ...] = ()
    chat_history: dict[str, tuple[ChatMessage, ...]] = Field(default_factory=dict)
    current_date: str = Field(default_factory=local_today)

    @classmethod
    def from_wire(cls, data: object) -> "AppSnapshot":
        """Validate a decoded JSON document into a snapshot."""
        return cls.model_validate(data)

    def to_wire(self) -> dict[str, object]:
        """Return the camelCase JSON document for this snapshot."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @property
    def message_count(self) -> int:
        """Total number of chat messages across all dates."""
        return sum(len(messages) for messages in self.chat_history.values())


def calories_from_macros(protein: float, carbs: float, fat: float) -> float:
    """Derive calories from macro grams (4/4/9 kcal per gram)."""
    return 4 * protein + 4 * carbs + 9 * fat
