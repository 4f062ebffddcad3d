"""Commands accepted by the client state reducer."""

from collections.abc import Mapping
from dataclasses import dataclass, field

from calorie_chat.domain.snapshot import (
    AppSnapshot,
    ChatMessage,
    ConsumedFood,
    CustomFood,
)


@dataclass(frozen=True)
class AddCustomFood:
    """Append a custom food to the library."""

    food: CustomFood


@dataclass(frozen=True)
class UpdateCustomFood:
    """Replace the custom food with the same id."""

    food: CustomFood


@dataclass(frozen=True)
class DeleteCustomFood:
    """Remove a custom food by id."""

    food_id: str


@dataclass(frozen=True)
class AddChatMessage:
    """Append a message to a date's transcript."""

    date: str
    message: ChatMessage


@dataclass(frozen=True)
class AddConsumedFood:
    """Log a food against a date, creating the daily entry when needed."""

    date: str
    food: ConsumedFood
    entry_id: str


@dataclass(frozen=True)
class DeleteConsumedFood:
    """Remove a logged food from a date's entry."""

    date: str
    food_id: str


@dataclass(frozen=True)
class UpdateSettings:
    """Shallow-merge settings fields (wire or Python names)."""

    changes: Mapping[str, object] = field(default_factory=dict)


@dataclass(frozen=True)
class SetCurrentDate:
    """Change the date the client is viewing."""

    date: str


@dataclass(frozen=True)
class ReplaceSnapshot:
    """Install a whole snapshot, as done on load and refresh."""

    snapshot: AppSnapshot


Command = (
    AddCustomFood
    | UpdateCustomFood
    | DeleteCustomFood
    | AddChatMessage
    | AddConsumedFood
    | DeleteConsumedFood
    | UpdateSettings
    | SetCurrentDate
    | ReplaceSnapshot
)
