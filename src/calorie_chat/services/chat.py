"""Chat flow: describe a meal, get proposed food items, log the ones accepted."""

import logging
from dataclasses import dataclass

from calorie_chat.domain.errors import NutritionEstimationError
from calorie_chat.domain.nutrition import NutritionFact
from calorie_chat.domain.snapshot import ChatMessage, ConsumedFood, CustomFood
from calorie_chat.services.nutrition import NutritionEstimator
from calorie_chat.services.state_store import StateStore

logger = logging.getLogger(__name__)

ANALYZED_REPLY = "I've analyzed what you ate. Here's the breakdown:"
CUSTOM_FOODS_NOTE = " I found some items in your custom foods list."
NOT_FOUND_REPLY = (
    'I couldn\'t determine the nutritional information for "{content}". '
    "Please try being more specific with your food description, including "
    'portion size (e.g., "grilled chicken breast 3oz" or '
    '"1 cup of cooked white rice").'
)
ERROR_REPLY = "Sorry, I had trouble analyzing that. Could you try again?"


@dataclass
class ChatAssistant:
    """Answer food descriptions in today's transcript."""

    store: StateStore
    estimator: NutritionEstimator

    async def send(self, content: str) -> ChatMessage:
        """Record the user's message and reply with proposed food items."""
        self.store.add_chat_message("user", content)
        custom_foods = self.store.snapshot.custom_foods
        try:
            facts = await self.estimator.analyze_food(content, custom_foods)
        except NutritionEstimationError as exc:
            logger.warning("Food analysis failed: %s", exc)
            return self.store.add_chat_message("assistant", ERROR_REPLY)

        if not facts:
            return self.store.add_chat_message(
                "assistant", NOT_FOUND_REPLY.format(content=content)
            )

        logged_at = self.store.clock()
        items = tuple(
            fact.to_consumed_food(self.store.id_factory(), time=logged_at)
            for fact in facts
        )
        reply = ANALYZED_REPLY
        if _mentions_custom_food(facts, custom_foods):
            reply += CUSTOM_FOODS_NOTE
        return self.store.add_chat_message("assistant", reply, food_items=items)

    def accept(self, food: ConsumedFood) -> ConsumedFood:
        """Log one proposed item against today's entry."""
        return self.store.log_food(food)


def _mentions_custom_food(
    facts: list[NutritionFact], custom_foods: tuple[CustomFood, ...]
) -> bool:
    names = [food.name.lower() for food in custom_foods]
    return any(name in fact.name.lower() for fact in facts for name in names)
