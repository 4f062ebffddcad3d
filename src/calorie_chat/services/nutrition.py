"""Nutrition estimation for free-text food descriptions."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from calorie_chat.domain.errors import NutritionEstimationError
from calorie_chat.domain.nutrition import NutritionFact
from calorie_chat.domain.snapshot import CustomFood

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a nutrition analysis assistant.
Extract the foods mentioned, estimate their serving sizes, and provide nutritional \
information.
Format your response as a JSON object with a 'foods' array containing objects with \
these fields:
name (string), servingSize (string), calories (number), protein (number in grams),
carbs (number in grams), fat (number in grams).

Provide your best estimate for nutritional information based on standard values.
Return ONLY the JSON object, without any explanations or additional text."""


class NutritionClient(Protocol):
    """Interface for an LLM that estimates nutrition as JSON."""

    async def estimate(self, *, model: str, system_prompt: str, text: str) -> object:
        """Return the decoded JSON answer for a food description."""


@dataclass
class NutritionEstimator:
    """Matches custom foods first, then falls back to the model."""

    client: NutritionClient
    model: str

    async def analyze_food(
        self, description: str, custom_foods: Sequence[CustomFood]
    ) -> list[NutritionFact]:
        """Return nutrition facts for every food in the description."""
        matches = match_custom_foods(description, custom_foods)
        if matches:
            return [NutritionFact.from_custom_food(food) for food in matches]

        try:
            raw = await self.client.estimate(
                model=self.model, system_prompt=SYSTEM_PROMPT, text=description
            )
        except NutritionEstimationError:
            raise
        except Exception as exc:
            logger.exception(
                "Nutrition estimation failed", extra={"description": description}
            )
            raise NutritionEstimationError(str(exc)) from exc
        return parse_nutrition_response(raw)


def match_custom_foods(
    description: str, custom_foods: Sequence[CustomFood]
) -> list[CustomFood]:
    """Custom foods whose name appears in the description, case-insensitively."""
    lowered = description.lower()
    return [food for food in custom_foods if food.name.lower() in lowered]


def parse_nutrition_response(raw: object) -> list[NutritionFact]:
    """Normalise the shapes models tend to answer with into a list of facts.

    Accepts a bare list, an object with a ``foods`` list, an object with any
    other list-valued key, or a single food object.
    """
    items: list[object]
    if isinstance(raw, list):
        items = raw
    elif isinstance(raw, dict):
        foods = raw.get("foods")
        if isinstance(foods, list):
            items = foods
        else:
            items = next(
                (value for value in raw.values() if isinstance(value, list)), []
            )
            if not items and "name" in raw and isinstance(
                raw.get("calories"), int | float | str
            ):
                items = [raw]
    else:
        items = []

    if not items:
        logger.warning("Unexpected nutrition response format: %r", raw)
        return []
    try:
        return [NutritionFact.model_validate(item) for item in items]
    except ValidationError as exc:
        raise NutritionEstimationError(
            f"Failed to parse nutrition response: {exc}"
        ) from exc
