"""Nutrition facts returned by the estimation service."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from calorie_chat.domain.snapshot import ConsumedFood, CustomFood, MealType


class NutritionFact(BaseModel):
    """Estimated nutrition for one food in a description."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    name: str
    serving_size: str = ""
    calories: float
    protein: float = 0.0
    carbs: float = 0.0
    fat: float = 0.0

    @classmethod
    def from_custom_food(cls, food: CustomFood) -> "NutritionFact":
        """Use a custom food's stored values as the estimate."""
        return cls(
            name=food.name,
            serving_size=food.serving_size,
            calories=food.calories,
            protein=food.protein,
            carbs=food.carbs,
            fat=food.fat,
        )

    def to_consumed_food(
        self,
        food_id: str,
        meal_type: MealType = "snack",
        quantity: float = 1.0,
        time: str = "",
    ) -> ConsumedFood:
        """Turn the estimate into a line item scaled by quantity."""
        return ConsumedFood(
            food_id=food_id,
            name=self.name,
            serving_size=self.serving_size,
            quantity=quantity,
            calories=self.calories * quantity,
            protein=self.protein * quantity,
            carbs=self.carbs * quantity,
            fat=self.fat * quantity,
            meal_type=meal_type,
            time=time,
        )
