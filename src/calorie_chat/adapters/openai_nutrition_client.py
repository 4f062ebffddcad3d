"""OpenAI Chat Completions client for nutrition estimation."""

import json
from dataclasses import dataclass

from openai import AsyncOpenAI

from calorie_chat.domain.errors import NutritionEstimationError
from calorie_chat.services.nutrition import NutritionClient


@dataclass
class OpenAINutritionClient(NutritionClient):
    """Nutrition client backed by OpenAI JSON-mode chat completions."""

    client: AsyncOpenAI

    @classmethod
    def create(cls, api_key: str | None) -> "OpenAINutritionClient":
        """Create an OpenAI nutrition client."""
        return cls(client=AsyncOpenAI(api_key=api_key))

    async def estimate(self, *, model: str, system_prompt: str, text: str) -> object:
        """Ask the model for a JSON nutrition breakdown."""
        response = await self.client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": text},
            ],
            response_format={"type": "json_object"},
        )
        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise NutritionEstimationError("No response from OpenAI")
        try:
            return json.loads(content)
        except json.JSONDecodeError as exc:
            raise NutritionEstimationError(
                "Failed to parse OpenAI response"
            ) from exc

    async def close(self) -> None:
        """Close the underlying OpenAI HTTP session."""
        await self.client.close()
