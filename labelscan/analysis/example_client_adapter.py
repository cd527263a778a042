"""Offline analysis client.

Returns a fixed, valid analysis without network access. Used for local
development and as the ``example`` analysis provider.
"""

import json
from typing import ClassVar

from labelscan.analysis.client_base import BaseAnalysisClient


class ExampleClientAdapter(BaseAnalysisClient):
    """Answers every prompt with DEFAULT_RESPONSE."""

    DEFAULT_RESPONSE: ClassVar[dict[str, object]] = {
        "productInfo": {
            "type": "Facial Cleanser",
            "name": "Gentle Foaming Cleanser (not confirmed)",
            "brand": "Unknown Brand (not confirmed)",
        },
        "harmfulIngredients": [],
        "ingredients": [
            {
                "name": "Water",
                "purpose": "Solvent",
                "description": "Base of the formulation.",
                "safetyInfo": "Considered safe.",
            }
        ],
        "allergens": [],
        "dietary": {"isVegan": True, "isVegetarian": True, "restrictions": []},
        "environmentalImpact": {"rating": "low", "details": "No notable concerns."},
    }

    async def create_chat_completion(
        self,
        *,
        model: str,
        temperature: float,
        system_prompt: str,
        user_prompt: str,
        json_schema: dict[str, object],
    ) -> str:
        _ = model, temperature, system_prompt, user_prompt, json_schema
        return "```json\n" + json.dumps(self.DEFAULT_RESPONSE, indent=2) + "\n```"
