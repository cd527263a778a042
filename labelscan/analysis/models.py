from dataclasses import dataclass, field
from typing import Any

UNCERTAIN_MARKER = "(not confirmed)"
RISK_LEVELS = ("high", "medium", "low")


@dataclass(frozen=True)
class ProductInfo:
    """Product identification as guessed by the analysis service."""

    type: str
    name: str
    brand: str

    @property
    def name_confirmed(self) -> bool:
        return not self.name.rstrip().endswith(UNCERTAIN_MARKER)

    @property
    def brand_confirmed(self) -> bool:
        return not self.brand.rstrip().endswith(UNCERTAIN_MARKER)


@dataclass(frozen=True)
class HarmfulIngredient:
    name: str
    concern: str
    risk_level: str


@dataclass(frozen=True)
class Ingredient:
    name: str
    purpose: str
    description: str
    safety_info: str


@dataclass(frozen=True)
class Dietary:
    is_vegan: bool
    is_vegetarian: bool
    restrictions: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class EnvironmentalImpact:
    rating: str
    details: str


@dataclass(frozen=True)
class Analysis:
    """Structured ingredient analysis for one scanned label."""

    product_info: ProductInfo
    dietary: Dietary
    environmental_impact: EnvironmentalImpact
    harmful_ingredients: list[HarmfulIngredient] = field(default_factory=list)
    ingredients: list[Ingredient] = field(default_factory=list)
    allergens: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        """Serialize back to the wire shape (camelCase keys)."""
        return {
            "productInfo": {
                "type": self.product_info.type,
                "name": self.product_info.name,
                "brand": self.product_info.brand,
            },
            "harmfulIngredients": [
                {"name": h.name, "concern": h.concern, "riskLevel": h.risk_level}
                for h in self.harmful_ingredients
            ],
            "ingredients": [
                {
                    "name": i.name,
                    "purpose": i.purpose,
                    "description": i.description,
                    "safetyInfo": i.safety_info,
                }
                for i in self.ingredients
            ],
            "allergens": list(self.allergens),
            "dietary": {
                "isVegan": self.dietary.is_vegan,
                "isVegetarian": self.dietary.is_vegetarian,
                "restrictions": list(self.dietary.restrictions),
            },
            "environmentalImpact": {
                "rating": self.environmental_impact.rating,
                "details": self.environmental_impact.details,
            },
        }
