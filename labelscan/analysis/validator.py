"""Builds an Analysis from parsed JSON, checking shape only."""

from typing import Any

from labelscan.analysis.models import (
    RISK_LEVELS,
    Analysis,
    Dietary,
    EnvironmentalImpact,
    HarmfulIngredient,
    Ingredient,
    ProductInfo,
)
from labelscan.stages.exceptions import MalformedResponseError

_TOP_LEVEL_FIELDS = (
    "productInfo",
    "harmfulIngredients",
    "ingredients",
    "allergens",
    "dietary",
    "environmentalImpact",
)


def validate_and_build(data: Any, raw_response: str | None = None) -> Analysis:
    """Validate a parsed analysis payload and build an Analysis.

    Only the structure is checked: required keys, JSON types and the
    high/medium/low ratings. Content is accepted verbatim.

    Raises:
        MalformedResponseError: on any structural mismatch. ``raw_response``
            is attached so the caller can keep it for diagnostics.
    """
    try:
        return _build(data)
    except _ShapeError as exc:
        raise MalformedResponseError(
            f"Analysis has unexpected shape: {exc}", raw_response=raw_response
        ) from exc


class _ShapeError(ValueError):
    pass


def _build(data: Any) -> Analysis:
    obj = _require_object(data, "analysis")
    for name in _TOP_LEVEL_FIELDS:
        if name not in obj:
            raise _ShapeError(f"missing required field '{name}'")
    return Analysis(
        product_info=_build_product_info(obj["productInfo"]),
        harmful_ingredients=[
            _build_harmful(item, i)
            for i, item in enumerate(_require_list(obj["harmfulIngredients"], "harmfulIngredients"))
        ],
        ingredients=[
            _build_ingredient(item, i)
            for i, item in enumerate(_require_list(obj["ingredients"], "ingredients"))
        ],
        allergens=_require_str_list(obj["allergens"], "allergens"),
        dietary=_build_dietary(obj["dietary"]),
        environmental_impact=_build_environmental(obj["environmentalImpact"]),
    )


def _build_product_info(raw: Any) -> ProductInfo:
    obj = _require_object(raw, "productInfo")
    return ProductInfo(
        type=_require_str(obj, "type", "productInfo"),
        name=_require_str(obj, "name", "productInfo"),
        brand=_require_str(obj, "brand", "productInfo"),
    )


def _build_harmful(raw: Any, index: int) -> HarmfulIngredient:
    where = f"harmfulIngredients[{index}]"
    obj = _require_object(raw, where)
    return HarmfulIngredient(
        name=_require_str(obj, "name", where),
        concern=_require_str(obj, "concern", where),
        risk_level=_require_level(obj, "riskLevel", where),
    )


def _build_ingredient(raw: Any, index: int) -> Ingredient:
    where = f"ingredients[{index}]"
    obj = _require_object(raw, where)
    return Ingredient(
        name=_require_str(obj, "name", where),
        purpose=_require_str(obj, "purpose", where),
        description=_require_str(obj, "description", where),
        safety_info=_require_str(obj, "safetyInfo", where),
    )


def _build_dietary(raw: Any) -> Dietary:
    obj = _require_object(raw, "dietary")
    return Dietary(
        is_vegan=_require_bool(obj, "isVegan", "dietary"),
        is_vegetarian=_require_bool(obj, "isVegetarian", "dietary"),
        restrictions=_require_str_list(obj.get("restrictions"), "dietary.restrictions"),
    )


def _build_environmental(raw: Any) -> EnvironmentalImpact:
    obj = _require_object(raw, "environmentalImpact")
    return EnvironmentalImpact(
        rating=_require_level(obj, "rating", "environmentalImpact"),
        details=_require_str(obj, "details", "environmentalImpact"),
    )


def _require_object(raw: Any, where: str) -> dict[str, Any]:
    if not isinstance(raw, dict):
        raise _ShapeError(f"'{where}' must be an object")
    return raw


def _require_list(raw: Any, where: str) -> list[Any]:
    if not isinstance(raw, list):
        raise _ShapeError(f"'{where}' must be a list")
    return raw


def _require_str_list(raw: Any, where: str) -> list[str]:
    items = _require_list(raw, where)
    if not all(isinstance(item, str) for item in items):
        raise _ShapeError(f"'{where}' must contain only strings")
    return list(items)


def _require_str(obj: dict[str, Any], key: str, where: str) -> str:
    value = obj.get(key)
    if not isinstance(value, str):
        raise _ShapeError(f"'{where}.{key}' must be a string")
    return value


def _require_bool(obj: dict[str, Any], key: str, where: str) -> bool:
    value = obj.get(key)
    if not isinstance(value, bool):
        raise _ShapeError(f"'{where}.{key}' must be a boolean")
    return value


def _require_level(obj: dict[str, Any], key: str, where: str) -> str:
    level = _require_str(obj, key, where).strip().lower()
    if level not in RISK_LEVELS:
        raise _ShapeError(
            f"'{where}.{key}' must be one of {list(RISK_LEVELS)}, got {obj[key]!r}"
        )
    return level
