"""Gemini response parsing and normalization.

Turns a raw generateContent envelope into a validated AnalysisResult. The
model is asked for JSON, but answers are not trusted: the first balanced
JSON object is used when it carries a "foods" list, otherwise the text is
scanned for "<name>: <calories> cal" lines.

Examples:
    >>> parser = ResponseParser()
    >>> result = parser.parse(raw, image_url=None, model_used="gemini-2.0-flash")
    >>> result.total_calories
    95

Tests:
    - tests/unit/test_parser.py::TestExtractText
    - tests/unit/test_parser.py::TestJsonParsing
    - tests/unit/test_parser.py::TestTextFallback
    - tests/unit/test_parser.py::TestNormalization
"""

import json
import logging
import math
import re
from typing import Any

from snapcal.core.errors import NoFoodRecognizedError, ParseError
from snapcal.schemas.analysis import (
    AnalysisResult,
    CookingMethod,
    FoodCategory,
    FoodItem,
    MacroNutrients,
    MealType,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.7
DEFAULT_QUANTITY = "serving"
MACRO_FIELDS = ("protein", "carbs", "fat", "fiber")

CALORIE_LINE_PATTERN = re.compile(r"(.+?):\s*(\d+(?:\.\d+)?)\s*(?:k?cal)", re.IGNORECASE)
BULLET_CHARS = "-*•·#> \t"


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def find_json_object(text: str) -> str | None:
    """Return the first balanced {...} block in text, or None.

    Braces inside JSON string literals are ignored.
    """
    start = text.find("{")
    if start == -1:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


class ResponseParser:
    """Stateless parser from provider envelopes to AnalysisResult."""

    def extract_text(self, raw: Any) -> str:
        """Pull the generated text out of a generateContent envelope.

        Raises:
            ParseError: If the envelope has no candidate text.
        """
        try:
            parts = raw["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise ParseError("Invalid response format") from e

        if not isinstance(parts, list):
            raise ParseError("Invalid response format")
        texts = [part["text"] for part in parts if isinstance(part, dict) and isinstance(part.get("text"), str)]
        if not texts:
            raise ParseError("Invalid response format")
        return "".join(texts)

    def parse(
        self,
        raw: Any,
        image_url: str | None,
        model_used: str,
    ) -> AnalysisResult:
        """Parse a raw response into a validated result.

        Args:
            raw: Decoded JSON envelope from the model.
            image_url: Reference back to the source image.
            model_used: Identifier of the model that answered.

        Returns:
            AnalysisResult with aggregates computed from the surviving items.

        Raises:
            ParseError: If the envelope shape is absent.
            NoFoodRecognizedError: If no valid food item could be extracted.
        """
        text = self.extract_text(raw)
        payload = self._load_json_payload(text)

        if payload is not None:
            candidates = payload["foods"]
        else:
            logger.debug(f"No JSON food list from {model_used}, falling back to text lines")
            candidates = self._parse_text_lines(text)

        foods = [self._normalize_item(item) for item in candidates if self._is_valid_candidate(item)]
        dropped = len(candidates) - len(foods)
        if dropped:
            logger.debug(f"Dropped {dropped} invalid food item(s) from {model_used}")

        if not foods:
            raise NoFoodRecognizedError()

        return self._aggregate(foods, payload or {}, image_url, model_used)

    @staticmethod
    def _load_json_payload(text: str) -> dict[str, Any] | None:
        block = find_json_object(text)
        if block is None:
            return None
        try:
            payload = json.loads(block)
        except json.JSONDecodeError:
            return None
        if isinstance(payload, dict) and isinstance(payload.get("foods"), list):
            return payload
        return None

    @staticmethod
    def _parse_text_lines(text: str) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        for line in text.splitlines():
            match = CALORIE_LINE_PATTERN.search(line)
            if match is None:
                continue
            name = match.group(1).strip(BULLET_CHARS)
            items.append(
                {
                    "name": name,
                    "calories": float(match.group(2)),
                    "quantity": DEFAULT_QUANTITY,
                    "confidence": DEFAULT_CONFIDENCE,
                }
            )
        return items

    @staticmethod
    def _is_valid_candidate(item: Any) -> bool:
        if not isinstance(item, dict):
            return False
        name = item.get("name")
        calories = item.get("calories")
        return isinstance(name, str) and bool(name.strip()) and _is_number(calories) and calories >= 0

    @staticmethod
    def _normalize_item(item: dict[str, Any]) -> FoodItem:
        confidence = item.get("confidence")
        confidence = _clamp(confidence, 0.0, 1.0) if _is_number(confidence) else DEFAULT_CONFIDENCE

        quantity = item.get("quantity")
        if _is_number(quantity):
            quantity = str(quantity)
        if not isinstance(quantity, str) or not quantity.strip():
            quantity = DEFAULT_QUANTITY

        macros = None
        raw_macros = item.get("macros")
        if isinstance(raw_macros, dict):
            macros = MacroNutrients(
                **{
                    field: max(0, _round_half_up(raw_macros[field])) if _is_number(raw_macros.get(field)) else 0
                    for field in MACRO_FIELDS
                }
            )

        health_score = item.get("healthScore", item.get("health_score"))
        health_score = int(_clamp(_round_half_up(health_score), 1, 10)) if _is_number(health_score) else None

        ingredients = item.get("ingredients")
        if isinstance(ingredients, list):
            ingredients = [value.strip() for value in ingredients if isinstance(value, str) and value.strip()] or None
        else:
            ingredients = None

        return FoodItem(
            name=item["name"].strip(),
            calories=_round_half_up(item["calories"]),
            quantity=quantity.strip(),
            confidence=confidence,
            ingredients=ingredients,
            cooking_method=_enum_or_none(CookingMethod, item.get("cookingMethod", item.get("cooking_method"))),
            macros=macros,
            category=_enum_or_none(FoodCategory, item.get("category")),
            health_score=health_score,
        )

    @staticmethod
    def _aggregate(
        foods: list[FoodItem],
        payload: dict[str, Any],
        image_url: str | None,
        model_used: str,
    ) -> AnalysisResult:
        total_macros = MacroNutrients()
        for food in foods:
            if food.macros is not None:
                total_macros = total_macros + food.macros

        restaurant = payload.get("restaurantName")
        restaurant = restaurant.strip() if isinstance(restaurant, str) and restaurant.strip() else None

        return AnalysisResult(
            foods=foods,
            total_calories=sum(food.calories for food in foods),
            confidence=sum(food.confidence for food in foods) / len(foods),
            image_url=image_url,
            model_used=model_used,
            meal_type=_enum_or_none(MealType, payload.get("mealType")),
            restaurant_name=restaurant,
            total_macros=None if total_macros.is_zero else total_macros,
        )


def _enum_or_none(enum_cls: type, value: Any) -> Any:
    """Enum member for a recognized string value, otherwise None."""
    if not isinstance(value, str):
        return None
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        return None
