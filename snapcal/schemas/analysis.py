"""Food analysis result schemas.

These models are the outward shape consumed by storage, UI and the optional
learning layer. They are frozen: a layer that wants to adjust a result works
on a copy via model_copy(update=...). Serialization uses camelCase aliases.

Examples:
    >>> item = FoodItem(name="apple", calories=95, quantity="1 medium", confidence=0.9)
    >>> result = AnalysisResult(
    ...     foods=[item], total_calories=95, confidence=0.9, model_used="gemini-2.0-flash"
    ... )
    >>> result.to_payload()["totalCalories"]
    95

Tests:
    - tests/unit/test_schemas.py::TestFoodItem
    - tests/unit/test_schemas.py::TestAnalysisResult
"""

from __future__ import annotations

import math
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

CONFIDENCE_TOLERANCE = 1e-9


class MealType(str, Enum):
    """Recognized meal types; anything else is omitted from results."""

    BREAKFAST = "breakfast"
    LUNCH = "lunch"
    DINNER = "dinner"
    SNACK = "snack"


class CookingMethod(str, Enum):
    GRILLED = "grilled"
    FRIED = "fried"
    BAKED = "baked"
    STEAMED = "steamed"
    RAW = "raw"
    BOILED = "boiled"
    ROASTED = "roasted"


class FoodCategory(str, Enum):
    PROTEIN = "protein"
    VEGETABLE = "vegetable"
    GRAIN = "grain"
    FRUIT = "fruit"
    DAIRY = "dairy"
    SNACK = "snack"
    BEVERAGE = "beverage"


class _ResultModel(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class MacroNutrients(_ResultModel):
    """Macronutrients in grams."""

    protein: int = Field(default=0, ge=0)
    carbs: int = Field(default=0, ge=0)
    fat: int = Field(default=0, ge=0)
    fiber: int = Field(default=0, ge=0)

    @property
    def is_zero(self) -> bool:
        return not (self.protein or self.carbs or self.fat or self.fiber)

    def __add__(self, other: MacroNutrients) -> MacroNutrients:
        return MacroNutrients(
            protein=self.protein + other.protein,
            carbs=self.carbs + other.carbs,
            fat=self.fat + other.fat,
            fiber=self.fiber + other.fiber,
        )


class FoodItem(_ResultModel):
    """One identified food item.

    Attributes:
        name: Food name as reported by the model
        calories: Estimated calories for the portion
        quantity: Portion description (e.g. "1 cup")
        confidence: Identification confidence (0-1)
        ingredients: Visible or likely ingredients, in order
        cooking_method: How the food was prepared
        macros: Per-item macronutrients
        category: Food group
        health_score: Rough healthiness score (1-10)
    """

    name: str = Field(min_length=1)
    calories: int = Field(ge=0)
    quantity: str = Field(default="serving")
    confidence: float = Field(ge=0.0, le=1.0)
    ingredients: list[str] | None = None
    cooking_method: CookingMethod | None = None
    macros: MacroNutrients | None = None
    category: FoodCategory | None = None
    health_score: int | None = Field(default=None, ge=1, le=10)


class AnalysisResult(_ResultModel):
    """Validated, aggregated nutrition result for one photo.

    Invariants (checked on construction):
        - foods is non-empty
        - total_calories is the sum of item calories
        - confidence is the mean of item confidences
    """

    foods: list[FoodItem] = Field(min_length=1)
    total_calories: int = Field(ge=0)
    confidence: float = Field(ge=0.0, le=1.0)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    image_url: str | None = None
    model_used: str
    meal_type: MealType | None = None
    restaurant_name: str | None = None
    total_macros: MacroNutrients | None = None

    @model_validator(mode="after")
    def check_aggregates(self) -> AnalysisResult:
        expected_total = sum(food.calories for food in self.foods)
        if self.total_calories != expected_total:
            raise ValueError(
                f"total_calories {self.total_calories} != sum of items {expected_total}"
            )
        expected_confidence = sum(food.confidence for food in self.foods) / len(self.foods)
        if not math.isclose(self.confidence, expected_confidence, abs_tol=CONFIDENCE_TOLERANCE):
            raise ValueError(
                f"confidence {self.confidence} != mean of items {expected_confidence}"
            )
        return self

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready camelCase dict without unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TextCompletion(BaseModel):
    """Plain-text answer from the first model that succeeded."""

    text: str
    model_used: str
