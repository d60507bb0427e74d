"""Pydantic and dataclass schemas for requests and results."""

from snapcal.schemas.analysis import (
    AnalysisResult,
    CookingMethod,
    FoodCategory,
    FoodItem,
    MacroNutrients,
    MealType,
    TextCompletion,
)
from snapcal.schemas.request import AnalysisRequest, EncodedImage

__all__ = [
    "AnalysisRequest",
    "AnalysisResult",
    "CookingMethod",
    "EncodedImage",
    "FoodCategory",
    "FoodItem",
    "MacroNutrients",
    "MealType",
    "TextCompletion",
]
