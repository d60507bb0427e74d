"""Unit tests for result schemas.

Tests for snapcal/schemas/analysis.py - FoodItem and AnalysisResult invariants.

Run with:
    pytest tests/unit/test_schemas.py -v
"""

import pytest
from pydantic import ValidationError

from snapcal.schemas.analysis import (
    AnalysisResult,
    FoodItem,
    MacroNutrients,
    MealType,
)


def _item(name: str = "apple", calories: int = 95, confidence: float = 0.9, **kwargs) -> FoodItem:
    return FoodItem(name=name, calories=calories, confidence=confidence, **kwargs)


@pytest.mark.fast
class TestFoodItem:
    """Tests for FoodItem."""

    def test_defaults(self):
        """Test quantity defaults to a serving."""
        item = _item()
        assert item.quantity == "serving"
        assert item.macros is None

    def test_rejects_negative_calories(self):
        """Test calories must be non-negative."""
        with pytest.raises(ValidationError):
            _item(calories=-1)

    def test_rejects_confidence_out_of_range(self):
        """Test confidence is bounded to [0, 1]."""
        with pytest.raises(ValidationError):
            _item(confidence=1.2)

    def test_rejects_health_score_out_of_range(self):
        """Test healthScore is bounded to [1, 10]."""
        with pytest.raises(ValidationError):
            _item(health_score=0)

    def test_accepts_camel_case_aliases(self):
        """Test camelCase input is accepted."""
        item = FoodItem.model_validate(
            {"name": "salmon", "calories": 300, "confidence": 0.8, "cookingMethod": "grilled", "healthScore": 9}
        )
        assert item.cooking_method.value == "grilled"
        assert item.health_score == 9

    def test_is_frozen(self):
        """Test items are immutable."""
        item = _item()
        with pytest.raises(ValidationError):
            item.calories = 10


@pytest.mark.fast
class TestMacroNutrients:
    """Tests for MacroNutrients."""

    def test_addition(self):
        """Test field-wise sum."""
        total = MacroNutrients(protein=1, carbs=2) + MacroNutrients(fat=3, fiber=4)
        assert total == MacroNutrients(protein=1, carbs=2, fat=3, fiber=4)

    def test_is_zero(self):
        """Test zero detection."""
        assert MacroNutrients().is_zero is True
        assert MacroNutrients(fiber=1).is_zero is False


@pytest.mark.fast
class TestAnalysisResult:
    """Tests for AnalysisResult invariants."""

    def test_valid_result(self):
        """Test a consistent result validates."""
        result = AnalysisResult(
            foods=[_item(), _item("banana", 105, 0.7)],
            total_calories=200,
            confidence=0.8,
            model_used="gemini-2.0-flash",
        )
        assert result.total_calories == 200
        assert result.timestamp.tzinfo is not None

    def test_rejects_empty_foods(self):
        """Test at least one food is required."""
        with pytest.raises(ValidationError):
            AnalysisResult(foods=[], total_calories=0, confidence=0.0, model_used="m")

    def test_rejects_wrong_total(self):
        """Test total must equal the sum of items."""
        with pytest.raises(ValidationError, match="total_calories"):
            AnalysisResult(foods=[_item()], total_calories=100, confidence=0.9, model_used="m")

    def test_rejects_wrong_confidence(self):
        """Test confidence must equal the mean of items."""
        with pytest.raises(ValidationError, match="confidence"):
            AnalysisResult(foods=[_item()], total_calories=95, confidence=0.5, model_used="m")

    def test_to_payload_uses_camel_case(self):
        """Test outward payload keys and omitted optionals."""
        result = AnalysisResult(
            foods=[_item(quantity="1 medium")],
            total_calories=95,
            confidence=0.9,
            model_used="gemini-2.0-flash",
            meal_type=MealType.SNACK,
        )
        payload = result.to_payload()
        assert payload["totalCalories"] == 95
        assert payload["modelUsed"] == "gemini-2.0-flash"
        assert payload["mealType"] == "snack"
        assert payload["foods"][0]["quantity"] == "1 medium"
        assert "restaurantName" not in payload
        assert "totalMacros" not in payload

    def test_copy_for_adjustment(self):
        """Test an adjusted copy leaves the original untouched."""
        result = AnalysisResult(foods=[_item()], total_calories=95, confidence=0.9, model_used="m")
        adjusted = result.model_copy(update={"restaurant_name": "Cafe"})
        assert adjusted.restaurant_name == "Cafe"
        assert result.restaurant_name is None
