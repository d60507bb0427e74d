"""Snapcal - resilient food-photo calorie analysis over Gemini vision models."""

__version__ = "0.1.0"

from snapcal.service import FoodAnalysisService  # noqa: E402

__all__ = ["FoodAnalysisService", "__version__"]
