"""Prompt templates for Gemini calls."""

from snapcal.prompts.food_analysis import SYSTEM_PROMPT as FOOD_ANALYSIS_PROMPT

__all__ = ["FOOD_ANALYSIS_PROMPT"]
