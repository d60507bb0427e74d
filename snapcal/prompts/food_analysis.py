"""Food analysis prompt templates.

The prompt is a replaceable template: the pipeline only requires that the
model answers with a JSON object containing a "foods" list, or at worst
"<name>: <calories> cal" lines.
"""

SYSTEM_PROMPT = """Analyze this image and provide detailed calorie information. This could be either actual food or a nutrition label/food packaging. Return the response as JSON with this exact format:

{
  "foods": [
    {
      "name": "food item name",
      "calories": number,
      "quantity": "portion size or serving size",
      "confidence": 0.8,
      "ingredients": ["main ingredient", "..."],
      "cookingMethod": "grilled | fried | baked | steamed | raw | boiled | roasted",
      "macros": {"protein": grams, "carbs": grams, "fat": grams, "fiber": grams},
      "category": "protein | vegetable | grain | fruit | dairy | snack | beverage",
      "healthScore": 1-10
    }
  ],
  "mealType": "breakfast | lunch | dinner | snack",
  "restaurantName": "only if clearly identifiable"
}

If this is a NUTRITION LABEL or FOOD PACKAGING:
- Use the product name and the serving size exactly as printed
- Use the exact calories per serving from the label
- Set confidence to 0.95

If this is ACTUAL FOOD:
- Identify every visible item separately, with specific names ("grilled chicken breast", not "chicken")
- Estimate realistic calories from the visible portion size and cooking method
- Set confidence between 0.6 and 0.9 depending on how clearly the item is visible

If there is no food in the image, return {"foods": []}.
Return only the JSON object."""

