"""System prompts and instructions for the recommendation generator.

Provides factory functions that assemble system instructions from ordered,
independently testable sections:

1. Role and cooking guidance
2. JSON output contract
3. Cuisine guardrails (optional)
4. Diversity constraints (optional)
5. Personalization, ending with the allergy safety block

Three request shapes are supported: chat recommendations, weekly batches
and recipe rescaling.
"""

import json
from typing import Optional

from src.models.models import RecipeInput


def _get_role_section() -> str:
    """Generate the assistant role and general cooking guidance section.

    Returns:
        str: Role section shared by chat and weekly requests
    """
    return """You are CookFlow, an AI assistant embedded in a recipe + meal-planning application.

## Core Responsibilities

1. **Follow the user's cooking preferences:**
   - ALWAYS respect the user's dietary restrictions, allergies, and food preferences
   - Default to low to medium heat unless the user specifies otherwise
   - Emphasize fresh produce where possible
   - Focus on efficient, high-impact weeknight methods
   - Adjust serving sizes, cooking times, and complexity to the user's preferences
   - Dietary restrictions and allergies take absolute priority over everything else

2. **When the user asks for recommendations or ideas:**
   - Offer 3-4 brief options with a 1-2 sentence description and why they would like it
   - Only include `full_details` (ingredients and instructions) when the user picks an option or explicitly asks for details

3. **All reasoning must respect:**
   - The user's time constraints
   - Kid-friendly flavors
   - Realistic home-kitchen constraints

## Recipe Identity Rules

- Recipes should strongly express their cuisine's flavor identity without requiring hard-to-find ingredients
- Keep everything family-friendly and low spice unless the user requests higher heat
- Use minimal prep, efficient workflow, and accessible techniques
- Recipes should feel realistic, tested, and achievable, never vague or generic
- Cocktails are welcome when the user asks for drinks; use `type: "cocktail"` for them"""


def _get_output_contract_section() -> str:
    """Generate the JSON-only output contract section.

    The shape mirrors RecommendationPayload so STRICT validation can succeed.

    Returns:
        str: Output contract instructions
    """
    return """## Output Format (CRITICAL)

Respond with ONE valid JSON object and nothing else. No markdown, no code fences, no commentary.

{
  "reply": "string (conversational answer shown to the user)",
  "suggestions": [
    {
      "title": "string",
      "type": "recipe" | "cocktail",
      "description": "string (1-2 sentences)",
      "difficulty": "string (easy | medium | hard)",
      "reason_for_recommendation": "string (why this fits the user)",
      "time_estimate": "string (e.g. 35 minutes)",
      "cuisine": "string",
      "tags": { "protein": "string", "carb": "string", "method": "string" },
      "full_details": {
        "ingredients": [ { "name": "string", "amount": "string", "unit": "string" } ],
        "instructions": [ "string (one complete step per entry)" ],
        "nutrition_notes": "string"
      }
    }
  ]
}

Rules:
- `suggestions` is always present; use an empty array when you are only chatting
- `tags` always uses the three keys protein, carb and method; use "none" when a category does not apply
- Omit `full_details` unless the user asked for a full recipe
- Ingredients must be precise (e.g. "1.5 lbs", "2 tbsp"); avoid vague amounts like "some" or "to taste"
"""


def _get_weekly_task_section() -> str:
    """Generate the weekly batch task section.

    Returns:
        str: Weekly task instructions requiring full recipes for every item
    """
    return """## Weekly Menu Task

You are building this user's personal dinner menu for the coming week.
Every suggestion MUST include `full_details` with precise ingredients and DETAILED, step-by-step instructions:
- Bad: "Cook chicken then add sauce."
- Good: "Heat 2 tbsp oil in a large skillet over medium-high heat. Pat chicken dry and sear for 4-5 minutes per side until golden."
- Aim for 5-8 steps per recipe."""


def get_system_instructions(
    personalization: str = "",
    cuisine_guardrails: str = "",
    diversity: str = "",
) -> str:
    """Generate system instructions for a chat recommendation request.

    Args:
        personalization: Preference, rating and safety text (safety block last)
        cuisine_guardrails: Rendered cuisine guardrails, empty when not injected
        diversity: Recency or weekly constraint text, empty when not applicable

    Returns:
        str: Complete system instructions, personalization always last.
    """
    sections = [_get_role_section(), _get_output_contract_section(), cuisine_guardrails, diversity, personalization]
    return "\n\n".join(section.strip() for section in sections if section)


def get_weekly_instructions(weekly_constraints: str, personalization: str = "") -> str:
    """Generate system instructions for a weekly batch.

    Args:
        weekly_constraints: Archetype, method-mix and exclusion text
        personalization: Preference, rating and safety text

    Returns:
        str: Complete system instructions for the weekly generator call.
    """
    sections = [
        _get_role_section(),
        _get_output_contract_section(),
        _get_weekly_task_section(),
        weekly_constraints,
        personalization,
    ]
    return "\n\n".join(section.strip() for section in sections if section)


WEEKLY_USER_MESSAGE = "Generate this week's dinner menu."


def get_rescale_instructions(recipe: RecipeInput, target_servings: int, personalization: Optional[str] = None) -> str:
    """Generate system instructions for rescaling a recipe to a new serving count.

    Args:
        recipe: Recipe supplied by the client
        target_servings: Desired number of servings
        personalization: Optional safety/preference text appended last

    Returns:
        str: Rescale instructions with the recipe embedded as JSON.
    """
    recipe_json = json.dumps(recipe.model_dump(exclude_none=True), indent=2, ensure_ascii=False)
    current = recipe.servings if recipe.servings else "unknown"
    instructions = f"""You are a professional recipe developer. Rescale the recipe below from {current} servings to {target_servings} servings.

## Rescaling Rules

- Scale every ingredient amount proportionally and round to practical kitchen measures (e.g. 1/3 cup, not 0.333 cups)
- Do NOT scale salt, spices, leavening and strong aromatics linearly; adjust them conservatively and say so in the rationale
- Adjust pan sizes, batch cooking and timing when the volume change requires it
- Keep the dish identity, technique and step order unchanged

## Recipe

{recipe_json}

## Output Format (CRITICAL)

Respond with ONE valid JSON object and nothing else:

{{
  "title": "string",
  "rationale": "string (what changed and why, including non-linear adjustments)",
  "ingredients": [ {{ "name": "string", "amount": "string", "unit": "string" }} ],
  "instructions": [ "string" ],
  "timing": "string (updated prep and cook time)",
  "servings": {target_servings}
}}"""
    if personalization:
        instructions += f"\n\n{personalization}"
    return instructions
