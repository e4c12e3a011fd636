"""Personalization and allergy-safety context for generation requests.

Every fragment here is a pure function of user state. ``build`` renders them
in a fixed order:

1. Cooking preferences (favorites, dietary style, time/skill/spice, equipment, notes)
2. Liked/disliked recipe history
3. The allergy safety block, when restrictions exist
4. The priority statement

The safety block is placed last so it reads as overriding everything before it.
Enforcement still depends on the generator honoring the text; nothing here
inspects model output.
"""

import re
from typing import List, Optional, Sequence

from src.models.models import RatingHistoryItem, UserPreferences

TIME_PREFERENCES = {
    "quick": "under 30 minutes",
    "moderate": "30-60 minutes",
    "relaxed": "60+ minutes",
}

# Category rules keyed by a word-aware pattern over the user's restriction text.
# "shellfish" must not trigger the fish rule and "coconut" must not trigger the nut rule.
ALLERGEN_RULES = [
    (
        re.compile(r"\b(shellfish|shrimp|prawns?|crab|lobster)\b", re.IGNORECASE),
        "Shellfish allergy: NO shrimp, crab, lobster, crayfish, prawns, scallops, clams, mussels, oysters, "
        "or any shellfish-based products (e.g., shellfish stock, paste)",
    ),
    (
        re.compile(r"\b(gluten|wheat|celiac|coeliac)\b", re.IGNORECASE),
        "Gluten: NO wheat, barley, rye, or products containing them (e.g., regular soy sauce, malt vinegar, "
        "some broths). Use gluten-free alternatives.",
    ),
    (
        re.compile(r"\b(dairy|lactose|milk)\b", re.IGNORECASE),
        "Dairy: NO milk, cheese, butter, cream, yogurt. Use dairy-free alternatives.",
    ),
    (
        re.compile(r"\b(nuts?|tree[\s-]?nuts?|peanuts?|almonds?|walnuts?|cashews?|pecans?|hazelnuts?)\b", re.IGNORECASE),
        "Nuts: NO peanuts, tree nuts (almonds, walnuts, cashews, etc.), or nut-based products "
        "(e.g., tahini, nut oils, nut butters)",
    ),
    (
        re.compile(r"\b(soy|soya|soybeans?)\b", re.IGNORECASE),
        "Soy: NO soybeans, tofu, soy sauce, edamame, miso, tempeh. Use soy-free alternatives (e.g., coconut aminos).",
    ),
    (
        re.compile(r"\beggs?\b", re.IGNORECASE),
        "Eggs: NO eggs or egg-based products. Use egg substitutes.",
    ),
    (
        re.compile(r"\bfish\b", re.IGNORECASE),
        "Fish: NO fish or fish-based products (e.g., fish sauce, anchovies). Use alternatives like coconut aminos "
        "or soy sauce (if soy is allowed).",
    ),
]

PRIORITY_STATEMENT = (
    "**IMPORTANT:** Use these preferences to personalize ALL recipe recommendations. "
    "Dietary restrictions and allergies take absolute priority over all other preferences. "
    "Adjust recipe complexity based on skill level and time preference."
)


def _get_preferences_section(preferences: UserPreferences) -> str:
    lines = []
    if preferences.favorite_cuisines:
        lines.append(f"Favorite Cuisines: {', '.join(preferences.favorite_cuisines)}")
    if preferences.favorite_dishes:
        lines.append(f"Favorite Dishes: {', '.join(preferences.favorite_dishes)}")
    if preferences.dietary_style:
        lines.append(f"Dietary Style: {preferences.dietary_style}")
    if preferences.food_restrictions:
        lines.append(f"Food Restrictions/Allergies: {', '.join(preferences.food_restrictions)}")
    if preferences.time_preference:
        time_text = TIME_PREFERENCES.get(preferences.time_preference, preferences.time_preference)
        lines.append(f"Preferred Cooking Time: {time_text}")
    if preferences.skill_level:
        lines.append(f"Cooking Skill Level: {preferences.skill_level}")
    if preferences.household_size:
        lines.append(f"Cooking For: {preferences.household_size} people")
    if preferences.spice_preference:
        lines.append(f"Spice Preference: {preferences.spice_preference}")
    if preferences.cooking_equipment:
        lines.append(f"Available Equipment: {', '.join(preferences.cooking_equipment)}")
    if preferences.additional_notes:
        lines.append(f"Additional Notes: {preferences.additional_notes}")

    if not lines:
        return ""
    return "**User Cooking Preferences:**\n" + "\n".join(lines)


def _format_rated_recipe(item: RatingHistoryItem) -> str:
    """Render ``title [tag, tag] (feedback)``."""
    text = item.recipe.title
    if item.recipe.tags:
        text += f" [{', '.join(item.recipe.tags)}]"
    if item.feedback:
        text += f" ({item.feedback})"
    return text


def _get_ratings_section(rating_history: Sequence[RatingHistoryItem]) -> str:
    liked = [_format_rated_recipe(item) for item in rating_history if item.rating == "thumbs_up"]
    disliked = [_format_rated_recipe(item) for item in rating_history if item.rating == "thumbs_down"]
    if not liked and not disliked:
        return ""

    parts = ["**User Recipe Ratings History:**"]
    if liked:
        parts.append("Recipes they LIKED:\n" + "\n".join(f"- {title}" for title in liked))
    if disliked:
        parts.append("Recipes they DISLIKED:\n" + "\n".join(f"- {title}" for title in disliked))
    parts.append(
        "Use this information to personalize recommendations and avoid suggesting similar recipes to ones they disliked."
    )
    return "\n\n".join(parts)


def allergen_rules(restrictions: Sequence[str]) -> List[str]:
    """Return the category rules triggered by any restriction, in fixed category order."""
    return [
        rule
        for pattern, rule in ALLERGEN_RULES
        if any(pattern.search(restriction) for restriction in restrictions)
    ]


def _get_safety_section(restrictions: Sequence[str]) -> str:
    """Unconditional allergy block: blanket prohibition, category rules, substitution duty."""
    restriction_list = ", ".join(restrictions)
    block = f"""**CRITICAL SAFETY REQUIREMENT - FOOD ALLERGIES & RESTRICTIONS**

The user has the following allergies/restrictions: {restriction_list}

**YOU MUST NEVER suggest any recipe containing these allergens. This is non-negotiable.**

Before suggesting ANY recipe, verify it does NOT contain:
- The allergen itself
- Common derivatives or hidden sources of the allergen
- Cross-contamination risks"""

    rules = allergen_rules(restrictions)
    if rules:
        block += "\n\n**Allergen-specific rules:**\n" + "\n".join(f"- {rule}" for rule in rules)

    block += """

**When suggesting recipes:**
- Double-check EVERY ingredient against the allergen list
- If a recipe would traditionally contain an allergen, modify it or choose a different recipe
- Proactively suggest safe substitutions
- Never say "just skip the [allergen]" without providing a proper alternative"""
    return block


def build(
    preferences: Optional[UserPreferences],
    rating_history: Optional[Sequence[RatingHistoryItem]] = None,
) -> str:
    """Render the personalization context for a user.

    Args:
        preferences: The user's cooking profile, or None when unknown.
        rating_history: Past rated recommendations, newest first.

    Returns:
        str: Instruction text, empty when there is nothing to personalize.
    """
    fragments = []
    restrictions: List[str] = []

    if preferences is not None:
        fragments.append(_get_preferences_section(preferences))
        restrictions = [r for r in preferences.food_restrictions if r]
    if rating_history:
        fragments.append(_get_ratings_section(rating_history))
    if restrictions:
        fragments.append(_get_safety_section(restrictions))
    if preferences is not None:
        fragments.append(PRIORITY_STATEMENT)

    return "\n\n".join(fragment for fragment in fragments if fragment)
