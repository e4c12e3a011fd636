"""Data models and schemas for the recommendation service.

Defines Pydantic models for request/response validation and domain objects.
All models use Pydantic v2 for strict validation and OpenAPI schema generation.

Inbound request fields keep the camelCase names the web client sends
(``apiKey``, ``forceCuisine``...) through aliases; Python code uses snake_case.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Annotated, List, Literal, Optional, Union, get_args

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


# ============================================================================
# Reference data (read-only to the orchestrator)
# ============================================================================


@dataclass(frozen=True)
class ModelConfig:
    """A usable LLM endpoint managed by administrators."""

    id: str
    provider: str
    model_identifier: str
    model_name: str
    is_active: bool = True
    is_default: bool = False


@dataclass
class CuisineProfile:
    """Cuisine taxonomy entry used for intent detection and guardrails."""

    cuisine_name: str
    keywords: List[str]
    style_focus: str = ""
    is_active: bool = True
    profile_data: dict = field(default_factory=dict)


@dataclass
class UserProfile:
    user_id: str
    email: Optional[str] = None
    status: str = "APPROVED"
    is_admin: bool = False
    assigned_model_id: Optional[str] = None


@dataclass
class SuggestionRecord:
    """A persisted recommendation, read back as diversity input."""

    title: str
    type: str
    protein: Optional[str] = None
    carb: Optional[str] = None
    method: Optional[str] = None
    created_at: Optional[datetime] = None


# ============================================================================
# User state
# ============================================================================


class UserPreferences(BaseModel):
    """Per-user cooking profile. ``food_restrictions`` is authoritative."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    favorite_cuisines: List[str] = Field(default_factory=list)
    favorite_dishes: List[str] = Field(default_factory=list)
    dietary_style: Optional[str] = None
    food_restrictions: List[str] = Field(default_factory=list)
    time_preference: Optional[str] = None
    skill_level: Optional[str] = None
    household_size: Optional[int] = None
    spice_preference: Optional[str] = None
    cooking_equipment: List[str] = Field(default_factory=list)
    additional_notes: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def drop_null_lists(cls, data: Any) -> Any:
        """Store rows may carry NULL for list columns; treat them as empty."""
        if isinstance(data, dict):
            for key in ("favorite_cuisines", "favorite_dishes", "food_restrictions", "cooking_equipment"):
                if data.get(key) is None:
                    data = {**data, key: []}
        return data


Rating = Literal["thumbs_up", "thumbs_down"]
RATING_VALUES = get_args(Rating)


class RatedRecipe(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: str = "Unknown"
    tags: List[str] = Field(default_factory=list)


class RatingHistoryItem(BaseModel):
    """A past recommendation with the user's thumbs rating and feedback."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    rating: Rating
    feedback: Optional[str] = None
    recipe: RatedRecipe = Field(
        default_factory=RatedRecipe,
        validation_alias=AliasChoices("recipe", "recipes"),
    )


# ============================================================================
# Generator output contract
# ============================================================================


class SuggestionTags(BaseModel):
    """Fixed tag triple used by the diversity filter."""

    protein: str
    carb: str
    method: str


class IngredientLine(BaseModel):
    name: str
    amount: Optional[str] = None
    unit: Optional[str] = None


class FullDetails(BaseModel):
    """Complete recipe body, only present on explicit detail requests."""

    ingredients: List[Union[str, IngredientLine]]
    instructions: List[str]
    nutrition_notes: Optional[str] = None


class Suggestion(BaseModel):
    """One recommendation emitted by the generator."""

    model_config = ConfigDict(str_strip_whitespace=True)

    title: Annotated[str, Field(min_length=1, max_length=200, description="Recipe or cocktail name")]
    type: Literal["recipe", "cocktail"]
    description: str
    difficulty: str
    reason_for_recommendation: str
    time_estimate: Optional[str] = None
    cuisine: Optional[str] = None
    tags: Optional[SuggestionTags] = None
    full_details: Optional[FullDetails] = None


class RecommendationPayload(BaseModel):
    """Top-level structured reply expected from the generator."""

    reply: Optional[str] = None
    suggestions: List[Suggestion]


class RescaledRecipe(BaseModel):
    """Rewritten recipe returned by the rescale action."""

    title: str
    rationale: str
    ingredients: List[Union[str, IngredientLine]]
    instructions: List[str]
    timing: Optional[str] = None
    servings: Annotated[int, Field(ge=1, le=100)]


# ============================================================================
# Inbound requests
# ============================================================================


class ChatTurn(BaseModel):
    """A single conversation turn."""

    model_config = ConfigDict(extra="ignore")

    role: str
    content: str


class RecipeInput(BaseModel):
    """Recipe supplied by the client for the rescale action."""

    model_config = ConfigDict(extra="allow")

    title: str
    description: Optional[str] = None
    ingredients: List[Union[str, IngredientLine]] = Field(default_factory=list)
    instructions: List[str] = Field(default_factory=list)
    servings: Optional[int] = None
    prep_time: Optional[int] = Field(None, validation_alias=AliasChoices("prep_time", "prepTime"))
    cook_time: Optional[int] = Field(None, validation_alias=AliasChoices("cook_time", "cookTime"))


class ChatRequest(BaseModel):
    """Chat/recommend request; ``action="rescale"`` switches to the rescale shape."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    messages: List[ChatTurn] = Field(default_factory=list)
    api_key: Optional[str] = Field(None, alias="apiKey")
    rating_history: Optional[List[RatingHistoryItem]] = Field(None, alias="ratingHistory")
    user_preferences: Optional[UserPreferences] = Field(None, alias="userPreferences")
    user_id: Optional[str] = Field(None, alias="userId")
    weekly_brief: bool = Field(False, alias="weeklyBrief")
    is_admin: bool = Field(False, alias="isAdmin")
    force_cuisine: Optional[str] = Field(None, alias="forceCuisine")
    action: Optional[Literal["chat", "rescale"]] = None
    recipe: Optional[RecipeInput] = None
    target_servings: Optional[Annotated[int, Field(ge=1, le=100)]] = Field(None, alias="targetServings")


class WeeklyBatchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Annotated[str, Field(min_length=1, alias="userId")]
