"""Recommendation orchestration for chat, rescale and weekly batch requests.

Every request walks the same state model, logged per transition:

    ResolvingModel -> BuildingContext -> Calling -> [Retrying] -> Validating -> Persisting -> Done

- ConfigError (no model or key) and ProviderError (primary and fallback both
  failed) end the request.
- Validating never fails; output degrades through the validator tiers.
- Suggestion history writes are logged and swallowed on failure.

The orchestrator holds no cross-request state: everything it remembers
lives in the Store.
"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

from src.context import personalization
from src.context.cuisine import CuisineIntentDetector, resolve_cuisine_context
from src.context.diversity import build_weekly_context, load_recency_context, load_weekly_context
from src.models.models import (
    ChatRequest,
    ModelConfig,
    RatingHistoryItem,
    Suggestion,
    UserPreferences,
    UserProfile,
)
from src.notifications.email import WeeklyMenuNotifier
from src.orchestrator.errors import AccessDeniedError, ConfigError, ProviderError, RequestError
from src.prompts.prompts import (
    WEEKLY_USER_MESSAGE,
    get_rescale_instructions,
    get_system_instructions,
    get_weekly_instructions,
)
from src.providers import client
from src.providers.client import Conversation, filter_conversation
from src.providers.selector import ModelSelector
from src.store.seed import seed_reference_data
from src.store.store import Store, create_store
from src.store.tables import utcnow
from src.utils.config import config
from src.utils.logger import logger
from src.validation.structured_output import validate, validate_rescale

Completer = Callable[[str, str, str, Conversation, str], Awaitable[str]]

APPROVED = "APPROVED"


class OrchestratorState(str, Enum):
    RESOLVING_MODEL = "ResolvingModel"
    BUILDING_CONTEXT = "BuildingContext"
    CALLING = "Calling"
    RETRYING = "Retrying"
    VALIDATING = "Validating"
    PERSISTING = "Persisting"
    DONE = "Done"


@dataclass
class RequestRun:
    """Per-request bookkeeping; never shared between requests."""

    kind: str
    user_id: Optional[str] = None
    request_id: str = ""
    state: Optional[OrchestratorState] = None

    def __post_init__(self) -> None:
        if not self.request_id:
            self.request_id = uuid.uuid4().hex[:12]

    def log_extra(self, **fields: Any) -> Dict[str, Any]:
        return {"request_id": self.request_id, "user_id": self.user_id, **fields}

    def transition(self, state: OrchestratorState) -> None:
        previous = self.state.value if self.state else "Start"
        self.state = state
        logger.info(f"{self.kind}: {previous} -> {state.value}", extra=self.log_extra())


@dataclass
class Generation:
    text: str
    model: ModelConfig
    used_fallback: bool = False


def week_start_for(moment: datetime) -> date:
    """Sunday that starts the (UTC) week containing ``moment``."""
    today = moment.date()
    return today - timedelta(days=(today.weekday() + 1) % 7)


def _provenance(generation: Generation) -> Dict[str, Any]:
    return {
        "modelUsed": generation.model.model_name,
        "modelId": generation.model.id,
        "provider": generation.model.provider,
        "usedFallback": generation.used_fallback,
    }


class RecommendationOrchestrator:
    """Coordinates model selection, context building, generation and validation."""

    def __init__(
        self,
        store: Store,
        selector: Optional[ModelSelector] = None,
        notifier: Optional[WeeklyMenuNotifier] = None,
        completer: Optional[Completer] = None,
        cuisine_mode: Optional[str] = None,
    ) -> None:
        self.store = store
        self.selector = selector or ModelSelector(store)
        self.notifier = notifier or WeeklyMenuNotifier()
        self.completer = completer or client.complete
        self.cuisine_mode = cuisine_mode or config.CUISINE_MODE

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------

    async def _check_access(self, user_id: Optional[str], is_admin: bool = False) -> Optional[UserProfile]:
        """Refuse users whose account exists but is not approved, unless the caller is an admin."""
        if not user_id:
            return None
        profile = await self.store.get_user_profile(user_id)
        if profile and profile.status != APPROVED and not (is_admin or profile.is_admin):
            logger.warning(f"Refusing request for account in status {profile.status}", extra={"user_id": user_id})
            raise AccessDeniedError(
                f"Your account is {profile.status.lower()}. Recommendations are available once it is approved."
            )
        return profile

    async def _load_user_state(
        self,
        user_id: Optional[str],
        preferences: Optional[UserPreferences],
        rating_history: Optional[List[RatingHistoryItem]],
    ):
        """Fill in preferences and ratings from the store when the caller did not send them."""
        if user_id and preferences is None:
            preferences = await self.store.get_preferences(user_id)
        if user_id and rating_history is None:
            rating_history = await self.store.get_rating_history(user_id, limit=config.RATING_HISTORY_LIMIT)
        return preferences, rating_history or []

    async def _generate(
        self,
        run: RequestRun,
        model: ModelConfig,
        caller_key: Optional[str],
        conversation: Conversation,
        system_instructions: str,
    ) -> Generation:
        """Call the resolved model, retrying exactly once on the default model.

        Raises:
            ConfigError: If no key is available for the primary model.
            ProviderError: If the primary call fails and no fallback succeeds.
        """
        api_key = self.selector.resolve_api_key(model, caller_key)

        run.transition(OrchestratorState.CALLING)
        try:
            text = await self.completer(
                model.provider, model.model_identifier, api_key, conversation, system_instructions
            )
            return Generation(text=text, model=model)
        except ProviderError as primary_error:
            if model.is_default:
                logger.error(f"Default model {model.id} failed; no fallback left", extra=run.log_extra(provider=model.provider))
                raise
            logger.warning(
                f"Model {model.id} failed ({primary_error.status}); falling back to default",
                extra=run.log_extra(provider=model.provider),
            )

            try:
                fallback = await self.selector.default()
            except ConfigError:
                raise primary_error from None
            if fallback.id == model.id:
                raise

            fallback_key = self.selector.fallback_api_key(model, fallback, caller_key)
            if not fallback_key:
                logger.error(
                    f"No API key for fallback provider {fallback.provider}", extra=run.log_extra(provider=fallback.provider)
                )
                raise

            run.transition(OrchestratorState.RETRYING)
            text = await self.completer(
                fallback.provider, fallback.model_identifier, fallback_key, conversation, system_instructions
            )
            logger.info(f"Fallback model {fallback.id} succeeded", extra=run.log_extra(provider=fallback.provider))
            return Generation(text=text, model=fallback, used_fallback=True)

    async def _persist_suggestions(self, run: RequestRun, user_id: str, suggestions: List[Suggestion]) -> None:
        """Write suggestion history; failures never reach the caller."""
        run.transition(OrchestratorState.PERSISTING)
        try:
            count = await self.store.insert_suggestions(user_id, suggestions)
            logger.info(f"Persisted {count} suggestion(s)", extra=run.log_extra())
        except Exception as e:
            logger.error(f"Failed to persist suggestion history: {e}", extra=run.log_extra())

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def handle(self, request: ChatRequest) -> Dict[str, Any]:
        """Dispatch a chat-endpoint request by its action."""
        if request.action == "rescale":
            return await self.rescale(request)
        return await self.chat(request)

    async def chat(self, request: ChatRequest) -> Dict[str, Any]:
        """Recommend recipes/cocktails for a conversation.

        Returns:
            dict: ``{data, modelUsed, modelId, provider, usedFallback, cuisineMetadata, diversityMetadata, validationTier}``
        """
        run = RequestRun(kind="chat", user_id=request.user_id)
        conversation = filter_conversation([turn.model_dump() for turn in request.messages])
        if not conversation:
            raise RequestError("At least one user or assistant message is required.")

        await self._check_access(request.user_id, request.is_admin)

        run.transition(OrchestratorState.RESOLVING_MODEL)
        model = await self.selector.resolve(request.user_id)

        run.transition(OrchestratorState.BUILDING_CONTEXT)
        preferences, ratings = await self._load_user_state(
            request.user_id, request.user_preferences, request.rating_history
        )

        detector = CuisineIntentDetector(await self.store.list_active_cuisine_profiles())
        guardrails, cuisine_metadata = resolve_cuisine_context(
            detector,
            conversation,
            preferences.favorite_cuisines if preferences else None,
            mode=self.cuisine_mode,
            force_cuisine=request.force_cuisine,
            is_admin=request.is_admin,
        )

        if request.weekly_brief:
            diversity = (
                await load_weekly_context(self.store, request.user_id)
                if request.user_id
                else build_weekly_context([], [])
            )
        elif request.user_id:
            diversity = await load_recency_context(self.store, request.user_id)
        else:
            diversity = None

        system_instructions = get_system_instructions(
            personalization=personalization.build(preferences, ratings),
            cuisine_guardrails=guardrails,
            diversity=diversity.render() if diversity else "",
        )

        generation = await self._generate(run, model, request.api_key, conversation, system_instructions)

        run.transition(OrchestratorState.VALIDATING)
        outcome = validate(generation.text)

        if outcome.is_strict and request.user_id and outcome.model.suggestions:
            await self._persist_suggestions(run, request.user_id, outcome.model.suggestions)

        run.transition(OrchestratorState.DONE)
        response = {
            "data": outcome.payload,
            **_provenance(generation),
            "cuisineMetadata": cuisine_metadata,
            "validationTier": outcome.tier.value,
        }
        if diversity is not None:
            response["diversityMetadata"] = diversity.metadata()
        return response

    async def rescale(self, request: ChatRequest) -> Dict[str, Any]:
        """Rewrite a recipe for a new serving count.

        Returns:
            dict: ``{data: {title, rationale, ingredients, instructions, timing, servings}, modelUsed, ...}``
        """
        run = RequestRun(kind="rescale", user_id=request.user_id)
        if request.recipe is None or request.target_servings is None:
            raise RequestError("Rescale requires 'recipe' and 'targetServings'.")

        await self._check_access(request.user_id, request.is_admin)

        run.transition(OrchestratorState.RESOLVING_MODEL)
        model = await self.selector.resolve(request.user_id)

        run.transition(OrchestratorState.BUILDING_CONTEXT)
        preferences, _ = await self._load_user_state(request.user_id, request.user_preferences, [])
        system_instructions = get_rescale_instructions(
            request.recipe,
            request.target_servings,
            personalization=personalization.build(preferences) if preferences else None,
        )
        conversation = [
            {
                "role": "user",
                "content": f"Rescale '{request.recipe.title}' to {request.target_servings} servings.",
            }
        ]

        generation = await self._generate(run, model, request.api_key, conversation, system_instructions)

        run.transition(OrchestratorState.VALIDATING)
        outcome = validate_rescale(generation.text, request.recipe)

        run.transition(OrchestratorState.DONE)
        return {"data": outcome.payload, **_provenance(generation), "validationTier": outcome.tier.value}

    async def generate_weekly(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Generate, store and announce the user's archetype-constrained weekly set.

        Returns:
            dict: ``{success, date, count}`` where date is the Sunday week start.
        """
        if not user_id:
            raise RequestError("userId is required for weekly planning.")

        now = now or utcnow()
        week_start = week_start_for(now)
        run = RequestRun(kind="weekly", user_id=user_id)

        profile = await self._check_access(user_id)

        run.transition(OrchestratorState.RESOLVING_MODEL)
        model = await self.selector.resolve(user_id)

        run.transition(OrchestratorState.BUILDING_CONTEXT)
        preferences, ratings = await self._load_user_state(user_id, None, None)
        weekly = await load_weekly_context(self.store, user_id, now=now)
        system_instructions = get_weekly_instructions(
            weekly.render(), personalization=personalization.build(preferences, ratings)
        )
        conversation = [{"role": "user", "content": WEEKLY_USER_MESSAGE}]

        generation = await self._generate(run, model, None, conversation, system_instructions)

        run.transition(OrchestratorState.VALIDATING)
        outcome = validate(generation.text)
        suggestions = outcome.payload.get("suggestions", [])
        if not suggestions:
            logger.warning(f"Weekly generation produced no suggestions ({outcome.tier.value})", extra=run.log_extra())
            run.transition(OrchestratorState.DONE)
            return {"success": False, "date": week_start.isoformat(), "count": 0}

        run.transition(OrchestratorState.PERSISTING)
        await self.store.upsert_weekly_set(user_id, week_start, suggestions)
        logger.info(f"Saved weekly set for {week_start.isoformat()} ({len(suggestions)} recipes)", extra=run.log_extra())
        if outcome.is_strict:
            await self._persist_suggestions(run, user_id, outcome.model.suggestions)

        if profile and profile.email and self.notifier.enabled:
            await self.notifier.send(profile.email, week_start, suggestions)

        run.transition(OrchestratorState.DONE)
        return {"success": True, "date": week_start.isoformat(), "count": len(suggestions)}


async def initialize_orchestrator(
    database_url: Optional[str] = None,
    create_tables: Optional[bool] = None,
    seed: bool = True,
) -> RecommendationOrchestrator:
    """Build a ready-to-serve orchestrator.

    Args:
        database_url: SQLAlchemy async URL (defaults to DATABASE_URL)
        create_tables: Create missing tables on startup (defaults to CREATE_TABLES)
        seed: Insert default cuisine profiles and models into empty tables

    Returns:
        RecommendationOrchestrator: Orchestrator bound to the configured store.
    """
    logger.info("=== Initializing Recommendation Orchestrator ===")

    logger.info("Step 1/4: Configuring store...")
    store = create_store(database_url or config.DATABASE_URL)
    logger.info("✓ Store configured")

    logger.info("Step 2/4: Preparing tables...")
    if config.CREATE_TABLES if create_tables is None else create_tables:
        await store.create_all()
        logger.info("✓ Tables created")
    else:
        logger.info("✓ Table creation skipped (CREATE_TABLES=false)")

    logger.info("Step 3/4: Seeding reference data...")
    if seed:
        await seed_reference_data(store)
        logger.info("✓ Reference data ready")
    else:
        logger.info("✓ Seeding skipped")

    logger.info("Step 4/4: Configuring providers and notifications...")
    notifier = WeeklyMenuNotifier()
    logger.info(
        f"✓ Providers: {', '.join(sorted(client.PROVIDERS))}; cuisine mode: {config.CUISINE_MODE}; "
        f"weekly email {'enabled' if notifier.enabled else 'disabled'}"
    )

    logger.info("=== Orchestrator initialization complete ===")
    return RecommendationOrchestrator(store, notifier=notifier)
