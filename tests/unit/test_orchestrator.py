"""Unit tests for RecommendationOrchestrator.

The provider call is replaced by an AsyncMock completer and the email
notifier by a MagicMock; the store is a real in-memory SQLite store.
"""

import json
from datetime import date, datetime
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.models.models import ChatRequest, UserPreferences, UserProfile
from src.orchestrator.errors import AccessDeniedError, ConfigError, ProviderError, RequestError
from src.orchestrator.orchestrator import RecommendationOrchestrator, initialize_orchestrator, week_start_for
from src.store.tables import utcnow
from src.utils.config import config
from tests.factories import ASSIGNED_MODEL, DEFAULT_MODEL, make_payload_text, make_suggestion


def _chat(text="Ideas for dinner?", **fields):
    return ChatRequest.model_validate({"messages": [{"role": "user", "content": text}], **fields})


def _system_instructions(completer, call=-1):
    return completer.await_args_list[call].args[4]


@pytest.fixture
def provider_keys(monkeypatch):
    monkeypatch.setattr(config, "OPENAI_API_KEY", "sk-env-openai")
    monkeypatch.setattr(config, "ANTHROPIC_API_KEY", "sk-env-anthropic")
    monkeypatch.setattr(config, "GEMINI_API_KEY", "")
    return config


@pytest.fixture
def completer():
    return AsyncMock(return_value=make_payload_text(make_suggestion(), make_suggestion(title="Beef Tacos", protein="beef")))


@pytest.fixture
def notifier():
    notifier = MagicMock()
    notifier.enabled = True
    notifier.send = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def orchestrator(seeded_store, completer, notifier, provider_keys):
    return RecommendationOrchestrator(seeded_store, notifier=notifier, completer=completer, cuisine_mode="advisory")


class TestWeekStart:
    @pytest.mark.parametrize(
        "moment,expected",
        [
            (datetime(2026, 10, 21, 9, 0), date(2026, 10, 18)),
            (datetime(2026, 10, 18, 0, 5), date(2026, 10, 18)),
            (datetime(2026, 10, 24, 23, 59), date(2026, 10, 18)),
            (datetime(2026, 10, 25, 0, 0), date(2026, 10, 25)),
        ],
    )
    def test_week_starts_on_sunday(self, moment, expected):
        assert week_start_for(moment) == expected


class TestChat:
    """Test the chat recommendation flow."""

    @pytest.mark.asyncio
    async def test_strict_response_shape(self, orchestrator, completer):
        """Test provenance, tier and metadata in a successful response."""
        response = await orchestrator.chat(_chat(userId="user-1"))

        assert response["validationTier"] == "strict"
        assert response["modelId"] == ASSIGNED_MODEL.id
        assert response["modelUsed"] == ASSIGNED_MODEL.model_name
        assert response["provider"] == "anthropic"
        assert response["usedFallback"] is False
        assert [s["title"] for s in response["data"]["suggestions"]] == ["Lemon Chicken", "Beef Tacos"]
        assert response["cuisineMetadata"]["mode"] == "advisory"
        assert response["diversityMetadata"]["mode"] == "recency"
        assert completer.await_args.args[:3] == ("anthropic", ASSIGNED_MODEL.model_identifier, "sk-env-anthropic")

    @pytest.mark.asyncio
    async def test_strict_output_persists_history(self, orchestrator, seeded_store):
        await orchestrator.chat(_chat(userId="user-1"))

        records = await seeded_store.recent_suggestions("user-1", datetime(2000, 1, 1))
        assert {r.title for r in records} == {"Lemon Chicken", "Beef Tacos"}

    @pytest.mark.asyncio
    async def test_permissive_output_is_not_persisted(self, orchestrator, completer, seeded_store):
        """Test that only schema-valid suggestions enter history."""
        completer.return_value = json.dumps({"reply": "hm", "suggestions": [{"title": "Half a recipe"}]})

        response = await orchestrator.chat(_chat(userId="user-1"))

        assert response["validationTier"] == "permissive"
        assert response["data"]["suggestions"] == [{"title": "Half a recipe"}]
        assert await seeded_store.recent_suggestions("user-1", datetime(2000, 1, 1)) == []

    @pytest.mark.asyncio
    async def test_fallback_tier_for_free_text(self, orchestrator, completer):
        completer.return_value = "Let me think about that."

        response = await orchestrator.chat(_chat())

        assert response["validationTier"] == "fallback"
        assert response["data"] == {"reply": "Let me think about that.", "suggestions": []}

    @pytest.mark.asyncio
    async def test_persistence_failure_is_swallowed(self, orchestrator, seeded_store):
        """Test that a failed history write still returns the recommendations."""
        with patch.object(seeded_store, "insert_suggestions", AsyncMock(side_effect=RuntimeError("disk full"))):
            response = await orchestrator.chat(_chat(userId="user-1"))

        assert response["validationTier"] == "strict"
        assert len(response["data"]["suggestions"]) == 2

    @pytest.mark.asyncio
    async def test_anonymous_request_uses_default_without_diversity(self, orchestrator):
        response = await orchestrator.chat(_chat())

        assert response["modelId"] == DEFAULT_MODEL.id
        assert "diversityMetadata" not in response

    @pytest.mark.asyncio
    async def test_empty_conversation_is_request_error(self, orchestrator, completer):
        with pytest.raises(RequestError):
            await orchestrator.chat(ChatRequest.model_validate({"messages": []}))

        completer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_safety_block_reaches_the_model(self, orchestrator, completer):
        """Test that caller-supplied restrictions are in the system instructions."""
        await orchestrator.chat(_chat(userPreferences={"food_restrictions": ["shellfish"]}))

        system = _system_instructions(completer)
        assert "**CRITICAL SAFETY REQUIREMENT - FOOD ALLERGIES & RESTRICTIONS**" in system
        assert "Shellfish allergy: NO shrimp, crab, lobster" in system

    @pytest.mark.asyncio
    async def test_stored_preferences_loaded_when_not_sent(self, orchestrator, completer, seeded_store):
        await seeded_store.save_preferences("user-1", UserPreferences(food_restrictions=["peanuts"]))
        await seeded_store.add_rating("user-1", "Mushroom Risotto", "thumbs_down", feedback="too rich")

        await orchestrator.chat(_chat(userId="user-1"))

        system = _system_instructions(completer)
        assert "allergies/restrictions: peanuts" in system
        assert "- Mushroom Risotto (too rich)" in system

    @pytest.mark.asyncio
    async def test_recent_history_is_avoided(self, orchestrator, completer):
        """Test that a second session is told to avoid the first session's dishes."""
        await orchestrator.chat(_chat(userId="user-1"))
        await orchestrator.chat(_chat(userId="user-1"))

        system = _system_instructions(completer)
        assert "Lemon Chicken" in system
        assert "Do NOT suggest these recently recommended dishes again" in system

    @pytest.mark.asyncio
    async def test_weekly_brief_uses_archetypes(self, orchestrator, completer):
        response = await orchestrator.chat(_chat(userId="user-1", weeklyBrief=True))

        assert response["diversityMetadata"]["mode"] == "weekly"
        assert "CRITICAL VARIETY RULES" in _system_instructions(completer)

    @pytest.mark.asyncio
    async def test_inject_mode_adds_cuisine_guardrails(self, orchestrator, completer):
        orchestrator.cuisine_mode = "inject"

        response = await orchestrator.chat(_chat("An Italian pasta night"))

        assert response["cuisineMetadata"]["injected"] is True
        assert "## Cuisine Focus: Italian" in _system_instructions(completer)

    @pytest.mark.asyncio
    async def test_forced_cuisine_and_admin_candidates(self, orchestrator, completer):
        response = await orchestrator.chat(_chat("tacos?", forceCuisine="Indian", isAdmin=True))

        assert response["cuisineMetadata"]["confidence"] == "forced"
        assert "candidates" in response["cuisineMetadata"]
        assert "## Cuisine Focus: Indian" in _system_instructions(completer)


class TestAccess:
    @pytest.mark.asyncio
    async def test_pending_user_is_refused(self, orchestrator, seeded_store, completer):
        """Test that a non-approved account gets AccessDeniedError (403)."""
        await seeded_store.save_user_profile(UserProfile(user_id="pending-1", status="PENDING"))

        with pytest.raises(AccessDeniedError) as exc_info:
            await orchestrator.chat(_chat(userId="pending-1"))

        assert exc_info.value.status_code == 403
        assert "pending" in exc_info.value.message
        completer.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_admin_flag_bypasses_approval(self, orchestrator, seeded_store):
        await seeded_store.save_user_profile(UserProfile(user_id="pending-1", status="PENDING"))

        response = await orchestrator.chat(_chat(userId="pending-1", isAdmin=True))

        assert response["validationTier"] == "strict"

    @pytest.mark.asyncio
    async def test_unknown_user_is_allowed(self, orchestrator):
        response = await orchestrator.chat(_chat(userId="first-visit"))

        assert response["modelId"] == DEFAULT_MODEL.id


class TestFallback:
    """Test single-retry fallback to the default model."""

    @pytest.mark.asyncio
    async def test_failed_assigned_model_falls_back_once(self, orchestrator, completer):
        completer.side_effect = [
            ProviderError("anthropic", 529, "overloaded"),
            make_payload_text(make_suggestion()),
        ]

        response = await orchestrator.chat(_chat(userId="user-1", apiKey="sk-ant-caller"))

        assert response["usedFallback"] is True
        assert response["modelId"] == DEFAULT_MODEL.id
        assert completer.await_count == 2
        first, second = completer.await_args_list
        assert first.args[:3] == ("anthropic", ASSIGNED_MODEL.model_identifier, "sk-ant-caller")
        # caller key belongs to another provider; the fallback uses the environment key
        assert second.args[:3] == ("openai", DEFAULT_MODEL.model_identifier, "sk-env-openai")

    @pytest.mark.asyncio
    async def test_fallback_failure_propagates(self, orchestrator, completer):
        completer.side_effect = [
            ProviderError("anthropic", 500, "boom"),
            ProviderError("openai", 503, "unavailable"),
        ]

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.chat(_chat(userId="user-1"))

        assert exc_info.value.provider == "openai"
        assert completer.await_count == 2

    @pytest.mark.asyncio
    async def test_default_model_failure_is_not_retried(self, orchestrator, completer):
        """Test that the default model never retries itself."""
        completer.side_effect = ProviderError("openai", 500, "boom")

        with pytest.raises(ProviderError):
            await orchestrator.chat(_chat())

        assert completer.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_fallback_key_reraises_primary(self, orchestrator, completer, provider_keys):
        provider_keys.OPENAI_API_KEY = ""
        completer.side_effect = ProviderError("anthropic", 529, "overloaded")

        with pytest.raises(ProviderError) as exc_info:
            await orchestrator.chat(_chat(userId="user-1"))

        assert exc_info.value.provider == "anthropic"
        assert completer.await_count == 1

    @pytest.mark.asyncio
    async def test_no_api_key_is_config_error(self, orchestrator, completer, provider_keys):
        """Test that a missing key fails before any provider call."""
        provider_keys.OPENAI_API_KEY = ""

        with pytest.raises(ConfigError):
            await orchestrator.chat(_chat())

        completer.assert_not_awaited()


class TestRescale:
    RECIPE = {"title": "Dal", "servings": 4, "ingredients": ["1 cup lentils"], "instructions": ["Simmer."]}

    @pytest.mark.asyncio
    async def test_rescale_strict(self, orchestrator, completer):
        completer.return_value = json.dumps(
            {
                "title": "Dal",
                "rationale": "Doubled.",
                "ingredients": ["2 cups lentils"],
                "instructions": ["Simmer longer."],
                "servings": 8,
            }
        )

        response = await orchestrator.handle(
            ChatRequest.model_validate({"action": "rescale", "recipe": self.RECIPE, "targetServings": 8})
        )

        assert response["validationTier"] == "strict"
        assert response["data"]["servings"] == 8
        assert "8" in completer.await_args.args[3][0]["content"]

    @pytest.mark.asyncio
    async def test_rescale_fallback_returns_original(self, orchestrator, completer):
        completer.return_value = "Sorry, I cannot do that."

        response = await orchestrator.handle(
            ChatRequest.model_validate({"action": "rescale", "recipe": self.RECIPE, "targetServings": 8})
        )

        assert response["validationTier"] == "fallback"
        assert response["data"]["ingredients"] == ["1 cup lentils"]
        assert response["data"]["rationale"] == "Sorry, I cannot do that."

    @pytest.mark.asyncio
    async def test_rescale_requires_recipe_and_servings(self, orchestrator):
        with pytest.raises(RequestError):
            await orchestrator.handle(ChatRequest.model_validate({"action": "rescale", "targetServings": 8}))


class TestWeekly:
    NOW = datetime(2026, 10, 21, 9, 0)

    @pytest.mark.asyncio
    async def test_weekly_batch_saves_and_emails(self, orchestrator, seeded_store, completer, notifier):
        """Test the upsert, history write and email for a strict weekly batch."""
        result = await orchestrator.generate_weekly("user-1", now=self.NOW)

        assert result == {"success": True, "date": "2026-10-18", "count": 2}
        sets = await seeded_store.get_weekly_sets("user-1")
        assert sets[0]["week_start_date"] == date(2026, 10, 18)
        assert [r["title"] for r in sets[0]["recipes"]] == ["Lemon Chicken", "Beef Tacos"]
        assert len(await seeded_store.recent_suggestions("user-1", datetime(2000, 1, 1))) == 2
        notifier.send.assert_awaited_once()
        assert notifier.send.await_args.args[0] == "cook@example.com"
        assert "CRITICAL VARIETY RULES" in _system_instructions(completer)

    @pytest.mark.asyncio
    async def test_weekly_rerun_replaces_set(self, orchestrator, seeded_store, completer):
        await orchestrator.generate_weekly("user-1", now=self.NOW)
        completer.return_value = make_payload_text(make_suggestion(title="Miso Salmon", protein="salmon"))

        result = await orchestrator.generate_weekly("user-1", now=self.NOW)

        sets = await seeded_store.get_weekly_sets("user-1")
        assert result["count"] == 1
        assert len(sets) == 1
        assert [r["title"] for r in sets[0]["recipes"]] == ["Miso Salmon"]

    @pytest.mark.asyncio
    async def test_zero_suggestions_is_unsuccessful(self, orchestrator, seeded_store, completer, notifier):
        completer.return_value = '{"reply": "Nothing today", "suggestions": []}'

        result = await orchestrator.generate_weekly("user-1", now=self.NOW)

        assert result == {"success": False, "date": "2026-10-18", "count": 0}
        assert await seeded_store.get_weekly_sets("user-1") == []
        notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_permissive_batch_saved_without_history(self, orchestrator, seeded_store, completer):
        completer.return_value = json.dumps({"suggestions": [{"title": "Loose Stew"}]})

        result = await orchestrator.generate_weekly("user-1", now=self.NOW)

        assert result["success"] is True
        assert (await seeded_store.get_weekly_sets("user-1"))[0]["recipes"] == [{"title": "Loose Stew"}]
        assert await seeded_store.recent_suggestions("user-1", datetime(2000, 1, 1)) == []

    @pytest.mark.asyncio
    async def test_non_string_titles_in_saved_set_do_not_break_later_batches(self, orchestrator, completer):
        """Test that a permissive set with a numeric title is readable by the next weekly and chat runs."""
        completer.return_value = json.dumps(
            {"suggestions": [{"title": 42, "type": "recipe"}, {"title": ["a", "list"]}, {"title": "Loose Stew"}]}
        )
        first = await orchestrator.generate_weekly("user-1", now=self.NOW)
        completer.return_value = make_payload_text(make_suggestion(title="Miso Salmon", protein="salmon"))

        second = await orchestrator.generate_weekly("user-1", now=self.NOW)
        chat = await orchestrator.chat(_chat(userId="user-1", weeklyBrief=True))

        assert first["success"] is True
        assert second == {"success": True, "date": "2026-10-18", "count": 1}
        assert "Do NOT suggest these recently featured recipes: Loose Stew." in _system_instructions(completer, call=1)
        assert chat["diversityMetadata"]["mode"] == "weekly"

    @pytest.mark.asyncio
    async def test_no_email_when_disabled(self, orchestrator, notifier):
        notifier.enabled = False

        await orchestrator.generate_weekly("user-1", now=self.NOW)

        notifier.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_user_id_required(self, orchestrator):
        with pytest.raises(RequestError):
            await orchestrator.generate_weekly("")

    @pytest.mark.asyncio
    async def test_upsert_failure_propagates(self, orchestrator, seeded_store):
        with patch.object(seeded_store, "upsert_weekly_set", AsyncMock(side_effect=RuntimeError("constraint"))):
            with pytest.raises(RuntimeError):
                await orchestrator.generate_weekly("user-1", now=self.NOW)


class TestInitializeOrchestrator:
    @pytest.mark.asyncio
    async def test_builds_seeded_orchestrator(self):
        orchestrator = await initialize_orchestrator("sqlite+aiosqlite://", create_tables=True)
        try:
            model = await orchestrator.store.get_default_model()
            assert model.model_identifier == "gpt-4o-mini"
            assert len(await orchestrator.store.list_active_cuisine_profiles()) == 10
        finally:
            await orchestrator.store.close()

    @pytest.mark.asyncio
    async def test_created_tables_accept_writes(self):
        orchestrator = await initialize_orchestrator("sqlite+aiosqlite://", create_tables=True, seed=False)
        try:
            await orchestrator.store.upsert_weekly_set("u1", utcnow().date(), [{"title": "Pho"}])
            assert await orchestrator.store.count_models() == 0
        finally:
            await orchestrator.store.close()
