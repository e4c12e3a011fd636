"""Unit tests for cuisine intent detection and guardrail resolution."""

import pytest

from src.context.cuisine import (
    CuisineIntentDetector,
    confidence_for,
    conversation_tail,
    render_guardrails,
    resolve_cuisine_context,
)
from src.models.models import CuisineProfile


def _user(text):
    return [{"role": "user", "content": text}]


@pytest.fixture
def detector(cuisine_profiles):
    return CuisineIntentDetector(cuisine_profiles)


class TestConversationTail:
    def test_latest_user_turn_with_preceding_assistant(self):
        conversation = [
            {"role": "user", "content": "Old question about TACOS"},
            {"role": "assistant", "content": "Maybe a RISOTTO?"},
            {"role": "user", "content": "Sounds GOOD"},
        ]

        assert conversation_tail(conversation) == "maybe a risotto? sounds good"

    def test_no_user_turn(self):
        assert conversation_tail([{"role": "assistant", "content": "hi"}]) == ""


class TestScoring:
    """Test keyword weights and confidence thresholds."""

    def test_cuisine_name_once_is_medium(self, detector):
        """Test that the cuisine name alone scores 3 (medium)."""
        detection = detector.detect(_user("Something Italian tonight?"))

        assert detection.cuisine == "Italian"
        assert detection.score == 3
        assert detection.confidence == "medium"

    def test_single_plain_keyword_is_low(self, detector):
        detection = detector.detect(_user("I want a curry"))

        assert detection.cuisine == "Indian"
        assert detection.score == 1
        assert detection.confidence == "low"

    def test_name_plus_keywords_is_high(self, detector):
        detection = detector.detect(_user("An Italian pasta with pesto"))

        assert detection.score == 5
        assert detection.confidence == "high"

    def test_thresholds(self):
        assert confidence_for(1) == "low"
        assert confidence_for(2) == "medium"
        assert confidence_for(4) == "medium"
        assert confidence_for(5) == "high"

    def test_whole_word_matching(self, detector):
        """Test that a keyword inside a longer word does not count."""
        assert detector.detect(_user("We are currying favor with dalliance")) is None

    def test_phrase_keyword_matches_across_whitespace(self, detector):
        """Test that a multi-word name matches as a phrase."""
        detection = detector.detect(_user("some middle\neastern food with hummus"))

        assert detection.cuisine == "Middle Eastern"
        assert detection.score == 4

    def test_tie_keeps_profile_order(self, detector):
        """Test that equal scores resolve to the earlier profile."""
        detection = detector.detect(_user("taco or curry?"))

        assert detection.cuisine == "Indian"
        assert [name for name, _ in detection.candidates] == ["Indian", "Mexican"]

    def test_inactive_profiles_ignored(self):
        detector = CuisineIntentDetector([CuisineProfile(cuisine_name="Thai", keywords=["thai"], is_active=False)])

        assert detector.detect(_user("thai food")) is None


class TestFavoritesFallback:
    def test_no_keywords_uses_favorite(self, detector):
        detection = detector.detect(_user("What should I cook?"), ["Klingon", "Mexican"])

        assert detection.cuisine == "Mexican"
        assert detection.confidence == "medium"
        assert detection.rationale.startswith("No cuisine keywords in the conversation")

    def test_no_keywords_no_favorites(self, detector):
        assert detector.detect(_user("What should I cook?"), []) is None


class TestResolveCuisineContext:
    def test_advisory_mode_never_injects(self, detector):
        """Test that advisory mode reports detection without guardrails."""
        guardrails, metadata = resolve_cuisine_context(detector, _user("Italian pasta with pesto"), [], "advisory")

        assert guardrails == ""
        assert metadata["cuisine"] == "Italian"
        assert metadata["confidence"] == "high"
        assert metadata["mode"] == "advisory"
        assert metadata["injected"] is False
        assert "candidates" not in metadata

    def test_inject_mode_injects_medium_and_high(self, detector):
        guardrails, metadata = resolve_cuisine_context(detector, _user("something italian"), [], "inject")

        assert guardrails.startswith("## Cuisine Focus: Italian")
        assert metadata["injected"] is True

    def test_inject_mode_skips_low_confidence(self, detector):
        guardrails, metadata = resolve_cuisine_context(detector, _user("a curry"), [], "inject")

        assert guardrails == ""
        assert metadata["confidence"] == "low"
        assert metadata["injected"] is False

    def test_forced_cuisine_always_injects(self, detector):
        """Test that forceCuisine overrides detection and mode."""
        guardrails, metadata = resolve_cuisine_context(
            detector, _user("tacos please"), [], "advisory", force_cuisine="indian"
        )

        assert "## Cuisine Focus: Indian" in guardrails
        assert metadata["confidence"] == "forced"
        assert metadata["mode"] == "forced"
        assert metadata["injected"] is True

    def test_unknown_forced_cuisine_falls_back_to_detection(self, detector):
        guardrails, metadata = resolve_cuisine_context(
            detector, _user("tacos with salsa"), [], "advisory", force_cuisine="Atlantean"
        )

        assert metadata["cuisine"] == "Mexican"
        assert metadata["mode"] == "advisory"

    def test_admin_gets_candidates(self, detector):
        _, metadata = resolve_cuisine_context(detector, _user("taco or curry"), [], "advisory", is_admin=True)

        assert metadata["candidates"] == [{"cuisine": "Indian", "score": 1}, {"cuisine": "Mexican", "score": 1}]

    def test_no_signal(self, detector):
        guardrails, metadata = resolve_cuisine_context(detector, _user("hello"), None, "inject", is_admin=True)

        assert guardrails == ""
        assert metadata["cuisine"] is None
        assert metadata["injected"] is False
        assert metadata["candidates"] == []


class TestRenderGuardrails:
    def test_structured_profile_data(self):
        profile = CuisineProfile(
            cuisine_name="Japanese",
            keywords=["japanese"],
            style_focus="Clean umami",
            profile_data={
                "flavor_balance_norms": "umami-forward, light",
                "technique_defaults": ["quick simmer"],
                "ingredient_boundaries": {"common": ["miso", "mirin"], "avoid": "cream"},
                "generation_guardrails": {"do_suggest": ["donburi"], "dont_suggest": ["fusion sushi pizza"]},
            },
        )

        text = render_guardrails(profile)

        assert "Style: Clean umami" in text
        assert "Common ingredients: miso, mirin" in text
        assert "Avoid ingredients: cream" in text
        assert "Technique defaults: quick simmer" in text
        assert "- DO suggest: donburi" in text
        assert "- DO NOT suggest: fusion sushi pizza" in text
