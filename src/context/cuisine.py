"""Cuisine intent detection over the recent conversation.

Scoring: the latest user turn plus the assistant turn just before it are
lower-cased into one text. Every keyword of every active CuisineProfile is
counted as a whole word or phrase; a keyword equal to the cuisine's own name
weighs 3, any other keyword 1. The top score wins:

- score >= 5: high
- score >= 2: medium
- otherwise: low

With no keyword hit, the user's favorite cuisines are tried against the
profile names (confidence medium). Equal scores keep profile order.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from src.models.models import CuisineProfile
from src.utils.logger import logger

NAME_WEIGHT = 3
KEYWORD_WEIGHT = 1
HIGH_THRESHOLD = 5
MEDIUM_THRESHOLD = 2

CONFIDENCE_FORCED = "forced"
INJECTING_CONFIDENCES = ("high", "medium")


@dataclass
class CuisineDetection:
    cuisine: str
    confidence: str
    rationale: str
    score: int = 0
    profile: Optional[CuisineProfile] = None
    candidates: List[Tuple[str, int]] = field(default_factory=list)


def keyword_pattern(keyword: str) -> "re.Pattern[str]":
    """Whole-word pattern for a keyword; phrase words may be separated by any whitespace."""
    words = [re.escape(word) for word in keyword.lower().split()]
    return re.compile(r"(?<!\w)" + r"\s+".join(words) + r"(?!\w)", re.IGNORECASE)


def confidence_for(score: int) -> str:
    if score >= HIGH_THRESHOLD:
        return "high"
    if score >= MEDIUM_THRESHOLD:
        return "medium"
    return "low"


def conversation_tail(conversation: Sequence[Dict[str, str]]) -> str:
    """Latest user turn and the assistant turn immediately before it, lower-cased."""
    for index in range(len(conversation) - 1, -1, -1):
        if conversation[index].get("role") != "user":
            continue
        parts = [conversation[index].get("content") or ""]
        if index > 0 and conversation[index - 1].get("role") == "assistant":
            parts.insert(0, conversation[index - 1].get("content") or "")
        return " ".join(parts).lower()
    return ""


class CuisineIntentDetector:
    """Scores conversation text against a fixed set of cuisine profiles."""

    def __init__(self, profiles: Sequence[CuisineProfile]) -> None:
        self.profiles = [profile for profile in profiles if profile.is_active]
        self._patterns = [
            [(keyword, keyword_pattern(keyword)) for keyword in profile.keywords if keyword and keyword.strip()]
            for profile in self.profiles
        ]

    def score(self, text: str) -> List[Tuple[CuisineProfile, int]]:
        """Return (profile, score) for every profile scoring above zero, best first."""
        scored = []
        for profile, patterns in zip(self.profiles, self._patterns):
            total = 0
            name = profile.cuisine_name.lower()
            for keyword, pattern in patterns:
                hits = len(pattern.findall(text))
                if hits:
                    total += hits * (NAME_WEIGHT if keyword.strip().lower() == name else KEYWORD_WEIGHT)
            if total > 0:
                scored.append((profile, total))
        # sorted() is stable: ties keep profile order
        return sorted(scored, key=lambda item: item[1], reverse=True)

    def find(self, cuisine_name: str) -> Optional[CuisineProfile]:
        target = cuisine_name.strip().lower()
        for profile in self.profiles:
            if profile.cuisine_name.lower() == target:
                return profile
        return None

    def detect(
        self,
        conversation: Sequence[Dict[str, str]],
        favorite_cuisines: Optional[Sequence[str]] = None,
    ) -> Optional[CuisineDetection]:
        """Infer the cuisine the user is asking about, or None."""
        ranked = self.score(conversation_tail(conversation))
        if ranked:
            profile, top = ranked[0]
            return CuisineDetection(
                cuisine=profile.cuisine_name,
                confidence=confidence_for(top),
                rationale=f"Matched {profile.cuisine_name} keywords in the conversation (score {top})",
                score=top,
                profile=profile,
                candidates=[(p.cuisine_name, s) for p, s in ranked],
            )

        for favorite in favorite_cuisines or []:
            profile = self.find(favorite)
            if profile is not None:
                return CuisineDetection(
                    cuisine=profile.cuisine_name,
                    confidence="medium",
                    rationale=f"No cuisine keywords in the conversation; using favorite cuisine {profile.cuisine_name}",
                    profile=profile,
                )
        return None


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def render_guardrails(profile: CuisineProfile) -> str:
    """Render a profile's style and structured guardrails as instruction text."""
    data = profile.profile_data or {}
    lines = [f"## Cuisine Focus: {profile.cuisine_name}"]
    if profile.style_focus:
        lines.append(f"Style: {profile.style_focus}")
    if data.get("culinary_philosophy"):
        lines.append(f"Culinary philosophy: {data['culinary_philosophy']}")

    boundaries = data.get("ingredient_boundaries") or {}
    if _as_list(boundaries.get("common")):
        lines.append(f"Common ingredients: {', '.join(_as_list(boundaries.get('common')))}")
    if _as_list(boundaries.get("avoid")):
        lines.append(f"Avoid ingredients: {', '.join(_as_list(boundaries.get('avoid')))}")

    if _as_list(data.get("technique_defaults")):
        lines.append(f"Technique defaults: {', '.join(_as_list(data.get('technique_defaults')))}")
    if data.get("flavor_balance_norms"):
        lines.append(f"Flavor balance: {data['flavor_balance_norms']}")

    timing = (data.get("canonical_recipe_structure") or {}).get("timing_target")
    if timing:
        lines.append(f"Timing target: {timing}")

    guardrails = data.get("generation_guardrails") or {}
    for item in _as_list(guardrails.get("do_suggest")):
        lines.append(f"- DO suggest: {item}")
    for item in _as_list(guardrails.get("dont_suggest")):
        lines.append(f"- DO NOT suggest: {item}")

    lines.append("Suggestions should strongly express this cuisine's flavor identity without hard-to-find ingredients.")
    return "\n".join(lines)


def resolve_cuisine_context(
    detector: CuisineIntentDetector,
    conversation: Sequence[Dict[str, str]],
    favorite_cuisines: Optional[Sequence[str]],
    mode: str,
    force_cuisine: Optional[str] = None,
    is_admin: bool = False,
) -> Tuple[str, Dict[str, Any]]:
    """Decide which cuisine guardrails (if any) go into the prompt.

    Returns:
        tuple: (guardrail text or "", cuisineMetadata dict)
    """
    detection = None
    effective_mode = mode

    if force_cuisine:
        profile = detector.find(force_cuisine)
        if profile is not None:
            detection = CuisineDetection(
                cuisine=profile.cuisine_name,
                confidence=CONFIDENCE_FORCED,
                rationale=f"Cuisine forced by caller: {profile.cuisine_name}",
                profile=profile,
            )
            effective_mode = "forced"
        else:
            logger.warning(f"Forced cuisine '{force_cuisine}' has no active profile; falling back to detection")

    if detection is None:
        detection = detector.detect(conversation, favorite_cuisines)

    inject = detection is not None and (
        effective_mode == "forced" or (effective_mode == "inject" and detection.confidence in INJECTING_CONFIDENCES)
    )

    metadata: Dict[str, Any] = {
        "cuisine": detection.cuisine if detection else None,
        "confidence": detection.confidence if detection else None,
        "rationale": detection.rationale if detection else "No cuisine signal in the conversation",
        "mode": effective_mode,
        "injected": inject,
    }
    if is_admin:
        metadata["candidates"] = [
            {"cuisine": name, "score": score} for name, score in (detection.candidates if detection else [])
        ]

    if detection is not None:
        logger.info(
            f"Cuisine {detection.cuisine} ({detection.confidence}, mode={effective_mode}, injected={inject})"
        )

    guardrails = render_guardrails(detection.profile) if inject and detection.profile else ""
    return guardrails, metadata
