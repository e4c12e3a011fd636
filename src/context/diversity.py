"""Diversity constraints built from recommendation history.

Two modes:

- recency: suggestions from the last RECENCY_WINDOW_DAYS become a must-avoid
  title list, and any protein/carb seen HEAVY_ROTATION_THRESHOLD times or more
  is flagged as heavy rotation.
- weekly: titles from the last WEEKLY_EXCLUSION_WINDOW_DAYS (suggestions and
  weekly sets) become an exclusion list, and the batch must cover five
  archetype slots plus a cooking-method mix.

Only instruction text is produced. Whether the generator honors the
archetypes is not checked afterwards.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from src.models.models import SuggestionRecord
from src.store.store import Store
from src.store.tables import utcnow
from src.utils.config import config
from src.utils.logger import logger

CATEGORIES = ("protein", "carb")

ARCHETYPES = [
    "Poultry dish (Chicken, Turkey, Duck) - Crowd pleaser.",
    "Red Meat dish (Beef, Pork, Lamb) OR Rich Plant Protein - Comfort food.",
    "Fish/Seafood dish (or light Plant Protein) - Lighter option.",
    "Vegetarian/Vegan dish (Grain bowl, Pasta, Salad) - Plant forward.",
    "Wildcard (Something fun: Tacos, Pizza, Stir Fry, Casserole) - Family favorite.",
]

COOKING_METHODS = ["Sheet Pan/One Pot (Easy)", "Slow Cook/Simmer", "Quick Sauté/Grill"]


def normalize_category(value: Optional[str]) -> Optional[str]:
    """Lower-case and trim a tag value; empty and "none" carry no signal."""
    if not value:
        return None
    normalized = value.strip().lower()
    if not normalized or normalized == "none":
        return None
    return normalized


def _dedupe_titles(titles: Iterable[Any], limit: Optional[int] = None) -> List[str]:
    seen = set()
    unique = []
    for title in titles:
        if not isinstance(title, str):
            continue
        key = title.strip().lower()
        if not key or key in seen:
            continue
        seen.add(key)
        unique.append(title.strip())
        if limit is not None and len(unique) >= limit:
            break
    return unique


@dataclass
class RecencyContext:
    avoid_titles: List[str] = field(default_factory=list)
    counts: Dict[str, Counter] = field(default_factory=lambda: {category: Counter() for category in CATEGORIES})
    heavy_rotation: Dict[str, List[str]] = field(default_factory=lambda: {category: [] for category in CATEGORIES})

    @property
    def is_empty(self) -> bool:
        return not self.avoid_titles and not any(self.heavy_rotation.values())

    def render(self) -> str:
        if self.is_empty:
            return ""
        lines = ["## Variety Requirements (recent history)"]
        if self.avoid_titles:
            lines.append(
                "Do NOT suggest these recently recommended dishes again: " + ", ".join(self.avoid_titles) + "."
            )
        for category in CATEGORIES:
            heavy = self.heavy_rotation[category]
            if heavy:
                lines.append(
                    f"The user has had a lot of {', '.join(heavy)} recently. "
                    f"Steer away from {category} options in heavy rotation; other {category} choices are fine."
                )
        return "\n".join(lines)

    def metadata(self) -> Dict[str, Any]:
        return {
            "mode": "recency",
            "avoided": len(self.avoid_titles),
            "heavyRotation": {category: list(values) for category, values in self.heavy_rotation.items()},
        }


@dataclass
class WeeklyContext:
    exclusions: List[str] = field(default_factory=list)
    batch_size: int = 5

    def render(self) -> str:
        archetypes = "\n".join(f"{index}. {archetype}" for index, archetype in enumerate(ARCHETYPES, start=1))
        text = f"""## Weekly Menu Rules
Generate exactly {self.batch_size} unique, diverse dinner recipes.

CRITICAL VARIETY RULES (The "Archetypes"):
You MUST include one of each:
{archetypes}

CUISINE MIX:
Ensure a mix of different cuisines (e.g., Italian, Mexican, Indian, Japanese, etc.)

COOKING METHODS MIX:
1. Ensure a mix of: {', '.join(f"1 {method}" for method in COOKING_METHODS)}.
2. Ensure a mix of different cooking times - skew toward 30-45 minutes."""
        if self.exclusions:
            text += "\n\nAVOID REPEATS:\nDo NOT suggest these recently featured recipes: " + ", ".join(self.exclusions) + "."
        return text

    def metadata(self) -> Dict[str, Any]:
        return {"mode": "weekly", "avoided": len(self.exclusions), "heavyRotation": {c: [] for c in CATEGORIES}}


def build_recency_context(
    records: Sequence[SuggestionRecord],
    now: Optional[datetime] = None,
    window_days: Optional[int] = None,
    threshold: Optional[int] = None,
) -> RecencyContext:
    """Summarize recent suggestions into avoid titles and heavy-rotation categories.

    Records older than the window are ignored even if the caller passes them.
    """
    now = now or utcnow()
    window_days = window_days or config.RECENCY_WINDOW_DAYS
    threshold = threshold or config.HEAVY_ROTATION_THRESHOLD
    since = now - timedelta(days=window_days)

    recent = [record for record in records if record.created_at is None or record.created_at >= since]

    context = RecencyContext(avoid_titles=_dedupe_titles(record.title for record in recent))
    for record in recent:
        for category in CATEGORIES:
            value = normalize_category(getattr(record, category))
            if value:
                context.counts[category][value] += 1

    for category in CATEGORIES:
        # most_common keeps first-seen order among equal counts
        context.heavy_rotation[category] = [
            value for value, count in context.counts[category].most_common() if count >= threshold
        ]
    return context


def build_weekly_context(
    suggestion_titles: Iterable[Tuple[datetime, str]],
    weekly_titles: Iterable[Tuple[datetime, str]],
    limit: Optional[int] = None,
    batch_size: Optional[int] = None,
) -> WeeklyContext:
    """Merge both title sources newest first, de-duplicate case-insensitively and cap."""
    limit = limit or config.WEEKLY_EXCLUSION_LIMIT
    merged = sorted([*suggestion_titles, *weekly_titles], key=lambda item: item[0], reverse=True)
    return WeeklyContext(
        exclusions=_dedupe_titles((title for _, title in merged), limit=limit),
        batch_size=batch_size or config.WEEKLY_BATCH_SIZE,
    )


async def load_recency_context(store: Store, user_id: str, now: Optional[datetime] = None) -> RecencyContext:
    now = now or utcnow()
    records = await store.recent_suggestions(user_id, now - timedelta(days=config.RECENCY_WINDOW_DAYS))
    context = build_recency_context(records, now=now)
    logger.info(
        f"Recency context: {len(context.avoid_titles)} avoided, heavy rotation {context.heavy_rotation}",
        extra={"user_id": user_id},
    )
    return context


async def load_weekly_context(store: Store, user_id: str, now: Optional[datetime] = None) -> WeeklyContext:
    now = now or utcnow()
    since = now - timedelta(days=config.WEEKLY_EXCLUSION_WINDOW_DAYS)
    suggestions = await store.recent_suggestions(user_id, since)
    weekly_titles = await store.recent_weekly_titles(user_id, since)
    context = build_weekly_context(
        [(record.created_at or now, record.title) for record in suggestions],
        weekly_titles,
    )
    logger.info(f"Weekly context: excluding {len(context.exclusions)} recent titles", extra={"user_id": user_id})
    return context
