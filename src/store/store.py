"""Async store over the recommendation tables.

The orchestrator keeps no durable state of its own: every cross-request
fact (assigned models, cuisine taxonomy, suggestion history, weekly sets)
is read from and written to this store. Reads return domain objects from
src.models.models; rows never leak out of this module.
"""

from datetime import date, datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from src.models.models import (
    RATING_VALUES,
    CuisineProfile,
    ModelConfig,
    RatingHistoryItem,
    Suggestion,
    SuggestionRecord,
    UserPreferences,
    UserProfile,
)
from src.orchestrator.errors import ConfigError
from src.store.tables import (
    Base,
    CuisineProfileRow,
    LLMModelRow,
    RecipeRatingRow,
    SuggestionHistoryRow,
    UserPreferencesRow,
    UserProfileRow,
    WeeklyMealSetRow,
    new_id,
    utcnow,
)
from src.utils.logger import logger

UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _model_from_row(row: LLMModelRow) -> ModelConfig:
    return ModelConfig(
        id=row.id,
        provider=row.provider,
        model_identifier=row.model_identifier,
        model_name=row.model_name,
        is_active=bool(row.is_active),
        is_default=bool(row.is_default),
    )


class Store:
    """Keyed lookups, ranged history reads, inserts and the weekly upsert."""

    def __init__(self, engine: AsyncEngine) -> None:
        self._engine = engine
        self._session_factory = async_sessionmaker(engine, expire_on_commit=False)

    @property
    def dialect(self) -> str:
        return self._engine.dialect.name

    async def create_all(self) -> None:
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def close(self) -> None:
        await self._engine.dispose()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def get_user_profile(self, user_id: str) -> Optional[UserProfile]:
        async with self._session_factory() as session:
            row = await session.get(UserProfileRow, user_id)
        if row is None:
            return None
        return UserProfile(
            user_id=row.user_id,
            email=row.email,
            status=row.status,
            is_admin=bool(row.is_admin),
            assigned_model_id=row.assigned_model_id,
        )

    async def save_user_profile(self, profile: UserProfile) -> None:
        async with self._session_factory() as session:
            await session.merge(
                UserProfileRow(
                    user_id=profile.user_id,
                    email=profile.email,
                    status=profile.status,
                    is_admin=profile.is_admin,
                    assigned_model_id=profile.assigned_model_id,
                )
            )
            await session.commit()

    async def get_preferences(self, user_id: str) -> Optional[UserPreferences]:
        async with self._session_factory() as session:
            row = await session.get(UserPreferencesRow, user_id)
        if row is None:
            return None
        return UserPreferences.model_validate(
            {column.name: getattr(row, column.name) for column in UserPreferencesRow.__table__.columns}
        )

    async def save_preferences(self, user_id: str, preferences: UserPreferences) -> None:
        async with self._session_factory() as session:
            await session.merge(UserPreferencesRow(user_id=user_id, **preferences.model_dump()))
            await session.commit()

    async def get_rating_history(self, user_id: str, limit: int = 20) -> List[RatingHistoryItem]:
        stmt = (
            select(RecipeRatingRow)
            .where(RecipeRatingRow.user_id == user_id)
            .order_by(RecipeRatingRow.created_at.desc(), RecipeRatingRow.id.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        history = []
        for row in rows:
            if row.rating not in RATING_VALUES:
                logger.warning(f"Skipping rating {row.id} with unknown value {row.rating!r}", extra={"user_id": user_id})
                continue
            history.append(
                RatingHistoryItem(
                    rating=row.rating,
                    feedback=row.feedback,
                    recipe={"title": row.recipe_title, "tags": row.recipe_tags or []},
                )
            )
        return history

    async def add_rating(
        self, user_id: str, title: str, rating: str, tags: Iterable[str] = (), feedback: Optional[str] = None
    ) -> None:
        async with self._session_factory() as session:
            session.add(
                RecipeRatingRow(
                    user_id=user_id, recipe_title=title, recipe_tags=list(tags), rating=rating, feedback=feedback
                )
            )
            await session.commit()

    # ------------------------------------------------------------------
    # Models
    # ------------------------------------------------------------------

    async def get_model(self, model_id: str) -> Optional[ModelConfig]:
        async with self._session_factory() as session:
            row = await session.get(LLMModelRow, model_id)
        return _model_from_row(row) if row else None

    async def get_default_model(self) -> Optional[ModelConfig]:
        """Return the unique active default model, or None.

        More than one active default is a configuration fault; the oldest wins
        and the fault is logged.
        """
        stmt = (
            select(LLMModelRow)
            .where(LLMModelRow.is_default.is_(True), LLMModelRow.is_active.is_(True))
            .order_by(LLMModelRow.created_at)
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        if not rows:
            return None
        if len(rows) > 1:
            logger.error(f"{len(rows)} active default models configured; using {rows[0].id}")
        return _model_from_row(rows[0])

    async def add_model(self, model: ModelConfig) -> None:
        async with self._session_factory() as session:
            session.add(
                LLMModelRow(
                    id=model.id,
                    provider=model.provider,
                    model_identifier=model.model_identifier,
                    model_name=model.model_name,
                    is_active=model.is_active,
                    is_default=model.is_default,
                )
            )
            await session.commit()

    async def count_models(self) -> int:
        async with self._session_factory() as session:
            return len((await session.scalars(select(LLMModelRow.id))).all())

    # ------------------------------------------------------------------
    # Cuisine taxonomy
    # ------------------------------------------------------------------

    async def list_active_cuisine_profiles(self) -> List[CuisineProfile]:
        """Active profiles in insertion order; detection tie-breaks rely on this order."""
        stmt = select(CuisineProfileRow).where(CuisineProfileRow.is_active.is_(True)).order_by(CuisineProfileRow.id)
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        return [
            CuisineProfile(
                cuisine_name=row.cuisine_name,
                keywords=list(row.keywords or []),
                style_focus=row.style_focus or "",
                is_active=True,
                profile_data=dict(row.profile_data or {}),
            )
            for row in rows
        ]

    async def count_cuisine_profiles(self) -> int:
        async with self._session_factory() as session:
            return len((await session.scalars(select(CuisineProfileRow.id))).all())

    async def add_cuisine_profile(self, profile: CuisineProfile) -> None:
        async with self._session_factory() as session:
            session.add(
                CuisineProfileRow(
                    cuisine_name=profile.cuisine_name,
                    keywords=list(profile.keywords),
                    style_focus=profile.style_focus,
                    is_active=profile.is_active,
                    profile_data=profile.profile_data or None,
                )
            )
            await session.commit()

    # ------------------------------------------------------------------
    # Suggestion history
    # ------------------------------------------------------------------

    async def recent_suggestions(self, user_id: str, since: datetime) -> List[SuggestionRecord]:
        """Suggestions emitted for the user at or after ``since``, newest first."""
        stmt = (
            select(SuggestionHistoryRow)
            .where(SuggestionHistoryRow.user_id == user_id, SuggestionHistoryRow.created_at >= since)
            .order_by(SuggestionHistoryRow.created_at.desc(), SuggestionHistoryRow.id.desc())
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        return [
            SuggestionRecord(
                title=row.title,
                type=row.type,
                protein=row.protein,
                carb=row.carb,
                method=row.method,
                created_at=row.created_at,
            )
            for row in rows
        ]

    async def insert_suggestions(
        self, user_id: str, suggestions: List[Suggestion], created_at: Optional[datetime] = None
    ) -> int:
        """Persist validated suggestions as immutable history records."""
        if not suggestions:
            return 0
        timestamp = created_at or utcnow()
        async with self._session_factory() as session:
            session.add_all(
                [
                    SuggestionHistoryRow(
                        user_id=user_id,
                        title=suggestion.title,
                        type=suggestion.type,
                        description=suggestion.description,
                        cuisine=suggestion.cuisine,
                        protein=suggestion.tags.protein if suggestion.tags else None,
                        carb=suggestion.tags.carb if suggestion.tags else None,
                        method=suggestion.tags.method if suggestion.tags else None,
                        full_details=suggestion.full_details.model_dump() if suggestion.full_details else None,
                        created_at=timestamp,
                    )
                    for suggestion in suggestions
                ]
            )
            await session.commit()
        return len(suggestions)

    # ------------------------------------------------------------------
    # Weekly meal sets
    # ------------------------------------------------------------------

    async def recent_weekly_titles(self, user_id: str, since: datetime) -> List[Tuple[datetime, str]]:
        """(set timestamp, recipe title) pairs from weekly sets touched at or after ``since``, newest set first."""
        stmt = (
            select(WeeklyMealSetRow.updated_at, WeeklyMealSetRow.recipes)
            .where(WeeklyMealSetRow.user_id == user_id, WeeklyMealSetRow.updated_at >= since)
            .order_by(WeeklyMealSetRow.updated_at.desc())
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).all()
        titles = []
        for updated_at, recipes in rows:
            for recipe in recipes or []:
                if isinstance(recipe, dict) and isinstance(recipe.get("title"), str) and recipe["title"].strip():
                    titles.append((updated_at, recipe["title"]))
        return titles

    async def upsert_weekly_set(self, user_id: str, week_start: date, recipes: List[dict]) -> None:
        """Insert or replace the (user, week) set in one conditional write."""
        try:
            insert = UPSERT_DIALECTS[self.dialect]
        except KeyError:
            raise ConfigError(f"Weekly upsert is not supported on database dialect '{self.dialect}'.") from None

        now = utcnow()
        stmt = insert(WeeklyMealSetRow).values(
            id=new_id(),
            user_id=user_id,
            week_start_date=week_start,
            recipes=recipes,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "week_start_date"],
            set_={"recipes": stmt.excluded.recipes, "updated_at": stmt.excluded.updated_at},
        )
        async with self._session_factory() as session:
            await session.execute(stmt)
            await session.commit()

    async def get_weekly_sets(self, user_id: str) -> List[dict]:
        stmt = (
            select(WeeklyMealSetRow)
            .where(WeeklyMealSetRow.user_id == user_id)
            .order_by(WeeklyMealSetRow.week_start_date.desc())
        )
        async with self._session_factory() as session:
            rows = (await session.scalars(stmt)).all()
        return [{"week_start_date": row.week_start_date, "recipes": row.recipes} for row in rows]


def create_store(database_url: str) -> Store:
    """Build a Store for a SQLAlchemy async URL.

    In-memory SQLite URLs share one connection so every session sees the same database.
    """
    if database_url.startswith("sqlite") and (":memory:" in database_url or database_url.endswith("://")):
        engine = create_async_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    else:
        engine = create_async_engine(database_url, pool_pre_ping=True)
    logger.info(f"Store configured on dialect '{engine.dialect.name}'")
    return Store(engine)
