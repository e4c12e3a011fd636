"""SQLAlchemy table definitions for the persistent store.

Timestamps are stored as naive UTC so SQLite (development, tests) and
PostgreSQL compare them the same way.
"""

import uuid
from datetime import date, datetime, timezone

from sqlalchemy import JSON, Boolean, Date, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    pass


class UserProfileRow(Base):
    __tablename__ = "user_profiles"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    email: Mapped[str | None] = mapped_column(String(320))
    status: Mapped[str] = mapped_column(String(20), default="APPROVED")
    is_admin: Mapped[bool] = mapped_column(Boolean, default=False)
    assigned_model_id: Mapped[str | None] = mapped_column(String(64))


class UserPreferencesRow(Base):
    __tablename__ = "user_preferences"

    user_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    favorite_cuisines: Mapped[list | None] = mapped_column(JSON, default=list)
    favorite_dishes: Mapped[list | None] = mapped_column(JSON, default=list)
    dietary_style: Mapped[str | None] = mapped_column(String(100))
    food_restrictions: Mapped[list | None] = mapped_column(JSON, default=list)
    time_preference: Mapped[str | None] = mapped_column(String(20))
    skill_level: Mapped[str | None] = mapped_column(String(50))
    household_size: Mapped[int | None] = mapped_column(Integer)
    spice_preference: Mapped[str | None] = mapped_column(String(50))
    cooking_equipment: Mapped[list | None] = mapped_column(JSON, default=list)
    additional_notes: Mapped[str | None] = mapped_column(Text)


class LLMModelRow(Base):
    __tablename__ = "llm_models"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    provider: Mapped[str] = mapped_column(String(20), nullable=False)
    model_identifier: Mapped[str] = mapped_column(String(200), nullable=False)
    model_name: Mapped[str] = mapped_column(String(200), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class CuisineProfileRow(Base):
    __tablename__ = "cuisine_profiles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cuisine_name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    keywords: Mapped[list] = mapped_column(JSON, default=list)
    style_focus: Mapped[str] = mapped_column(Text, default="")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    profile_data: Mapped[dict | None] = mapped_column(JSON)


class SuggestionHistoryRow(Base):
    __tablename__ = "suggestion_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    cuisine: Mapped[str | None] = mapped_column(String(100))
    protein: Mapped[str | None] = mapped_column(String(100))
    carb: Mapped[str | None] = mapped_column(String(100))
    method: Mapped[str | None] = mapped_column(String(100))
    full_details: Mapped[dict | None] = mapped_column(JSON)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)


class WeeklyMealSetRow(Base):
    __tablename__ = "weekly_meal_sets"
    __table_args__ = (UniqueConstraint("user_id", "week_start_date", name="uq_weekly_meal_sets_user_week"),)

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    week_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    recipes: Mapped[list] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)


class RecipeRatingRow(Base):
    __tablename__ = "recipe_ratings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    recipe_title: Mapped[str] = mapped_column(String(200), nullable=False)
    recipe_tags: Mapped[list | None] = mapped_column(JSON, default=list)
    rating: Mapped[str] = mapped_column(String(20), nullable=False)
    feedback: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
