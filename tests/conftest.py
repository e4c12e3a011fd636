"""Shared fixtures: an in-memory store and canned reference data."""

import pytest
import pytest_asyncio

from src.models.models import CuisineProfile, UserProfile
from src.store.store import create_store
from tests.factories import ASSIGNED_MODEL, DEFAULT_MODEL


@pytest.fixture
def cuisine_profiles():
    return [
        CuisineProfile(cuisine_name="Italian", keywords=["italian", "pasta", "risotto", "pesto"], style_focus="Simple"),
        CuisineProfile(cuisine_name="Indian", keywords=["indian", "curry", "masala", "dal"], style_focus="Warm spices"),
        CuisineProfile(cuisine_name="Mexican", keywords=["mexican", "taco", "salsa"], style_focus="Bright citrus"),
        CuisineProfile(cuisine_name="Middle Eastern", keywords=["middle eastern", "hummus", "sumac"]),
    ]


@pytest_asyncio.fixture
async def store():
    store = create_store("sqlite+aiosqlite://")
    await store.create_all()
    yield store
    await store.close()


@pytest_asyncio.fixture
async def seeded_store(store, cuisine_profiles):
    """Store with a default model, an assigned model, cuisine profiles and one approved user."""
    await store.add_model(DEFAULT_MODEL)
    await store.add_model(ASSIGNED_MODEL)
    for profile in cuisine_profiles:
        await store.add_cuisine_profile(profile)
    await store.save_user_profile(
        UserProfile(user_id="user-1", email="cook@example.com", status="APPROVED", assigned_model_id=ASSIGNED_MODEL.id)
    )
    return store
