"""Seed default reference data: the cuisine taxonomy and the model catalogue.

Runs at startup and only fills tables that are still empty, so
administrator edits are never overwritten.
"""

from src.models.models import CuisineProfile, ModelConfig
from src.store.store import Store
from src.utils.logger import logger


SEED_CUISINES = [
    {
        "cuisine_name": "Chinese",
        "keywords": ["chinese", "stir-fry", "stir fry", "wok", "velveting", "szechuan", "dumpling", "lo mein", "fried rice", "bok choy"],
        "style_focus": "Clear techniques (velveting, stir-fry order, sauces); balanced, bright, family-style dishes",
        "profile_data": {
            "flavor_balance_norms": "balanced stir-fry sauces, aromatics (ginger, garlic), mild heat",
            "technique_defaults": ["velveting", "high-heat stir-fry in stages", "sauce added at the end"],
        },
    },
    {
        "cuisine_name": "Mexican",
        "keywords": ["mexican", "taco", "tacos", "enchilada", "salsa", "tortilla", "chipotle", "pozole", "burrito", "mole"],
        "style_focus": "Bright citrus, tomato bases, mild chiles; authentic but accessible home-cooking",
        "profile_data": {"flavor_balance_norms": "bright citrus, mild chiles, tomato bases"},
    },
    {
        "cuisine_name": "Italian",
        "keywords": ["italian", "pasta", "risotto", "parmesan", "pesto", "gnocchi", "carbonara", "marinara", "focaccia"],
        "style_focus": "Simple ingredients, technique-driven pastas; emphasis on emulsification, aromatics, herbs",
        "profile_data": {
            "flavor_balance_norms": "emulsified pasta sauces, garlic/herbs, a few high-quality ingredients",
            "technique_defaults": ["finish pasta in the sauce with starchy pasta water"],
        },
    },
    {
        "cuisine_name": "American",
        "keywords": ["american", "burger", "bbq", "barbecue", "meatloaf", "mac and cheese", "casserole", "sheet pan", "skillet"],
        "style_focus": "Weeknight comfort, sheet pans, skillet meals; modern flavor-forward home cooking",
        "profile_data": {"flavor_balance_norms": "sheet pans, skillet dinners, approachable comfort flavors"},
    },
    {
        "cuisine_name": "Indian",
        "keywords": ["indian", "curry", "masala", "tikka", "dal", "biryani", "paneer", "tandoori", "garam masala", "korma"],
        "style_focus": "Layered aromatics, warm spices; manageable weeknight shortcuts; moderate heat unless requested",
        "profile_data": {"flavor_balance_norms": "layered aromatics, warm spices, but moderate heat"},
    },
    {
        "cuisine_name": "Greek",
        "keywords": ["greek", "tzatziki", "souvlaki", "feta", "gyro", "spanakopita", "oregano", "moussaka"],
        "style_focus": "Lemon, oregano, yogurt-based sauces; grilled/roasted lean proteins",
        "profile_data": {"flavor_balance_norms": "lemon, oregano, yogurt sauces, grilled or roasted lean proteins"},
    },
    {
        "cuisine_name": "Middle Eastern",
        "keywords": ["middle eastern", "hummus", "falafel", "za'atar", "sumac", "kebab", "tabbouleh", "fattoush"],
        "style_focus": "Garlic, lemon, cumin, warm spices; balanced, herb-forward, approachable",
        "profile_data": {"flavor_balance_norms": "garlic, lemon, cumin, warm spices, fresh herbs"},
    },
    {
        "cuisine_name": "Israeli",
        "keywords": ["israeli", "shawarma", "tahini", "shakshuka", "sabich", "schnitzel", "israeli salad"],
        "style_focus": "Shawarma spices, tahini, roasted vegetables; salads + proteins paired smartly",
        "profile_data": {"flavor_balance_norms": "shawarma spices, tahini, roasted veg, salads + proteins"},
    },
    {
        "cuisine_name": "Japanese",
        "keywords": ["japanese", "teriyaki", "miso", "ramen", "donburi", "sushi", "mirin", "katsu", "udon"],
        "style_focus": "Mild, balanced, umami-rich; rice bowls, seared proteins, miso, soy/mirin; comforting homestyle dishes",
        "profile_data": {"flavor_balance_norms": "mild broths, soy/mirin balances, donburi, pan-seared proteins"},
    },
    {
        "cuisine_name": "French",
        "keywords": ["french", "bistro", "dijon", "coq au vin", "ratatouille", "beurre blanc", "gratin", "provencal"],
        "style_focus": "Pan sauces, Dijon, herbs, bright acidity; simple technique with modern warmth",
        "profile_data": {"flavor_balance_norms": "pan sauces, Dijon, herbs, wine (optional), modern bistro simplicity"},
    },
]

SEED_MODELS = [
    {
        "id": "openai-gpt-4o-mini",
        "provider": "openai",
        "model_identifier": "gpt-4o-mini",
        "model_name": "GPT-4o mini",
        "is_default": True,
    },
    {
        "id": "anthropic-claude-sonnet",
        "provider": "anthropic",
        "model_identifier": "claude-3-5-sonnet-20241022",
        "model_name": "Claude 3.5 Sonnet",
    },
    {
        "id": "google-gemini-flash",
        "provider": "google",
        "model_identifier": "gemini-2.5-flash",
        "model_name": "Gemini 2.5 Flash",
    },
]


async def seed_reference_data(store: Store) -> None:
    """Insert default cuisine profiles and models into empty tables."""
    if await store.count_cuisine_profiles() == 0:
        for data in SEED_CUISINES:
            await store.add_cuisine_profile(CuisineProfile(**data))
        logger.info(f"Seeded {len(SEED_CUISINES)} cuisine profiles")

    if await store.count_models() == 0:
        for data in SEED_MODELS:
            await store.add_model(ModelConfig(**data))
        logger.info(f"Seeded {len(SEED_MODELS)} models (default: {SEED_MODELS[0]['model_identifier']})")
