"""Pytest configuration and fixtures for integration tests.

Ensures environment variables are loaded and skips the suite when no
provider API key is configured.
"""

import os
from pathlib import Path

import pytest
from dotenv import load_dotenv

PROVIDER_KEYS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GEMINI_API_KEY")


def pytest_configure(config):
    """Load .env before collection and keep integration runs off the dev database."""
    env_path = Path(__file__).parent.parent.parent / ".env"
    load_dotenv(env_path)

    # Weekly emails are never sent from integration runs
    os.environ["RESEND_API_KEY"] = ""

    print("\n" + "=" * 70)
    print("Note: These tests call live LLM providers and need app.py running")
    print(f"Environment loaded from: {env_path}")
    print("  - Weekly email: DISABLED")
    print("=" * 70 + "\n")


@pytest.fixture(scope="session", autouse=True)
def check_api_keys():
    """Skip the integration suite when no provider key is configured."""
    if not any(os.getenv(name) for name in PROVIDER_KEYS):
        pytest.skip(
            f"Integration tests skipped. Set one of {', '.join(PROVIDER_KEYS)} in your .env file.",
            allow_module_level=True,
        )
