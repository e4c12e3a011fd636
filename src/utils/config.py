"""Configuration management for the Recommendation Orchestration Engine.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os
from typing import Optional

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Provider API keys: used when the caller does not supply its own key.
        # Each provider tag (openai, anthropic, google) has exactly one key.
        self.OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")
        self.ANTHROPIC_API_KEY: str = os.getenv("ANTHROPIC_API_KEY", "")
        self.GEMINI_API_KEY: str = os.getenv("GEMINI_API_KEY", "")
        # Provider endpoints (override for proxies or recorded fixtures)
        self.OPENAI_BASE_URL: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
        self.ANTHROPIC_BASE_URL: str = os.getenv("ANTHROPIC_BASE_URL", "https://api.anthropic.com")
        # Server Port
        self.PORT: int = int(os.getenv("PORT", "7777"))
        # CORS: comma-separated origins, "*" keeps preflights fully permissive
        self.CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")
        # Database URL: SQLite file in the working directory for local development,
        # postgresql+asyncpg in production
        self.DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./sous.db")
        # Create tables on startup (dev convenience, migrations live outside this service)
        self.CREATE_TABLES: bool = _env_bool("CREATE_TABLES", "true")

        # LLM Call Parameters
        # Temperature: 0.7 leaves room for variety between sessions
        self.TEMPERATURE: float = float(os.getenv("TEMPERATURE", "0.7"))
        # Max Output Tokens: hard cap sent to every provider
        self.MAX_OUTPUT_TOKENS: int = int(os.getenv("MAX_OUTPUT_TOKENS", "2048"))
        # Provider timeout in seconds; expiry counts as a provider failure
        self.PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))

        # Diversity Settings
        # RECENCY_WINDOW_DAYS: how far back single-session suppression looks
        self.RECENCY_WINDOW_DAYS: int = int(os.getenv("RECENCY_WINDOW_DAYS", "14"))
        # HEAVY_ROTATION_THRESHOLD: occurrences at which a protein/carb is flagged
        self.HEAVY_ROTATION_THRESHOLD: int = int(os.getenv("HEAVY_ROTATION_THRESHOLD", "2"))
        # WEEKLY_EXCLUSION_WINDOW_DAYS / LIMIT: weekly batch exclusion list window and prompt cap
        self.WEEKLY_EXCLUSION_WINDOW_DAYS: int = int(os.getenv("WEEKLY_EXCLUSION_WINDOW_DAYS", "35"))
        self.WEEKLY_EXCLUSION_LIMIT: int = int(os.getenv("WEEKLY_EXCLUSION_LIMIT", "50"))
        # WEEKLY_BATCH_SIZE: number of archetype slots in a weekly set
        self.WEEKLY_BATCH_SIZE: int = int(os.getenv("WEEKLY_BATCH_SIZE", "5"))

        # Cuisine Detection Mode: "advisory" or "inject"
        # "advisory": detection is surfaced as telemetry only
        # "inject": high/medium confidence detections add the cuisine guardrails to the prompt
        self.CUISINE_MODE: str = os.getenv("CUISINE_MODE", "advisory")

        # Weekly menu email (Resend-compatible HTTP API). Disabled when no key is set.
        self.RESEND_API_KEY: str = os.getenv("RESEND_API_KEY", "")
        self.EMAIL_API_URL: str = os.getenv("EMAIL_API_URL", "https://api.resend.com/emails")
        self.EMAIL_FROM: str = os.getenv("EMAIL_FROM", "Sous Weekly Menu <menu@example.com>")

        self.RATING_HISTORY_LIMIT: int = int(os.getenv("RATING_HISTORY_LIMIT", "20"))

    def provider_api_key(self, provider: str) -> Optional[str]:
        """Return the environment-configured key for a provider tag, or None."""
        keys = {
            "openai": self.OPENAI_API_KEY,
            "anthropic": self.ANTHROPIC_API_KEY,
            "google": self.GEMINI_API_KEY,
        }
        return keys.get(provider) or None

    @property
    def email_enabled(self) -> bool:
        return bool(self.RESEND_API_KEY)

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    def validate(self) -> None:
        """Validate configuration values.

        API keys are not required here: a missing key is reported per request
        as a configuration error once the serving model is known.

        Raises:
            ValueError: If an enumerated setting or numeric range is invalid.
        """
        if self.CUISINE_MODE not in ("advisory", "inject"):
            raise ValueError(
                f"CUISINE_MODE must be 'advisory' or 'inject', got: {self.CUISINE_MODE}"
            )
        if not (0.0 <= self.TEMPERATURE <= 2.0):
            raise ValueError(
                f"TEMPERATURE must be between 0.0 and 2.0, got: {self.TEMPERATURE}"
            )
        if self.MAX_OUTPUT_TOKENS < 512:
            raise ValueError(
                f"MAX_OUTPUT_TOKENS must be at least 512, got: {self.MAX_OUTPUT_TOKENS}"
            )
        if self.PROVIDER_TIMEOUT_SECONDS <= 0:
            raise ValueError(
                f"PROVIDER_TIMEOUT_SECONDS must be positive, got: {self.PROVIDER_TIMEOUT_SECONDS}"
            )
        if self.RECENCY_WINDOW_DAYS < 1 or self.WEEKLY_EXCLUSION_WINDOW_DAYS < 1:
            raise ValueError("Diversity windows must be at least 1 day")
        if self.HEAVY_ROTATION_THRESHOLD < 1:
            raise ValueError(
                f"HEAVY_ROTATION_THRESHOLD must be at least 1, got: {self.HEAVY_ROTATION_THRESHOLD}"
            )
        if self.WEEKLY_BATCH_SIZE < 1:
            raise ValueError(
                f"WEEKLY_BATCH_SIZE must be at least 1, got: {self.WEEKLY_BATCH_SIZE}"
            )


# Create module-level config instance and validate immediately
config = Config()
config.validate()
