"""Model and API key resolution for a user session.

Resolution order:
1. The user's assigned model, when it exists and is active
2. The unique active system default
3. Otherwise a ConfigError; nothing is guessed

Keys: a caller-supplied key beats the per-provider environment key.
"""

from typing import Optional

from src.models.models import ModelConfig
from src.orchestrator.errors import ConfigError
from src.store.store import Store
from src.utils.config import config
from src.utils.logger import logger


class ModelSelector:
    """Resolves which ModelConfig and API key serve a request."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def resolve(self, user_id: Optional[str] = None) -> ModelConfig:
        """Return the model for ``user_id``, falling back to the system default.

        Raises:
            ConfigError: If neither an assigned nor a default model is usable.
        """
        if user_id:
            profile = await self.store.get_user_profile(user_id)
            assigned_id = profile.assigned_model_id if profile else None
            if assigned_id:
                model = await self.store.get_model(assigned_id)
                if model and model.is_active:
                    logger.debug(f"Using assigned model {model.id}", extra={"user_id": user_id})
                    return model
                logger.warning(
                    f"Assigned model {assigned_id} is missing or inactive; using default",
                    extra={"user_id": user_id},
                )

        return await self.default()

    async def default(self) -> ModelConfig:
        """Return the active system default model.

        Raises:
            ConfigError: If no active default model is configured.
        """
        model = await self.store.get_default_model()
        if model is None:
            raise ConfigError("No AI model is configured.")
        return model

    @staticmethod
    def resolve_api_key(model: ModelConfig, caller_key: Optional[str] = None) -> str:
        """Return the key for the model's provider.

        Raises:
            ConfigError: If neither the caller nor the environment supplies a key.
        """
        if caller_key:
            return caller_key
        key = config.provider_api_key(model.provider)
        if not key:
            raise ConfigError(f"No API key is configured for provider '{model.provider}'.")
        return key

    @staticmethod
    def fallback_api_key(primary: ModelConfig, fallback: ModelConfig, caller_key: Optional[str] = None) -> Optional[str]:
        """Return the key for the fallback call, or None when none is usable.

        A caller key only carries over when the fallback speaks the same provider protocol.
        """
        if caller_key and fallback.provider == primary.provider:
            return caller_key
        return config.provider_api_key(fallback.provider)
