"""Uniform completion interface over the supported LLM vendor SDKs.

Each provider tag maps to one ProviderClient variant:

- ``openai``: ``AsyncOpenAI`` chat completions, system message first,
  ``response_format=json_object``
- ``anthropic``: ``AsyncAnthropic`` messages API with a top-level ``system``
- ``google``: Gemini ``contents`` array (``assistant`` turns become ``model``),
  called through the google-genai SDK

All variants request JSON-only output and cap generated length. SDK retries
are disabled; any error status, transport failure, timeout or malformed
response raises ProviderError. Fallback is the orchestrator's call.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, List, Optional

import anthropic
import openai
from anthropic import AsyncAnthropic
from google import genai
from google.genai import errors as genai_errors
from google.genai import types
from openai import AsyncOpenAI

from src.orchestrator.errors import ConfigError, ProviderError
from src.utils.config import config
from src.utils.logger import logger

Conversation = List[Dict[str, str]]

FORWARDED_ROLES = ("user", "assistant")


def filter_conversation(conversation: Conversation) -> Conversation:
    """Keep only user/assistant turns with text; system text travels separately."""
    turns = []
    for turn in conversation:
        role = turn.get("role")
        content = turn.get("content")
        if role in FORWARDED_ROLES and isinstance(content, str) and content.strip():
            turns.append({"role": role, "content": content})
        else:
            logger.debug(f"Dropping conversation turn with role={role!r}")
    return turns


class ProviderClient(ABC):
    """One LLM wire protocol behind a single ``complete`` capability."""

    provider: str = ""

    def __init__(
        self,
        max_output_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.max_output_tokens = max_output_tokens or config.MAX_OUTPUT_TOKENS
        self.temperature = config.TEMPERATURE if temperature is None else temperature
        self.timeout_seconds = timeout_seconds or config.PROVIDER_TIMEOUT_SECONDS

    @abstractmethod
    async def complete(
        self,
        model_identifier: str,
        api_key: str,
        conversation: Conversation,
        system_instructions: str,
    ) -> str:
        """Return the raw text generated for the conversation."""

    def _status_error(self, status: int, body: object, message: str) -> ProviderError:
        logger.error(f"{self.provider} returned HTTP {status}: {message[:500]}", extra={"provider": self.provider})
        return ProviderError(self.provider, status, str(body if body is not None else message))

    def _transport_error(self, error: Exception, timed_out: bool) -> ProviderError:
        if timed_out:
            return ProviderError(self.provider, None, f"timed out after {self.timeout_seconds}s")
        return ProviderError(self.provider, None, str(error))


class OpenAIProvider(ProviderClient):
    provider = "openai"

    async def complete(self, model_identifier, api_key, conversation, system_instructions):
        async with AsyncOpenAI(
            api_key=api_key,
            base_url=config.OPENAI_BASE_URL,
            timeout=self.timeout_seconds,
            max_retries=0,
        ) as client:
            try:
                response = await client.chat.completions.create(
                    model=model_identifier,
                    messages=[{"role": "system", "content": system_instructions}, *filter_conversation(conversation)],
                    response_format={"type": "json_object"},
                    temperature=self.temperature,
                    max_tokens=self.max_output_tokens,
                )
            except openai.APIStatusError as e:
                raise self._status_error(e.status_code, e.body, e.message) from e
            except openai.APIConnectionError as e:
                raise self._transport_error(e, isinstance(e, openai.APITimeoutError)) from e

        try:
            text = response.choices[0].message.content
        except (AttributeError, IndexError, TypeError) as e:
            raise ProviderError(self.provider, 200, f"unexpected response shape: {str(response)[:200]}") from e
        if not text:
            raise ProviderError(self.provider, 200, "empty completion in response")
        return text


class AnthropicProvider(ProviderClient):
    provider = "anthropic"

    async def complete(self, model_identifier, api_key, conversation, system_instructions):
        # The messages API has no JSON mode; the system instructions carry the JSON-only contract.
        async with AsyncAnthropic(
            api_key=api_key,
            base_url=config.ANTHROPIC_BASE_URL,
            timeout=self.timeout_seconds,
            max_retries=0,
        ) as client:
            try:
                response = await client.messages.create(
                    model=model_identifier,
                    max_tokens=self.max_output_tokens,
                    temperature=self.temperature,
                    system=system_instructions,
                    messages=filter_conversation(conversation),
                )
            except anthropic.APIStatusError as e:
                raise self._status_error(e.status_code, e.body, e.message) from e
            except anthropic.APIConnectionError as e:
                raise self._transport_error(e, isinstance(e, anthropic.APITimeoutError)) from e

        try:
            return "".join(block.text for block in response.content if block.type == "text")
        except (AttributeError, TypeError) as e:
            raise ProviderError(self.provider, 200, f"unexpected response shape: {str(response)[:200]}") from e


class GeminiProvider(ProviderClient):
    provider = "google"

    @staticmethod
    def to_contents(conversation: Conversation) -> List[types.Content]:
        """Map internal turns onto Gemini contents; ``assistant`` is called ``model`` there."""
        return [
            types.Content(
                role="model" if turn["role"] == "assistant" else "user",
                parts=[types.Part(text=turn["content"])],
            )
            for turn in filter_conversation(conversation)
        ]

    async def complete(self, model_identifier, api_key, conversation, system_instructions):
        client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(timeout=int(self.timeout_seconds * 1000)),
        )
        generation_config = types.GenerateContentConfig(
            system_instruction=system_instructions,
            temperature=self.temperature,
            max_output_tokens=self.max_output_tokens,
            response_mime_type="application/json",
        )
        try:
            response = await asyncio.wait_for(
                client.aio.models.generate_content(
                    model=model_identifier,
                    contents=self.to_contents(conversation),
                    config=generation_config,
                ),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(self.provider, None, f"timed out after {self.timeout_seconds}s") from e
        except genai_errors.APIError as e:
            logger.error(f"google returned HTTP {e.code}: {e.message}", extra={"provider": self.provider})
            raise ProviderError(self.provider, e.code, str(e.message or e)) from e
        except Exception as e:
            # Transport-level failures inside the SDK (connection reset, DNS, TLS)
            raise ProviderError(self.provider, None, str(e)) from e

        text = response.text
        if not text:
            raise ProviderError(self.provider, 200, "empty candidate in response")
        return text


PROVIDERS = {
    OpenAIProvider.provider: OpenAIProvider,
    AnthropicProvider.provider: AnthropicProvider,
    GeminiProvider.provider: GeminiProvider,
}


def get_provider(provider_tag: str, **kwargs) -> ProviderClient:
    """Single dispatch point from provider tag to ProviderClient variant.

    Raises:
        ConfigError: If the tag names no supported wire protocol.
    """
    try:
        provider_cls = PROVIDERS[provider_tag]
    except KeyError:
        raise ConfigError(f"Unknown LLM provider '{provider_tag}'.") from None
    return provider_cls(**kwargs)


async def complete(
    provider_tag: str,
    model_identifier: str,
    api_key: str,
    conversation: Conversation,
    system_instructions: str,
) -> str:
    """Complete a conversation with the provider named by ``provider_tag``."""
    client = get_provider(provider_tag)
    logger.info(f"Calling {provider_tag}:{model_identifier} with {len(conversation)} turn(s)", extra={"provider": provider_tag})
    return await client.complete(model_identifier, api_key, conversation, system_instructions)
