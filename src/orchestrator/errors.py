"""Error taxonomy for recommendation orchestration.

Each error carries the HTTP status the surface should answer with.
Validation problems are not errors here: generator output is degraded,
never rejected (see src/validation/structured_output.py).
"""

from typing import Optional

ADMIN_CONTACT_HINT = "Please contact an administrator."


class OrchestrationError(Exception):
    """Base class for failures surfaced to the caller."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RequestError(OrchestrationError):
    """Inbound request is malformed (missing messages, bad action payload)."""

    status_code = 400


class AccessDeniedError(OrchestrationError):
    """User account exists but is not approved to use recommendations."""

    status_code = 403


class ConfigError(OrchestrationError):
    """No model, API key or required store row could be resolved.

    Fatal for the request; never retried.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(f"{message} {ADMIN_CONTACT_HINT}")


class ProviderError(OrchestrationError):
    """An LLM provider call failed.

    Attributes:
        provider: Provider tag the call went to.
        status: HTTP status reported upstream, None for transport failures and timeouts.
        body: Provider-reported error body (or transport error text).
    """

    status_code = 500

    def __init__(self, provider: str, status: Optional[int], body: str) -> None:
        self.provider = provider
        self.status = status
        self.body = body
        status_text = status if status is not None else "no response"
        super().__init__(f"{provider} request failed ({status_text}): {body}")
