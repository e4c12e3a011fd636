"""Three-tier parsing of generator output.

Model text is never rejected. Each call yields a ValidationOutcome whose
tier says how much of the contract held:

- STRICT: valid JSON object that passes the full schema
- PERMISSIVE: valid JSON object that fails the schema; reply and the object
  entries of ``suggestions`` are kept as-is
- FALLBACK: not a JSON object; the whole text becomes the reply

Only a single wrapping code fence is stripped before parsing.
"""

import json
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import ValidationError

from src.models.models import RecipeInput, RecommendationPayload, RescaledRecipe
from src.utils.logger import logger

FENCE_PATTERN = re.compile(r"^\s*```[\w-]*[ \t]*\n?(.*?)\n?```\s*$", re.DOTALL)


class ValidationTier(str, Enum):
    STRICT = "strict"
    PERMISSIVE = "permissive"
    FALLBACK = "fallback"


@dataclass
class ValidationOutcome:
    tier: ValidationTier
    payload: Dict[str, Any]
    errors: List[str] = field(default_factory=list)
    model: Optional[Any] = None

    @property
    def is_strict(self) -> bool:
        return self.tier is ValidationTier.STRICT


def strip_code_fence(text: str) -> str:
    """Remove one code fence wrapping the whole text, if present."""
    match = FENCE_PATTERN.match(text)
    return match.group(1).strip() if match else text.strip()


def _parse_object(raw_text: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    try:
        parsed = json.loads(strip_code_fence(raw_text))
    except json.JSONDecodeError as e:
        return None, f"invalid JSON: {e.msg} at line {e.lineno} column {e.colno}"
    if not isinstance(parsed, dict):
        return None, f"expected a JSON object, got {type(parsed).__name__}"
    return parsed, None


def _schema_errors(error: ValidationError) -> List[str]:
    return [f"{'.'.join(str(part) for part in item['loc'])}: {item['msg']}" for item in error.errors()]


def validate(raw_text: str) -> ValidationOutcome:
    """Validate recommendation output against the suggestion contract."""
    parsed, parse_error = _parse_object(raw_text)
    if parsed is None:
        logger.warning(f"Generator output degraded to fallback: {parse_error}")
        return ValidationOutcome(
            tier=ValidationTier.FALLBACK,
            payload={"reply": raw_text, "suggestions": []},
            errors=[parse_error],
        )

    try:
        result = RecommendationPayload.model_validate(parsed)
    except ValidationError as e:
        errors = _schema_errors(e)
        logger.warning(f"Generator output degraded to permissive ({len(errors)} schema error(s)): {errors[:3]}")
        suggestions = parsed.get("suggestions")
        reply = parsed.get("reply")
        return ValidationOutcome(
            tier=ValidationTier.PERMISSIVE,
            payload={
                "reply": reply if isinstance(reply, str) else None,
                "suggestions": [s for s in suggestions if isinstance(s, dict)] if isinstance(suggestions, list) else [],
            },
            errors=errors,
        )

    return ValidationOutcome(
        tier=ValidationTier.STRICT,
        payload=result.model_dump(exclude_none=True),
        model=result,
    )


def validate_rescale(raw_text: str, original: RecipeInput) -> ValidationOutcome:
    """Validate rescale output; the fallback returns the original recipe untouched."""
    parsed, parse_error = _parse_object(raw_text)
    if parsed is None:
        logger.warning(f"Rescale output degraded to fallback: {parse_error}")
        return ValidationOutcome(
            tier=ValidationTier.FALLBACK,
            payload={
                "title": original.title,
                "rationale": raw_text,
                "ingredients": [
                    item if isinstance(item, str) else item.model_dump(exclude_none=True)
                    for item in original.ingredients
                ],
                "instructions": list(original.instructions),
                "timing": None,
                "servings": original.servings,
            },
            errors=[parse_error],
        )

    try:
        result = RescaledRecipe.model_validate(parsed)
    except ValidationError as e:
        errors = _schema_errors(e)
        logger.warning(f"Rescale output degraded to permissive: {errors[:3]}")
        return ValidationOutcome(tier=ValidationTier.PERMISSIVE, payload=parsed, errors=errors)

    return ValidationOutcome(tier=ValidationTier.STRICT, payload=result.model_dump(), model=result)
