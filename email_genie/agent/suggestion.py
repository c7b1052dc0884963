"""
Suggestion sources: where raw categorization suggestions come from.

The engine treats the source as a black box that either returns a
CategorizationDecision or raises SuggestionError. Retries, if any, belong
to the source (LLMClient retries transient API failures itself).
"""

import logging
from typing import Optional, Protocol

from pydantic import ValidationError

from email_genie.agent.prompts import CATEGORIZATION_TOOL
from email_genie.agent.schemas import CategorizationDecision
from email_genie.config import settings
from email_genie.llm.client import LLMClient, LLMError

logger = logging.getLogger(__name__)


class SuggestionError(Exception):
    """The suggestion source could not produce a usable decision."""
    pass


class SuggestionSource(Protocol):
    def suggest(self, system: str, user: str) -> CategorizationDecision:
        ...


class LLMSuggestionSource:
    """Asks the language model for a decision via forced tool use."""

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self._llm = llm_client
        self._temperature = (
            settings.categorize_temperature if temperature is None else temperature
        )
        self._max_tokens = max_tokens or settings.anthropic_max_tokens_categorize

    def suggest(self, system: str, user: str) -> CategorizationDecision:
        try:
            result = self._llm.complete_structured(
                system=system,
                user=user,
                tool=CATEGORIZATION_TOOL,
                max_tokens=self._max_tokens,
                temperature=self._temperature,
                purpose="categorize",
            )
        except LLMError as e:
            raise SuggestionError(str(e)) from e

        try:
            # Provenance fields are the engine's to set, not the model's
            payload = {
                k: v for k, v in result.data.items()
                if k not in ("matched_rule_id", "source")
            }
            return CategorizationDecision.model_validate(payload)
        except ValidationError as e:
            logger.warning(
                "suggestion.malformed",
                extra={
                    "action": "suggestion.malformed",
                    "error_count": e.error_count(),
                },
            )
            raise SuggestionError(f"Malformed suggestion: {e.error_count()} validation errors") from e
