"""
Anthropic client for structured categorization calls.

Every call forces the model to answer through one tool, so the result is
always a JSON object shaped by that tool's input schema. On top of the SDK
this adds:
- Retries on rate limits, timeouts, connection drops and 5xx responses
- A log line per call with tokens, cost and latency (never content)
- Running usage totals for the lifetime of the client

Usage:
    from email_genie.llm.client import LLMClient

    client = LLMClient()
    result = client.complete_structured(
        system="You are an email categorization assistant.",
        user="Email to categorize: ...",
        tool=CATEGORIZATION_TOOL,
        temperature=0.3,
        purpose="categorize",
    )
    print(result.data)
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Optional

import anthropic

from email_genie.config import settings

logger = logging.getLogger(__name__)

# USD per 1M tokens
PRICING = {
    "claude-haiku-4-5": {"input": 1.00, "output": 5.00},
    "claude-sonnet-4-20250514": {"input": 3.00, "output": 15.00},
}
DEFAULT_PRICING = {"input": 3.00, "output": 15.00}


class LLMError(Exception):
    """The model could not produce a tool call: retries exhausted, request rejected, or no tool use."""
    pass


@dataclass
class LLMResult:
    """Result of a structured LLM API call."""
    data: dict[str, Any]
    input_tokens: int
    output_tokens: int
    total_tokens: int
    input_cost: float
    output_cost: float
    cost: float
    latency_ms: int
    model: str


@dataclass
class UsageTotals:
    """Tokens and spend accumulated over a client's lifetime."""
    calls: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0

    def add(self, result: LLMResult) -> None:
        self.calls += 1
        self.input_tokens += result.input_tokens
        self.output_tokens += result.output_tokens
        self.cost_usd += result.cost


class LLMClient:
    """
    Anthropic SDK client with our retry policy and usage accounting.

    SDK-level retries are disabled so that every attempt is logged here.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        max_retries: int = 3,
        timeout_seconds: float = 30.0,
    ):
        self._model = model or settings.anthropic_model
        self._max_retries = max_retries
        self._timeout = timeout_seconds
        self._pricing = PRICING.get(self._model, DEFAULT_PRICING)
        self._client = anthropic.Anthropic(
            api_key=api_key or settings.anthropic_api_key,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.usage = UsageTotals()

        logger.info(
            "llm_client.initialized",
            extra={
                "action": "llm_client.initialized",
                "model": self._model,
                "max_retries": self._max_retries,
                "timeout_seconds": self._timeout,
            },
        )

    def complete_structured(
        self,
        system: str,
        user: str,
        tool: dict,
        max_tokens: Optional[int] = None,
        temperature: float = 0.0,
        purpose: str = "unknown",
    ) -> LLMResult:
        """
        Ask the model to answer by calling `tool`, and return the tool input.

        Args:
            system: System prompt.
            user: The user turn.
            tool: Anthropic tool definition (name, description, input_schema).
            max_tokens: Output token cap; defaults to the categorize setting.
            temperature: Sampling temperature. Keep low for classification.
            purpose: Short label for logs, e.g. "categorize".
                     Never put email content here.

        Returns:
            LLMResult whose `data` is the tool input dict.

        Raises:
            LLMError: If all retries are exhausted, the request is rejected,
                      or the model does not call the tool.
        """
        response, attempt, latency_ms = self._create_with_retries(
            purpose=purpose,
            model=self._model,
            max_tokens=max_tokens or settings.anthropic_max_tokens_categorize,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": user}],
            tools=[tool],
            tool_choice={"type": "tool", "name": tool["name"]},
        )

        data = next(
            (
                block.input
                for block in response.content
                if getattr(block, "type", None) == "tool_use"
                and getattr(block, "name", None) == tool["name"]
            ),
            None,
        )
        if not isinstance(data, dict):
            logger.error(
                "llm.call.no_tool_use",
                extra={"action": "llm.call.no_tool_use", "purpose": purpose, "tool": tool["name"]},
            )
            raise LLMError(f"Model did not call tool '{tool['name']}'")

        result = self._build_result(data, response.usage, latency_ms)
        self.usage.add(result)

        logger.info(
            "llm.call.success",
            extra={
                "action": "llm.call.success",
                "purpose": purpose,
                "attempt": attempt,
                "model": self._model,
                "input_tokens": result.input_tokens,
                "output_tokens": result.output_tokens,
                "cost_usd": round(result.cost, 6),
                "latency_ms": latency_ms,
                "session_total_cost_usd": round(self.usage.cost_usd, 4),
                "session_call_count": self.usage.calls,
            },
        )
        return result

    def _build_result(self, data: dict, usage: Any, latency_ms: int) -> LLMResult:
        input_cost = usage.input_tokens / 1_000_000 * self._pricing["input"]
        output_cost = usage.output_tokens / 1_000_000 * self._pricing["output"]
        return LLMResult(
            data=data,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            total_tokens=usage.input_tokens + usage.output_tokens,
            input_cost=input_cost,
            output_cost=output_cost,
            cost=input_cost + output_cost,
            latency_ms=latency_ms,
            model=self._model,
        )

    def _create_with_retries(self, purpose: str, **request: Any) -> tuple[Any, int, int]:
        """Call messages.create, retrying transient failures. Returns (response, attempt, latency_ms)."""
        last_error: Optional[Exception] = None

        for attempt in range(1, self._max_retries + 1):
            start = time.monotonic()
            try:
                response = self._client.messages.create(**request)
            except (anthropic.APIStatusError, anthropic.APIConnectionError) as e:
                last_error = e
                latency_ms = int((time.monotonic() - start) * 1000)
                kind = _transient_kind(e)

                if kind is None:
                    logger.error(
                        "llm.call.client_error",
                        extra={
                            "action": "llm.call.client_error",
                            "purpose": purpose,
                            "attempt": attempt,
                            "status_code": e.status_code,
                            "error": str(e),
                        },
                    )
                    raise LLMError(f"Anthropic API error (HTTP {e.status_code}): {e}") from e

                # A timeout has already spent its wait
                wait = 0 if kind == "timeout" else min(2 ** attempt, 30)
                logger.warning(
                    f"llm.call.{kind}",
                    extra={
                        "action": f"llm.call.{kind}",
                        "purpose": purpose,
                        "attempt": attempt,
                        "status_code": getattr(e, "status_code", None),
                        "latency_ms": latency_ms,
                        "wait_seconds": wait,
                    },
                )
                if wait:
                    time.sleep(wait)
                continue

            return response, attempt, int((time.monotonic() - start) * 1000)

        logger.error(
            "llm.call.failed",
            extra={
                "action": "llm.call.failed",
                "purpose": purpose,
                "max_retries": self._max_retries,
                "error": str(last_error),
            },
        )
        raise LLMError(
            f"LLM call failed after {self._max_retries} attempts: {last_error}"
        ) from last_error

    def get_session_stats(self) -> dict:
        """Usage totals since creation or the last reset."""
        return {
            "total_cost_usd": round(self.usage.cost_usd, 4),
            "total_input_tokens": self.usage.input_tokens,
            "total_output_tokens": self.usage.output_tokens,
            "total_calls": self.usage.calls,
            "model": self._model,
        }

    def reset_session_stats(self) -> None:
        self.usage = UsageTotals()


def _transient_kind(error: Exception) -> Optional[str]:
    """Name a failure worth retrying, or None if retrying cannot help."""
    if isinstance(error, anthropic.RateLimitError):
        return "rate_limited"
    # APITimeoutError subclasses APIConnectionError, so it is checked first
    if isinstance(error, anthropic.APITimeoutError):
        return "timeout"
    if isinstance(error, anthropic.APIConnectionError):
        return "connection_error"
    if error.status_code >= 500:
        return "server_error"
    return None
