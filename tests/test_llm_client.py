"""
Tests for the LLM client wrapper.

Uses mocked Anthropic API responses to test tool-use extraction, retry
logic, cost calculation, error handling, and session tracking without
making real API calls.
"""

import pytest
from unittest.mock import MagicMock, patch

import anthropic
import httpx

from email_genie.agent.prompts import CATEGORIZATION_TOOL
from email_genie.llm.client import LLMClient, LLMError, LLMResult


# --- Helpers to create mock responses ---

def make_tool_block(data: dict, name: str = "record_categorization") -> MagicMock:
    block = MagicMock()
    block.type = "tool_use"
    block.name = name
    block.input = data
    return block


def make_mock_response(data=None, input_tokens=100, output_tokens=50, blocks=None):
    """Create a mock Anthropic API response carrying one tool_use block."""
    response = MagicMock()
    response.content = blocks if blocks is not None else [make_tool_block(data or {"reasoning": "ok"})]
    response.usage = MagicMock(input_tokens=input_tokens, output_tokens=output_tokens)
    return response


def make_client_with_mock(**kwargs) -> tuple[LLMClient, MagicMock]:
    """Create an LLMClient with a mocked Anthropic client inside."""
    with patch("email_genie.llm.client.anthropic.Anthropic") as mock_cls:
        mock_anthropic = MagicMock()
        mock_cls.return_value = mock_anthropic
        client = LLMClient(
            api_key="test-key",
            model="claude-sonnet-4-20250514",
            **kwargs,
        )
        return client, mock_anthropic


def call(client: LLMClient) -> LLMResult:
    return client.complete_structured(
        system="test", user="test", tool=CATEGORIZATION_TOOL, purpose="test"
    )


def status_error(cls, status_code: int):
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    response = httpx.Response(status_code, request=request)
    return cls(message=f"HTTP {status_code}", response=response, body=None)


# --- Tests ---

class TestSuccessfulCalls:
    def test_returns_tool_input(self):
        client, mock = make_client_with_mock()
        mock.messages.create.return_value = make_mock_response(
            data={"suggested_labels": ["Finance"], "confidence": 0.9},
            input_tokens=150,
            output_tokens=40,
        )

        result = call(client)

        assert isinstance(result, LLMResult)
        assert result.data == {"suggested_labels": ["Finance"], "confidence": 0.9}
        assert result.input_tokens == 150
        assert result.output_tokens == 40
        assert result.total_tokens == 190
        assert result.latency_ms >= 0
        assert result.model == "claude-sonnet-4-20250514"

    def test_forces_tool_choice(self):
        client, mock = make_client_with_mock()
        mock.messages.create.return_value = make_mock_response()

        client.complete_structured(
            system="sys", user="usr", tool=CATEGORIZATION_TOOL,
            max_tokens=321, temperature=0.3, purpose="categorize",
        )

        kwargs = mock.messages.create.call_args.kwargs
        assert kwargs["tools"] == [CATEGORIZATION_TOOL]
        assert kwargs["tool_choice"] == {"type": "tool", "name": "record_categorization"}
        assert kwargs["max_tokens"] == 321
        assert kwargs["temperature"] == 0.3
        assert kwargs["system"] == "sys"
        assert kwargs["messages"] == [{"role": "user", "content": "usr"}]

    def test_skips_non_tool_blocks(self):
        client, mock = make_client_with_mock()
        text_block = MagicMock(type="text")
        mock.messages.create.return_value = make_mock_response(
            blocks=[text_block, make_tool_block({"reasoning": "found"})]
        )

        assert call(client).data == {"reasoning": "found"}

    def test_cost_calculation(self):
        """Cost should be calculated based on token counts and pricing."""
        client, mock = make_client_with_mock()
        # 1000 input tokens at $3/1M = $0.003
        # 500 output tokens at $15/1M = $0.0075
        mock.messages.create.return_value = make_mock_response(
            input_tokens=1000,
            output_tokens=500,
        )

        result = call(client)

        assert abs(result.input_cost - 0.003) < 0.0001
        assert abs(result.output_cost - 0.0075) < 0.0001
        assert abs(result.cost - 0.0105) < 0.0001


class TestMissingToolUse:
    def test_text_only_response_raises(self):
        client, mock = make_client_with_mock()
        mock.messages.create.return_value = make_mock_response(blocks=[MagicMock(type="text")])

        with pytest.raises(LLMError, match="did not call tool"):
            call(client)

    def test_other_tool_name_raises(self):
        client, mock = make_client_with_mock()
        mock.messages.create.return_value = make_mock_response(
            blocks=[make_tool_block({"x": 1}, name="something_else")]
        )

        with pytest.raises(LLMError):
            call(client)


class TestSessionTracking:
    def test_session_cost_accumulates(self):
        client, mock = make_client_with_mock()
        mock.messages.create.return_value = make_mock_response(input_tokens=1000, output_tokens=500)

        call(client)
        call(client)

        stats = client.get_session_stats()
        assert stats["total_calls"] == 2
        assert stats["total_input_tokens"] == 2000
        assert stats["total_output_tokens"] == 1000
        assert stats["total_cost_usd"] > 0

    def test_session_reset(self):
        client, mock = make_client_with_mock()
        mock.messages.create.return_value = make_mock_response()

        call(client)
        client.reset_session_stats()

        stats = client.get_session_stats()
        assert stats["total_calls"] == 0
        assert stats["total_cost_usd"] == 0


class TestRetries:
    @patch("email_genie.llm.client.time.sleep")
    def test_retries_server_error_then_succeeds(self, mock_sleep):
        client, mock = make_client_with_mock(max_retries=3)
        mock.messages.create.side_effect = [
            status_error(anthropic.InternalServerError, 500),
            make_mock_response(),
        ]

        result = call(client)

        assert result.data == {"reasoning": "ok"}
        assert mock.messages.create.call_count == 2
        mock_sleep.assert_called_once_with(2)

    @patch("email_genie.llm.client.time.sleep")
    def test_retries_rate_limit(self, mock_sleep):
        client, mock = make_client_with_mock(max_retries=3)
        mock.messages.create.side_effect = [
            status_error(anthropic.RateLimitError, 429),
            status_error(anthropic.RateLimitError, 429),
            make_mock_response(),
        ]

        call(client)

        assert mock.messages.create.call_count == 3
        assert [c.args[0] for c in mock_sleep.call_args_list] == [2, 4]

    @patch("email_genie.llm.client.time.sleep")
    def test_client_error_not_retried(self, mock_sleep):
        client, mock = make_client_with_mock(max_retries=3)
        mock.messages.create.side_effect = status_error(anthropic.BadRequestError, 400)

        with pytest.raises(LLMError, match="HTTP 400"):
            call(client)

        assert mock.messages.create.call_count == 1
        mock_sleep.assert_not_called()

    @patch("email_genie.llm.client.time.sleep")
    def test_gives_up_after_max_retries(self, mock_sleep):
        client, mock = make_client_with_mock(max_retries=2)
        mock.messages.create.side_effect = status_error(anthropic.InternalServerError, 503)

        with pytest.raises(LLMError, match="after 2 attempts"):
            call(client)

        assert mock.messages.create.call_count == 2

    @patch("email_genie.llm.client.time.sleep")
    def test_timeout_retried_without_sleep(self, mock_sleep):
        client, mock = make_client_with_mock(max_retries=2)
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock.messages.create.side_effect = [
            anthropic.APITimeoutError(request=request),
            make_mock_response(),
        ]

        call(client)

        assert mock.messages.create.call_count == 2
        mock_sleep.assert_not_called()

    @patch("email_genie.llm.client.time.sleep")
    def test_connection_error_retried(self, mock_sleep):
        client, mock = make_client_with_mock(max_retries=2)
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock.messages.create.side_effect = [
            anthropic.APIConnectionError(request=request),
            make_mock_response(),
        ]

        call(client)

        assert mock.messages.create.call_count == 2
        mock_sleep.assert_called_once_with(2)
