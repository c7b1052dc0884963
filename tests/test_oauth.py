"""
Tests for Google access-token refresh.

A fake google-auth transport request stands in for the token endpoint.
"""

import json
import time
from unittest.mock import MagicMock
from urllib.parse import parse_qsl

import pytest

from email_genie.auth.oauth import (
    CredentialRefreshFailed,
    is_token_expired,
    refresh_access_token,
)


def token_request(payload: dict, status: int = 200) -> MagicMock:
    """A transport request that always answers with the given JSON."""
    response = MagicMock(status=status, headers={}, data=json.dumps(payload).encode("utf-8"))
    return MagicMock(return_value=response)


def sent_form(request: MagicMock) -> dict:
    return dict(parse_qsl(request.call_args.kwargs["body"].decode("utf-8")))


class TestIsTokenExpired:
    def test_future_token_valid(self):
        assert is_token_expired(expires_at=10_000, now=1_000) is False

    def test_within_buffer_counts_as_expired(self):
        assert is_token_expired(expires_at=1_200, now=1_000) is True

    def test_past_token_expired(self):
        assert is_token_expired(expires_at=500, now=1_000) is True


class TestRefreshAccessToken:
    def test_success_keeps_old_refresh_token(self):
        request = token_request({"access_token": "new-at", "expires_in": 3599})

        tokens = refresh_access_token("rt-1", request=request)

        assert tokens.access_token == "new-at"
        assert tokens.refresh_token == "rt-1"
        assert abs(tokens.expires_at - (time.time() + 3599)) < 60
        form = sent_form(request)
        assert form["grant_type"] == "refresh_token"
        assert form["refresh_token"] == "rt-1"
        assert form["client_id"] == "test-client-id"
        assert request.call_args.kwargs["method"] == "POST"

    def test_rotated_refresh_token_used(self):
        request = token_request({"access_token": "at", "refresh_token": "rt-2", "expires_in": 3600})
        assert refresh_access_token("rt-1", request=request).refresh_token == "rt-2"

    def test_missing_expires_in_defaults_to_an_hour(self):
        request = token_request({"access_token": "at"})
        assert refresh_access_token("rt", request=request, now=100.0).expires_at == 3_700.0

    def test_rejected_grant_raises(self):
        request = token_request({"error": "invalid_grant", "error_description": "Token has been revoked."}, status=400)

        with pytest.raises(CredentialRefreshFailed, match="invalid_grant"):
            refresh_access_token("revoked", request=request)

    def test_response_without_access_token_raises(self):
        request = token_request({"token_type": "Bearer"})

        with pytest.raises(CredentialRefreshFailed):
            refresh_access_token("rt", request=request)

    def test_no_refresh_token_raises_without_calling(self):
        request = token_request({"access_token": "at"})

        with pytest.raises(CredentialRefreshFailed):
            refresh_access_token("", request=request)

        request.assert_not_called()
