from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from sociallogin.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
    AuthorizationStart,
    FlowState,
)
from sociallogin.models.http import HttpResponse
from sociallogin.models.security import PKCEParameters
from sociallogin.models.tokens import AccessToken, RefreshTokenRequest, TokenRequest


class TestAuthorizationRequest:
    def test_builds_url_with_all_parameters(self):
        # Arrange
        request = AuthorizationRequest(
            authorization_endpoint="https://acme.example.com/oauth/authorize",
            client_id="client-123",
            redirect_uri="https://app.example.com/callback",
            state="state-abc",
            scope="email profile",
            nonce="nonce-xyz",
            code_challenge="c" * 43,
            code_challenge_method="S256",
            extra_params={"prompt": "consent"},
        )

        # Act
        url = urlparse(request.build_authorization_url())
        params = parse_qs(url.query)

        # Assert
        assert url.netloc == "acme.example.com"
        assert params["client_id"] == ["client-123"]
        assert params["redirect_uri"] == ["https://app.example.com/callback"]
        assert params["response_type"] == ["code"]
        assert params["state"] == ["state-abc"]
        assert params["scope"] == ["email profile"]
        assert params["nonce"] == ["nonce-xyz"]
        assert params["code_challenge"] == ["c" * 43]
        assert params["code_challenge_method"] == ["S256"]
        assert params["prompt"] == ["consent"]

    def test_optional_parameters_are_omitted(self):
        # Arrange
        request = AuthorizationRequest(
            authorization_endpoint="https://acme.example.com/oauth/authorize",
            client_id="client-123",
            redirect_uri="https://app.example.com/callback",
        )

        # Act
        params = parse_qs(urlparse(request.build_authorization_url()).query)

        # Assert
        assert set(params) == {"client_id", "redirect_uri", "response_type"}

    def test_extra_params_cannot_override_core_parameters(self):
        # Arrange
        request = AuthorizationRequest(
            authorization_endpoint="https://acme.example.com/oauth/authorize",
            client_id="client-123",
            redirect_uri="https://app.example.com/callback",
            state="state-abc",
            extra_params={"state": "forged", "display": "popup"},
        )

        # Act
        params = parse_qs(urlparse(request.build_authorization_url()).query)

        # Assert
        assert params["state"] == ["state-abc"]
        assert params["display"] == ["popup"]

    def test_endpoint_with_query_string_is_extended(self):
        # Arrange
        request = AuthorizationRequest(
            authorization_endpoint="https://acme.example.com/authorize?tenant=1",
            client_id="client-123",
            redirect_uri="https://app.example.com/callback",
        )

        # Act
        url = request.build_authorization_url()

        # Assert
        assert url.startswith("https://acme.example.com/authorize?tenant=1&client_id=")


class TestAuthorizationResponse:
    def test_parses_success_callback(self):
        # Act
        response = AuthorizationResponse.from_params({"code": "abc", "state": "xyz"})

        # Assert
        assert response.is_success()
        assert not response.is_error()
        assert response.code == "abc"
        assert response.state == "xyz"

    def test_accepts_parse_qs_lists(self):
        # Act
        response = AuthorizationResponse.from_params(
            {"code": ["abc", "ignored"], "state": ["xyz"]}
        )

        # Assert
        assert response.code == "abc"
        assert response.state == "xyz"

    def test_empty_values_are_treated_as_missing(self):
        # Act
        response = AuthorizationResponse.from_params({"code": "", "state": []})

        # Assert
        assert response.code is None
        assert response.state is None
        assert not response.is_success()

    def test_parses_error_callback(self):
        # Act
        response = AuthorizationResponse.from_params(
            {"error": "access_denied", "error_description": "User said no"}
        )

        # Assert
        assert response.is_error()
        assert response.error == "access_denied"
        assert response.error_description == "User said no"


class TestAuthorizationStart:
    def test_code_verifier_comes_from_pkce(self):
        # Arrange
        pkce = PKCEParameters(code_verifier="v" * 43, code_challenge="c" * 43)

        # Act & Assert
        assert AuthorizationStart(url="https://x", pkce=pkce).code_verifier == "v" * 43
        assert AuthorizationStart(url="https://x").code_verifier is None


class TestFlowState:
    def test_terminal_states(self):
        assert FlowState.RESOLVED.is_terminal
        assert FlowState.FAILED.is_terminal
        assert not FlowState.INIT.is_terminal
        assert not FlowState.AWAITING_CALLBACK.is_terminal
        assert not FlowState.EXCHANGING.is_terminal


class TestAccessToken:
    def test_from_response_reads_standard_fields(self):
        # Act
        token = AccessToken.from_response(
            {
                "access_token": "abc",
                "token_type": "Bearer",
                "expires_in": 3600,
                "refresh_token": "refresh-xyz",
                "scope": "email",
                "user_id": 123,
                "email": "ann@example.com",
            }
        )

        # Assert
        assert token.token == "abc"
        assert token.token_type == "Bearer"
        assert token.expires_in == 3600
        assert token.expires_at > datetime.now(timezone.utc) + timedelta(minutes=59)
        assert token.refresh_token == "refresh-xyz"
        assert token.user_id == "123"
        assert token.extra == {"email": "ann@example.com"}
        assert token.email == "ann@example.com"
        assert token.phone is None
        assert not token.is_expired()

    def test_zero_expires_in_means_no_expiry(self):
        # Act
        token = AccessToken.from_response({"access_token": "abc", "expires_in": 0})

        # Assert
        assert token.expires_at is None
        assert not token.is_expired()

    def test_missing_token_field_raises_key_error(self):
        with pytest.raises(KeyError):
            AccessToken.from_response({"token_type": "Bearer"})

    def test_custom_token_field(self):
        # Act
        token = AccessToken.from_response({"token": "abc"}, token_field="token")

        # Assert
        assert token.token == "abc"
        assert "token" not in token.extra

    def test_expiry_with_leeway(self):
        # Arrange
        token = AccessToken(
            token="abc", expires_at=datetime.now(timezone.utc) + timedelta(seconds=30)
        )

        # Act & Assert
        assert not token.is_expired()
        assert token.is_expired(leeway_seconds=60)

    def test_with_claims_returns_copy(self):
        # Arrange
        token = AccessToken(token="abc", id_token="header.payload.sig")

        # Act
        verified = token.with_claims({"sub": "user-1"})

        # Assert
        assert verified.claims == {"sub": "user-1"}
        assert token.claims is None
        assert verified.id_token == "header.payload.sig"


class TestTokenRequests:
    def test_token_request_form_data(self):
        # Arrange
        request = TokenRequest(
            token_endpoint="https://acme.example.com/oauth/token",
            code="code-123",
            redirect_uri="https://app.example.com/callback",
            client_id="client-123",
            client_secret="secret-456",
            code_verifier="v" * 43,
        )

        # Act
        data = request.to_form_data()

        # Assert
        assert data == {
            "grant_type": "authorization_code",
            "client_id": "client-123",
            "redirect_uri": "https://app.example.com/callback",
            "code": "code-123",
            "client_secret": "secret-456",
            "code_verifier": "v" * 43,
        }

    def test_refresh_request_form_data(self):
        # Arrange
        request = RefreshTokenRequest(
            token_endpoint="https://acme.example.com/oauth/token",
            refresh_token="refresh-xyz",
            client_id="client-123",
        )

        # Act
        data = request.to_form_data()

        # Assert
        assert data == {
            "grant_type": "refresh_token",
            "refresh_token": "refresh-xyz",
            "client_id": "client-123",
        }


class TestHttpResponse:
    def test_success_range(self):
        assert HttpResponse(status_code=204).is_success()
        assert not HttpResponse(status_code=302).is_success()

    def test_json_rejects_empty_body(self):
        with pytest.raises(ValueError):
            HttpResponse(status_code=200).json()

    def test_json_decodes_body(self):
        assert HttpResponse(status_code=200, body='{"a": 1}').json() == {"a": 1}
