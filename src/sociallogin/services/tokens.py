"""Token endpoint interactions.

Implements RFC 6749 code exchange and refresh against a provider token
endpoint, and turns the response into an `AccessToken`.
"""

from __future__ import annotations

import logging

from pydantic import ValidationError

from sociallogin.models.errors import InvalidAccessToken
from sociallogin.models.http import HttpRequest, HttpResponse
from sociallogin.models.profile import ProviderProfile
from sociallogin.models.tokens import AccessToken, RefreshTokenRequest, TokenRequest
from sociallogin.services.transport import HTTPTransport

logger = logging.getLogger(__name__)


class TokenExchange:
    """Exchanges authorization codes and refresh tokens for access tokens.

    Requests are form-encoded POSTs unless the profile asks for GET, in which
    case the same parameters travel in the query string. Nothing is retried;
    every failure reaches the caller.
    """

    def __init__(self, profile: ProviderProfile, transport: HTTPTransport):
        self.profile = profile
        self.transport = transport

    async def exchange(self, code: str, code_verifier: str | None = None) -> AccessToken:
        """Exchange an authorization code for an access token.

        Args:
            code: Authorization code from the callback
            code_verifier: PKCE verifier kept by the caller, if PKCE is active

        Raises:
            InvalidAccessToken: If the response does not carry a token
            TransportError: If the request could not be delivered
        """
        token_request = TokenRequest(
            token_endpoint=self.profile.token_url,
            code=code,
            redirect_uri=self.profile.resolved_redirect_uri(),
            client_id=self.profile.client_id,
            client_secret=self._client_secret(),
            code_verifier=code_verifier,
        )
        form_data = token_request.to_form_data()

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request for {self.profile.name}: "
            f"grant_type={form_data['grant_type']}, "
            f"client_id={form_data['client_id']}, "
            f"pkce={'code_verifier' in form_data}"
        )

        response = await self.transport.send(
            self._build_request(token_request.token_endpoint, form_data)
        )
        return self._parse_response(response)

    async def refresh(self, refresh_token: str) -> AccessToken:
        """Obtain a new access token with a refresh token.

        Raises:
            InvalidAccessToken: If the response does not carry a token
            TransportError: If the request could not be delivered
        """
        refresh_request = RefreshTokenRequest(
            token_endpoint=self.profile.token_url,
            refresh_token=refresh_token,
            client_id=self.profile.client_id,
            redirect_uri=self.profile.resolved_redirect_uri(),
            client_secret=self._client_secret(),
        )

        logger.debug(f"Refresh request for {self.profile.name}")

        response = await self.transport.send(
            self._build_request(
                refresh_request.token_endpoint, refresh_request.to_form_data()
            )
        )
        return self._parse_response(response)

    def parse_token(self, body: str) -> AccessToken:
        """Parse a token endpoint body into an AccessToken.

        Raises:
            InvalidAccessToken: If the body is empty, not a JSON object, or
                lacks the token field
        """
        if not body or not body.strip():
            raise InvalidAccessToken("Provider response with empty body")

        try:
            data = HttpResponse(status_code=200, body=body).json()
        except ValueError as e:
            raise InvalidAccessToken("Provider response with not valid JSON") from e

        if not isinstance(data, dict):
            raise InvalidAccessToken("Provider response is not a JSON object")

        token_field = self.profile.token_field
        if not data.get(token_field):
            error = data.get("error")
            if error:
                description = data.get("error_description")
                detail = f"{error} ({description})" if description else str(error)
                raise InvalidAccessToken(f"Provider returned error: {detail}")
            raise InvalidAccessToken(
                f"Provider response is missing the '{token_field}' field"
            )

        try:
            return AccessToken.from_response(data, token_field=token_field)
        except ValidationError as e:
            raise InvalidAccessToken(f"Invalid token response format: {e}") from e

    def _parse_response(self, response: HttpResponse) -> AccessToken:
        if not response.is_success():
            logger.warning(
                f"Token endpoint for {self.profile.name} answered "
                f"{response.status_code}"
            )

        access_token = self.parse_token(response.body)
        logger.info(f"Token exchange with {self.profile.name} successful")
        return access_token

    def _build_request(self, url: str, form_data: dict[str, str]) -> HttpRequest:
        headers = {"Accept": "application/json"}

        if self.profile.token_request_method == "GET":
            return HttpRequest(method="GET", url=url, headers=headers, params=form_data)

        # RFC 6749 requires form encoding for token requests
        headers["Content-Type"] = "application/x-www-form-urlencoded"
        return HttpRequest(method="POST", url=url, headers=headers, data=form_data)

    def _client_secret(self) -> str | None:
        if self.profile.public_client:
            return None
        return self.profile.client_secret
