"""Identity resolution strategies.

Turns an access token into a `CanonicalIdentity`, either by calling the
provider's profile endpoint or by reading verified identity-token claims,
then applies the normalization every provider shares.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

from sociallogin.models.errors import InvalidArgumentType, InvalidResponse
from sociallogin.models.http import HttpRequest, HttpResponse
from sociallogin.models.identity import CanonicalIdentity
from sociallogin.models.profile import (
    EmailVerifiedPolicy,
    IdentityStrategy,
    ProviderProfile,
    TokenPlacement,
)
from sociallogin.models.tokens import AccessToken
from sociallogin.primitives.hydrator import FieldMapper
from sociallogin.services.transport import HTTPTransport

logger = logging.getLogger(__name__)


class IdentityStrategyHandler(Protocol):
    async def fetch_payload(self, access_token: AccessToken) -> dict[str, Any]: ...


class EndpointIdentityStrategy:
    """Fetches the raw profile from the provider's API."""

    def __init__(self, profile: ProviderProfile, transport: HTTPTransport):
        self.profile = profile
        self.transport = transport

    async def fetch_payload(self, access_token: AccessToken) -> dict[str, Any]:
        """Call the profile endpoint and return the raw user object.

        Raises:
            InvalidResponse: On non-2xx status, a non-JSON body, or when the
                configured response path does not lead to a JSON object
        """
        response = await self.transport.send(self._build_request(access_token))

        if not response.is_success():
            logger.warning(
                f"Profile endpoint for {self.profile.name} answered "
                f"{response.status_code}"
            )
            raise InvalidResponse("API response with error code", response)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse("API response is not a valid JSON object", response) from e

        return self._extract(data, response)

    def _build_request(self, access_token: AccessToken) -> HttpRequest:
        profile = self.profile
        headers = {"Accept": "application/json"}
        params = dict(profile.profile_params)

        if profile.profile_fields:
            params[profile.profile_fields_param] = ",".join(profile.profile_fields)

        if profile.token_placement is TokenPlacement.BEARER:
            headers["Authorization"] = f"Bearer {access_token.token}"
        else:
            params[profile.token_query_name] = access_token.token

        if profile.profile_method == "POST":
            headers["Content-Type"] = "application/x-www-form-urlencoded"
            return HttpRequest(
                method="POST", url=profile.profile_url, headers=headers, data=params
            )
        return HttpRequest(
            method="GET", url=profile.profile_url, headers=headers, params=params
        )

    def _extract(self, data: Any, response: HttpResponse) -> dict[str, Any]:
        # Walk e.g. ("response", 0) for APIs that wrap the user object
        for step in self.profile.response_path:
            try:
                data = data[step]
            except (KeyError, IndexError, TypeError):
                raise InvalidResponse(
                    f"API response has no element at {step!r}", response
                ) from None

        if not isinstance(data, dict):
            raise InvalidResponse("API response is not a valid JSON object", response)
        return data


class ClaimsIdentityStrategy:
    """Reads the verified OpenID Connect claim set off the token."""

    def __init__(self, profile: ProviderProfile):
        self.profile = profile

    async def fetch_payload(self, access_token: AccessToken) -> dict[str, Any]:
        """Return the decoded identity-token claims.

        Raises:
            InvalidArgumentType: If the token carries no decoded identity token
        """
        if not isinstance(access_token, AccessToken) or access_token.claims is None:
            raise InvalidArgumentType(
                "access_token must be an AccessToken carrying a decoded identity token"
            )
        return access_token.claims


class IdentityResolver:
    """Resolves canonical identities for one provider profile."""

    def __init__(self, profile: ProviderProfile, transport: HTTPTransport):
        self.profile = profile
        self.mapper = FieldMapper(profile.field_map)

        if profile.identity_strategy is IdentityStrategy.CLAIMS:
            self.strategy: IdentityStrategyHandler = ClaimsIdentityStrategy(profile)
        else:
            self.strategy = EndpointIdentityStrategy(profile, transport)

    async def get_identity(self, access_token: AccessToken) -> CanonicalIdentity:
        """Build a fresh identity for the token.

        Raises:
            InvalidResponse: If the profile endpoint response is unusable
            InvalidArgumentType: If the claims strategy gets a token without claims
        """
        payload = await self.strategy.fetch_payload(access_token)
        identity = self.mapper.hydrate(payload)
        self.normalize(identity, access_token)

        logger.info(f"Resolved {self.profile.name} identity {identity.id}")
        return identity

    def normalize(self, identity: CanonicalIdentity, access_token: AccessToken) -> None:
        """Apply post-hydration normalization shared by all providers."""
        # Some providers only reveal the email at token exchange time
        if not identity.email and access_token.email:
            identity.email = access_token.email

        if access_token.phone and not identity.mobile_phone:
            identity.mobile_phone = access_token.phone
        if identity.has_mobile is None:
            identity.has_mobile = bool(identity.mobile_phone)

        identity.email_verified = self._email_verified(identity)

    def _email_verified(self, identity: CanonicalIdentity) -> bool:
        policy = self.profile.email_verified_policy

        if policy is EmailVerifiedPolicy.ALWAYS:
            return True
        if policy is EmailVerifiedPolicy.NEVER:
            return False
        if (
            policy is EmailVerifiedPolicy.PROVIDER_CLAIM
            and "email_verified" in identity.model_fields_set
        ):
            return identity.email_verified
        return bool(identity.email)
