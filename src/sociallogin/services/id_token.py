"""OpenID Connect identity token verification.

Signature and expiry checks are delegated to a `TokenDecoder`; the default
decoder uses PyJWT against the provider's JSON Web Key Set.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

import jwt

from sociallogin.models.errors import InvalidResponse, TokenDecodeError
from sociallogin.models.http import HttpRequest
from sociallogin.models.profile import ProviderProfile
from sociallogin.models.tokens import AccessToken
from sociallogin.services.transport import HTTPTransport

logger = logging.getLogger(__name__)


@runtime_checkable
class TokenDecoder(Protocol):
    """Verifies an identity token and returns its claim set."""

    def decode(
        self,
        id_token: str,
        key_set: Mapping[str, Any],
        *,
        audience: str,
        issuer: str | None = None,
        nonce: str | None = None,
        algorithms: Sequence[str] = ("RS256",),
    ) -> dict[str, Any]: ...


class PyJWTDecoder:
    """`TokenDecoder` built on PyJWT.

    Picks the signing key from the key set by the token's `kid` header (or
    the only key when the set has one), then verifies signature, expiry,
    audience, issuer and, when given, the nonce.
    """

    def __init__(self, leeway: float = 0.0):
        self.leeway = leeway

    def decode(
        self,
        id_token: str,
        key_set: Mapping[str, Any],
        *,
        audience: str,
        issuer: str | None = None,
        nonce: str | None = None,
        algorithms: Sequence[str] = ("RS256",),
    ) -> dict[str, Any]:
        try:
            signing_key = self._select_key(id_token, key_set)
            claims = jwt.decode(
                id_token,
                key=signing_key.key,
                algorithms=list(algorithms),
                audience=audience,
                issuer=issuer,
                leeway=self.leeway,
                options={"require": ["exp", "sub"]},
            )
        except jwt.PyJWTError as e:
            raise TokenDecodeError(f"Identity token rejected: {e}") from e

        if nonce is not None and claims.get("nonce") != nonce:
            raise TokenDecodeError("Identity token nonce mismatch")

        return claims

    def _select_key(self, id_token: str, key_set: Mapping[str, Any]) -> jwt.PyJWK:
        jwk_set = jwt.PyJWKSet.from_dict(dict(key_set))
        kid = jwt.get_unverified_header(id_token).get("kid")

        if kid is None:
            if len(jwk_set.keys) == 1:
                return jwk_set.keys[0]
            raise TokenDecodeError("Identity token has no 'kid' and key set is ambiguous")

        for key in jwk_set.keys:
            if key.key_id == kid:
                return key
        raise TokenDecodeError(f"No key with kid '{kid}' in key set")


class IdentityTokenVerifier:
    """Verifies the identity token carried by a token response.

    The key set comes from the profile's static `jwks` or is fetched from its
    `jwks_url` for each verification; flows are request scoped, so there is
    no cache here.
    """

    def __init__(
        self,
        profile: ProviderProfile,
        transport: HTTPTransport,
        decoder: TokenDecoder | None = None,
    ):
        self.profile = profile
        self.transport = transport
        self.decoder = decoder or PyJWTDecoder()

    async def verify(
        self, access_token: AccessToken, nonce: str | None = None
    ) -> AccessToken:
        """Return a copy of the token carrying its verified claims.

        Tokens without an identity token are returned unchanged.

        Raises:
            TokenDecodeError: If the identity token fails verification
            InvalidResponse: If the key set cannot be fetched
        """
        if not access_token.id_token:
            logger.debug(f"No identity token in {self.profile.name} token response")
            return access_token

        key_set = await self.key_set()
        claims = self.decoder.decode(
            access_token.id_token,
            key_set,
            audience=self.profile.client_id,
            issuer=self.profile.issuer,
            nonce=nonce,
            algorithms=self.profile.id_token_algorithms,
        )

        logger.info(f"Identity token from {self.profile.name} verified")
        return access_token.with_claims(claims)

    async def key_set(self) -> Mapping[str, Any]:
        if self.profile.jwks is not None:
            return self.profile.jwks

        response = await self.transport.send(
            HttpRequest(
                method="GET",
                url=self.profile.jwks_url,
                headers={"Accept": "application/json"},
            )
        )
        if not response.is_success():
            raise InvalidResponse("JWKS endpoint responded with error code", response)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse("JWKS response is not valid JSON", response) from e

        if not isinstance(data, dict) or not isinstance(data.get("keys"), list):
            raise InvalidResponse("JWKS response has no key list", response)
        return data
