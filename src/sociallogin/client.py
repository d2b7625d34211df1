"""Social login client orchestration.

Holds the configured provider profiles together with the session store,
HTTP transport and identity-token decoder they share, and hands out one
`AuthorizationFlow` per request.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from sociallogin.config import SocialLoginSettings, get_settings
from sociallogin.models.errors import InvalidProviderConfiguration
from sociallogin.models.flow import AuthorizationStart
from sociallogin.models.identity import CanonicalIdentity
from sociallogin.models.profile import ProviderProfile
from sociallogin.models.tokens import AccessToken
from sociallogin.services.flow import AuthorizationFlow
from sociallogin.services.id_token import TokenDecoder
from sociallogin.services.session import SessionStore
from sociallogin.services.transport import HTTPTransport, HttpxTransport

logger = logging.getLogger(__name__)


class SocialLoginClient:
    """Multi-provider login client.

    Profiles are registered by name. Every call that starts or finishes a
    login builds a fresh flow, so one client can serve many concurrent
    requests as long as the session store and transport can.
    """

    def __init__(
        self,
        profiles: Iterable[ProviderProfile] = (),
        session_store: SessionStore | None = None,
        transport: HTTPTransport | None = None,
        decoder: TokenDecoder | None = None,
        settings: SocialLoginSettings | None = None,
    ):
        """Initialize the client.

        Args:
            profiles: Provider profiles to register
            session_store: Store for pending state tokens
            transport: HTTP transport; an httpx one is created when omitted
            decoder: Identity-token decoder (defaults to PyJWT)
            settings: Flow-wide defaults (defaults to environment settings)
        """
        self.settings = settings or get_settings()
        self.session_store = session_store
        self.decoder = decoder

        self._owns_transport = transport is None
        self.transport = transport or HttpxTransport(timeout=self.settings.http_timeout)

        self._profiles: dict[str, ProviderProfile] = {}
        for profile in profiles:
            self.register(profile)

    def register(self, profile: ProviderProfile) -> None:
        """Register or replace a provider profile under its name."""
        if not isinstance(profile, ProviderProfile):
            raise InvalidProviderConfiguration(
                "profile must be a ProviderProfile", parameter="profile"
            )
        if profile.name in self._profiles:
            logger.debug(f"Replacing provider profile '{profile.name}'")
        self._profiles[profile.name] = profile

    @property
    def providers(self) -> list[str]:
        """Names of the registered providers."""
        return list(self._profiles)

    def profile(self, name: str) -> ProviderProfile:
        """Look up a registered profile.

        Raises:
            InvalidProviderConfiguration: If no profile has this name
        """
        try:
            return self._profiles[name]
        except KeyError:
            raise InvalidProviderConfiguration(
                f"Unknown provider '{name}'", parameter="name"
            ) from None

    def flow(self, name: str) -> AuthorizationFlow:
        """Create a new flow for one request against the named provider."""
        return AuthorizationFlow(
            self.profile(name),
            self.session_store,
            self.transport,
            decoder=self.decoder,
            settings=self.settings,
        )

    def authorization_url(
        self,
        name: str,
        scopes: list[str] | tuple[str, ...] | None = None,
        extra_params: Mapping[str, str] | None = None,
    ) -> AuthorizationStart:
        """Start a login: build the authorization URL for the named provider.

        The returned PKCE verifier and nonce, if any, must be kept by the
        caller until the callback arrives.
        """
        return self.flow(name).make_auth_url(scopes=scopes, extra_params=extra_params)

    async def authenticate(
        self,
        name: str,
        params: Mapping[str, Any],
        code_verifier: str | None = None,
        nonce: str | None = None,
    ) -> tuple[AccessToken, CanonicalIdentity]:
        """Finish a login: validate the callback and resolve the identity."""
        logger.info(f"Completing {name} login")
        return await self.flow(name).authenticate(
            params, code_verifier=code_verifier, nonce=nonce
        )

    async def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            await self.transport.close()

    async def __aenter__(self) -> SocialLoginClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
