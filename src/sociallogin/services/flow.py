"""Authorization-code flow orchestration.

Coordinates one user's redirect-then-callback round trip: authorization URL
construction, CSRF state validation, PKCE, token exchange, identity-token
verification and identity resolution.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from sociallogin.config import SocialLoginSettings, get_settings
from sociallogin.models.errors import (
    AuthorizationDenied,
    FlowStateError,
    InvalidProviderConfiguration,
    MissingCode,
    PKCEError,
    SocialLoginError,
    TokenDecodeError,
)
from sociallogin.models.flow import (
    AuthorizationRequest,
    AuthorizationResponse,
    AuthorizationStart,
    FlowState,
)
from sociallogin.models.identity import CanonicalIdentity
from sociallogin.models.profile import ProviderProfile
from sociallogin.models.tokens import AccessToken
from sociallogin.primitives.pkce import PKCEManager
from sociallogin.primitives.state import StateToken, generate_state
from sociallogin.services.id_token import IdentityTokenVerifier, TokenDecoder
from sociallogin.services.identity import IdentityResolver
from sociallogin.services.session import SessionStore
from sociallogin.services.tokens import TokenExchange
from sociallogin.services.transport import HTTPTransport

logger = logging.getLogger(__name__)

ACCESS_DENIED = "access_denied"


class AuthorizationFlow:
    """Drives the authorization-code flow for one provider and one request.

    Construct a new flow per inbound request. States move
    INIT -> AWAITING_CALLBACK -> EXCHANGING -> RESOLVED, or to FAILED from
    any non-terminal state. A flow built on the callback request may call
    `handle_callback` straight from INIT.

    The flow never stores the PKCE verifier or the nonce: `make_auth_url`
    hands them to the caller, who passes them back to `handle_callback`.
    """

    def __init__(
        self,
        profile: ProviderProfile,
        session_store: SessionStore | None,
        transport: HTTPTransport,
        decoder: TokenDecoder | None = None,
        settings: SocialLoginSettings | None = None,
    ):
        """Initialize the flow.

        Args:
            profile: Provider configuration
            session_store: Store for pending state tokens; may be None only
                for stateless profiles
            transport: HTTP transport used for all provider calls
            decoder: Identity-token decoder (defaults to PyJWT)
            settings: Flow-wide defaults (defaults to environment settings)

        Raises:
            InvalidProviderConfiguration: If the setup cannot work
        """
        if not isinstance(profile, ProviderProfile):
            raise InvalidProviderConfiguration(
                "profile must be a ProviderProfile", parameter="profile"
            )
        if session_store is None and not profile.stateless:
            raise InvalidProviderConfiguration(
                f"A session store is required for '{profile.name}' unless it is stateless",
                parameter="session_store",
            )

        settings = settings or get_settings()
        self.profile = profile
        self.settings = settings

        self._state_token = (
            StateToken(
                session_store,
                prefix=settings.state_prefix,
                entropy_bytes=settings.state_entropy_bytes,
            )
            if session_store is not None
            else None
        )
        self._pkce_manager = PKCEManager(settings.pkce_verifier_length)
        self._token_exchange = TokenExchange(profile, transport)
        self._id_token_verifier = IdentityTokenVerifier(profile, transport, decoder)
        self._identity_resolver = IdentityResolver(profile, transport)

        self.state = FlowState.INIT
        self.failure: SocialLoginError | None = None
        self.access_token: AccessToken | None = None

    @property
    def failure_kind(self) -> str | None:
        """Name of the error that failed the flow, if it failed."""
        return type(self.failure).__name__ if self.failure else None

    def make_auth_url(
        self,
        scopes: list[str] | tuple[str, ...] | None = None,
        extra_params: Mapping[str, str] | None = None,
    ) -> AuthorizationStart:
        """Build the provider authorization URL.

        Issues and persists a state token unless the profile is stateless,
        and adds a nonce and PKCE challenge when the profile enables them.

        Args:
            scopes: Scopes to request instead of the profile defaults
            extra_params: Additional authorization parameters for this request

        Returns:
            AuthorizationStart with the URL plus the state, nonce and PKCE
            parameters the caller must keep
        """
        self._require_state(FlowState.INIT)
        profile = self.profile

        try:
            state = None if profile.stateless else self._state_token.issue()
            nonce = (
                generate_state(self.settings.state_entropy_bytes)
                if profile.use_nonce
                else None
            )
            pkce_params = (
                self._pkce_manager.generate_parameters(profile.pkce_method)
                if profile.pkce
                else None
            )

            auth_request = AuthorizationRequest(
                authorization_endpoint=profile.authorize_url,
                client_id=profile.client_id,
                redirect_uri=profile.resolved_redirect_uri(),
                state=state,
                scope=profile.scope_string(scopes) or None,
                nonce=nonce,
                **(pkce_params.authorization_params() if pkce_params else {}),
                extra_params={**profile.auth_params, **(extra_params or {})},
            )
            authorization_url = auth_request.build_authorization_url()
        except SocialLoginError as e:
            self._fail(e)
            raise

        self.state = FlowState.AWAITING_CALLBACK
        logger.info(
            f"Generated authorization URL for {profile.name} "
            f"(stateless={profile.stateless}, pkce={profile.pkce})"
        )

        return AuthorizationStart(
            url=authorization_url, state=state, nonce=nonce, pkce=pkce_params
        )

    async def handle_callback(
        self,
        params: Mapping[str, Any],
        code_verifier: str | None = None,
        nonce: str | None = None,
    ) -> AccessToken:
        """Validate the provider callback and exchange the code for a token.

        Args:
            params: Callback query parameters
            code_verifier: PKCE verifier from `make_auth_url`, if PKCE is on
            nonce: Nonce from `make_auth_url`, checked inside the identity token

        Raises:
            AuthorizationDenied: If the provider reported an error
            MissingCode: If there is no authorization code
            MissingState, UnknownAuthorization, InvalidState: On CSRF failures
            PKCEError: If PKCE is enabled and no verifier was supplied
            InvalidAccessToken: If the token response is unusable
            TokenDecodeError: If the identity token fails verification, or the
                profile uses a nonce and none was supplied
        """
        self._require_state(FlowState.INIT, FlowState.AWAITING_CALLBACK)
        profile = self.profile

        try:
            auth_response = AuthorizationResponse.from_params(params)

            if auth_response.is_error():
                self._discard_state(auth_response.state)
                message = (
                    "Unauthorized"
                    if auth_response.error == ACCESS_DENIED
                    else auth_response.error
                )
                logger.warning(
                    f"{profile.name} callback contained error: {auth_response.error}"
                    f" - {auth_response.error_description}"
                )
                raise AuthorizationDenied(
                    message,
                    error=auth_response.error,
                    error_description=auth_response.error_description,
                )

            if not auth_response.code:
                raise MissingCode()

            if not profile.stateless:
                self._state_token.consume(auth_response.state)

            if profile.pkce and not code_verifier:
                raise PKCEError(
                    f"PKCE is enabled for '{profile.name}' but no code_verifier was given"
                )

            self.state = FlowState.EXCHANGING
            access_token = await self._token_exchange.exchange(
                auth_response.code, code_verifier if profile.pkce else None
            )

            if access_token.id_token and (profile.jwks is not None or profile.jwks_url):
                if profile.use_nonce and not nonce:
                    raise TokenDecodeError(
                        f"Nonce is enabled for '{profile.name}' but no nonce was given"
                    )
                access_token = await self._id_token_verifier.verify(access_token, nonce)
        except SocialLoginError as e:
            self._fail(e)
            raise

        self.access_token = access_token
        self.state = FlowState.RESOLVED
        return access_token

    async def get_identity(
        self, access_token: AccessToken | None = None
    ) -> CanonicalIdentity:
        """Resolve the canonical identity for a token.

        Uses the token obtained by `handle_callback` when none is given.
        Each call builds a fresh identity.
        """
        access_token = access_token or self.access_token
        if access_token is None:
            raise FlowStateError("No access token: complete the callback first")
        return await self._identity_resolver.get_identity(access_token)

    async def authenticate(
        self,
        params: Mapping[str, Any],
        code_verifier: str | None = None,
        nonce: str | None = None,
    ) -> tuple[AccessToken, CanonicalIdentity]:
        """Handle the callback and resolve the identity in one step."""
        access_token = await self.handle_callback(
            params, code_verifier=code_verifier, nonce=nonce
        )
        identity = await self.get_identity(access_token)
        return access_token, identity

    async def refresh(self, refresh_token: str) -> AccessToken:
        """Exchange a refresh token for a new access token."""
        return await self._token_exchange.refresh(refresh_token)

    def _require_state(self, *allowed: FlowState) -> None:
        if self.state not in allowed:
            raise FlowStateError(
                f"Operation not allowed in state '{self.state.value}'"
            )

    def _discard_state(self, state: str | None) -> None:
        if state and self._state_token is not None and not self.profile.stateless:
            self._state_token.discard(state)

    def _fail(self, error: SocialLoginError) -> None:
        self.state = FlowState.FAILED
        self.failure = error
        logger.warning(
            f"Authorization with {self.profile.name} failed: "
            f"{type(error).__name__}: {error}"
        )
