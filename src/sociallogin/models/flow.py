"""Authorization flow models.

Contains the authorization request, the parsed callback and the flow
lifecycle states.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any
from urllib.parse import urlencode

from sociallogin.models.security import PKCEParameters


class FlowState(str, Enum):
    INIT = "init"
    AWAITING_CALLBACK = "awaiting_callback"
    EXCHANGING = "exchanging"
    RESOLVED = "resolved"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.RESOLVED, FlowState.FAILED)


@dataclass(frozen=True)
class AuthorizationRequest:
    """Authorization request parameters for the authorization-code flow."""

    authorization_endpoint: str
    client_id: str
    redirect_uri: str
    state: str | None = None
    scope: str | None = None
    nonce: str | None = None
    code_challenge: str | None = None
    code_challenge_method: str | None = None
    extra_params: dict[str, str] = field(default_factory=dict)

    def build_authorization_url(self) -> str:
        """Build the complete authorization URL."""
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
        }

        if self.state:
            params["state"] = self.state
        if self.scope:
            params["scope"] = self.scope
        if self.nonce:
            params["nonce"] = self.nonce
        if self.code_challenge:
            params["code_challenge"] = self.code_challenge
            params["code_challenge_method"] = self.code_challenge_method or "S256"

        for key, value in self.extra_params.items():
            params.setdefault(key, value)

        separator = "&" if "?" in self.authorization_endpoint else "?"
        return f"{self.authorization_endpoint}{separator}{urlencode(params)}"


@dataclass(frozen=True)
class AuthorizationStart:
    """Result of starting a flow.

    The caller must keep `pkce.code_verifier` and `nonce` (for example in its
    own signed cookie) and hand them back when the callback arrives.
    """

    url: str
    state: str | None = None
    nonce: str | None = None
    pkce: PKCEParameters | None = None

    @property
    def code_verifier(self) -> str | None:
        return self.pkce.code_verifier if self.pkce else None


@dataclass(frozen=True)
class AuthorizationResponse:
    """Callback parameters delivered by the provider redirect."""

    code: str | None = None
    state: str | None = None
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> AuthorizationResponse:
        """Build from a query-parameter mapping.

        Accepts single values or lists of values (as produced by `parse_qs`);
        for lists the first value wins.
        """

        def get_single_param(key: str) -> str | None:
            value = params.get(key)
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            if value is None or value == "":
                return None
            return str(value)

        return cls(
            code=get_single_param("code"),
            state=get_single_param("state"),
            error=get_single_param("error"),
            error_description=get_single_param("error_description"),
            error_uri=get_single_param("error_uri"),
        )

    def is_success(self) -> bool:
        return self.error is None and self.code is not None

    def is_error(self) -> bool:
        return self.error is not None
