"""Access token and token endpoint request models.

Contains the immutable access token value handed back to callers and the
request shapes sent to provider token endpoints.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Token response keys with a dedicated AccessToken field
_STANDARD_KEYS = frozenset(
    {"token_type", "expires_in", "refresh_token", "scope", "id_token", "user_id"}
)


class AccessToken(BaseModel):
    """Access token obtained from a provider token endpoint.

    Immutable. `claims` is filled in only after an OpenID Connect identity
    token has been verified; `extra` keeps whatever else the provider put in
    the token response (some providers surface email or phone only here).
    """

    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    token: str
    token_type: str | None = None
    expires_in: int | None = None
    expires_at: datetime | None = None
    refresh_token: str | None = None
    scope: str | None = None
    id_token: str | None = None
    claims: dict[str, Any] | None = None
    user_id: str | None = None
    extra: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(
        cls, data: dict[str, Any], token_field: str = "access_token"
    ) -> AccessToken:
        """Build a token from a decoded token endpoint response.

        Args:
            data: Decoded JSON object from the token endpoint
            token_field: Key holding the access token string

        Raises:
            KeyError: If `token_field` is absent
        """
        token = data[token_field]

        expires_in = _as_int(data.get("expires_in"))
        expires_at = None
        # Some providers send expires_in=0 for non-expiring tokens
        if expires_in:
            expires_at = datetime.now(timezone.utc) + timedelta(seconds=expires_in)

        extra = {
            k: v
            for k, v in data.items()
            if k != token_field and k not in _STANDARD_KEYS
        }

        return cls(
            token=token,
            token_type=data.get("token_type"),
            expires_in=expires_in,
            expires_at=expires_at,
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
            id_token=data.get("id_token"),
            user_id=data.get("user_id"),
            extra=extra,
        )

    @property
    def email(self) -> str | None:
        """Email surfaced out-of-band on the token response, if any."""
        return self.extra.get("email") or None

    @property
    def phone(self) -> str | None:
        return self.extra.get("phone") or None

    def is_expired(self, leeway_seconds: float = 0.0) -> bool:
        if self.expires_at is None:
            return False
        return datetime.now(timezone.utc) >= self.expires_at - timedelta(
            seconds=leeway_seconds
        )

    def with_claims(self, claims: dict[str, Any]) -> AccessToken:
        """Return a copy carrying the verified identity-token claims."""
        return self.model_copy(update={"claims": dict(claims)})


def _as_int(value: Any) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


@dataclass(frozen=True)
class TokenRequest:
    """Authorization code exchange request (RFC 6749 Section 4.1.3)."""

    # Required fields first
    token_endpoint: str
    code: str
    redirect_uri: str
    client_id: str

    # Optional fields with defaults last
    client_secret: str | None = None  # None for public clients
    code_verifier: str | None = None  # RFC 7636 PKCE
    grant_type: str = "authorization_code"

    def to_form_data(self) -> dict[str, str]:
        """Convert to form data for an application/x-www-form-urlencoded request."""
        data = {
            "grant_type": self.grant_type,
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "code": self.code,
        }

        if self.client_secret:
            data["client_secret"] = self.client_secret
        if self.code_verifier:
            data["code_verifier"] = self.code_verifier

        return data


@dataclass(frozen=True)
class RefreshTokenRequest:
    """Refresh token request (RFC 6749 Section 6)."""

    token_endpoint: str
    refresh_token: str
    client_id: str
    redirect_uri: str | None = None

    client_secret: str | None = None
    grant_type: str = "refresh_token"

    def to_form_data(self) -> dict[str, str]:
        data = {
            "grant_type": self.grant_type,
            "refresh_token": self.refresh_token,
            "client_id": self.client_id,
        }

        if self.redirect_uri:
            data["redirect_uri"] = self.redirect_uri
        if self.client_secret:
            data["client_secret"] = self.client_secret

        return data
