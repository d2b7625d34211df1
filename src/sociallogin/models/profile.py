"""Per-provider configuration.

A `ProviderProfile` is plain configuration data: endpoints, credentials,
scopes, the field-mapping table and the identity-resolution strategy. One
generic flow engine is parameterized by it, so adding a provider means adding
a profile, not a subclass.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from sociallogin.models.errors import InvalidProviderConfiguration
from sociallogin.models.security import PKCE_METHODS

if TYPE_CHECKING:
    from sociallogin.primitives.hydrator import FieldMap

HTTP_METHODS = ("GET", "POST")


class IdentityStrategy(str, Enum):
    """How the canonical identity is obtained once a token is issued."""

    ENDPOINT = "endpoint"  # call a profile API with the access token
    CLAIMS = "claims"  # read the verified OpenID Connect identity token


class TokenPlacement(str, Enum):
    """Where the access token goes on profile API requests."""

    QUERY = "query"
    BEARER = "bearer"


class EmailVerifiedPolicy(str, Enum):
    """How `email_verified` is decided after hydration.

    PROVIDER_CLAIM keeps the provider's own signal when the payload carried
    one and otherwise falls back to whether an email is present.
    """

    PROVIDER_CLAIM = "provider_claim"
    PRESENCE = "presence"
    ALWAYS = "always"
    NEVER = "never"


@dataclass(frozen=True)
class ProviderProfile:
    """Static configuration for one identity provider.

    Validated on construction; a bad profile raises
    `InvalidProviderConfiguration` naming the offending parameter.
    """

    # Required fields first
    name: str
    client_id: str
    redirect_uri: str
    authorize_url: str
    token_url: str

    # Optional fields with defaults last
    client_secret: str | None = None
    public_client: bool = False

    identity_strategy: IdentityStrategy = IdentityStrategy.ENDPOINT
    field_map: FieldMap = field(default_factory=dict)

    scopes: tuple[str, ...] = ()
    scope_separator: str = " "
    auth_params: Mapping[str, str] = field(default_factory=dict)

    # Token endpoint
    token_request_method: str = "POST"
    token_field: str = "access_token"

    # Profile endpoint (ENDPOINT strategy)
    profile_url: str | None = None
    profile_method: str = "GET"
    token_placement: TokenPlacement = TokenPlacement.BEARER
    token_query_name: str = "access_token"
    profile_params: Mapping[str, str] = field(default_factory=dict)
    profile_fields: tuple[str, ...] = ()
    profile_fields_param: str = "fields"
    response_path: tuple[str | int, ...] = ()

    # OpenID Connect (CLAIMS strategy)
    jwks_url: str | None = None
    jwks: Mapping[str, Any] | None = None
    issuer: str | None = None
    id_token_algorithms: tuple[str, ...] = ("RS256",)
    use_nonce: bool = False

    # Security switches
    stateless: bool = False
    pkce: bool = False
    pkce_method: str = "S256"

    email_verified_policy: EmailVerifiedPolicy = EmailVerifiedPolicy.PROVIDER_CLAIM

    def __post_init__(self) -> None:
        """Validate the profile and coerce enum-valued settings."""
        self._require_str("name", self.name)
        for key in ("client_id", "redirect_uri", "authorize_url", "token_url"):
            self._require_str(key, getattr(self, key))

        if self.client_secret is not None and not isinstance(self.client_secret, str):
            raise self._error("client_secret", "must be a string")
        if not self.public_client and not self.client_secret:
            raise self._error(
                "client_secret", "is required unless the client is public"
            )

        self._coerce_enum("identity_strategy", IdentityStrategy)
        self._coerce_enum("token_placement", TokenPlacement)
        self._coerce_enum("email_verified_policy", EmailVerifiedPolicy)

        for key in ("token_request_method", "profile_method"):
            value = getattr(self, key)
            if not isinstance(value, str) or value.upper() not in HTTP_METHODS:
                raise self._error(key, f"must be one of {', '.join(HTTP_METHODS)}")
            object.__setattr__(self, key, value.upper())

        if self.pkce_method not in PKCE_METHODS:
            raise self._error("pkce_method", f"must be one of {', '.join(PKCE_METHODS)}")

        if not isinstance(self.field_map, Mapping):
            raise self._error("field_map", "must be a mapping")

        if isinstance(self.scopes, str):
            raise self._error("scopes", "must be a sequence of scope names")
        object.__setattr__(self, "scopes", tuple(self.scopes))
        object.__setattr__(self, "profile_fields", tuple(self.profile_fields))
        object.__setattr__(self, "response_path", tuple(self.response_path))
        object.__setattr__(self, "id_token_algorithms", tuple(self.id_token_algorithms))

        if self.identity_strategy is IdentityStrategy.ENDPOINT:
            self._require_str("profile_url", self.profile_url)
        elif self.jwks is None:
            self._require_str("jwks_url", self.jwks_url)

    @classmethod
    def from_parameters(
        cls, name: str, parameters: Mapping[str, Any], **defaults: Any
    ) -> ProviderProfile:
        """Build a profile from a loose configuration mapping.

        Recognized keys: `client_id`, `client_secret`, `redirect_uri`,
        `scope` (list or separator-joined string) and `options` (`stateless`,
        `pkce`, `pkce_method`, `use_nonce`, `public_client`,
        `email_verified_policy`, `identity.fields`). Everything else comes
        from `defaults`, usually supplied by a built-in provider factory.

        Raises:
            InvalidProviderConfiguration: If a required parameter is missing
                or is not a string, or `options` or `scope` is malformed
        """
        if not isinstance(parameters, Mapping):
            raise InvalidProviderConfiguration(
                f"Configuration for '{name}' provider must be a mapping"
            )

        values = dict(defaults)
        values["client_id"] = _required_string("client_id", parameters, name)

        options = provider_options(parameters, name)
        public_client = bool(options.get("public_client", values.get("public_client")))
        if public_client:
            values["public_client"] = True
            if parameters.get("client_secret") is not None:
                values["client_secret"] = _required_string(
                    "client_secret", parameters, name
                )
        else:
            values["client_secret"] = _required_string("client_secret", parameters, name)

        if "redirect_uri" in parameters or "redirect_uri" not in values:
            values["redirect_uri"] = _required_string("redirect_uri", parameters, name)

        scope = parameters.get("scope")
        if scope is not None:
            values["scopes"] = _string_tuple(
                "scope", scope, name, values.get("scope_separator", " ")
            )

        for option in ("stateless", "pkce", "use_nonce"):
            if option in options:
                values[option] = bool(options[option])
        if "pkce_method" in options:
            values["pkce_method"] = options["pkce_method"]
        if "email_verified_policy" in options:
            values["email_verified_policy"] = options["email_verified_policy"]
        if "identity.fields" in options:
            values["profile_fields"] = _string_tuple(
                "identity.fields", options["identity.fields"], name, ","
            )

        try:
            return cls(name=name, **values)
        except TypeError as e:
            raise InvalidProviderConfiguration(
                f"Invalid configuration for '{name}' provider: {e}"
            ) from e

    def resolved_redirect_uri(self) -> str:
        """Redirect URI with the `{provider}` or `${provider}` placeholder substituted."""
        return self.redirect_uri.replace("${provider}", self.name).replace(
            "{provider}", self.name
        )

    def scope_string(self, scopes: tuple[str, ...] | list[str] | None = None) -> str:
        """Join scopes with the provider's separator convention."""
        return self.scope_separator.join(self.scopes if scopes is None else scopes)

    def _require_str(self, key: str, value: Any) -> None:
        if value is None:
            raise self._error(key, "doesn't exist", missing=True)
        if not isinstance(value, str) or not value:
            raise self._error(key, "must be a non-empty string")

    def _coerce_enum(self, key: str, enum_cls: type[Enum]) -> None:
        value = getattr(self, key)
        try:
            object.__setattr__(self, key, enum_cls(value))
        except ValueError:
            allowed = ", ".join(m.value for m in enum_cls)
            raise self._error(key, f"must be one of {allowed}") from None

    def _error(
        self, key: str, problem: str, missing: bool = False
    ) -> InvalidProviderConfiguration:
        provider = self.name if isinstance(self.name, str) and self.name else "unknown"
        if missing:
            message = f"Parameter '{key}' doesn't exist for '{provider}' provider configuration"
        else:
            message = f"Parameter '{key}' {problem} in '{provider}' provider configuration"
        return InvalidProviderConfiguration(message, parameter=key)


def _required_string(key: str, parameters: Mapping[str, Any], provider: str) -> str:
    if key not in parameters or parameters[key] is None:
        raise InvalidProviderConfiguration(
            f"Parameter '{key}' doesn't exist for '{provider}' provider configuration",
            parameter=key,
        )
    if not isinstance(parameters[key], str):
        raise InvalidProviderConfiguration(
            f"Parameter '{key}' must be string inside '{provider}' provider configuration",
            parameter=key,
        )
    return parameters[key]


def provider_options(parameters: Mapping[str, Any], provider: str) -> Mapping[str, Any]:
    """Return the `options` sub-mapping of a provider configuration."""
    options = parameters.get("options")
    if options is None:
        return {}
    if not isinstance(options, Mapping):
        raise InvalidProviderConfiguration(
            f"Parameter 'options' must be a mapping inside '{provider}' provider configuration",
            parameter="options",
        )
    return options


def _string_tuple(key: str, value: Any, provider: str, separator: str) -> tuple[str, ...]:
    if isinstance(value, str):
        return tuple(s.strip() for s in value.split(separator) if s.strip())
    if isinstance(value, (list, tuple)) and all(isinstance(s, str) for s in value):
        return tuple(value)
    raise InvalidProviderConfiguration(
        f"Parameter '{key}' must be a string or a list of strings inside "
        f"'{provider}' provider configuration",
        parameter=key,
    )
