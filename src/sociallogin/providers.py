"""Built-in provider profiles.

Pure configuration data: endpoint URLs, API versions and field-mapping
tables for the providers shipped with the library. Every URL and version is a
keyword argument so it can be changed without touching the flow code.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from sociallogin.models.errors import InvalidProviderConfiguration
from sociallogin.models.identity import CanonicalIdentity, Sex
from sociallogin.models.profile import (
    EmailVerifiedPolicy,
    IdentityStrategy,
    ProviderProfile,
    TokenPlacement,
    provider_options,
)
from sociallogin.primitives.hydrator import (
    FieldMap,
    TransformFn,
    assign,
    bool_field,
    date_field,
    enum_field,
)


def _titled(target: str) -> TransformFn:
    """Transform for VK-style {"id": ..., "title": ...} objects."""

    def transform(value: Any, identity: CanonicalIdentity) -> None:
        if isinstance(value, Mapping) and value.get("title"):
            assign(identity, target, value["title"])
            identity.extra[f"{target}_id"] = value.get("id")

    return transform


# Standard OpenID Connect claims
OIDC_CLAIMS_MAP: FieldMap = {
    "sub": "id",
    "email": "email",
    "email_verified": "email_verified",
    "name": "fullname",
    "picture": "picture_url",
    "given_name": "firstname",
    "family_name": "lastname",
    "middle_name": "middlename",
    "nickname": "nickname",
    "preferred_username": "username",
    "locale": "locale",
    "birthdate": date_field("birthday"),
    "gender": "sex",
}

BITBUCKET_FIELD_MAP: FieldMap = {
    "uuid": "id",
    "display_name": "fullname",
    "nickname": "nickname",
    "username": "username",
}

VK_FIELD_MAP: FieldMap = {
    "id": "id",
    "first_name": "firstname",
    "last_name": "lastname",
    "email": "email",
    "has_mobile": "has_mobile",
    "bdate": date_field("birthday"),
    # 1 = female, 2 = male, 0 = not specified
    "sex": enum_field("sex", {1: Sex.FEMALE, 2: Sex.MALE}),
    "screen_name": "username",
    "nickname": "nickname",
    "city": _titled("city"),
    "country": _titled("country"),
    "photo_max_orig": "picture_url",
    "photo_200_orig": "photo_orig_200",
    "photo_400_orig": "photo_orig_400",
    "photo_max": "photo_max",
    "personal": "personal",
    "followers_count": "followers_count",
    "friend_status": "friend_status",
    "home_town": "home_town",
    "activities": "activities",
    "domain": "domain",
    "has_photo": "has_photo",
    "site": "site",
    "last_seen": "last_seen",
    "timezone": "timezone",
    "universities": "universities",
}

MOS_FIELD_MAP: FieldMap = {
    "guid": "id",
    "FirstName": "firstname",
    "LastName": "lastname",
    "MiddleName": "middlename",
    "email": "email",
    "phone_number": "mobile_phone",
    "contacts": "contacts",
    "trusted": bool_field("trusted"),
    "gender": "sex",
    "birthDate": date_field("birthday"),
}

TALENT_FIELD_MAP: FieldMap = {
    "id": "id",
    "first_name": "firstname",
    "middle_name": "middlename",
    "last_name": "lastname",
    "email": "email",
    "emailVerified": "email_verified",
    "phone": "mobile_phone",
    "birthday": date_field("birthday"),
    "address": "address",
    "avatar": "picture_url",
    "sex": enum_field("sex", {"m": Sex.MALE, "w": Sex.FEMALE}, strict=True),
}


def _strategy(
    provider: str, parameters: Mapping[str, Any], default: IdentityStrategy
) -> IdentityStrategy:
    if not isinstance(parameters, Mapping):
        return default
    options = provider_options(parameters, provider)
    value = options.get("identity_strategy", default)
    try:
        return IdentityStrategy(value)
    except ValueError:
        raise InvalidProviderConfiguration(
            f"Unknown identity strategy: {value}", parameter="identity_strategy"
        ) from None


def openid_connect(
    name: str,
    parameters: Mapping[str, Any],
    *,
    authorize_url: str,
    token_url: str,
    jwks_url: str | None,
    issuer: str | None = None,
    field_map: FieldMap | None = None,
    **overrides: Any,
) -> ProviderProfile:
    """Generic OpenID Connect profile resolving identities from claims."""
    defaults: dict[str, Any] = {
        "authorize_url": authorize_url,
        "token_url": token_url,
        "identity_strategy": IdentityStrategy.CLAIMS,
        "field_map": field_map or OIDC_CLAIMS_MAP,
        "jwks_url": jwks_url,
        "issuer": issuer,
        "scopes": ("openid", "profile", "email"),
        "use_nonce": True,
    }
    defaults.update(overrides)
    return ProviderProfile.from_parameters(name, parameters, **defaults)


def bitbucket(
    parameters: Mapping[str, Any],
    *,
    base_url: str = "https://api.bitbucket.org/2.0/",
    authorize_url: str = "https://bitbucket.org/site/oauth2/authorize",
    token_url: str = "https://bitbucket.org/site/oauth2/access_token",
) -> ProviderProfile:
    return ProviderProfile.from_parameters(
        "bitbucket",
        parameters,
        authorize_url=authorize_url,
        token_url=token_url,
        profile_url=f"{base_url}user",
        token_placement=TokenPlacement.QUERY,
        field_map=BITBUCKET_FIELD_MAP,
    )


def vk(
    parameters: Mapping[str, Any],
    *,
    api_version: str = "5.199",
    base_url: str = "https://api.vk.com/",
    authorize_url: str = "https://oauth.vk.com/authorize",
    token_url: str = "https://oauth.vk.com/access_token",
) -> ProviderProfile:
    """VK profile.

    VK returns the email only in the token response and vouches for it, and
    wraps users.get results as {"response": [user]}.
    """
    return ProviderProfile.from_parameters(
        "vk",
        parameters,
        authorize_url=authorize_url,
        token_url=token_url,
        token_request_method="GET",
        profile_url=f"{base_url}method/users.get",
        profile_params={"v": api_version},
        token_placement=TokenPlacement.QUERY,
        response_path=("response", 0),
        scope_separator=",",
        field_map=VK_FIELD_MAP,
        email_verified_policy=EmailVerifiedPolicy.ALWAYS,
    )


def mos(
    parameters: Mapping[str, Any],
    *,
    base_url: str = "https://login-tech.mos.ru/",
    jwks_url: str = "https://login-tech.mos.ru/.well-known/jwks",
) -> ProviderProfile:
    """mos.ru profile; `options.identity_strategy = "claims"` reads the id token."""
    authorize_url = f"{base_url}sps/oauth/ae"
    token_url = f"{base_url}sps/oauth/te"

    if _strategy("mos", parameters, IdentityStrategy.ENDPOINT) is IdentityStrategy.CLAIMS:
        return openid_connect(
            "mos",
            parameters,
            authorize_url=authorize_url,
            token_url=token_url,
            jwks_url=jwks_url,
        )

    return ProviderProfile.from_parameters(
        "mos",
        parameters,
        authorize_url=authorize_url,
        token_url=token_url,
        profile_url=f"{base_url}sps/oauth/me",
        token_placement=TokenPlacement.BEARER,
        field_map=MOS_FIELD_MAP,
        scopes=("openid", "profile"),
    )


def talent(
    parameters: Mapping[str, Any],
    *,
    base_url: str = "https://talent.kruzhok.org/",
    jwks_url: str | None = None,
) -> ProviderProfile:
    """Talent profile.

    The claims strategy needs `jwks_url`; there is no default for it.
    """
    authorize_url = f"{base_url}oauth/authorize"
    token_url = f"{base_url}api/oauth/issue-token/"

    if _strategy("talent", parameters, IdentityStrategy.ENDPOINT) is IdentityStrategy.CLAIMS:
        return openid_connect(
            "talent",
            parameters,
            authorize_url=authorize_url,
            token_url=token_url,
            jwks_url=jwks_url,
        )

    return ProviderProfile.from_parameters(
        "talent",
        parameters,
        authorize_url=authorize_url,
        token_url=token_url,
        profile_url=f"{base_url}api/users/me",
        token_placement=TokenPlacement.BEARER,
        field_map=TALENT_FIELD_MAP,
        use_nonce=True,
        jwks_url=jwks_url,
    )


PROVIDERS: dict[str, Callable[..., ProviderProfile]] = {
    "bitbucket": bitbucket,
    "vk": vk,
    "mos": mos,
    "talent": talent,
}


def create_profile(
    name: str, parameters: Mapping[str, Any], **kwargs: Any
) -> ProviderProfile:
    """Build a built-in provider profile by name.

    Raises:
        InvalidProviderConfiguration: If the provider is unknown or its
            parameters are invalid
    """
    try:
        factory = PROVIDERS[name]
    except KeyError:
        raise InvalidProviderConfiguration(
            f"Unknown provider '{name}'", parameter="name"
        ) from None
    return factory(parameters, **kwargs)
