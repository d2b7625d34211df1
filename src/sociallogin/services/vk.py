"""VK API calls outside the authorization-code flow.

VK ID "silent" tokens issued to mobile and One Tap clients are traded for a
regular access token here, and the geo directory is exposed for city
lookups. Both use the API version configured on the VK profile.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from sociallogin.models.errors import InvalidProviderConfiguration, InvalidResponse
from sociallogin.models.http import HttpRequest, HttpResponse
from sociallogin.models.identity import City
from sociallogin.models.profile import ProviderProfile
from sociallogin.models.tokens import AccessToken
from sociallogin.services.transport import HTTPTransport

logger = logging.getLogger(__name__)

# Payload key -> which token the value stands for, used in error messages
SILENT_AUTH_PARAMETERS = {
    "silent_token": "access token",
    "uuid": "access token",
    "service_key": "service token",
}


class VkApi:
    """VK method calls bound to a VK provider profile."""

    def __init__(
        self,
        profile: ProviderProfile,
        transport: HTTPTransport,
        base_url: str = "https://api.vk.com/",
    ):
        self.profile = profile
        self.transport = transport
        self.base_url = base_url
        self.api_version = profile.profile_params.get("v")

    async def exchange_silent_token(self, payload: Mapping[str, Any]) -> AccessToken:
        """Exchange a VK ID silent token for an access token.

        Args:
            payload: Must hold `silent_token` and `uuid` from the VK ID
                callback, plus the application's `service_key`

        Returns:
            AccessToken whose `extra` carries `phone` and `email` when VK
            returned them

        Raises:
            InvalidProviderConfiguration: If a payload parameter is missing
            InvalidResponse: If VK answered with an error or without a token
        """
        for key, purpose in SILENT_AUTH_PARAMETERS.items():
            if not payload.get(key):
                raise InvalidProviderConfiguration(
                    f"Parameter '{key}' doesn't exist for get {purpose}", parameter=key
                )

        params = {
            "v": self.api_version,
            "token": payload["silent_token"],
            "uuid": payload["uuid"],
            "access_token": payload["service_key"],
        }
        data = await self._call("POST", "auth.exchangeSilentAuthToken", params)

        result = data.get("response")
        if not isinstance(result, dict) or not result.get("access_token"):
            raise InvalidResponse("API response not contain access_token field", data)

        extra = {k: result[k] for k in ("phone", "email") if result.get(k)}
        try:
            access_token = AccessToken(
                token=result["access_token"],
                user_id=result.get("user_id"),
                extra=extra,
            )
        except ValidationError as e:
            raise InvalidResponse(f"Invalid silent token response: {e}", data) from e

        logger.info("Silent token exchange with vk successful")
        return access_token

    async def get_cities(
        self, access_token: AccessToken, country_id: int, q: str
    ) -> dict[int, City]:
        """Search VK's city directory.

        Returns:
            Cities keyed by VK city id; empty when nothing matched

        Raises:
            InvalidResponse: If VK answered with an error or an item is malformed
        """
        params = {
            "v": self.api_version,
            "country_id": country_id,
            "q": q,
            "access_token": access_token.token,
        }
        data = await self._call("GET", "database.getCities", params)

        result = data.get("response")
        if not isinstance(result, dict):
            return {}

        cities = {}
        for item in result.get("items") or []:
            try:
                city = City.model_validate(item)
            except ValidationError as e:
                raise InvalidResponse(f"Invalid city entry: {e}", data) from e
            cities[city.id] = city
        return cities

    async def _call(
        self, method: str, name: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        # VK takes method arguments in the query string for GET and POST alike
        request = HttpRequest(
            method=method,
            url=f"{self.base_url}method/{name}",
            headers={"Accept": "application/json"},
            params={k: str(v) for k, v in params.items() if v is not None},
        )
        response = await self.transport.send(request)
        return self._parse(name, response)

    def _parse(self, name: str, response: HttpResponse) -> dict[str, Any]:
        if not response.is_success():
            logger.warning(f"VK method {name} answered {response.status_code}")
            raise InvalidResponse("API response with error code", response)

        try:
            data = response.json()
        except ValueError as e:
            raise InvalidResponse("API response is not a valid JSON object", response) from e

        if not isinstance(data, dict):
            raise InvalidResponse("API response is not a valid JSON object", response)

        # VK reports method errors with HTTP 200
        error = data.get("error")
        if error:
            message = error.get("error_msg") if isinstance(error, dict) else error
            logger.warning(f"VK method {name} failed: {message}")
            raise InvalidResponse(f"API response with error: {message}", response)
        return data
