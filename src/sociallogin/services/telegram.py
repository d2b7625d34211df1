"""Telegram Login Widget verification.

Telegram does not use the authorization-code flow: the widget redirects back
with the user's fields plus an HMAC signature. This module checks that
signature and its freshness, then hydrates the identity.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from collections.abc import Mapping
from typing import Any

from sociallogin.models.errors import AuthorizationDenied, InvalidProviderConfiguration
from sociallogin.models.identity import CanonicalIdentity
from sociallogin.primitives.hydrator import FieldMap, FieldMapper

logger = logging.getLogger(__name__)

TELEGRAM_FIELD_MAP: FieldMap = {
    "id": "id",
    "first_name": "firstname",
    "last_name": "lastname",
    "username": "username",
    "photo_url": "picture_url",
}

# Keys the host application may add to the redirect that are not signed
UNSIGNED_KEYS = frozenset({"hash", "socialName"})


class TelegramLoginVerifier:
    """Verifies Telegram Login Widget payloads.

    The signing key is SHA-256 of the bot token; the signature is
    HMAC-SHA256 over the sorted `key=value` lines of every signed field.
    """

    def __init__(
        self,
        bot_token: str,
        max_age: int = 86400,
        field_map: FieldMap | None = None,
    ):
        if not isinstance(bot_token, str) or not bot_token:
            raise InvalidProviderConfiguration(
                "Parameter 'bot_token' doesn't exist for 'telegram' provider configuration",
                parameter="bot_token",
            )
        self._secret_key = hashlib.sha256(bot_token.encode()).digest()
        self.max_age = max_age
        self.mapper = FieldMapper(field_map or TELEGRAM_FIELD_MAP)

    def check_auth(self, data: Mapping[str, Any], now: float | None = None) -> dict[str, Any]:
        """Verify signature and freshness, returning the signed fields.

        Raises:
            AuthorizationDenied: If the signature is wrong or the data is stale
        """
        check_hash = str(data.get("hash", ""))
        signed = {k: v for k, v in data.items() if k not in UNSIGNED_KEYS}

        data_check_string = "\n".join(sorted(f"{k}={v}" for k, v in signed.items()))
        expected = hmac.new(
            self._secret_key,
            data_check_string.encode("utf-8", "surrogatepass"),
            hashlib.sha256,
        ).hexdigest()

        # bytes comparison; compare_digest rejects non-ASCII str
        if not hmac.compare_digest(
            expected.encode(), check_hash.encode("utf-8", "surrogatepass")
        ):
            logger.warning("Telegram login rejected: signature mismatch")
            raise AuthorizationDenied("Data is NOT from Telegram")

        now = time.time() if now is None else now
        try:
            auth_date = int(signed["auth_date"])
        except (KeyError, TypeError, ValueError):
            raise AuthorizationDenied("Data is outdated") from None
        if now - auth_date > self.max_age:
            logger.warning("Telegram login rejected: auth_date too old")
            raise AuthorizationDenied("Data is outdated")

        return signed

    def get_identity(
        self, data: Mapping[str, Any], now: float | None = None
    ) -> CanonicalIdentity:
        """Verify the widget payload and build a fresh identity from it."""
        signed = self.check_auth(data, now=now)
        return self.mapper.hydrate(signed)
