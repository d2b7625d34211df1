import json
import time
from typing import Any

import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric import rsa
from jwt.algorithms import RSAAlgorithm

from sociallogin.config import SocialLoginSettings
from sociallogin.models.http import HttpRequest, HttpResponse
from sociallogin.models.profile import ProviderProfile
from sociallogin.services.session import InMemorySessionStore

KEY_ID = "test-key"
ISSUER = "https://acme.example.com"
CLIENT_ID = "client-123"


class RecordingTransport:
    """Fake transport that records requests and replays queued responses."""

    def __init__(self):
        self.requests: list[HttpRequest] = []
        self._responses: list[HttpResponse] = []

    def queue(
        self,
        body: Any = "",
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        if not isinstance(body, str):
            body = json.dumps(body)
        self._responses.append(
            HttpResponse(status_code=status_code, body=body, headers=headers or {})
        )

    async def send(self, request: HttpRequest) -> HttpResponse:
        self.requests.append(request)
        if not self._responses:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        return self._responses.pop(0)

    @property
    def last_request(self) -> HttpRequest:
        return self.requests[-1]


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def settings() -> SocialLoginSettings:
    return SocialLoginSettings()


@pytest.fixture
def make_profile():
    """Factory for a valid endpoint-strategy profile with overridable fields."""

    def factory(**overrides: Any) -> ProviderProfile:
        values: dict[str, Any] = {
            "name": "acme",
            "client_id": CLIENT_ID,
            "client_secret": "secret-456",
            "redirect_uri": "https://app.example.com/auth/{provider}/callback",
            "authorize_url": "https://acme.example.com/oauth/authorize",
            "token_url": "https://acme.example.com/oauth/token",
            "profile_url": "https://api.acme.example.com/me",
            "field_map": {
                "id": "id",
                "email": "email",
                "email_verified": "email_verified",
                "first_name": "firstname",
                "last_name": "lastname",
            },
        }
        values.update(overrides)
        return ProviderProfile(**values)

    return factory


@pytest.fixture(scope="session")
def rsa_private_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


@pytest.fixture(scope="session")
def jwks(rsa_private_key) -> dict[str, Any]:
    public_jwk = json.loads(RSAAlgorithm.to_jwk(rsa_private_key.public_key()))
    public_jwk.update({"kid": KEY_ID, "alg": "RS256", "use": "sig"})
    return {"keys": [public_jwk]}


@pytest.fixture
def make_id_token(rsa_private_key):
    """Factory for RS256-signed identity tokens with overridable claims."""

    def factory(kid: str = KEY_ID, **claims: Any) -> str:
        now = int(time.time())
        payload: dict[str, Any] = {
            "sub": "user-1",
            "aud": CLIENT_ID,
            "iss": ISSUER,
            "iat": now,
            "exp": now + 300,
        }
        payload.update(claims)
        return jwt.encode(
            payload, rsa_private_key, algorithm="RS256", headers={"kid": kid}
        )

    return factory
