from unittest.mock import AsyncMock, MagicMock

import pytest

from sociallogin.client import SocialLoginClient
from sociallogin.models.errors import InvalidProviderConfiguration, UnknownAuthorization
from sociallogin.models.flow import FlowState
from sociallogin.services.flow import AuthorizationFlow
from sociallogin.services.transport import HttpxTransport


class TestSocialLoginClient:
    def test_registers_profiles_by_name(self, make_profile, store, transport):
        # Arrange
        acme = make_profile()
        other = make_profile(name="other")

        # Act
        client = SocialLoginClient([acme, other], session_store=store, transport=transport)

        # Assert
        assert client.providers == ["acme", "other"]
        assert client.profile("other") is other

    def test_unknown_provider_is_rejected(self, store, transport):
        # Arrange
        client = SocialLoginClient(session_store=store, transport=transport)

        # Act & Assert
        with pytest.raises(InvalidProviderConfiguration) as exc_info:
            client.flow("acme")
        assert exc_info.value.parameter == "name"

    def test_register_checks_profile_type(self, store, transport):
        with pytest.raises(InvalidProviderConfiguration):
            SocialLoginClient([{"name": "acme"}], session_store=store, transport=transport)

    def test_each_flow_is_fresh(self, make_profile, store, transport):
        # Arrange
        client = SocialLoginClient([make_profile()], session_store=store, transport=transport)

        # Act
        first = client.flow("acme")
        second = client.flow("acme")

        # Assert
        assert isinstance(first, AuthorizationFlow)
        assert first is not second
        assert first.state is FlowState.INIT

    async def test_full_login(self, make_profile, store, transport):
        # Arrange
        client = SocialLoginClient([make_profile()], session_store=store, transport=transport)
        start = client.authorization_url("acme")
        transport.queue({"access_token": "abc"})
        transport.queue({"id": 7, "email": "ann@example.com"})

        # Act
        access_token, identity = await client.authenticate(
            "acme", {"code": "auth-code", "state": start.state}
        )

        # Assert
        assert access_token.token == "abc"
        assert identity.id == "7"
        assert identity.email == "ann@example.com"

        # State is single use across flows
        with pytest.raises(UnknownAuthorization):
            await client.authenticate("acme", {"code": "auth-code", "state": start.state})

    async def test_close_leaves_injected_transport_alone(self, make_profile, store):
        # Arrange
        injected = MagicMock()
        injected.close = AsyncMock()
        client = SocialLoginClient([make_profile()], session_store=store, transport=injected)

        # Act
        await client.close()

        # Assert
        injected.close.assert_not_awaited()

    async def test_context_manager_closes_owned_transport(self, make_profile, store):
        # Act
        async with SocialLoginClient([make_profile()], session_store=store) as client:
            assert isinstance(client.transport, HttpxTransport)

        # Assert
        assert client.transport._http_client.is_closed
