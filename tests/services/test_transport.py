import httpx
import pytest

from sociallogin.models.errors import TransportError
from sociallogin.models.http import HttpRequest
from sociallogin.services.session import InMemorySessionStore, SessionStore
from sociallogin.services.transport import HTTPTransport, HttpxTransport


class TestHttpxTransport:
    async def test_form_request_is_sent(self):
        # Arrange
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"access_token": "abc"})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        transport = HttpxTransport(client=client)

        # Act
        response = await transport.send(
            HttpRequest(
                method="POST",
                url="https://acme.example.com/oauth/token",
                headers={"Accept": "application/json"},
                data={"grant_type": "authorization_code", "code": "abc"},
            )
        )

        # Assert
        assert response.status_code == 200
        assert response.json() == {"access_token": "abc"}
        assert seen[0].method == "POST"
        assert seen[0].headers["Accept"] == "application/json"
        assert seen[0].content == b"grant_type=authorization_code&code=abc"
        await client.aclose()

    async def test_query_parameters_are_sent(self):
        # Arrange
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={})

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        # Act
        await HttpxTransport(client=client).send(
            HttpRequest(
                method="GET",
                url="https://api.acme.example.com/me",
                params={"access_token": "abc", "v": "5.199"},
            )
        )

        # Assert
        assert seen[0].url.params["access_token"] == "abc"
        assert seen[0].url.params["v"] == "5.199"
        await client.aclose()

    async def test_error_status_is_returned_not_raised(self):
        # Arrange
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(401, text="nope"))
        )

        # Act
        response = await HttpxTransport(client=client).send(
            HttpRequest(method="GET", url="https://api.acme.example.com/me")
        )

        # Assert
        assert response.status_code == 401
        assert response.body == "nope"
        assert not response.is_success()
        await client.aclose()

    async def test_network_failure_becomes_transport_error(self):
        # Arrange
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        # Act & Assert
        with pytest.raises(TransportError, match="connection refused"):
            await HttpxTransport(client=client).send(
                HttpRequest(method="GET", url="https://api.acme.example.com/me")
            )
        await client.aclose()

    async def test_close_leaves_injected_client_open(self):
        # Arrange
        client = httpx.AsyncClient()
        transport = HttpxTransport(client=client)

        # Act
        await transport.close()

        # Assert
        assert not client.is_closed
        await client.aclose()

    async def test_close_closes_owned_client(self):
        # Arrange
        transport = HttpxTransport(timeout=5.0)

        # Act
        await transport.close()

        # Assert
        assert transport._http_client.is_closed

    def test_satisfies_protocol(self):
        assert isinstance(HttpxTransport(), HTTPTransport)


class TestInMemorySessionStore:
    def test_get_set_delete(self):
        # Arrange
        store = InMemorySessionStore()

        # Act
        store.set("auth_state:abc", "abc")

        # Assert
        assert store.get("auth_state:abc") == "abc"
        assert "auth_state:abc" in store
        store.delete("auth_state:abc")
        assert store.get("auth_state:abc") is None
        store.delete("auth_state:abc")

    def test_pop_removes_entry(self):
        # Arrange
        store = InMemorySessionStore()
        store.set("key", "value")

        # Act & Assert
        assert store.pop("key") == "value"
        assert store.pop("key") is None
        assert len(store) == 0

    def test_satisfies_protocol(self):
        assert isinstance(InMemorySessionStore(), SessionStore)
