"""Tests for the Azure Resource Manager client."""

from __future__ import annotations

import threading
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from grc_evidence.exceptions import GrcAuthError, GrcCollectionError
from grc_evidence.utils import arm_client
from grc_evidence.utils.arm_client import ArmClient, ArmTokenSource

NEXT_LINK = (
    "https://management.azure.com/subscriptions/sub-123/resources"
    "?$skiptoken=page2&api-version=2021-04-01"
)


@pytest.fixture
def tokens() -> MagicMock:
    tokens = MagicMock()
    tokens.token.return_value = "token-abc"
    return tokens


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> AsyncMock:
    sleep = AsyncMock()
    monkeypatch.setattr(arm_client.asyncio, "sleep", sleep)
    return sleep


def _client(tokens: MagicMock, handler) -> ArmClient:
    transport = httpx.MockTransport(handler)
    return ArmClient("sub-123", tokens, http_client=httpx.AsyncClient(transport=transport))


class TestListing:
    @pytest.mark.asyncio
    async def test_follows_next_link(self, tokens: MagicMock) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if "skiptoken" in str(request.url):
                return httpx.Response(200, json={"value": [{"name": "kv-2"}]})
            return httpx.Response(
                200,
                json={
                    "value": [
                        {
                            "name": "kv-1",
                            "location": "westeurope",
                            "id": "/subscriptions/sub-123/kv-1",
                            "tags": {"env": "prod"},
                            "sku": {"name": "standard"},
                        }
                    ],
                    "nextLink": NEXT_LINK,
                },
            )

        client = _client(tokens, handler)
        items = [r async for r in client.list_resources("Microsoft.KeyVault/vaults")]

        assert [r.name for r in items] == ["kv-1", "kv-2"]
        assert items[0].tags == {"env": "prod"}
        assert items[0].extra == {"sku": {"name": "standard"}}
        assert items[1].extra == {}
        assert requests[0].url.params["$filter"] == "resourceType eq 'Microsoft.KeyVault/vaults'"
        assert requests[0].url.params["api-version"] == "2021-04-01"
        assert requests[0].headers["Authorization"] == "Bearer token-abc"
        assert requests[1].url.params["$skiptoken"] == "page2"

    @pytest.mark.asyncio
    async def test_caller_can_stop_early(self, tokens: MagicMock) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"value": [{"name": "a"}, {"name": "b"}], "nextLink": NEXT_LINK})

        client = _client(tokens, handler)
        async for _ in client.list_resources("Microsoft.Storage/storageAccounts"):
            break

        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_resource_groups(self, tokens: MagicMock) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/subscriptions/sub-123/resourcegroups"
            return httpx.Response(
                200,
                json={
                    "value": [
                        {
                            "name": "rg-app",
                            "location": "eastus",
                            "tags": None,
                            "properties": {"provisioningState": "Succeeded"},
                        }
                    ]
                },
            )

        client = _client(tokens, handler)
        groups = [g async for g in client.list_resource_groups()]

        assert groups[0].name == "rg-app"
        assert groups[0].tags == {}
        assert groups[0].extra == {"provisioning_state": "Succeeded"}


class TestErrors:
    @pytest.mark.asyncio
    async def test_401_reacquires_then_raises_auth_error(self, tokens: MagicMock) -> None:
        client = _client(tokens, lambda request: httpx.Response(401, json={}))

        with pytest.raises(GrcAuthError):
            [r async for r in client.list_resources("Microsoft.Network/virtualNetworks")]
        tokens.invalidate.assert_called_once()

    @pytest.mark.asyncio
    async def test_401_recovers_after_refresh(self, tokens: MagicMock) -> None:
        responses = iter([httpx.Response(401), httpx.Response(200, json={"value": [{"name": "x"}]})])
        client = _client(tokens, lambda request: next(responses))

        items = [r async for r in client.list_resources("Microsoft.Network/virtualNetworks")]
        assert [r.name for r in items] == ["x"]

    @pytest.mark.asyncio
    async def test_token_refresh_runs_off_the_event_loop(self, tokens: MagicMock) -> None:
        loop_thread = threading.get_ident()
        token_threads: list[int] = []

        def token() -> str:
            token_threads.append(threading.get_ident())
            return "token-abc"

        tokens.token.side_effect = token
        responses = iter([httpx.Response(401), httpx.Response(200, json={"value": []})])
        client = _client(tokens, lambda request: next(responses))

        assert [r async for r in client.list_resource_groups()] == []
        tokens.invalidate.assert_called_once()
        assert len(token_threads) == 2
        assert loop_thread not in token_threads

    @pytest.mark.asyncio
    async def test_403_is_collection_error(self, tokens: MagicMock) -> None:
        client = _client(tokens, lambda request: httpx.Response(403, text="AuthorizationFailed"))

        with pytest.raises(GrcCollectionError, match="403"):
            [r async for r in client.list_resources("Microsoft.Storage/storageAccounts")]

    @pytest.mark.asyncio
    async def test_429_honours_retry_after(self, tokens: MagicMock, no_sleep: AsyncMock) -> None:
        responses = iter(
            [
                httpx.Response(429, headers={"Retry-After": "7"}),
                httpx.Response(200, json={"value": []}),
            ]
        )
        client = _client(tokens, lambda request: next(responses))

        assert [r async for r in client.list_resource_groups()] == []
        no_sleep.assert_awaited_once_with(7.0)

    @pytest.mark.asyncio
    async def test_429_with_http_date_uses_default_backoff(
        self, tokens: MagicMock, no_sleep: AsyncMock
    ) -> None:
        responses = iter(
            [
                httpx.Response(429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}),
                httpx.Response(200, json={"value": []}),
            ]
        )
        client = _client(tokens, lambda request: next(responses))

        assert [r async for r in client.list_resource_groups()] == []
        no_sleep.assert_awaited_once_with(arm_client.INITIAL_BACKOFF)

    @pytest.mark.asyncio
    async def test_transport_errors_retried_then_raised(
        self, tokens: MagicMock, no_sleep: AsyncMock
    ) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(tokens, handler)
        with pytest.raises(GrcCollectionError, match="after 3 attempts"):
            [r async for r in client.list_resource_groups()]
        assert no_sleep.await_count == 2

    @pytest.mark.asyncio
    async def test_close(self, tokens: MagicMock) -> None:
        client = _client(tokens, lambda request: httpx.Response(200, json={"value": []}))
        http = await client._get_client()
        await client.close()
        assert http.is_closed


class TestTokenSource:
    def test_failed_token_raises_auth_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        app = MagicMock()
        app.acquire_token_silent.return_value = None
        app.acquire_token_for_client.return_value = {
            "error": "invalid_client",
            "error_description": "AADSTS7000215: Invalid client secret provided.",
        }
        monkeypatch.setattr(arm_client, "ConfidentialClientApplication", MagicMock(return_value=app))

        source = ArmTokenSource("tenant", "client", "bad-secret")
        with pytest.raises(GrcAuthError, match="AADSTS7000215"):
            source.token()

    def test_token_cached_until_invalidated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        app = MagicMock()
        app.acquire_token_silent.return_value = None
        app.acquire_token_for_client.return_value = {"access_token": "t1", "expires_in": 3599}
        monkeypatch.setattr(arm_client, "ConfidentialClientApplication", MagicMock(return_value=app))

        source = ArmTokenSource("tenant", "client", "secret")
        assert source.token() == "t1"
        assert source.token() == "t1"
        assert app.acquire_token_for_client.call_count == 1

        source.invalidate()
        source.token()
        assert app.acquire_token_for_client.call_count == 2
