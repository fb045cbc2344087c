"""MSAL authentication and Azure Resource Manager API wrapper."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import httpx
from msal import ConfidentialClientApplication

from grc_evidence.evidence import ResourceDescriptor
from grc_evidence.exceptions import GrcAuthError, GrcCollectionError
from grc_evidence.utils.logging import get_logger

logger = get_logger("arm_client")

ARM_BASE_URL = "https://management.azure.com"
ARM_SCOPE = ["https://management.azure.com/.default"]
ARM_API_VERSION = "2021-04-01"
MAX_RETRIES = 3
INITIAL_BACKOFF = 1.0


def _retry_after(response: httpx.Response) -> float:
    """Seconds to wait from a Retry-After header; HTTP-date values fall back."""
    value = response.headers.get("Retry-After")
    if value is None:
        return INITIAL_BACKOFF
    try:
        return max(float(value), 0.0)
    except ValueError:
        return INITIAL_BACKOFF


class ArmTokenSource:
    """Acquires ARM access tokens via the MSAL client-credentials flow."""

    def __init__(self, tenant_id: str, client_id: str, client_secret: str) -> None:
        self._tenant_id = tenant_id
        self._client_id = client_id
        self._client_secret = client_secret
        self._msal_app: ConfidentialClientApplication | None = None
        self._access_token: str | None = None

    def _get_msal_app(self) -> ConfidentialClientApplication:
        """Lazy-initialise the MSAL confidential client."""
        if self._msal_app is None:
            self._msal_app = ConfidentialClientApplication(
                client_id=self._client_id,
                client_credential=self._client_secret,
                authority=f"https://login.microsoftonline.com/{self._tenant_id}",
            )
        return self._msal_app

    def acquire(self, scopes: list[str] | None = None) -> dict[str, Any]:
        """Acquire a token, returning the raw MSAL result."""
        scopes = scopes or ARM_SCOPE
        try:
            app = self._get_msal_app()
            result = app.acquire_token_silent(scopes, account=None)
            if not result:
                result = app.acquire_token_for_client(scopes=scopes)
        except ValueError as exc:
            # msal rejects malformed authorities/client ids before any request
            raise GrcAuthError(f"Invalid Azure credential configuration: {exc}") from exc

        if "access_token" not in result:
            error = result.get("error_description", result.get("error", "Unknown error"))
            raise GrcAuthError(f"Azure authentication failed: {error}")
        return result

    def token(self, refresh: bool = False) -> str:
        if refresh or not self._access_token:
            result = self.acquire()
            self._access_token = result["access_token"]
        return self._access_token

    def invalidate(self) -> None:
        self._access_token = None


class ArmClient:
    """Async Azure Resource Manager client scoped to one subscription.

    Implements the resource-listing capability collectors consume: listings
    are async iterators that fetch one page at a time.
    """

    def __init__(
        self,
        subscription_id: str,
        tokens: ArmTokenSource,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.subscription_id = subscription_id
        self._tokens = tokens
        self._http_client = http_client

    async def _auth_headers(self) -> dict[str, str]:
        # msal acquisition is blocking network I/O
        token = await asyncio.to_thread(self._tokens.token)
        return {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }

    async def _get_client(self) -> httpx.AsyncClient:
        """Return or create the async HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=30.0)
        return self._http_client

    async def _get_page(self, url: str, params: dict[str, str] | None = None) -> dict[str, Any]:
        """GET one page, retrying on throttling and transport errors."""
        client = await self._get_client()

        for attempt in range(MAX_RETRIES):
            try:
                headers = await self._auth_headers()
                response = await client.get(url, params=params, headers=headers)

                if response.status_code == 401:
                    # Token may have expired; re-acquire once
                    self._tokens.invalidate()
                    headers = await self._auth_headers()
                    response = await client.get(url, params=params, headers=headers)
                    if response.status_code == 401:
                        raise GrcAuthError(
                            f"Azure Resource Manager rejected the credentials for {url}"
                        )

                if response.status_code == 429:
                    retry_after = _retry_after(response)
                    logger.warning(
                        "Rate limited (429). Retrying after %.0fs (attempt %d/%d)",
                        retry_after,
                        attempt + 1,
                        MAX_RETRIES,
                    )
                    await asyncio.sleep(retry_after)
                    continue

                response.raise_for_status()
                return response.json()

            except httpx.HTTPStatusError as exc:
                raise GrcCollectionError(
                    f"ARM API error {exc.response.status_code} for {url}: "
                    f"{exc.response.text[:200]}"
                ) from exc
            except httpx.RequestError as exc:
                if attempt < MAX_RETRIES - 1:
                    backoff = INITIAL_BACKOFF * (2 ** attempt)
                    logger.warning(
                        "Request error for %s: %s. Retrying in %.1fs", url, exc, backoff
                    )
                    await asyncio.sleep(backoff)
                else:
                    raise GrcCollectionError(
                        f"Failed to reach Azure Resource Manager after {MAX_RETRIES} attempts: {exc}"
                    ) from exc

        raise GrcCollectionError(f"ARM request failed after {MAX_RETRIES} retries: {url}")

    async def _paginate(
        self, path: str, params: dict[str, str]
    ) -> AsyncIterator[dict[str, Any]]:
        url: str | None = f"{ARM_BASE_URL}{path}"
        page_params: dict[str, str] | None = params
        while url:
            data = await self._get_page(url, page_params)
            for item in data.get("value", []):
                yield item
            # nextLink already carries the query string
            url = data.get("nextLink")
            page_params = None

    async def list_resource_groups(self) -> AsyncIterator[ResourceDescriptor]:
        """List the subscription's resource groups."""
        path = f"/subscriptions/{self.subscription_id}/resourcegroups"
        async for item in self._paginate(path, {"api-version": ARM_API_VERSION}):
            yield ResourceDescriptor(
                name=item.get("name", ""),
                location=item.get("location"),
                id=item.get("id"),
                tags=item.get("tags") or {},
                extra={
                    "provisioning_state": (item.get("properties") or {}).get("provisioningState"),
                },
            )

    async def list_resources(self, resource_type: str) -> AsyncIterator[ResourceDescriptor]:
        """List resources of one ARM type, e.g. ``Microsoft.KeyVault/vaults``."""
        path = f"/subscriptions/{self.subscription_id}/resources"
        params = {
            "$filter": f"resourceType eq '{resource_type}'",
            "api-version": ARM_API_VERSION,
        }
        async for item in self._paginate(path, params):
            extra: dict[str, Any] = {}
            if item.get("sku") is not None:
                extra["sku"] = item["sku"]
            if item.get("kind") is not None:
                extra["kind"] = item["kind"]
            yield ResourceDescriptor(
                name=item.get("name", ""),
                location=item.get("location"),
                id=item.get("id"),
                tags=item.get("tags") or {},
                extra=extra,
            )

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._http_client and not self._http_client.is_closed:
            await self._http_client.aclose()
