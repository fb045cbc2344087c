"""Provider sessions: credential resolution and the resource-listing capability."""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

from grc_evidence.config import (
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    ENV_TENANT_ID,
    GrcConfig,
)
from grc_evidence.evidence import ResourceDescriptor
from grc_evidence.exceptions import GrcAuthError, GrcConfigError
from grc_evidence.utils.arm_client import ArmClient, ArmTokenSource
from grc_evidence.utils.logging import get_logger

logger = get_logger("session")


class ResourceLister(Protocol):
    """Lists cloud resources lazily, one page at a time."""

    def list_resources(self, resource_type: str) -> AsyncIterator[ResourceDescriptor]: ...

    def list_resource_groups(self) -> AsyncIterator[ResourceDescriptor]: ...


@dataclass
class Session:
    """An authenticated context for one subject (subscription)."""

    subject_id: str
    lister: ResourceLister
    credential: Any = None

    async def close(self) -> None:
        close = getattr(self.lister, "close", None)
        if close is not None:
            await close()


class SessionProvider(Protocol):
    async def create_session(self, subject_id: str) -> Session: ...


class MsalTokenCredential:
    """Presents an ArmTokenSource through the ``get_token`` shape Azure SDK clients call."""

    def __init__(self, tokens: ArmTokenSource) -> None:
        self._tokens = tokens

    def get_token(self, *scopes: str, **kwargs: Any) -> Any:
        from azure.core.credentials import AccessToken

        result = self._tokens.acquire(list(scopes) or None)
        return AccessToken(result["access_token"], _expiry(result))


def _expiry(result: dict[str, Any]) -> int:
    return int(time.time()) + int(result.get("expires_in", 3600))


class ArmSessionProvider:
    """Creates sessions against Azure Resource Manager with a service principal."""

    def __init__(self, config: GrcConfig) -> None:
        self._config = config

    def _credentials(self) -> tuple[str, str, str]:
        try:
            secret = self._config.resolved_client_secret()
        except GrcConfigError as exc:
            raise GrcAuthError(f"Stored client secret is unusable: {exc}") from exc

        values = {
            ENV_CLIENT_ID: self._config.resolved_client_id(),
            ENV_CLIENT_SECRET: secret,
            ENV_TENANT_ID: self._config.resolved_tenant_id(),
        }
        missing = [name for name, value in values.items() if not value]
        if missing:
            raise GrcAuthError(
                f"Azure credentials not configured: missing {', '.join(missing)}"
            )
        return values[ENV_TENANT_ID], values[ENV_CLIENT_ID], values[ENV_CLIENT_SECRET]

    async def create_session(self, subject_id: str) -> Session:
        if not subject_id:
            raise ValueError("A subscription id is required")

        tenant_id, client_id, client_secret = self._credentials()
        tokens = ArmTokenSource(tenant_id, client_id, client_secret)
        # MSAL is synchronous; keep the event loop free while it talks to Entra ID
        await asyncio.to_thread(tokens.token)

        logger.info("Authenticated to Azure for subscription %s", subject_id)
        return Session(
            subject_id=subject_id,
            lister=ArmClient(subject_id, tokens),
            credential=MsalTokenCredential(tokens),
        )
