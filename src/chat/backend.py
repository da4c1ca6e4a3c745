from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

import httpx

from .errors import BackendError
from .models import Identity

logger = logging.getLogger(__name__)


class ChatBackend(Protocol):
    """Connection handle to the chat backend.

    Every backend operation is a named method call with positional arguments.
    """

    async def call(self, method: str, *args: Any) -> Any: ...


class HttpChatBackend:
    """Calls backend methods as ``POST {base_url}/api/{method}``."""

    def __init__(
        self,
        base_url: str,
        identity: Optional[Identity] = None,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._identity = identity
        self._timeout = timeout
        self._transport = transport

    @property
    def identity(self) -> Optional[Identity]:
        return self._identity

    async def call(self, method: str, *args: Any) -> Any:
        headers = {"Content-Type": "application/json"}
        if self._identity is not None:
            headers["Authorization"] = f"Bearer {self._identity.principal}"

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self._base_url}/api/{method}",
                    json={"args": list(args)},
                    headers=headers,
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPStatusError as exc:
            raise BackendError(
                f"Backend call {method} failed with status {exc.response.status_code}",
                details=exc.response.text[:300],
            ) from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"Backend call {method} failed: {exc}") from exc
        except ValueError as exc:
            raise BackendError(f"Backend call {method} returned invalid JSON") from exc

        if not isinstance(payload, dict) or "result" not in payload:
            raise BackendError(f"Backend call {method} returned an unexpected payload")
        logger.debug("Backend call %s completed", method)
        return payload["result"]
