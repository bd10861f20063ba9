"""Network reachability checks."""

from __future__ import annotations

import logging

import httpx

logger = logging.getLogger(__name__)


class Connectivity:
    """Probe the server origin with a short timeout."""

    def __init__(
        self,
        origin: str,
        timeout_seconds: float = 3.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.origin = origin
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def is_reachable(self) -> bool:
        """Any HTTP answer counts as reachable; only transport failures do not."""
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                transport=self._transport,
            ) as client:
                await client.head(self.origin)
            return True
        except httpx.TransportError as e:
            logger.debug("Server %s unreachable: %s", self.origin, e)
            return False


class StaticConnectivity:
    """Fixed reachability, for tests and callers that track it elsewhere."""

    def __init__(self, online: bool = True):
        self.online = online

    async def is_reachable(self) -> bool:
        return self.online
