"""
Public IP address lookup.

Fallback for votes cast without a caller address. The local store is checked
first; otherwise a public lookup service is queried and the answer cached.
Failures are never fatal: the address is simply left out.
"""

from typing import Optional

import httpx
import structlog

from services.local_store import LocalStore

logger = structlog.get_logger(__name__)

LAST_KNOWN_IP_KEY = "last_known_ip"


class IPLookupService:
    """Resolve the public network address, best effort."""

    def __init__(
        self,
        store: LocalStore | None,
        lookup_url: str = "https://api.ipify.org?format=json",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.store = store
        self.lookup_url = lookup_url
        self.timeout = timeout
        self._transport = transport

    async def resolve(self) -> Optional[str]:
        """Return the cached or freshly looked-up address, or None."""
        if self.store is not None:
            cached = self.store.get(LAST_KNOWN_IP_KEY)
            if cached:
                return cached

        ip_address = await self._query_lookup_service()
        if ip_address and self.store is not None:
            self.store.set(LAST_KNOWN_IP_KEY, ip_address)
        return ip_address

    async def _query_lookup_service(self) -> Optional[str]:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(self.lookup_url, timeout=self.timeout)
            if response.status_code != 200:
                logger.warning("ip_lookup_failed", status_code=response.status_code)
                return None
            ip_address = response.json().get("ip")
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            logger.warning("ip_lookup_failed", error=str(e))
            return None

        return str(ip_address) if ip_address else None
