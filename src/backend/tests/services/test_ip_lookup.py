"""
Tests for the public IP lookup.
"""

import httpx
import pytest

from services.ip_lookup import LAST_KNOWN_IP_KEY, IPLookupService


def lookup_transport(status_code: int = 200, body: dict | None = None, calls: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        return httpx.Response(status_code, json=body if body is not None else {"ip": "192.0.2.44"})

    return httpx.MockTransport(handler)


@pytest.mark.unit
class TestIPLookup:
    """Tests for IPLookupService.resolve."""

    async def test_cached_address_used_first(self, store):
        calls: list = []
        store.set(LAST_KNOWN_IP_KEY, "198.51.100.1")
        service = IPLookupService(store, transport=lookup_transport(calls=calls))

        assert await service.resolve() == "198.51.100.1"
        assert calls == []

    async def test_lookup_result_cached(self, store):
        service = IPLookupService(store, transport=lookup_transport())

        assert await service.resolve() == "192.0.2.44"
        assert store.get(LAST_KNOWN_IP_KEY) == "192.0.2.44"

    async def test_error_status_yields_none(self, store):
        service = IPLookupService(store, transport=lookup_transport(status_code=503, body={}))

        assert await service.resolve() is None
        assert store.get(LAST_KNOWN_IP_KEY) is None

    async def test_network_error_yields_none(self, store):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        service = IPLookupService(store, transport=httpx.MockTransport(handler))

        assert await service.resolve() is None

    async def test_missing_field_yields_none(self, store):
        service = IPLookupService(store, transport=lookup_transport(body={"address": "x"}))

        assert await service.resolve() is None
