"""
Tests for the hosted platform HTTP client.
"""

import json

import httpx
import pytest

from db.platform import PlatformError, SupabasePlatform, eq, in_


class Recorder:
    """MockTransport handler that records requests and replays one response."""

    def __init__(self, status_code: int = 200, body: object = None):
        self.status_code = status_code
        self.body = body if body is not None else []
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def make_platform(recorder) -> SupabasePlatform:
    return SupabasePlatform(
        "https://abc.supabase.co",
        "anon-key",
        transport=httpx.MockTransport(recorder),
    )


@pytest.mark.unit
class TestFilters:
    def test_eq(self):
        assert eq(3) == "eq.3"

    def test_in(self):
        assert in_(["a", "b"]) == "in.(a,b)"


@pytest.mark.unit
class TestRows:
    """Tests for the row API."""

    async def test_select_parameters(self):
        recorder = Recorder(body=[{"id": 1}])
        platform = make_platform(recorder)

        rows = await platform.select(
            "votes",
            columns="id,user_id",
            filters={"candidate_id": eq(3)},
            order="id.asc",
            limit=1000,
            offset=2000,
            token="user-token",
        )

        assert rows == [{"id": 1}]
        request = recorder.last
        assert request.method == "GET"
        assert request.url.path == "/rest/v1/votes"
        assert request.url.params["select"] == "id,user_id"
        assert request.url.params["candidate_id"] == "eq.3"
        assert request.url.params["order"] == "id.asc"
        assert request.url.params["limit"] == "1000"
        assert request.url.params["offset"] == "2000"
        assert request.headers["apikey"] == "anon-key"
        assert request.headers["authorization"] == "Bearer user-token"

    async def test_anonymous_requests_use_anon_key(self):
        recorder = Recorder()
        await make_platform(recorder).select("candidates")

        assert recorder.last.headers["authorization"] == "Bearer anon-key"

    async def test_insert_returns_row(self):
        recorder = Recorder(status_code=201, body=[{"id": 9, "name": "DJ"}])
        platform = make_platform(recorder)

        row = await platform.insert("candidates", {"name": "DJ"})

        assert row == {"id": 9, "name": "DJ"}
        assert recorder.last.method == "POST"
        assert recorder.last.headers["prefer"] == "return=representation"
        assert json.loads(recorder.last.content) == {"name": "DJ"}

    async def test_update_sends_filters(self):
        recorder = Recorder(body=[{"id": "u1", "has_voted": True}])
        platform = make_platform(recorder)

        rows = await platform.update("profiles", {"has_voted": True}, filters={"id": eq("u1")})

        assert rows[0]["has_voted"] is True
        assert recorder.last.method == "PATCH"
        assert recorder.last.url.params["id"] == "eq.u1"

    async def test_upsert_merges_duplicates(self):
        recorder = Recorder(status_code=201, body=[{"key": "voting_ended", "value": "true"}])
        platform = make_platform(recorder)

        await platform.upsert("site_settings", {"key": "voting_ended", "value": "true"})

        assert "resolution=merge-duplicates" in recorder.last.headers["prefer"]

    async def test_delete_requires_filters(self):
        platform = make_platform(Recorder())

        with pytest.raises(ValueError):
            await platform.delete("votes", filters={})

    async def test_delete_returns_removed_rows(self):
        recorder = Recorder(body=[{"id": 5}])
        platform = make_platform(recorder)

        removed = await platform.delete("votes", filters={"id": eq(5)})

        assert removed == [{"id": 5}]
        assert recorder.last.method == "DELETE"


@pytest.mark.unit
class TestErrors:
    """Tests for error mapping."""

    async def test_client_error(self):
        recorder = Recorder(status_code=409, body={"message": "duplicate key value", "code": "23505"})

        with pytest.raises(PlatformError) as exc_info:
            await make_platform(recorder).insert("votes", {})

        error = exc_info.value
        assert error.status_code == 409
        assert error.code == "23505"
        assert error.message == "duplicate key value"
        assert error.is_transient is False

    async def test_server_error_is_transient(self):
        recorder = Recorder(status_code=503, body={"error": "unavailable"})

        with pytest.raises(PlatformError) as exc_info:
            await make_platform(recorder).select("votes")

        assert exc_info.value.is_transient is True

    async def test_network_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        platform = SupabasePlatform("https://abc.supabase.co", "anon-key", transport=httpx.MockTransport(handler))

        with pytest.raises(PlatformError) as exc_info:
            await platform.select("votes")

        assert exc_info.value.status_code is None
        assert exc_info.value.is_transient is True


@pytest.mark.unit
class TestAuth:
    """Tests for the auth API."""

    async def test_password_grant_returns_raw_response(self):
        recorder = Recorder(status_code=400, body={"error": "invalid_grant"})
        platform = make_platform(recorder)

        response = await platform.password_grant("a@b.com", "pw")

        assert response.status_code == 400
        assert response.json() == {"error": "invalid_grant"}
        assert recorder.last.url.path == "/auth/v1/token"
        assert recorder.last.url.params["grant_type"] == "password"

    async def test_get_user_uses_token(self):
        recorder = Recorder(body={"id": "u1", "email": "a@b.com"})
        platform = make_platform(recorder)

        user = await platform.get_user("user-token")

        assert user["id"] == "u1"
        assert recorder.last.url.path == "/auth/v1/user"
        assert recorder.last.headers["authorization"] == "Bearer user-token"

    async def test_get_user_rejected(self):
        recorder = Recorder(status_code=401, body={"msg": "invalid JWT"})

        with pytest.raises(PlatformError) as exc_info:
            await make_platform(recorder).get_user("expired")

        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "invalid JWT"

    async def test_recover_with_redirect(self):
        recorder = Recorder(body={})
        platform = make_platform(recorder)

        await platform.recover("a@b.com", "https://djvote.example.com/reset")

        assert recorder.last.url.path == "/auth/v1/recover"
        assert recorder.last.url.params["redirect_to"] == "https://djvote.example.com/reset"
