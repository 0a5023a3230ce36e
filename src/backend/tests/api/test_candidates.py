"""
Tests for candidate endpoints.
"""

import pytest
from httpx import AsyncClient


@pytest.mark.unit
class TestCandidateListing:
    async def test_list(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/candidates")

        assert response.status_code == 200
        assert [c["name"] for c in response.json()] == ["DJ Alpha", "DJ Beta", "DJ Gamma"]
        assert response.json()[0]["vote_count"] == 0

    async def test_get_one(self, client: AsyncClient) -> None:
        response = await client.get("/api/v1/candidates/2")

        assert response.json()["genre"] == "Techno"

    async def test_get_missing(self, client: AsyncClient) -> None:
        assert (await client.get("/api/v1/candidates/99")).status_code == 404


@pytest.mark.unit
class TestCandidateAdmin:
    """Admin CRUD on candidates."""

    async def test_create(self, client: AsyncClient, admin_headers, fake_platform) -> None:
        response = await client.post(
            "/api/v1/candidates",
            json={"name": " DJ Delta ", "genre": "Garage", "bio": "", "instagram_username": "djdelta"},
            headers=admin_headers,
        )

        assert response.status_code == 201
        assert response.json()["name"] == "DJ Delta"
        stored = fake_platform.rows("candidates")[-1]
        assert stored["bio"] is None
        assert stored["instagram_username"] == "djdelta"

        names = [c["name"] for c in (await client.get("/api/v1/candidates")).json()]
        assert "DJ Delta" in names

    async def test_create_requires_name_and_genre(self, client: AsyncClient, admin_headers) -> None:
        response = await client.post("/api/v1/candidates", json={"name": "DJ Nobody"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["detail"] == "Name and genre are required"

    async def test_create_forbidden_for_voters(self, client: AsyncClient, voter_headers) -> None:
        response = await client.post(
            "/api/v1/candidates",
            json={"name": "DJ Delta", "genre": "Garage"},
            headers=voter_headers,
        )

        assert response.status_code == 403

    async def test_update(self, client: AsyncClient, admin_headers) -> None:
        response = await client.put(
            "/api/v1/candidates/1",
            json={"name": "DJ Alpha", "genre": "Deep House", "video_url": "https://video.example.com/a"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["genre"] == "Deep House"
        assert (await client.get("/api/v1/candidates/1")).json()["video_url"] == "https://video.example.com/a"

    async def test_update_missing(self, client: AsyncClient, admin_headers) -> None:
        response = await client.put(
            "/api/v1/candidates/99",
            json={"name": "Ghost", "genre": "None"},
            headers=admin_headers,
        )

        assert response.status_code == 404

    async def test_delete(self, client: AsyncClient, admin_headers) -> None:
        response = await client.delete("/api/v1/candidates/3", headers=admin_headers)

        assert response.status_code == 204
        assert (await client.get("/api/v1/candidates/3")).status_code == 404

    async def test_platform_failure(self, client: AsyncClient, admin_headers, fake_platform) -> None:
        fake_platform.fail("delete", "candidates")

        response = await client.delete("/api/v1/candidates/3", headers=admin_headers)

        assert response.status_code == 502
