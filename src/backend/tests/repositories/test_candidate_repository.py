"""
Tests for the candidate and profile repositories.
"""

import pytest

from db.platform import PlatformError
from repositories.candidate_repository import CandidateRepository
from repositories.profile_repository import EMAIL_LOOKUP_CHUNK, ProfileRepository


@pytest.mark.unit
class TestCandidateRepository:
    """Tests for CandidateRepository."""

    async def test_list_all_sorted(self, fake_platform):
        fake_platform.seed("candidates", {"name": "Aardvark", "genre": "Dub"})

        names = [c.name for c in await CandidateRepository(fake_platform).list_all()]

        assert names == ["Aardvark", "DJ Alpha", "DJ Beta", "DJ Gamma"]

    async def test_create_update_delete(self, fake_platform):
        repo = CandidateRepository(fake_platform)

        created = await repo.create({"name": "DJ Delta", "genre": "Garage", "bio": None})
        updated = await repo.update(created.id, {"name": "DJ Delta", "genre": "UK Garage"})

        assert updated.genre == "UK Garage"
        assert (await repo.get_by_id(created.id)).genre == "UK Garage"
        assert await repo.delete(created.id) is True
        assert await repo.get_by_id(created.id) is None

    async def test_update_missing(self, fake_platform):
        assert await CandidateRepository(fake_platform).update(404, {"name": "x"}) is None


@pytest.mark.unit
class TestProfileRepository:
    """Tests for ProfileRepository."""

    async def test_list_emails_skips_missing(self, fake_platform):
        emails = await ProfileRepository(fake_platform).list_emails(["user-1", "nobody", "user-2", "user-1"])

        assert sorted(emails) == ["fan@example.com", "voter@gmail.com"]

    async def test_list_emails_chunked(self, fake_platform):
        for i in range(EMAIL_LOOKUP_CHUNK + 5):
            fake_platform.seed("profiles", {"id": f"bulk-{i}", "email": f"bulk{i}@gmail.com"})
        ids = [f"bulk-{i}" for i in range(EMAIL_LOOKUP_CHUNK + 5)]

        emails = await ProfileRepository(fake_platform).list_emails(ids)

        assert len(emails) == EMAIL_LOOKUP_CHUNK + 5
        assert fake_platform.calls.count(("select", "profiles")) == 2

    async def test_set_has_voted(self, fake_platform):
        repo = ProfileRepository(fake_platform)

        await repo.set_has_voted("user-1", True)

        assert (await repo.get_by_id("user-1")).has_voted is True

    async def test_record_ip_upserts(self, fake_platform):
        repo = ProfileRepository(fake_platform)

        await repo.record_ip("user-1", "192.0.2.1")
        await repo.record_ip("user-1", "192.0.2.2")

        rows = fake_platform.rows("profiles_ip")
        assert len(rows) == 1
        assert rows[0]["ip_address"] == "192.0.2.2"

    async def test_record_ip_fallback_failure_raises(self, fake_platform):
        fake_platform.fail("upsert", "profiles_ip")
        fake_platform.fail("update", "profiles")

        with pytest.raises(PlatformError):
            await ProfileRepository(fake_platform).record_ip("user-1", "192.0.2.1")
