"""
Tests for the one-shot legacy video migration.
"""

import pytest

from eduportal.config import LEGACY_VIDEOS_KEY, MIGRATION_STATE_KEY
from eduportal.persistence import MigrationManager, MigrationState, open_record_store


def _legacy_payload():
    """Videos in the original application's camelCase shape."""
    return [
        {
            "id": "video_1700000000000",
            "title": "Fractions",
            "description": "Adding and subtracting fractions",
            "subject": "Mathematics",
            "class": "8",
            "duration": "09:30",
            "views": 12,
            "completed": True,
            "status": "published",
            "thumbnailUrl": "https://example.com/f.jpg",
            "videoUrls": {"720p": "https://example.com/f.mp4"},
            "tags": ["fractions"],
            "uploadedAt": "2024-02-01T10:00:00.000Z",
        },
        {
            "id": "video_1700000000001",
            "title": "Volcanoes",
            "description": "",
            "subject": "Geography",
            "class": "9",
            "duration": "15:00",
            "views": 3,
            "status": "draft",
            "thumbnailUrl": "",
            "videoUrls": {},
            "uploadedAt": "2024-02-02T10:00:00.000Z",
        },
    ]


class TestFreshInstall:

    @pytest.mark.asyncio
    async def test_seeds_when_nothing_to_migrate(self, scalar_store, record_store, make_video):
        seed = [make_video("s1"), make_video("s2")]
        manager = MigrationManager(scalar_store, record_store, seed)

        state = await manager.run()

        assert state is MigrationState.SEEDED
        assert await record_store.count() == 2
        assert await record_store.get_meta(MIGRATION_STATE_KEY) == "seeded"

    @pytest.mark.asyncio
    async def test_state_starts_unchecked(self, scalar_store, record_store):
        assert await MigrationManager(scalar_store, record_store).read_state() is MigrationState.UNCHECKED


class TestLegacyMigration:

    @pytest.mark.asyncio
    async def test_moves_legacy_videos_and_clears_key(self, scalar_store, record_store, make_video):
        scalar_store.set(LEGACY_VIDEOS_KEY, _legacy_payload())
        manager = MigrationManager(scalar_store, record_store, [make_video("seed")])

        state = await manager.run()

        assert state is MigrationState.MIGRATED
        assert scalar_store.contains(LEGACY_VIDEOS_KEY) is False
        videos = await record_store.get_all()
        assert [v.id for v in videos] == ["video_1700000000001", "video_1700000000000"]
        fractions = await record_store.get("video_1700000000000")
        assert fractions.thumbnail_url == "https://example.com/f.jpg"
        assert fractions.video_urls == {"720p": "https://example.com/f.mp4"}
        assert fractions.completed is None
        assert await record_store.get("seed") is None

    @pytest.mark.asyncio
    async def test_legacy_duplicates_overwrite(self, scalar_store, record_store, make_video):
        payload = _legacy_payload()
        payload.append({**payload[0], "title": "Fractions (v2)"})
        scalar_store.set(LEGACY_VIDEOS_KEY, payload)

        await MigrationManager(scalar_store, record_store).run()

        assert await record_store.count() == 2
        assert (await record_store.get("video_1700000000000")).title == "Fractions (v2)"

    @pytest.mark.asyncio
    async def test_sweep_runs_even_when_store_populated(self, scalar_store, record_store, make_video):
        await record_store.add(make_video("existing"))
        scalar_store.set(LEGACY_VIDEOS_KEY, _legacy_payload())

        state = await MigrationManager(scalar_store, record_store, [make_video("seed")]).run()

        assert state is MigrationState.MIGRATED
        assert await record_store.count() == 3
        assert scalar_store.contains(LEGACY_VIDEOS_KEY) is False

    @pytest.mark.asyncio
    async def test_empty_legacy_list_is_removed_then_seeded(self, scalar_store, record_store, make_video):
        scalar_store.set(LEGACY_VIDEOS_KEY, [])
        state = await MigrationManager(scalar_store, record_store, [make_video("seed")]).run()

        assert state is MigrationState.SEEDED
        assert scalar_store.contains(LEGACY_VIDEOS_KEY) is False
        assert [v.id for v in await record_store.get_all()] == ["seed"]

    @pytest.mark.asyncio
    async def test_unreadable_legacy_item_is_skipped(self, scalar_store, record_store, caplog):
        good, other = _legacy_payload()
        scalar_store.set(LEGACY_VIDEOS_KEY, [good, {**other, "views": "1.2K"}, "junk"])

        with caplog.at_level("WARNING"):
            state = await MigrationManager(scalar_store, record_store, []).run()

        assert state is MigrationState.MIGRATED
        assert [v.id for v in await record_store.get_all()] == ["video_1700000000000"]
        assert scalar_store.contains(LEGACY_VIDEOS_KEY) is False
        assert "Skipping legacy video 'video_1700000000001'" in caplog.text

    @pytest.mark.asyncio
    async def test_all_items_unreadable_falls_back_to_seed(self, scalar_store, record_store, make_video):
        scalar_store.set(LEGACY_VIDEOS_KEY, [{"id": "bad", "views": "many"}])

        state = await MigrationManager(scalar_store, record_store, [make_video("seed")]).run()

        assert state is MigrationState.SEEDED
        assert [v.id for v in await record_store.get_all()] == ["seed"]
        assert scalar_store.contains(LEGACY_VIDEOS_KEY) is False

    @pytest.mark.asyncio
    async def test_corrupted_legacy_value_is_removed(self, scalar_store, record_store):
        scalar_store.set_raw(LEGACY_VIDEOS_KEY, "[{broken")
        state = await MigrationManager(scalar_store, record_store, []).run()

        assert state is MigrationState.SEEDED
        assert scalar_store.contains(LEGACY_VIDEOS_KEY) is False


class TestIdempotence:

    @pytest.mark.asyncio
    async def test_second_run_never_duplicates_or_reseeds(self, scalar_store, record_store, make_video):
        scalar_store.set(LEGACY_VIDEOS_KEY, _legacy_payload())
        manager = MigrationManager(scalar_store, record_store, [make_video("seed")])

        await manager.run()
        await record_store.delete_many([v.id for v in await record_store.get_all()])
        state = await manager.run()

        assert state is MigrationState.MIGRATED
        assert await record_store.count() == 0
        assert scalar_store.contains(LEGACY_VIDEOS_KEY) is False

    @pytest.mark.asyncio
    async def test_populated_store_without_marker_is_recorded_as_migrated(
        self, scalar_store, record_store, make_video
    ):
        await record_store.add(make_video("existing"))
        state = await MigrationManager(scalar_store, record_store, [make_video("seed")]).run()

        assert state is MigrationState.MIGRATED
        assert await record_store.count() == 1
        assert await record_store.get_meta(MIGRATION_STATE_KEY) == "migrated"

    @pytest.mark.asyncio
    async def test_new_record_store_is_seeded_again(self, tmp_path, scalar_store, record_store,
                                                    make_video):
        seed = [make_video("s1"), make_video("s2")]
        assert await MigrationManager(scalar_store, record_store, seed).run() is MigrationState.SEEDED

        fresh = await open_record_store(tmp_path / "replacement.db")
        try:
            state = await MigrationManager(scalar_store, fresh, seed).run()
            assert state is MigrationState.SEEDED
            assert sorted(v.id for v in await fresh.get_all()) == ["s1", "s2"]
        finally:
            await fresh.close()


class TestFailurePolicy:

    @pytest.mark.asyncio
    async def test_failures_are_logged_and_swallowed(self, scalar_store, record_store, caplog):
        class _BrokenStore:
            async def get_meta(self, key):
                return None

            async def count(self):
                raise OSError("cannot read")

        manager = MigrationManager(scalar_store, _BrokenStore(), [])
        with caplog.at_level("ERROR"):
            state = await manager.run()

        assert state is MigrationState.UNCHECKED
        assert "Video migration failed" in caplog.text

    @pytest.mark.asyncio
    async def test_failed_seed_leaves_no_marker(self, scalar_store, record_store, make_video,
                                                monkeypatch):
        async def _failing_put_many(videos, *, meta=None):
            raise OSError("disk gone")

        monkeypatch.setattr(record_store, "put_many", _failing_put_many)
        state = await MigrationManager(scalar_store, record_store, [make_video("seed")]).run()

        assert state is MigrationState.UNCHECKED
        assert await record_store.get_meta(MIGRATION_STATE_KEY) is None
