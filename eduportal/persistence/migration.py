"""One-shot migration of legacy video data into the record store."""

from __future__ import annotations

import enum
import logging
from typing import Iterable, Optional

from eduportal.config import LEGACY_VIDEOS_KEY, MIGRATION_STATE_KEY
from eduportal.models import Video

from .record_store import RecordStore
from .scalar_store import ScalarStore

logger = logging.getLogger(__name__)


class MigrationState(str, enum.Enum):
    UNCHECKED = "unchecked"
    MIGRATED = "migrated"
    SEEDED = "seeded"

    @property
    def is_terminal(self) -> bool:
        return self is not MigrationState.UNCHECKED


class MigrationManager:
    """Moves the legacy ``videos`` list out of the scalar store.

    ``UNCHECKED`` ends in ``MIGRATED`` (legacy data was transferred, or the
    catalog was already populated) or ``SEEDED`` (nothing to migrate, the
    initial dataset was loaded). The terminal state is kept in the record
    store's metadata, written in the same transaction as the records it
    describes, so it lives and dies with the catalog. A later startup
    against the same catalog never reseeds; it only sweeps for stray
    legacy data. A fresh record store starts over at ``UNCHECKED``.
    """

    def __init__(self, scalar_store: ScalarStore, record_store: RecordStore,
                 initial_videos: Iterable[Video] = ()):
        self.scalar_store = scalar_store
        self.record_store = record_store
        self.initial_videos = list(initial_videos)
        self._reached = MigrationState.UNCHECKED

    async def read_state(self) -> MigrationState:
        """Return the marker persisted with the records."""
        raw = await self.record_store.get_meta(MIGRATION_STATE_KEY)
        if raw is None:
            return MigrationState.UNCHECKED
        try:
            return MigrationState(raw)
        except ValueError:
            logger.warning("Unknown migration state %r; treating as unchecked", raw)
            return MigrationState.UNCHECKED

    async def run(self) -> MigrationState:
        """Run the migration. Failures are logged and never raised.

        Returns the last state known to be persisted.
        """
        try:
            return await self._run()
        except Exception:
            logger.exception("Video migration failed; continuing with the current catalog")
            return self._reached

    async def _run(self) -> MigrationState:
        previous = self._reached = await self.read_state()
        existing = await self.record_store.count()

        if existing > 0 or previous.is_terminal:
            # Safety net for a partially failed earlier run.
            await self.migrate_legacy()
            if previous.is_terminal:
                return previous
            await self.record_store.set_meta(MIGRATION_STATE_KEY, MigrationState.MIGRATED.value)
            self._reached = MigrationState.MIGRATED
            return self._reached

        if await self.migrate_legacy(mark=MigrationState.MIGRATED):
            self._reached = MigrationState.MIGRATED
            return self._reached

        logger.info("No videos found, seeding %d initial videos", len(self.initial_videos))
        await self.record_store.put_many(
            self.initial_videos, meta={MIGRATION_STATE_KEY: MigrationState.SEEDED.value}
        )
        self._reached = MigrationState.SEEDED
        return self._reached

    async def migrate_legacy(self, mark: Optional[MigrationState] = None) -> int:
        """Copy legacy videos into the record store, then drop the legacy key.

        Returns the number of records transferred. A legacy value that is
        not a list, or is empty, is removed without transferring anything.
        Items that cannot be read as a video are logged and skipped. With
        *mark*, the marker is written in the same transaction as the records.
        """
        if not self.scalar_store.contains(LEGACY_VIDEOS_KEY):
            return 0

        legacy = self.scalar_store.get(LEGACY_VIDEOS_KEY, None)
        if not isinstance(legacy, list) or not legacy:
            logger.warning("Discarding empty or corrupted legacy video data")
            self.scalar_store.remove(LEGACY_VIDEOS_KEY)
            return 0

        videos = []
        for index, item in enumerate(legacy):
            if not isinstance(item, dict):
                logger.warning("Skipping legacy video #%d: not an object", index)
                continue
            try:
                videos.append(Video.from_dict(item))
            except (TypeError, ValueError) as e:
                logger.warning("Skipping legacy video %r: %s", item.get("id", index), e)

        transferred = 0
        if videos:
            logger.info("Migrating %d videos from the scalar store", len(videos))
            meta = {MIGRATION_STATE_KEY: mark.value} if mark is not None else None
            # Upsert so records already copied by an interrupted run are overwritten.
            transferred = await self.record_store.put_many(videos, meta=meta)
            logger.info("Migration successful")
        self.scalar_store.remove(LEGACY_VIDEOS_KEY)
        return transferred


__all__ = ["MigrationManager", "MigrationState"]
