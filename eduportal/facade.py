"""Data service facade: the single entry point to users, videos and watch state."""

from __future__ import annotations

import hmac
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable, Optional

from .config import (
    USERS_KEY,
    VIDEO_STATUSES,
    completions_key,
    get_data_dir,
    get_quota_bytes,
    progress_key,
)
from .errors import DuplicateKey, NotFound, Uninitialized
from .models import User, Video, VideoProgress, new_user_id, new_video_id
from .persistence import (
    MigrationManager,
    MigrationState,
    RecordStore,
    ScalarStore,
    get_record_db_path,
    get_scalar_db_path,
    open_record_store,
)
from .seed import initial_users as seed_users
from .seed import initial_videos as seed_videos

logger = logging.getLogger(__name__)

# Patch keys accepted in the original camelCase shape
_VIDEO_KEY_ALIASES = {
    "class_": "class",
    "thumbnailUrl": "thumbnail_url",
    "videoUrls": "video_urls",
    "uploadedAt": "uploaded_at",
}
_IMMUTABLE_VIDEO_KEYS = {"id", "completed"}
_IMMUTABLE_USER_KEYS = {"id", "password"}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _normalize_video_patch(patch: dict[str, Any]) -> dict[str, Any]:
    normalized = {}
    for key, value in patch.items():
        key = _VIDEO_KEY_ALIASES.get(key, key)
        if key in _IMMUTABLE_VIDEO_KEYS:
            continue
        normalized[key] = value
    return normalized


def _merge_tags(existing: Optional[list[str]], new_tags: Iterable[str]) -> list[str]:
    """Union of both tag lists, first occurrence wins, blanks dropped."""
    merged = [t for t in (existing or []) if t]
    merged.extend(t.strip() for t in new_tags if t and t.strip())
    return list(dict.fromkeys(merged))


class DataService:
    """Routes user, progress and completion calls to the scalar store and
    video calls to the record store.

    ``initialize()`` must be awaited before anything else; every other
    operation raises ``Uninitialized`` until it has completed.

    Scalar read-modify-write sequences (completion toggles, progress
    updates, user edits) are synchronous and never suspend, so on a single
    event loop they cannot interleave. Callers that hop threads lose that
    guarantee.
    """

    def __init__(self, scalar_store: ScalarStore, record_store: RecordStore, *,
                 initial_users: Optional[list[User]] = None,
                 initial_videos: Optional[list[Video]] = None):
        self.scalar_store = scalar_store
        self.record_store = record_store
        self.initial_users = initial_users if initial_users is not None else seed_users()
        self.initial_videos = initial_videos if initial_videos is not None else seed_videos()
        self.migration_state = MigrationState.UNCHECKED
        self._initialized = False
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Open the record store, run the migration and seed users if absent."""
        if self._closed:
            raise Uninitialized("Data service is closed; open a new one")
        if self._initialized:
            logger.debug("Data service already initialised")
            return

        await self.record_store.open()
        manager = MigrationManager(self.scalar_store, self.record_store, self.initial_videos)
        self.migration_state = await manager.run()

        if not self.scalar_store.contains(USERS_KEY):
            logger.info("Seeding %d initial users", len(self.initial_users))
            self._save_users(self.initial_users)

        self._initialized = True

    async def close(self) -> None:
        """Release both stores. A closed service cannot be initialised again."""
        if self._closed:
            return
        await self.record_store.close()
        self.scalar_store.close()
        self._initialized = False
        self._closed = True

    def _require_initialized(self) -> None:
        if self._closed:
            raise Uninitialized("Data service is closed; open a new one")
        if not self._initialized:
            raise Uninitialized("Data service used before initialize() completed")

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------

    async def list_videos(self, user_id: Optional[str] = None) -> list[Video]:
        """Return the catalog, newest first.

        With *user_id*, each video's ``completed`` flag is joined in from
        that user's completion set.
        """
        self._require_initialized()
        videos = await self.record_store.get_all()
        if user_id is None:
            return videos
        completed = set(self.get_completions(user_id))
        for video in videos:
            video.completed = video.id in completed
        return videos

    async def get_video(self, video_id: str, user_id: Optional[str] = None) -> Optional[Video]:
        self._require_initialized()
        video = await self.record_store.get(video_id)
        if video is not None and user_id is not None:
            video.completed = video_id in self.get_completions(user_id)
        return video

    async def add_video(self, data: dict[str, Any]) -> Video:
        """Create a video with a generated id."""
        self._require_initialized()
        payload = _normalize_video_patch(data)
        payload.setdefault("uploaded_at", _utc_now_iso())
        payload["id"] = new_video_id()
        video = Video.from_dict(payload)
        video.validate()
        return await self.record_store.add(video)

    async def update_video(self, video_id: str, patch: dict[str, Any]) -> Optional[Video]:
        """Merge *patch* into a video. Returns None if it does not exist.

        This is a read then a full overwrite; concurrent updates to the same
        video are last-writer-wins.
        """
        self._require_initialized()
        video = await self.record_store.get(video_id)
        if video is None:
            return None
        merged = {**video.to_dict(), **_normalize_video_patch(patch), "id": video_id}
        updated = Video.from_dict(merged)
        updated.validate()
        await self.record_store.put(updated)
        return updated

    async def delete_video(self, video_id: str) -> None:
        self._require_initialized()
        await self.record_store.delete(video_id)

    async def delete_videos(self, video_ids: Iterable[str]) -> int:
        self._require_initialized()
        return await self.record_store.delete_many(video_ids)

    async def set_videos_status(self, video_ids: Iterable[str], status: str) -> int:
        """Set *status* on every listed video in one transaction; unknown ids are skipped."""
        self._require_initialized()
        if status not in VIDEO_STATUSES:
            raise ValueError(
                f"Unknown video status '{status}'. Expected one of: {', '.join(VIDEO_STATUSES)}"
            )

        def _set_status(video: Video) -> None:
            video.status = status

        return await self.record_store.run_batch(video_ids, _set_status)

    async def add_tags_to_videos(self, video_ids: Iterable[str], tags: Iterable[str]) -> int:
        """Merge *tags* into each listed video's tag set in one transaction."""
        self._require_initialized()
        tag_list = list(tags)

        def _add_tags(video: Video) -> None:
            video.tags = _merge_tags(video.tags, tag_list)

        return await self.record_store.run_batch(video_ids, _add_tags)

    async def reset_videos(self) -> int:
        """Clear the catalog and reseed it from the initial dataset."""
        self._require_initialized()
        logger.warning("Resetting video catalog to the initial dataset")
        return await self.record_store.replace_all(self.initial_videos)

    # ------------------------------------------------------------------
    # Completion sets and progress
    # ------------------------------------------------------------------

    def get_completions(self, user_id: str) -> list[str]:
        self._require_initialized()
        ids = self.scalar_store.get(completions_key(user_id), [])
        return list(dict.fromkeys(i for i in ids if isinstance(i, str)))

    def set_completion(self, user_id: str, video_id: str, completed: bool) -> None:
        ids = self.get_completions(user_id)
        if completed and video_id not in ids:
            ids.append(video_id)
        elif not completed:
            ids = [i for i in ids if i != video_id]
        self.scalar_store.set(completions_key(user_id), ids)

    def toggle_completion(self, user_id: str, video_id: str) -> bool:
        """Flip *video_id* in the user's completion set. Returns the new membership."""
        completed = video_id not in self.get_completions(user_id)
        self.set_completion(user_id, video_id, completed)
        return completed

    def get_progress(self, user_id: str) -> dict[str, VideoProgress]:
        self._require_initialized()
        raw = self.scalar_store.get(progress_key(user_id), {})
        return {
            video_id: VideoProgress.from_dict(entry)
            for video_id, entry in raw.items()
            if isinstance(entry, dict)
        }

    def record_progress(self, user_id: str, video_id: str,
                        elapsed_seconds: float, duration_seconds: float) -> None:
        """Upsert the progress entry for one video. Elapsed may exceed duration."""
        self._require_initialized()
        if duration_seconds < 0:
            raise ValueError("Duration must not be negative")
        key = progress_key(user_id)
        raw = self.scalar_store.get(key, {})
        raw[video_id] = VideoProgress(elapsed_seconds, duration_seconds).to_dict()
        self.scalar_store.set(key, raw)

    def get_all_progress(self) -> dict[str, dict[str, VideoProgress]]:
        return {user.id: self.get_progress(user.id) for user in self._load_users()}

    def get_all_completions(self) -> dict[str, list[str]]:
        """Completion sets for every student."""
        return {
            user.id: self.get_completions(user.id)
            for user in self._load_users()
            if user.role == "student"
        }

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    def list_users(self) -> list[User]:
        return [u.public() for u in self._load_users()]

    def get_user(self, user_id: str) -> Optional[User]:
        for user in self._load_users():
            if user.id == user_id:
                return user.public()
        return None

    def authenticate(self, email: str, password: str) -> Optional[User]:
        """Return the matching active user without its secret, or None."""
        user = self._find_by_email(self._load_users(), email)
        if user is None or user.status != "active":
            return None
        if not hmac.compare_digest(user.password.encode(), (password or "").encode()):
            return None
        return user.public()

    def register(self, data: dict[str, Any]) -> User:
        """Create a student account. Raises ``DuplicateKey`` if the email is taken."""
        users = self._load_users()
        email = (data.get("email") or "").strip()
        if self._find_by_email(users, email) is not None:
            raise DuplicateKey(f"Email '{email}' is already registered", email.lower())

        user = User(
            id=new_user_id(),
            name=data.get("name", ""),
            email=email,
            password=data.get("password", "") or "",
            role="student",
            class_=data.get("class", data.get("class_")),
            status="active",
        )
        user.validate()
        if not user.password:
            raise ValueError("A password is required")

        users.append(user)
        self._save_users(users)
        return user.public()

    def update_profile(self, user_id: str, patch: dict[str, Any]) -> User:
        """Merge *patch* into a user. The id and password cannot be changed here."""
        users = self._load_users()
        index = self._index_of(users, user_id)

        changes = {("class" if k == "class_" else k): v for k, v in patch.items()
                   if k not in _IMMUTABLE_USER_KEYS}
        merged = User.from_dict({**users[index].to_dict(include_secret=True), **changes})
        merged.validate()

        other = self._find_by_email(users, merged.email)
        if other is not None and other.id != user_id:
            raise DuplicateKey(f"Email '{merged.email}' is already registered", merged.email.lower())

        users[index] = merged
        self._save_users(users)
        return merged.public()

    def change_password(self, user_id: str, old_password: str, new_password: str) -> bool:
        """Replace the password if *old_password* matches. Returns False otherwise."""
        if not new_password:
            raise ValueError("The new password must not be empty")
        users = self._load_users()
        for user in users:
            if user.id == user_id:
                if not hmac.compare_digest(user.password.encode(), (old_password or "").encode()):
                    return False
                user.password = new_password
                self._save_users(users)
                return True
        return False

    def set_user_status(self, user_id: str, status: str) -> User:
        return self.update_profile(user_id, {"status": status})

    def delete_user(self, user_id: str) -> None:
        """Remove a user account (admin action). Watch state is left in place."""
        users = self._load_users()
        index = self._index_of(users, user_id)
        del users[index]
        self._save_users(users)

    # --- user table helpers ---

    def _load_users(self) -> list[User]:
        self._require_initialized()
        default = [u.to_dict(include_secret=True) for u in self.initial_users]
        raw = self.scalar_store.get(USERS_KEY, default)
        return [User.from_dict(item) for item in raw if isinstance(item, dict)]

    def _save_users(self, users: list[User]) -> None:
        self.scalar_store.set(USERS_KEY, [u.to_dict(include_secret=True) for u in users])

    @staticmethod
    def _find_by_email(users: list[User], email: str) -> Optional[User]:
        target = (email or "").strip().lower()
        for user in users:
            if user.email.strip().lower() == target:
                return user
        return None

    @staticmethod
    def _index_of(users: list[User], user_id: str) -> int:
        for i, user in enumerate(users):
            if user.id == user_id:
                return i
        raise NotFound("User", user_id)


async def open_data_service(data_dir: Optional[Path] = None, *,
                            quota_bytes: Optional[int] = None) -> DataService:
    """Build both stores under *data_dir* and return an initialised service."""
    data_dir = Path(data_dir) if data_dir is not None else get_data_dir()
    scalar_store = ScalarStore(
        get_scalar_db_path(data_dir),
        quota_bytes=quota_bytes if quota_bytes is not None else get_quota_bytes(),
    )
    record_store = await open_record_store(get_record_db_path(data_dir))
    service = DataService(scalar_store, record_store)
    await service.initialize()
    return service


__all__ = ["DataService", "open_data_service"]
