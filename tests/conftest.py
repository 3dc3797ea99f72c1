"""
Shared fixtures for EduPortal tests.
"""

import pytest
import pytest_asyncio

from eduportal.facade import DataService
from eduportal.models import User, Video
from eduportal.persistence import RecordStore, ScalarStore, open_record_store


@pytest.fixture
def scalar_store(tmp_path):
    """A scalar store backed by a temporary SQLite file."""
    store = ScalarStore(tmp_path / "scalar.db")
    yield store
    store.close()


@pytest_asyncio.fixture
async def record_store(tmp_path):
    """An opened record store backed by a temporary SQLite file."""
    store = await open_record_store(tmp_path / "records.db")
    yield store
    await store.close()


@pytest.fixture
def make_video():
    """Factory for valid videos.

    Usage:
        video = make_video("v1", uploaded_at="2024-01-02T00:00:00Z", tags=["a"])
    """
    def _make(video_id: str = "video_1", **overrides) -> Video:
        data = {
            "id": video_id,
            "title": f"Lesson {video_id}",
            "description": "A lesson",
            "subject": "Science",
            "class": "8",
            "duration": "10:00",
            "views": 0,
            "status": "draft",
            "thumbnail_url": "https://example.com/thumb.jpg",
            "video_urls": {"720p": "https://example.com/v.mp4"},
            "uploaded_at": "2024-01-01T00:00:00.000Z",
        }
        data.update(overrides)
        return Video.from_dict(data)
    return _make


@pytest.fixture
def sample_video_data():
    """Video payload as a caller would pass it to ``add_video``."""
    return {
        "title": "A",
        "description": "Forces and motion",
        "subject": "Science",
        "class": "8",
        "duration": "12:30",
        "views": 0,
        "status": "published",
        "thumbnail_url": "https://example.com/a.jpg",
        "video_urls": {"1080p": "https://example.com/a-1080.mp4",
                       "480p": "https://example.com/a-480.mp4"},
        "tags": ["physics"],
        "uploaded_at": "2024-06-01T12:00:00.000Z",
    }


@pytest.fixture
def sample_users():
    """Seed users used instead of the shipped dataset."""
    return [
        User(id="u_admin", name="Admin", email="admin@example.com",
             password="admin-pass", role="admin"),
        User(id="u1", name="Student One", email="one@example.com",
             password="secret1", role="student", class_="8"),
        User(id="u2", name="Student Two", email="Two@Example.com",
             password="secret2", role="student", class_="9"),
    ]


@pytest.fixture
def unopened_service(tmp_path, sample_users):
    """A data service whose ``initialize()`` has not run yet (empty seed catalog)."""
    scalar = ScalarStore(tmp_path / "scalar.db")
    record = RecordStore(tmp_path / "records.db")
    return DataService(scalar, record, initial_users=sample_users, initial_videos=[])


@pytest_asyncio.fixture
async def service(unopened_service):
    """An initialised data service with an empty catalog and three users."""
    await unopened_service.initialize()
    yield unopened_service
    await unopened_service.close()
