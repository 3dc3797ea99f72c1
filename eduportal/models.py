"""
Data structures for users, catalog videos and per-user watch state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from .config import CLASSES, ROLES, SUBJECTS, USER_STATUSES, VIDEO_STATUSES


def new_user_id() -> str:
    return f"user_{uuid.uuid4().hex}"


def new_video_id() -> str:
    return f"video_{uuid.uuid4().hex}"


@dataclass
class User:
    """An account in the user table."""
    id: str
    name: str
    email: str
    password: str = ""           # Opaque secret, stripped from every read
    role: str = "student"        # student, admin
    class_: Optional[str] = None  # Persisted as "class"; required for students
    status: str = "active"       # active, disabled

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "User":
        """Build a user from its persisted shape.

        The original application stored the role under ``type``; both keys
        are accepted.
        """
        return cls(
            id=str(data.get("id", "")),
            name=data.get("name", ""),
            email=data.get("email", ""),
            password=data.get("password", "") or "",
            role=data.get("role") or data.get("type") or "student",
            class_=data.get("class"),
            status=data.get("status", "active"),
        )

    def to_dict(self, include_secret: bool = False) -> dict[str, Any]:
        """Convert to a JSON-ready dict. The password is only included on request."""
        result = {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "class": self.class_,
            "status": self.status,
        }
        if include_secret:
            result["password"] = self.password
        return result

    def public(self) -> "User":
        """Return a copy with the secret cleared."""
        return replace(self, password="")

    def validate(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unknown role '{self.role}'. Expected one of: {', '.join(ROLES)}")
        if self.status not in USER_STATUSES:
            raise ValueError(
                f"Unknown user status '{self.status}'. Expected one of: {', '.join(USER_STATUSES)}"
            )
        if self.role == "student" and self.class_ not in CLASSES:
            raise ValueError(f"Students need a class, one of: {', '.join(CLASSES)}")
        if self.class_ is not None and self.class_ not in CLASSES:
            raise ValueError(f"Unknown class '{self.class_}'. Expected one of: {', '.join(CLASSES)}")
        if not self.email or "@" not in self.email:
            raise ValueError("A valid email address is required")


@dataclass
class Video:
    """A catalog record.

    ``completed`` is a read-side projection joined in from the requesting
    user's completion set. It is never written to the record store.
    """
    id: str
    title: str
    description: str = ""
    subject: str = "Science"
    class_: str = "8"
    duration: str = "00:00"        # Display string, e.g. "24:15"
    views: int = 0
    status: str = "draft"          # draft, published
    thumbnail_url: str = ""
    video_urls: dict[str, str] = field(default_factory=dict)  # quality label -> source
    tags: Optional[list[str]] = None
    uploaded_at: str = ""          # ISO-8601
    completed: Optional[bool] = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Video":
        """Build a video from a record or a legacy (camelCase) payload."""
        tags = data.get("tags")
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            description=data.get("description", ""),
            subject=data.get("subject", "Science"),
            class_=str(data.get("class", "8")),
            duration=data.get("duration", "00:00"),
            views=int(data.get("views", 0) or 0),
            status=data.get("status", "draft"),
            thumbnail_url=data.get("thumbnail_url", data.get("thumbnailUrl", "")),
            video_urls=dict(data.get("video_urls", data.get("videoUrls")) or {}),
            tags=list(tags) if tags is not None else None,
            uploaded_at=data.get("uploaded_at", data.get("uploadedAt", "")),
        )

    def to_dict(self, include_completed: bool = False) -> dict[str, Any]:
        """Convert to the persisted shape; ``completed`` only on request."""
        result = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "subject": self.subject,
            "class": self.class_,
            "duration": self.duration,
            "views": self.views,
            "status": self.status,
            "thumbnail_url": self.thumbnail_url,
            "video_urls": dict(self.video_urls),
            "tags": list(self.tags) if self.tags is not None else None,
            "uploaded_at": self.uploaded_at,
        }
        if include_completed:
            result["completed"] = self.completed
        return result

    def validate(self) -> None:
        if not self.title:
            raise ValueError("A title is required")
        if self.subject not in SUBJECTS:
            raise ValueError(f"Unknown subject '{self.subject}'")
        if self.class_ not in CLASSES:
            raise ValueError(f"Unknown class '{self.class_}'. Expected one of: {', '.join(CLASSES)}")
        if self.status not in VIDEO_STATUSES:
            raise ValueError(
                f"Unknown video status '{self.status}'. Expected one of: {', '.join(VIDEO_STATUSES)}"
            )


@dataclass
class VideoProgress:
    """Elapsed and total seconds for one (user, video) pair."""
    progress: float = 0
    duration: float = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VideoProgress":
        return cls(progress=data.get("progress", 0), duration=data.get("duration", 0))

    def to_dict(self) -> dict[str, float]:
        return {"progress": self.progress, "duration": self.duration}
