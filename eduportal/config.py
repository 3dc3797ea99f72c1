"""
Configuration constants for the EduPortal data layer.
"""

import os
from pathlib import Path

# Environment overrides
DATA_DIR_ENV = "EDUPORTAL_DATA_DIR"
STORAGE_QUOTA_ENV = "EDUPORTAL_STORAGE_QUOTA_BYTES"
LOG_LEVEL_ENV = "EDUPORTAL_LOG_LEVEL"

# Browser localStorage gives an origin roughly 5 MiB; the scalar store uses
# the same limit.
DEFAULT_QUOTA_BYTES = 5 * 1024 * 1024
DEFAULT_LOG_LEVEL = "INFO"

SCALAR_DB_FILE = "eduportal_scalar.db"
RECORD_DB_FILE = "eduportal_records.db"

# Scalar store keys
USERS_KEY = "users"
LEGACY_VIDEOS_KEY = "videos"  # Present only before migration
COMPLETIONS_KEY_PREFIX = "completions:"
PROGRESS_KEY_PREFIX = "progress:"

# Record store collection, and the metadata key holding the migration marker
VIDEO_COLLECTION = "videos"
MIGRATION_STATE_KEY = "migration_state"

# Enumerations shared by models and validation
ROLES = ("student", "admin")
USER_STATUSES = ("active", "disabled")
CLASSES = ("8", "9", "10")
VIDEO_STATUSES = ("draft", "published")
SUBJECTS = (
    "Mathematics",
    "Science",
    "History",
    "English",
    "Geography",
    "Physics",
    "Chemistry",
    "Biology",
    "Computer Science",
    "Economics",
    "Art",
)


def completions_key(user_id: str) -> str:
    return f"{COMPLETIONS_KEY_PREFIX}{user_id}"


def progress_key(user_id: str) -> str:
    return f"{PROGRESS_KEY_PREFIX}{user_id}"


def get_data_dir() -> Path:
    """Return the directory holding both store files.

    ``EDUPORTAL_DATA_DIR`` overrides the default ``~/.eduportal``.
    """
    override = os.environ.get(DATA_DIR_ENV, "").strip()
    if override:
        return Path(override)
    return Path.home() / ".eduportal"


def get_quota_bytes() -> int:
    """Return the scalar store quota, falling back to the default on bad input."""
    raw = os.environ.get(STORAGE_QUOTA_ENV, "").strip()
    if not raw:
        return DEFAULT_QUOTA_BYTES
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_QUOTA_BYTES
    return value if value > 0 else DEFAULT_QUOTA_BYTES


def get_log_level() -> str:
    return os.environ.get(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL
