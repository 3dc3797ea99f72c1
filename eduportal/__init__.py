"""EduPortal client-side data layer: users, video catalog and watch state."""

__version__ = "1.0.0"

from .errors import (
    CorruptData,
    DataError,
    DuplicateKey,
    NotFound,
    QuotaExceeded,
    TransactionAborted,
    Uninitialized,
)
from .facade import DataService, open_data_service
from .models import User, Video, VideoProgress

__all__ = [
    "__version__",
    "DataService",
    "open_data_service",
    "User",
    "Video",
    "VideoProgress",
    "DataError",
    "NotFound",
    "DuplicateKey",
    "QuotaExceeded",
    "CorruptData",
    "TransactionAborted",
    "Uninitialized",
]
