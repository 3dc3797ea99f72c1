"""
REST API routes over the EduPortal data service.

Every route is ``async def`` so scalar-store read-modify-write sequences run
on the event loop and never interleave with each other.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel, Field

from eduportal.config import CLASSES, SUBJECTS, USER_STATUSES, VIDEO_STATUSES
from eduportal.errors import (
    DataError,
    DuplicateKey,
    NotFound,
    QuotaExceeded,
    TransactionAborted,
    Uninitialized,
)
from eduportal.facade import DataService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api")


# --- Request models ---

class VideoCreateRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    subject: str
    class_: str = Field(alias="class")
    duration: str = "00:00"
    views: int = Field(default=0, ge=0)
    status: str = "draft"
    thumbnail_url: str = ""
    video_urls: dict[str, str] = Field(default_factory=dict)
    tags: Optional[list[str]] = None
    uploaded_at: Optional[str] = None


class VideoUpdateRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    subject: Optional[str] = None
    class_: Optional[str] = Field(default=None, alias="class")
    duration: Optional[str] = None
    views: Optional[int] = Field(default=None, ge=0)
    status: Optional[str] = None
    thumbnail_url: Optional[str] = None
    video_urls: Optional[dict[str, str]] = None
    tags: Optional[list[str]] = None
    uploaded_at: Optional[str] = None


class VideoIdsRequest(BaseModel):
    ids: list[str]


class VideoStatusRequest(VideoIdsRequest):
    status: str


class VideoTagsRequest(VideoIdsRequest):
    tags: list[str]


class LoginRequest(BaseModel):
    email: str
    password: str


class RegisterRequest(BaseModel):
    name: str
    email: str
    password: str
    class_: str = Field(alias="class")


class ProfileUpdateRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    class_: Optional[str] = Field(default=None, alias="class")


class PasswordChangeRequest(BaseModel):
    old_password: str
    new_password: str


class UserStatusRequest(BaseModel):
    status: str


class ProgressRequest(BaseModel):
    progress: float = Field(ge=0)
    duration: float = Field(ge=0)


# --- Helpers ---

def get_service(request: Request) -> DataService:
    """Return the data service owned by the running app."""
    service = getattr(request.app.state, "data_service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="Data service is not available")
    return service


def _http_error(e: Exception) -> HTTPException:
    """Map a data-layer error to an HTTP error the UI can act on."""
    if isinstance(e, NotFound):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, DuplicateKey):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, QuotaExceeded):
        return HTTPException(status_code=507, detail=str(e))
    if isinstance(e, TransactionAborted):
        return HTTPException(status_code=503, detail=f"{e}. Please retry.")
    if isinstance(e, Uninitialized):
        return HTTPException(status_code=503, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=422, detail=str(e))
    logger.error("Unexpected data error: %s", e)
    return HTTPException(status_code=500, detail=str(e))


def _patch(model: BaseModel) -> dict:
    return model.model_dump(by_alias=True, exclude_none=True)


# --- Meta ---

@router.get("/config")
async def get_config(service: DataService = Depends(get_service)):
    """Return the enumerations and migration state for the frontend."""
    return {
        "subjects": list(SUBJECTS),
        "classes": list(CLASSES),
        "video_statuses": list(VIDEO_STATUSES),
        "user_statuses": list(USER_STATUSES),
        "migration_state": service.migration_state.value,
    }


# --- Videos ---

@router.get("/videos")
async def list_videos(
    user_id: Optional[str] = Query(None, description="Join in this user's completion flags"),
    service: DataService = Depends(get_service),
):
    videos = await service.list_videos(user_id)
    return {"videos": [v.to_dict(include_completed=user_id is not None) for v in videos]}


@router.get("/videos/{video_id}")
async def get_video(video_id: str, user_id: Optional[str] = None,
                    service: DataService = Depends(get_service)):
    video = await service.get_video(video_id, user_id)
    if video is None:
        raise HTTPException(status_code=404, detail=f"Video '{video_id}' not found")
    return video.to_dict(include_completed=user_id is not None)


@router.post("/videos", status_code=201)
async def add_video(req: VideoCreateRequest, service: DataService = Depends(get_service)):
    try:
        video = await service.add_video(_patch(req))
    except (DataError, ValueError) as e:
        raise _http_error(e) from e
    return video.to_dict()


@router.patch("/videos/{video_id}")
async def update_video(video_id: str, req: VideoUpdateRequest,
                       service: DataService = Depends(get_service)):
    try:
        video = await service.update_video(video_id, _patch(req))
    except (DataError, ValueError) as e:
        raise _http_error(e) from e
    if video is None:
        raise HTTPException(status_code=404, detail=f"Video '{video_id}' not found")
    return video.to_dict()


@router.delete("/videos/{video_id}")
async def delete_video(video_id: str, service: DataService = Depends(get_service)):
    await service.delete_video(video_id)
    return {"deleted": True}


@router.post("/videos/batch/delete")
async def delete_videos(req: VideoIdsRequest, service: DataService = Depends(get_service)):
    try:
        deleted = await service.delete_videos(req.ids)
    except DataError as e:
        raise _http_error(e) from e
    return {"deleted": deleted}


@router.post("/videos/batch/status")
async def set_videos_status(req: VideoStatusRequest, service: DataService = Depends(get_service)):
    try:
        updated = await service.set_videos_status(req.ids, req.status)
    except (DataError, ValueError) as e:
        raise _http_error(e) from e
    return {"updated": updated}


@router.post("/videos/batch/tags")
async def add_tags_to_videos(req: VideoTagsRequest, service: DataService = Depends(get_service)):
    try:
        updated = await service.add_tags_to_videos(req.ids, req.tags)
    except DataError as e:
        raise _http_error(e) from e
    return {"updated": updated}


@router.post("/videos/reset")
async def reset_videos(service: DataService = Depends(get_service)):
    """Destructive: clear the catalog and reseed the initial videos."""
    try:
        count = await service.reset_videos()
    except DataError as e:
        raise _http_error(e) from e
    return {"videos": count}


# --- Auth ---

@router.post("/auth/login")
async def login(req: LoginRequest, service: DataService = Depends(get_service)):
    user = service.authenticate(req.email, req.password)
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid credentials")
    return user.to_dict()


@router.post("/auth/register", status_code=201)
async def register(req: RegisterRequest, service: DataService = Depends(get_service)):
    try:
        user = service.register(_patch(req))
    except (DataError, ValueError) as e:
        raise _http_error(e) from e
    return user.to_dict()


# --- Users ---

@router.get("/users")
async def list_users(service: DataService = Depends(get_service)):
    return {"users": [u.to_dict() for u in service.list_users()]}


@router.patch("/users/{user_id}")
async def update_profile(user_id: str, req: ProfileUpdateRequest,
                         service: DataService = Depends(get_service)):
    try:
        user = service.update_profile(user_id, _patch(req))
    except (DataError, ValueError) as e:
        raise _http_error(e) from e
    return user.to_dict()


@router.post("/users/{user_id}/password")
async def change_password(user_id: str, req: PasswordChangeRequest,
                          service: DataService = Depends(get_service)):
    try:
        changed = service.change_password(user_id, req.old_password, req.new_password)
    except (DataError, ValueError) as e:
        raise _http_error(e) from e
    if not changed:
        raise HTTPException(
            status_code=400,
            detail="Failed to change password. Please check your current password.",
        )
    return {"changed": True}


@router.put("/users/{user_id}/status")
async def set_user_status(user_id: str, req: UserStatusRequest,
                          service: DataService = Depends(get_service)):
    try:
        user = service.set_user_status(user_id, req.status)
    except (DataError, ValueError) as e:
        raise _http_error(e) from e
    return user.to_dict()


@router.delete("/users/{user_id}")
async def delete_user(user_id: str, service: DataService = Depends(get_service)):
    try:
        service.delete_user(user_id)
    except DataError as e:
        raise _http_error(e) from e
    return {"deleted": True}


# --- Watch state ---

@router.get("/users/{user_id}/progress")
async def get_progress(user_id: str, service: DataService = Depends(get_service)):
    progress = service.get_progress(user_id)
    return {"progress": {vid: p.to_dict() for vid, p in progress.items()}}


@router.put("/users/{user_id}/progress/{video_id}")
async def record_progress(user_id: str, video_id: str, req: ProgressRequest,
                          service: DataService = Depends(get_service)):
    try:
        service.record_progress(user_id, video_id, req.progress, req.duration)
    except (DataError, ValueError) as e:
        raise _http_error(e) from e
    return {"video_id": video_id, "progress": req.progress, "duration": req.duration}


@router.get("/users/{user_id}/completions")
async def get_completions(user_id: str, service: DataService = Depends(get_service)):
    return {"completions": service.get_completions(user_id)}


@router.post("/users/{user_id}/completions/{video_id}/toggle")
async def toggle_completion(user_id: str, video_id: str,
                            service: DataService = Depends(get_service)):
    try:
        completed = service.toggle_completion(user_id, video_id)
    except DataError as e:
        raise _http_error(e) from e
    return {"video_id": video_id, "completed": completed}


@router.get("/admin/progress")
async def all_progress(service: DataService = Depends(get_service)):
    """Progress maps for every user, for the admin analytics view."""
    return {
        "progress": {
            uid: {vid: p.to_dict() for vid, p in entries.items()}
            for uid, entries in service.get_all_progress().items()
        },
        "completions": service.get_all_completions(),
    }
