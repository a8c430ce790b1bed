from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class UserRole(str, Enum):
    VIEWER = 'viewer'
    EDITOR = 'editor'
    ADMIN = 'admin'


class VideoStatus(str, Enum):
    UPLOADING = 'uploading'
    PROCESSING = 'processing'
    COMPLETED = 'completed'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (VideoStatus.COMPLETED, VideoStatus.FAILED)


class Sensitivity(str, Enum):
    PENDING = 'pending'
    SAFE = 'safe'
    FLAGGED = 'flagged'


@dataclass(frozen=True)
class User:
    id: str
    name: str
    email: str
    org_id: str
    role: UserRole
    avatar: Optional[str] = None

    @property
    def can_upload(self) -> bool:
        return self.role in (UserRole.EDITOR, UserRole.ADMIN)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "orgId": self.org_id,
            "role": self.role.value,
            "avatar": self.avatar,
        }


# snake_case attribute -> camelCase key of the stored JSON document
_FIELD_KEYS = {
    "id": "id",
    "title": "title",
    "description": "description",
    "file_name": "fileName",
    "file_size": "fileSize",
    "mime_type": "mimeType",
    "uploaded_by": "uploadedBy",
    "org_id": "orgId",
    "status": "status",
    "sensitivity": "sensitivity",
    "progress": "progress",
    "duration": "duration",
    "thumbnail_url": "thumbnailUrl",
    "created_at": "createdAt",
}


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec='milliseconds').replace('+00:00', 'Z')


@dataclass
class VideoRecord:
    id: str
    title: str
    description: str
    file_name: str
    file_size: int
    mime_type: str
    uploaded_by: str
    org_id: str
    status: VideoStatus = VideoStatus.UPLOADING
    sensitivity: Sensitivity = Sensitivity.PENDING
    progress: int = 0
    thumbnail_url: Optional[str] = None
    created_at: str = field(default_factory=utc_now_iso)
    duration: Optional[float] = None

    @property
    def created_datetime(self) -> datetime:
        created = datetime.fromisoformat(self.created_at.replace('Z', '+00:00'))
        if created.tzinfo is None:
            created = created.replace(tzinfo=timezone.utc)
        return created

    def copy(self) -> "VideoRecord":
        return replace(self)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["status"] = self.status.value
        data["sensitivity"] = self.sensitivity.value
        return {_FIELD_KEYS[key]: value for key, value in data.items()}

    @classmethod
    def from_dict(cls, data: dict) -> "VideoRecord":
        kwargs = {attr: data[key] for attr, key in _FIELD_KEYS.items() if key in data}
        kwargs["status"] = VideoStatus(kwargs.get("status", VideoStatus.UPLOADING))
        kwargs["sensitivity"] = Sensitivity(kwargs.get("sensitivity", Sensitivity.PENDING))
        kwargs["progress"] = int(kwargs.get("progress", 0))
        return cls(**kwargs)

    def __repr__(self):
        return f"<VideoRecord {self.id} {self.title!r}, {self.status.value} {self.progress}%>"


@dataclass(frozen=True)
class ProcessingUpdate:
    video_id: str
    progress: int
    status: VideoStatus
    sensitivity: Optional[Sensitivity] = None
    org_id: Optional[str] = None
    event: str = 'progress'

    def to_dict(self) -> dict:
        payload = {
            "videoId": self.video_id,
            "progress": self.progress,
            "status": self.status.value,
            "event": self.event,
        }
        if self.sensitivity is not None:
            payload["sensitivity"] = self.sensitivity.value
        return payload
