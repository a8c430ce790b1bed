import time
import uuid
import secrets
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from app.exceptions import (
    BlobStoreError,
    CatalogError,
    MetadataStoreError,
    PermissionDenied,
    VideoNotFound,
)
from app.schemas.video_record import (
    ProcessingUpdate,
    Sensitivity,
    User,
    UserRole,
    VideoRecord,
    VideoStatus,
)
from app.services.blob_store import BlobStore
from app.services.video_json_manager import VideoJSONManager
from app.services.video_pipeline import PipelineEngine

logger = logging.getLogger(__name__)

ORPHAN_POLICIES = ('complete', 'fail')


def can_delete(user: User, record: VideoRecord) -> bool:
    """Admins delete anything in their org; editors only their own uploads."""
    if user.org_id != record.org_id:
        return False
    return user.role == UserRole.ADMIN or (user.role == UserRole.EDITOR and record.uploaded_by == user.id)


def _matches(record: VideoRecord, needle: str) -> bool:
    return any(needle in value.lower() for value in (
        record.title, record.description, record.status.value, record.sensitivity.value))


@dataclass
class PlaybackHandle:
    token: str
    video_id: str
    mime_type: str
    expires_at: float


class VideoCatalog:
    """Owns every video record known to the process.

    Reads are filtered by organisation and role. Writes go to the in-memory
    table first, then the whole table is saved through the metadata store,
    then subscribers are notified.

    Args:

        playback_ttl (float): Seconds a playback handle stays valid. One
        live handle is kept per video and reused until it expires.

        orphan_policy (str): What to do on load with records whose pipeline
        was interrupted. ``'complete'`` marks them COMPLETED at 100% and
        promotes a pending verdict to SAFE; ``'fail'`` marks them FAILED.
    """

    def __init__(self, metadata_store: VideoJSONManager, blob_store: BlobStore, pipeline: PipelineEngine,
                 thumbnail_url_template: str = 'https://picsum.photos/seed/{id}/400/225',
                 orphan_policy: str = 'complete', playback_ttl: float = 3600.0,
                 clock: Callable[[], float] = time.monotonic):
        if orphan_policy not in ORPHAN_POLICIES:
            raise ValueError(f"orphan_policy must be one of {ORPHAN_POLICIES}, got {orphan_policy!r}")
        self.metadata_store = metadata_store
        self.blob_store = blob_store
        self.pipeline = pipeline
        self.thumbnail_url_template = thumbnail_url_template
        self.orphan_policy = orphan_policy
        self.playback_ttl = playback_ttl
        self.clock = clock
        self.records: dict[str, VideoRecord] = {}
        self._listeners: list[Callable[[ProcessingUpdate], None]] = []
        self._playback: dict[str, PlaybackHandle] = {}
        self._lock = threading.RLock()
        self.pipeline.attach(self.update_progress)
        self.load()

    def load(self) -> None:
        try:
            records = self.metadata_store.load_all()
        except MetadataStoreError as e:
            logger.error("Failed to load video metadata, starting empty: %s", e)
            records = []
        repaired = 0
        for record in records:
            if not record.status.is_terminal:
                self._repair_orphan(record)
                repaired += 1
        with self._lock:
            self.records = {record.id: record for record in records}
            if repaired:
                logger.warning("Repaired %d interrupted video(s) using the %r policy", repaired, self.orphan_policy)
                self._save()

    def _repair_orphan(self, record: VideoRecord) -> None:
        if self.orphan_policy == 'fail':
            record.status = VideoStatus.FAILED
            record.progress = 0
        else:
            record.status = VideoStatus.COMPLETED
            record.progress = 100
            if record.sensitivity == Sensitivity.PENDING:
                record.sensitivity = Sensitivity.SAFE

    def _save(self) -> None:
        self.metadata_store.save_all(list(self.records.values()))

    def list(self, user: Optional[User], query: Optional[str] = None) -> list[VideoRecord]:
        if user is None:
            return []
        with self._lock:
            indexed = [
                (index, record) for index, record in enumerate(self.records.values())
                if record.org_id == user.org_id
            ]
        if user.role == UserRole.VIEWER:
            indexed = [
                (index, record) for index, record in indexed
                if record.status == VideoStatus.COMPLETED and record.sensitivity == Sensitivity.SAFE
            ]
        if query and query.strip():
            needle = query.strip().lower()
            indexed = [(index, record) for index, record in indexed if _matches(record, needle)]
        indexed.sort(key=lambda item: (item[1].created_datetime, item[0]), reverse=True)
        return [record.copy() for _, record in indexed]

    def get(self, video_id: str) -> Optional[VideoRecord]:
        with self._lock:
            record = self.records.get(video_id)
            return record.copy() if record is not None else None

    def create(self, data: bytes, file_name: str, mime_type: str, title: str, description: str, user: User) -> str:
        if not user.can_upload:
            raise PermissionDenied(f"User {user.id} is not allowed to upload videos")
        if not data:
            raise CatalogError("A video file is required")
        if not title or not title.strip():
            raise CatalogError("A title is required")

        with self._lock:
            video_id = self._new_id()
            record = VideoRecord(
                id=video_id,
                title=title.strip(),
                description=description or '',
                file_name=file_name,
                file_size=len(data),
                mime_type=mime_type,
                uploaded_by=user.id,
                org_id=user.org_id,
                thumbnail_url=self.thumbnail_url_template.format(id=video_id),
            )
            self.records[video_id] = record
            try:
                self._save()
            except MetadataStoreError:
                del self.records[video_id]
                raise
            snapshot = record.copy()
        logger.info("Created video %s %r for user %s", video_id, snapshot.title, user.id)
        self._notify(ProcessingUpdate(video_id, 0, snapshot.status, org_id=snapshot.org_id, event='created'))

        try:
            self.pipeline.submit(data, snapshot.title, snapshot.description, snapshot)
        except Exception:
            logger.exception("Could not start pipeline for video %s", video_id)
            self.update_progress(video_id, 0, VideoStatus.FAILED)
        return video_id

    def _new_id(self) -> str:
        while True:
            video_id = uuid.uuid4().hex[:12]
            if video_id not in self.records:
                return video_id

    def update_progress(self, video_id: str, progress: int, status: VideoStatus,
                        sensitivity: Optional[Sensitivity] = None) -> bool:
        """Apply one pipeline checkpoint. Returns False if the record is gone or finished."""
        with self._lock:
            record = self.records.get(video_id)
            if record is None:
                logger.debug("Ignoring checkpoint for unknown video %s", video_id)
                return False
            if record.status.is_terminal:
                logger.warning("Ignoring checkpoint for finished video %s (%s)", video_id, record.status.value)
                return False
            progress = min(max(int(progress), 0), 100)
            if status == VideoStatus.COMPLETED:
                if sensitivity is None or sensitivity == Sensitivity.PENDING:
                    raise ValueError(f"Video {video_id} cannot complete without a sensitivity verdict")
                progress = 100
            elif status != VideoStatus.FAILED:
                progress = max(progress, record.progress)
            record.progress = progress
            record.status = status
            if sensitivity is not None:
                record.sensitivity = sensitivity
            self._save()
            update = ProcessingUpdate(video_id, progress, status, sensitivity, org_id=record.org_id)
        self._notify(update)
        return True

    def delete(self, video_id: str, user: Optional[User] = None) -> None:
        with self._lock:
            record = self.records.get(video_id)
            if record is None:
                raise VideoNotFound(video_id)
            if user is not None and not can_delete(user, record):
                raise PermissionDenied(f"User {user.id} is not allowed to delete video {video_id}")
            # a failed save leaves the record and its job untouched
            self.metadata_store.save_all([r for r in self.records.values() if r.id != video_id])
            del self.records[video_id]
            self.pipeline.cancel(video_id)
            for token in [t for t, h in self._playback.items() if h.video_id == video_id]:
                del self._playback[token]
        try:
            self.blob_store.delete(video_id)
        except BlobStoreError as e:
            logger.warning("Failed to delete blob for video %s: %s", video_id, e)
        logger.info("Deleted video %s", video_id)
        self._notify(ProcessingUpdate(video_id, record.progress, record.status, org_id=record.org_id, event='deleted'))

    def subscribe(self, callback: Callable[[ProcessingUpdate], None]) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._listeners:
                    self._listeners.remove(callback)

        return unsubscribe

    def _notify(self, update: ProcessingUpdate) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(update)
            except Exception:
                logger.exception("Subscriber failed on update for video %s", update.video_id)

    def get_playback_reference(self, video_id: str) -> Optional[PlaybackHandle]:
        record = self.get(video_id)
        if record is None or record.status != VideoStatus.COMPLETED:
            return None
        if video_id not in self.blob_store:
            logger.warning("No stored file found for video %s", video_id)
            return None
        now = self.clock()
        with self._lock:
            self._prune_playback(now)
            handle = next((h for h in self._playback.values() if h.video_id == video_id), None)
            if handle is None:
                handle = PlaybackHandle(secrets.token_urlsafe(16), video_id, record.mime_type, now + self.playback_ttl)
                self._playback[handle.token] = handle
            return handle

    def _prune_playback(self, now: float) -> None:
        for token in [t for t, h in self._playback.items() if h.expires_at <= now]:
            del self._playback[token]

    def resolve_playback(self, token: str) -> Optional[PlaybackHandle]:
        with self._lock:
            self._prune_playback(self.clock())
            return self._playback.get(token)

    def read_playback(self, token: str) -> Optional[tuple[PlaybackHandle, bytes]]:
        """Loads the stored file behind a live handle."""
        handle = self.resolve_playback(token)
        if handle is None:
            return None
        data = self.blob_store.get(handle.video_id)
        if data is None:
            return None
        return handle, data

    def revoke_playback(self, token: str) -> bool:
        with self._lock:
            return self._playback.pop(token, None) is not None

    def live_playback_count(self) -> int:
        with self._lock:
            self._prune_playback(self.clock())
            return len(self._playback)

    def __len__(self) -> int:
        return len(self.records)

    def __repr__(self) -> str:
        return f"VideoCatalog({len(self.records)} videos, {self.metadata_store!r})"
