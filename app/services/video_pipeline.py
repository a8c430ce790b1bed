import logging
import threading
from typing import Callable, Optional

from app.exceptions import PipelineError
from app.schemas.video_record import VideoRecord, VideoStatus, Sensitivity
from app.services.blob_store import BlobStore
from app.services.progress import ProgressStrategy, SimulatedProgress, Stage
from app.services.sensitivity_classifier import SensitivityClassifier

logger = logging.getLogger(__name__)

# (record_id, progress, status, sensitivity) -> False when the record no longer accepts writes
CheckpointWriter = Callable[[str, int, VideoStatus, Optional[Sensitivity]], bool]


def spawn_thread(target, *args):
    thread = threading.Thread(target=target, args=args, daemon=True)
    thread.start()
    return thread


class JobCancelled(Exception):
    pass


class PipelineJob:
    def __init__(self, record_id: str, status: VideoStatus = VideoStatus.UPLOADING, progress: int = 0):
        self.record_id = record_id
        self.status = status
        self.progress = progress
        self.handle = None
        self.blob_written = False
        self._cancelled = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        self._cancelled.set()

    def join(self, timeout: float = None) -> None:
        if self.handle is not None and hasattr(self.handle, 'join'):
            self.handle.join(timeout)

    def __repr__(self) -> str:
        return f"<PipelineJob {self.record_id} {self.status.value} {self.progress}%>"


class PipelineEngine:
    """Runs one background job per uploaded video.

    A job reports transfer checkpoints, writes the payload to the blob store,
    asks the classifier for a verdict, then reports analysis and finalize
    checkpoints. The last checkpoint (100) completes the record and applies
    the verdict. Any error fails the record; nothing is retried.

    Args:

        spawn (callable): ``spawn(target, *args)`` starts ``target`` in the
        background and returns a joinable handle. The app passes
        ``socketio.start_background_task``.
    """

    def __init__(self, blob_store: BlobStore, classifier: SensitivityClassifier,
                 progress: ProgressStrategy = None, spawn: Callable = spawn_thread):
        self.blob_store = blob_store
        self.classifier = classifier
        self.progress = progress if progress is not None else SimulatedProgress()
        self.spawn = spawn
        self.writer: Optional[CheckpointWriter] = None
        self._jobs: dict[str, PipelineJob] = {}
        self._lock = threading.Lock()

    def attach(self, writer: CheckpointWriter) -> None:
        self.writer = writer

    def submit(self, data: bytes, title: str, description: str, record: VideoRecord) -> PipelineJob:
        if self.writer is None:
            raise PipelineError("Pipeline has no checkpoint writer attached")
        with self._lock:
            if record.id in self._jobs:
                raise PipelineError(f"A pipeline job is already running for video {record.id}")
            job = PipelineJob(record.id, record.status, record.progress)
            self._jobs[record.id] = job
        logger.info("Starting pipeline for video %s (%d bytes)", record.id, len(data))
        try:
            job.handle = self.spawn(self._run, job, data, title, description)
        except Exception:
            with self._lock:
                self._jobs.pop(record.id, None)
            raise
        return job

    def get_job(self, record_id: str) -> Optional[PipelineJob]:
        with self._lock:
            return self._jobs.get(record_id)

    def active_jobs(self) -> list[str]:
        with self._lock:
            return list(self._jobs)

    def cancel(self, record_id: str) -> bool:
        job = self.get_job(record_id)
        if job is None:
            return False
        logger.info("Cancelling pipeline for video %s", record_id)
        job.cancel()
        return True

    def wait(self, record_id: str, timeout: float = None) -> None:
        job = self.get_job(record_id)
        if job is not None:
            job.join(timeout)

    def _run(self, job: PipelineJob, data: bytes, title: str, description: str) -> None:
        try:
            self._execute(job, data, title, description)
        except JobCancelled:
            logger.info("Pipeline for video %s stopped; record deleted or finished elsewhere", job.record_id)
            self._discard_blob(job)
        except Exception:
            logger.exception("Pipeline failed for video %s", job.record_id)
            if not job.cancelled:
                self._fail(job)
        finally:
            with self._lock:
                if self._jobs.get(job.record_id) is job:
                    del self._jobs[job.record_id]

    def _execute(self, job: PipelineJob, data: bytes, title: str, description: str) -> None:
        for value in self.progress.checkpoints(Stage.TRANSFER):
            self._checkpoint(job, value, VideoStatus.UPLOADING)

        self._ensure_active(job)
        self.blob_store.put(job.record_id, data)
        job.blob_written = True

        self._checkpoint(job, self.progress.analysis_start, VideoStatus.PROCESSING)
        verdict = self.classifier.classify(title, description)
        logger.info("Video %s classified as %s", job.record_id, verdict.value)
        for value in self.progress.checkpoints(Stage.ANALYSIS):
            self._checkpoint(job, value, VideoStatus.PROCESSING)

        for value in self.progress.checkpoints(Stage.FINALIZE):
            if value >= 100:
                self._checkpoint(job, 100, VideoStatus.COMPLETED, verdict)
            else:
                self._checkpoint(job, value, VideoStatus.PROCESSING)

    def _ensure_active(self, job: PipelineJob) -> None:
        if job.cancelled:
            raise JobCancelled(job.record_id)

    def _checkpoint(self, job: PipelineJob, value: int, status: VideoStatus,
                    sensitivity: Optional[Sensitivity] = None) -> None:
        self._ensure_active(job)
        value = max(value, job.progress)
        # repeated checkpoints carry no new information
        if value == job.progress and status == job.status and sensitivity is None:
            return
        if not self.writer(job.record_id, value, status, sensitivity):
            raise JobCancelled(job.record_id)
        job.progress = value
        job.status = status

    def _fail(self, job: PipelineJob) -> None:
        job.status = VideoStatus.FAILED
        job.progress = 0
        try:
            self.writer(job.record_id, 0, VideoStatus.FAILED, None)
        except Exception:
            logger.exception("Could not record failure of video %s", job.record_id)

    def _discard_blob(self, job: PipelineJob) -> None:
        if not job.blob_written:
            return
        try:
            self.blob_store.delete(job.record_id)
        except Exception as e:
            logger.warning("Could not remove blob of abandoned video %s: %s", job.record_id, e)
