"""
Upload orchestration: presign -> PUT -> complete, one task per file.
"""

import logging
import mimetypes
import threading
import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

import requests

from dam_client.cache import QueryCache
from dam_client.errors import DamClientError, UploadCancelled, ValidationError
from dam_client.http_client import ApiClient
from dam_client.schemas import (
    Asset,
    CompleteUploadRequest,
    PresignRequest,
    PresignResponse,
    UploadMetadata,
)
from dam_client.services.asset_service import ASSETS_CACHE_PREFIX
from dam_client.uploads.transfer import DEFAULT_CHUNK_SIZE, upload_to_presigned_url

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Overall progress reserved for each phase.
PRESIGN_DONE = 10
TRANSFER_DONE = 90
COMPLETE = 100


class UploadStatus(str, Enum):
    """Upload task states aligned with the state machine"""
    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETING = "completing"
    DONE = "done"
    ERROR = "error"


_TRANSITIONS = {
    UploadStatus.PENDING: {UploadStatus.UPLOADING, UploadStatus.ERROR},
    UploadStatus.UPLOADING: {UploadStatus.COMPLETING, UploadStatus.ERROR},
    UploadStatus.COMPLETING: {UploadStatus.DONE, UploadStatus.ERROR},
    UploadStatus.DONE: set(),
    UploadStatus.ERROR: set(),
}

_CANCELLABLE = frozenset({UploadStatus.PENDING, UploadStatus.UPLOADING})


class InvalidTransition(RuntimeError):
    """Raised when an upload task is moved to a state it cannot reach."""


@dataclass(frozen=True)
class UploadProgress:
    """Point-in-time view of an upload task handed to progress observers."""
    task_id: str
    file_name: str
    status: UploadStatus
    progress: int
    error: Optional[str] = None

    def __str__(self) -> str:
        line = f"{self.file_name}: {self.status.value} {self.progress}%"
        return f"{line} ({self.error})" if self.error else line


@dataclass
class UploadTask:
    """One file moving through the upload protocol."""
    path: Path
    folder: Optional[str] = None
    metadata: Optional[UploadMetadata] = None
    content_type: str = DEFAULT_CONTENT_TYPE
    size_bytes: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    status: UploadStatus = UploadStatus.PENDING
    progress: int = 0
    error: Optional[str] = None
    asset: Optional[Asset] = None
    history: List[UploadStatus] = field(default_factory=lambda: [UploadStatus.PENDING], repr=False)
    _cancel_event: threading.Event = field(default_factory=threading.Event, repr=False, compare=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    @property
    def file_name(self) -> str:
        return self.path.name

    @property
    def is_finished(self) -> bool:
        return self.status in (UploadStatus.DONE, UploadStatus.ERROR)

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def cancellable(self) -> bool:
        return self.status in _CANCELLABLE

    def cancel(self) -> bool:
        """Abort the task; it ends in ``error`` with a cancellation message.

        Only pending and uploading tasks can be cancelled. Once the complete
        call is under way this returns False and the task runs to its end.
        """
        with self._lock:
            if not self.cancellable:
                return False
            self._cancel_event.set()
            return True

    def snapshot(self) -> UploadProgress:
        return UploadProgress(
            task_id=self.id,
            file_name=self.file_name,
            status=self.status,
            progress=self.progress,
            error=self.error,
        )

    def transition(self, status: UploadStatus) -> None:
        with self._lock:
            if status not in _TRANSITIONS[self.status]:
                raise InvalidTransition(f"Upload {self.id}: {self.status.value} -> {status.value} is not allowed")
            # a cancel accepted while uploading must win over completing
            if status == UploadStatus.COMPLETING and self.cancelled:
                raise UploadCancelled()
            self.status = status
            self.history.append(status)

    def report(self, progress: int) -> bool:
        """Raise progress; lower values are ignored. Returns True if it changed."""
        progress = max(0, min(COMPLETE, int(progress)))
        if progress <= self.progress:
            return False
        self.progress = progress
        return True


ProgressListener = Callable[[UploadProgress], None]


class UploadOrchestrator:
    """Drives upload tasks against the API and object storage.

    Tasks are independent. ``upload_many`` runs them concurrently on a thread
    pool and waits for all of them to settle. A completed upload invalidates
    the cached asset lists.
    """

    def __init__(
        self,
        api: ApiClient,
        cache: Optional[QueryCache] = None,
        on_progress: Optional[ProgressListener] = None,
        storage_session: Optional[requests.Session] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        max_workers: int = 4,
        upload_timeout: Optional[float] = None,
    ):
        self.api = api
        self.cache = cache
        self.storage_session = storage_session
        self.chunk_size = chunk_size
        self.max_workers = max_workers
        self.upload_timeout = upload_timeout
        self._listeners: List[ProgressListener] = [on_progress] if on_progress else []
        self._tasks: Dict[str, UploadTask] = {}
        self._lock = threading.Lock()

    def add_listener(self, listener: ProgressListener) -> None:
        self._listeners.append(listener)

    @property
    def tasks(self) -> List[UploadTask]:
        with self._lock:
            return list(self._tasks.values())

    def get_task(self, task_id: str) -> Optional[UploadTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def clear_finished(self) -> None:
        """Forget tasks that reached done or error."""
        with self._lock:
            self._tasks = {task_id: task for task_id, task in self._tasks.items() if not task.is_finished}

    def cancel(self, task_id: str) -> bool:
        task = self.get_task(task_id)
        if task is None or not task.cancel():
            return False
        logger.info(f"Cancellation requested for upload {task.file_name}")
        return True

    def create_task(
        self,
        path: Union[str, Path],
        folder: Optional[str] = None,
        metadata: Optional[UploadMetadata] = None,
    ) -> UploadTask:
        """Queue a file for upload."""
        task = self._build_task(path, folder, metadata)
        self._register([task])
        return task

    def _build_task(
        self,
        path: Union[str, Path],
        folder: Optional[str],
        metadata: Optional[UploadMetadata],
    ) -> UploadTask:
        path = Path(path).expanduser()
        if not path.is_file():
            raise ValidationError(f"Not a file: {path}")

        content_type = mimetypes.guess_type(path.name)[0] or DEFAULT_CONTENT_TYPE
        return UploadTask(
            path=path,
            folder=folder or (metadata.folder if metadata else None),
            metadata=metadata,
            content_type=content_type,
            size_bytes=path.stat().st_size,
        )

    def _register(self, tasks: List[UploadTask]) -> None:
        with self._lock:
            for task in tasks:
                self._tasks[task.id] = task
        for task in tasks:
            self._notify(task)

    def upload_file(
        self,
        path: Union[str, Path],
        folder: Optional[str] = None,
        metadata: Optional[UploadMetadata] = None,
    ) -> Asset:
        """Upload a single file and return the created asset."""
        return self.run(self.create_task(path, folder, metadata))

    def upload_many(
        self,
        paths: Iterable[Union[str, Path]],
        folder: Optional[str] = None,
        metadata: Optional[UploadMetadata] = None,
    ) -> List[UploadTask]:
        """Upload files concurrently and wait until every task settled.

        A failing task does not stop the others; inspect each task's status.
        Every path is validated first, so an invalid one queues nothing.
        """
        tasks = [self._build_task(path, folder, metadata) for path in paths]
        if not tasks:
            return []
        self._register(tasks)

        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(tasks))) as executor:
            future_to_task = {executor.submit(self.run, task): task for task in tasks}
            for future in as_completed(future_to_task):
                task = future_to_task[future]
                try:
                    future.result()
                except DamClientError as e:
                    logger.warning(f"Upload of {task.file_name} failed: {e}")
                except Exception as e:
                    logger.error(f"Unexpected error uploading {task.file_name}: {e}")

        done = sum(1 for task in tasks if task.status == UploadStatus.DONE)
        logger.info(f"Bulk upload finished: {done}/{len(tasks)} succeeded")
        return tasks

    def run(self, task: UploadTask) -> Asset:
        """Run the three protocol steps for ``task``.

        On failure the task is left in ``error`` and the exception re-raised.
        """
        if task.status != UploadStatus.PENDING:
            raise ValidationError(f"Upload {task.id} was already started")

        try:
            self._advance(task, UploadStatus.UPLOADING)
            self._raise_if_cancelled(task)

            presign = self._presign(task)
            self._report(task, PRESIGN_DONE)
            self._raise_if_cancelled(task)

            self._transfer(task, presign)
            self._report(task, TRANSFER_DONE)
            self._raise_if_cancelled(task)

            self._advance(task, UploadStatus.COMPLETING)
            asset = self._complete(task, presign)
        except Exception as e:
            self._fail(task, e)
            raise

        task.asset = asset
        task.report(COMPLETE)
        self._advance(task, UploadStatus.DONE)
        if self.cache is not None:
            self.cache.invalidate(ASSETS_CACHE_PREFIX)
        logger.info(f"Upload of {task.file_name} completed as asset {asset.id}")
        return asset

    # Protocol steps

    def _presign(self, task: UploadTask) -> PresignResponse:
        request = PresignRequest(
            filename=task.file_name,
            content_type=task.content_type,
            folder=task.folder,
            size_bytes=task.size_bytes,
        )
        data = self.api.post("/api/uploads/presign/", json=request.model_dump(mode="json", exclude_none=True))
        return PresignResponse.model_validate(data)

    def _transfer(self, task: UploadTask, presign: PresignResponse) -> None:
        span = TRANSFER_DONE - PRESIGN_DONE

        def on_bytes(sent: int, total: int) -> None:
            if total <= 0:
                return
            self._report(task, PRESIGN_DONE + span * sent // total)

        upload_to_presigned_url(
            presign.upload_url,
            task.path,
            required_headers=presign.required_headers,
            on_progress=on_bytes,
            cancel_event=task._cancel_event,
            chunk_size=self.chunk_size,
            timeout=self.upload_timeout,
            session=self.storage_session,
        )

    def _complete(self, task: UploadTask, presign: PresignResponse) -> Asset:
        extra = task.metadata.model_dump(exclude_none=True) if task.metadata else {}
        extra.pop("folder", None)
        request = CompleteUploadRequest(
            storage_key=presign.storage_key,
            filename=task.file_name,
            content_type=task.content_type,
            size_bytes=task.size_bytes,
            folder=task.folder,
            **extra,
        )
        data = self.api.post("/api/uploads/complete/", json=request.model_dump(mode="json", exclude_none=True))
        return Asset.model_validate(data)

    # State bookkeeping

    def _raise_if_cancelled(self, task: UploadTask) -> None:
        if task.cancelled:
            raise UploadCancelled()

    def _advance(self, task: UploadTask, status: UploadStatus) -> None:
        task.transition(status)
        self._notify(task)

    def _report(self, task: UploadTask, progress: int) -> None:
        if task.report(progress):
            self._notify(task)

    def _fail(self, task: UploadTask, error: Exception) -> None:
        # the cancel event is only ever set before the complete call
        if isinstance(error, UploadCancelled) or task.cancelled:
            task.error = UploadCancelled().message
            logger.warning(f"Upload of {task.file_name} cancelled")
        else:
            task.error = getattr(error, "message", None) or str(error) or "Upload failed"
            logger.error(f"Upload of {task.file_name} failed: {task.error}")
        task.transition(UploadStatus.ERROR)
        self._notify(task)

    def _notify(self, task: UploadTask) -> None:
        snapshot = task.snapshot()
        for listener in self._listeners:
            listener(snapshot)
