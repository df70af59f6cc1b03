"""Direct PUT of file bytes to a presigned object-storage URL."""

import logging
import os
import threading
from pathlib import Path
from typing import BinaryIO, Callable, Dict, Optional, Union

import requests

from dam_client.errors import TransferError, UploadCancelled
from dam_client.utils.decorators import log_execution_time

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

ProgressCallback = Callable[[int, int], None]


class ProgressReader:
    """File wrapper that reports bytes handed to the transport.

    ``__len__`` lets requests send an explicit Content-Length instead of a
    chunked body, which presigned PUT URLs reject. Every ``read`` checks the
    cancel event so an abort stops the transfer at the next chunk.
    """

    def __init__(
        self,
        fileobj: BinaryIO,
        total: int,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        self._fileobj = fileobj
        self.total = total
        self.chunk_size = chunk_size
        self.sent = 0
        self._on_progress = on_progress
        self._cancel_event = cancel_event

    def __len__(self) -> int:
        return self.total

    def read(self, size: int = -1) -> bytes:
        if self._cancel_event is not None and self._cancel_event.is_set():
            raise UploadCancelled()
        if size is None or size < 0 or size > self.chunk_size:
            size = self.chunk_size
        chunk = self._fileobj.read(size)
        if chunk:
            self.sent += len(chunk)
            if self._on_progress is not None:
                self._on_progress(self.sent, self.total)
        return chunk


@log_execution_time
def upload_to_presigned_url(
    upload_url: str,
    file_path: Union[str, Path],
    required_headers: Optional[Dict[str, str]] = None,
    on_progress: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    timeout: Optional[float] = None,
    session: Optional[requests.Session] = None,
) -> requests.Response:
    """
    Upload a file to object storage through a presigned URL.

    :param upload_url: The presigned URL returned by the presign call.
    :param file_path: Local file to send.
    :param required_headers: Headers the signature covers; sent exactly as given.
    :param on_progress: Called with (bytes_sent, total_bytes) after each chunk.
    :param cancel_event: Set it from another thread to abort the transfer.
    :param chunk_size: Bytes read per chunk.
    :param timeout: Socket timeout in seconds; None leaves the transport default.
    :param session: An optional requests session. Must not carry API credentials.
    :raises UploadCancelled: when ``cancel_event`` was set.
    :raises TransferError: on network failure or a non-2xx response.
    """
    http = session or requests
    headers = dict(required_headers or {})
    total = os.path.getsize(file_path)

    logger.info(f"Uploading {file_path} ({total} bytes) to object storage")
    with open(file_path, "rb") as file_data:
        body = ProgressReader(
            file_data,
            total,
            chunk_size=chunk_size,
            on_progress=on_progress,
            cancel_event=cancel_event,
        )
        try:
            response = http.request("PUT", upload_url, data=body, headers=headers, timeout=timeout)
        except UploadCancelled:
            logger.warning(f"Upload of {file_path} cancelled after {body.sent} bytes")
            raise
        except requests.RequestException as e:
            if cancel_event is not None and cancel_event.is_set():
                raise UploadCancelled() from e
            raise TransferError(f"Upload failed: {e}") from e

    if cancel_event is not None and cancel_event.is_set():
        raise UploadCancelled()

    if not 200 <= response.status_code < 300:
        reason = response.reason or "error"
        raise TransferError(
            f"Upload failed with status {response.status_code}: {reason}",
            status_code=response.status_code,
        )
    return response
