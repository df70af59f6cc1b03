"""
Direct-to-storage uploads.

Each file becomes an UploadTask that moves through
pending -> uploading -> completing -> done (or error).
"""

from .orchestrator import (
    InvalidTransition,
    UploadOrchestrator,
    UploadProgress,
    UploadStatus,
    UploadTask,
)
from .transfer import ProgressReader, upload_to_presigned_url

__all__ = [
    'InvalidTransition',
    'UploadOrchestrator',
    'UploadProgress',
    'UploadStatus',
    'UploadTask',
    'ProgressReader',
    'upload_to_presigned_url',
]
