"""
Python client for the digital-asset-management API.

Wraps authentication with transparent token refresh, asset/folder/tag/audit
queries with a read-through cache, role based permission checks and the
presign -> PUT -> complete upload workflow.
"""

from dam_client.client import DamClient
from dam_client.errors import (
    ApiError,
    AuthError,
    DamClientError,
    NetworkError,
    TransferError,
    UploadCancelled,
    ValidationError,
)

__all__ = [
    'DamClient',
    'DamClientError',
    'ApiError',
    'AuthError',
    'NetworkError',
    'TransferError',
    'UploadCancelled',
    'ValidationError',
]
