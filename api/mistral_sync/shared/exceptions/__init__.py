"""
Excepciones de la aplicacion.
"""
from mistral_sync.shared.exceptions.base import AppException
from mistral_sync.shared.exceptions.sync import (
    LocalStorageError,
    NetworkError,
    RemoteError,
    StorageQuotaExceededError,
    SyncConfigError,
)

__all__ = [
    "AppException",
    "LocalStorageError",
    "StorageQuotaExceededError",
    "NetworkError",
    "RemoteError",
    "SyncConfigError",
]
