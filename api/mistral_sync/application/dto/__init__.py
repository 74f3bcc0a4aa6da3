"""
Data Transfer Objects (DTOs) para la capa de aplicacion.
"""
from .sync_dto import AutoSyncIntervalDTO, RecordDeletedDTO, SyncCycleResultDTO, SyncStateDTO

__all__ = [
    "AutoSyncIntervalDTO",
    "RecordDeletedDTO",
    "SyncCycleResultDTO",
    "SyncStateDTO",
]
