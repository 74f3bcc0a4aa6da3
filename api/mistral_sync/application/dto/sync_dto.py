"""
DTOs del API de control del motor de sincronizacion.

El API solo expone instantaneas: el SyncState sigue siendo propiedad
del SyncScheduler.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from mistral_sync.application.services.sync_scheduler import SyncCycleResult, SyncStateSnapshot


class SyncStateDTO(BaseModel):
    """Estado actual del motor (polling)."""

    last_sync: Optional[datetime] = Field(None, description="Fin del ultimo pull/ciclo completo")
    pending_changes: List[str] = Field(default_factory=list, description="Colecciones locales con cambios sin confirmar")
    is_syncing: bool = Field(False, description="Hay un ciclo completo en curso")
    status: str = Field(..., description="idle | push_scheduled | syncing")
    auto_sync_interval_ms: int = Field(..., description="Intervalo del auto-sync (0 = desactivado)")
    auto_sync_running: bool = Field(False, description="El loop de auto-sync esta activo")

    @classmethod
    def from_snapshot(cls, snapshot: SyncStateSnapshot) -> "SyncStateDTO":
        return cls(
            last_sync=snapshot.last_sync,
            pending_changes=list(snapshot.pending_changes),
            is_syncing=snapshot.is_syncing,
            status=snapshot.status.value,
            auto_sync_interval_ms=snapshot.auto_sync_interval_ms,
            auto_sync_running=snapshot.auto_sync_running,
        )


class SyncCycleResultDTO(BaseModel):
    """Resultado de un pull, push o ciclo completo."""

    kind: str = Field(..., description="pull | push | full")
    success: bool
    started_at: datetime
    finished_at: Optional[datetime] = None
    pulled: List[str] = Field(default_factory=list)
    pull_failed: List[str] = Field(default_factory=list)
    pushed: List[str] = Field(default_factory=list)
    push_failed: List[str] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: SyncCycleResult) -> "SyncCycleResultDTO":
        return cls(
            kind=result.kind,
            success=result.success,
            started_at=result.started_at,
            finished_at=result.finished_at,
            pulled=result.pulled,
            pull_failed=result.pull_failed,
            pushed=result.pushed,
            push_failed=result.push_failed,
        )


class AutoSyncIntervalDTO(BaseModel):
    """Request para cambiar el intervalo del auto-sync."""

    interval_ms: int = Field(..., ge=0, le=24 * 60 * 60 * 1000, description="Milisegundos entre ciclos (0 desactiva)")


class RecordDeletedDTO(BaseModel):
    """Confirmacion de borrado de un registro."""

    collection: str = Field(..., description="Coleccion local")
    record_id: str = Field(..., description="Id del registro borrado")
    deleted: bool = True
