"""
Endpoints de control del motor de sincronizacion.
Permiten consultar el estado y lanzar pull/push/ciclo completo desde la UI.
"""
from fastapi import APIRouter, Depends, HTTPException, status
from loguru import logger

from mistral_sync.api.v1.dependencies.use_case_deps import get_sync_scheduler
from mistral_sync.application.dto.sync_dto import (
    AutoSyncIntervalDTO,
    RecordDeletedDTO,
    SyncCycleResultDTO,
    SyncStateDTO,
)
from mistral_sync.application.services.sync_scheduler import SyncScheduler
from mistral_sync.shared.exceptions.sync import SyncConfigError


router = APIRouter(prefix="/sync", tags=["Sync"])


@router.get(
    "/state",
    response_model=SyncStateDTO,
    summary="Estado actual de la sincronizacion"
)
async def get_sync_state(
    scheduler: SyncScheduler = Depends(get_sync_scheduler)
) -> SyncStateDTO:
    """Devuelve last_sync, colecciones pendientes y estado del scheduler."""
    return SyncStateDTO.from_snapshot(scheduler.get_state())


@router.post(
    "/full",
    response_model=SyncCycleResultDTO,
    status_code=status.HTTP_200_OK,
    summary="Sincronizacion completa (pull + push)"
)
async def run_full_sync(
    scheduler: SyncScheduler = Depends(get_sync_scheduler)
) -> SyncCycleResultDTO:
    """
    Ejecuta un ciclo completo: pull de todas las tablas y luego push.

    Si ya hay un ciclo en curso no se encola otro: responde 409.
    """
    logger.info("[sync] Ciclo completo solicitado desde API")
    result = await scheduler.full_sync()
    if result is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Ya hay una sincronizacion en curso"
        )
    return SyncCycleResultDTO.from_result(result)


@router.post(
    "/pull",
    response_model=SyncCycleResultDTO,
    summary="Pull desde Supabase"
)
async def run_pull(
    scheduler: SyncScheduler = Depends(get_sync_scheduler)
) -> SyncCycleResultDTO:
    """Trae todas las tablas remotas y las fusiona en el cache local."""
    result = await scheduler.pull_all()
    return SyncCycleResultDTO.from_result(result)


@router.post(
    "/push",
    response_model=SyncCycleResultDTO,
    summary="Push hacia Supabase"
)
async def run_push(
    scheduler: SyncScheduler = Depends(get_sync_scheduler)
) -> SyncCycleResultDTO:
    """Envia todas las colecciones locales con UPSERT."""
    result = await scheduler.push_all()
    return SyncCycleResultDTO.from_result(result)


@router.post(
    "/auto/start",
    response_model=SyncStateDTO,
    summary="Activar auto-sync"
)
async def start_auto_sync(
    scheduler: SyncScheduler = Depends(get_sync_scheduler)
) -> SyncStateDTO:
    scheduler.start_auto_sync()
    return SyncStateDTO.from_snapshot(scheduler.get_state())


@router.post(
    "/auto/stop",
    response_model=SyncStateDTO,
    summary="Desactivar auto-sync"
)
async def stop_auto_sync(
    scheduler: SyncScheduler = Depends(get_sync_scheduler)
) -> SyncStateDTO:
    scheduler.stop_auto_sync()
    return SyncStateDTO.from_snapshot(scheduler.get_state())


@router.put(
    "/auto/interval",
    response_model=SyncStateDTO,
    summary="Cambiar intervalo del auto-sync"
)
async def set_auto_sync_interval(
    body: AutoSyncIntervalDTO,
    scheduler: SyncScheduler = Depends(get_sync_scheduler)
) -> SyncStateDTO:
    """Reprograma el auto-sync; 0 lo desactiva."""
    scheduler.set_auto_sync_interval(body.interval_ms)
    return SyncStateDTO.from_snapshot(scheduler.get_state())


@router.delete(
    "/{collection}/{record_id}",
    response_model=RecordDeletedDTO,
    summary="Borrar un registro (Supabase y cache local)"
)
async def delete_record(
    collection: str,
    record_id: str,
    scheduler: SyncScheduler = Depends(get_sync_scheduler)
) -> RecordDeletedDTO:
    """
    Borra el registro en Supabase y luego en el cache local.

    Coleccion no rastreada: 404. Supabase rechaza o no responde: 502 y el
    registro local se conserva.
    """
    try:
        deleted = await scheduler.delete_record(collection, record_id)
    except SyncConfigError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=f"No se pudo borrar {record_id} en Supabase"
        )
    return RecordDeletedDTO(collection=collection, record_id=record_id)
