"""
Dependencias para inyeccion del motor de sincronizacion.
"""
from fastapi import HTTPException, Request, status

from mistral_sync.application.services.sync_scheduler import SyncScheduler


def get_sync_scheduler(request: Request) -> SyncScheduler:
    """
    Dependencia para obtener el scheduler creado en el startup.

    Args:
        request: Peticion HTTP (da acceso a app.state)

    Returns:
        SyncScheduler: Instancia unica del motor
    """
    scheduler = getattr(request.app.state, "sync_scheduler", None)
    if scheduler is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="El motor de sincronizacion no esta inicializado"
        )
    return scheduler
