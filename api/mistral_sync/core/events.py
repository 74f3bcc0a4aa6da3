"""
Manejadores de eventos de inicio y cierre de la aplicacion.
"""
from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI
from loguru import logger

from mistral_sync.core.config import settings


_file_sink_id = None


def configure_logging() -> None:
    """Agrega el sink de archivo rotativo (una sola vez por proceso)."""
    global _file_sink_id
    if _file_sink_id is not None:
        return
    _file_sink_id = logger.add(
        settings.LOG_FILE,
        rotation="500 MB",
        retention="10 days",
        level=settings.LOG_LEVEL,
    )


def startup_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de inicio de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de inicio
    """
    async def startup() -> None:
        """Construye y arranca el motor de sincronizacion."""
        # Import diferido: el engine del cache se crea recien aqui
        from mistral_sync.application.services.sync_scheduler import build_from_settings

        try:
            configure_logging()
            logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}")
            logger.info(f"Entorno: {settings.ENVIRONMENT}")

            _validate_config()

            scheduler = build_from_settings(settings)
            await scheduler.start()
            app.state.sync_scheduler = scheduler

            logger.success("Aplicacion iniciada correctamente")
            _print_available_urls()

        except Exception as e:
            logger.error(f"Error durante startup: {e}")
            logger.exception("Detalle del error:")
            raise

    return startup


def _validate_config() -> None:
    """Valida que la configuracion critica este presente."""
    warnings = []

    if not settings.remote_configured:
        warnings.append("SUPABASE_URL/SUPABASE_KEY no configurados - solo cache local, sin sincronizacion")
    if settings.SYNC_INTERVAL_MS == 0:
        warnings.append("SYNC_INTERVAL_MS=0 - auto-sync desactivado")
    if settings.CACHE_MAX_VALUE_BYTES == 0:
        warnings.append("CACHE_MAX_VALUE_BYTES=0 - cache local sin limite de tamaño")

    for warning in warnings:
        logger.warning(f"CONFIG: {warning}")


def _print_available_urls() -> None:
    """Imprime las URLs disponibles de la aplicacion."""
    access_host = "localhost" if settings.HOST == "0.0.0.0" else settings.HOST
    base_url = f"http://{access_host}:{settings.PORT}"

    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")
    logger.opt(colors=True).info("<bold><green>URLS DISPONIBLES:</green></bold>")
    logger.opt(colors=True).info(f"<cyan>  Swagger UI:  {base_url}/docs</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Estado sync: {base_url}/api/v1/sync/state</cyan>")
    logger.opt(colors=True).info(f"<cyan>  Health:      {base_url}/health</cyan>")
    logger.opt(colors=True).info("<bold><green>" + "=" * 80 + "</green></bold>")


def shutdown_handler(app: FastAPI) -> Callable:
    """
    Manejador de eventos de cierre de la aplicacion.

    Args:
        app: Instancia de FastAPI

    Returns:
        Callable: Funcion asincrona de cierre
    """
    async def shutdown() -> None:
        """Detiene el scheduler (con push final si habia uno pendiente)."""
        logger.info("Cerrando aplicacion...")

        scheduler = getattr(app.state, "sync_scheduler", None)
        if scheduler is not None:
            await scheduler.stop()
            app.state.sync_scheduler = None

        logger.success("Aplicacion cerrada correctamente")

    return shutdown


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Ciclo de vida de FastAPI: startup -> yield -> shutdown."""
    await startup_handler(app)()
    try:
        yield
    finally:
        await shutdown_handler(app)()
