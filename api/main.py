"""
Punto de entrada principal de la aplicación FastAPI.
Configura la aplicación, middlewares, rutas y el ciclo de vida del motor
de sincronizacion.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from mistral_sync.core.config import settings, get_cors_origins
from mistral_sync.core.events import lifespan
from mistral_sync.api.v1.router import api_router
from mistral_sync.api.middlewares.error_handler import ErrorHandlerMiddleware
from mistral_sync.shared.exceptions.base import AppException


def create_application(*, with_lifespan: bool = True) -> FastAPI:
    """
    Factory para crear y configurar la aplicación FastAPI.

    Args:
        with_lifespan: False en tests, donde el scheduler se inyecta a mano

    Returns:
        FastAPI: Instancia configurada de la aplicación
    """
    application = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Motor de sincronizacion offline-first cache local <-> Supabase",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan if with_lifespan else None,
    )

    # Configurar CORS
    cors_origins = get_cors_origins(settings.CORS_ORIGINS)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Middleware personalizado para manejo de errores
    application.add_middleware(ErrorHandlerMiddleware)

    # Incluir routers de la API
    application.include_router(api_router, prefix="/api")

    # Manejador global de excepciones personalizadas
    @application.exception_handler(AppException)
    async def app_exception_handler(request, exc: AppException):
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "error": exc.error_code,
                "message": exc.message,
                "details": exc.details
            }
        )

    # Health check endpoint
    @application.get("/health", tags=["Health"])
    async def health_check():
        """Endpoint para verificar el estado de la aplicación."""
        scheduler = getattr(application.state, "sync_scheduler", None)
        return {
            "status": "healthy",
            "app_name": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "sync_status": scheduler.status.value if scheduler else "stopped",
            "remote_configured": settings.remote_configured,
        }

    return application


# Crear instancia de la aplicación
app = create_application()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower()
    )
