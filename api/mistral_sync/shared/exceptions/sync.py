"""
Excepciones del motor de sincronizacion cache local <-> Supabase.

Ninguna de estas excepciones es fatal para el proceso: los componentes
las capturan en la granularidad de tabla (remoto) o de operacion (local)
y las registran en el log.
"""
from typing import Optional

from mistral_sync.shared.exceptions.base import AppException


class LocalStorageError(AppException):
    """Error del almacenamiento local (lectura corrupta, backend caido)."""
    
    def __init__(self, message: str, key: Optional[str] = None):
        details = {"key": key} if key else None
        super().__init__(
            message=message,
            status_code=500,
            error_code="LOCAL_STORAGE_ERROR",
            details=details
        )
        self.key = key


class StorageQuotaExceededError(LocalStorageError):
    """El valor a escribir supera la cuota configurada del almacenamiento."""
    
    def __init__(self, key: str, size: int, quota: int):
        super().__init__(
            message=f"Cuota excedida para '{key}': {size} bytes > {quota} bytes",
            key=key
        )
        self.error_code = "STORAGE_QUOTA_EXCEEDED"
        self.details = {**(self.details or {}), "size": size, "quota": quota}
        self.size = size
        self.quota = quota


class NetworkError(AppException):
    """Fallo de transporte al hablar con el store remoto (DNS, timeout, conexion)."""
    
    def __init__(self, message: str, table: Optional[str] = None):
        details = {"table": table} if table else None
        super().__init__(
            message=message,
            status_code=503,
            error_code="NETWORK_ERROR",
            details=details
        )
        self.table = table


class RemoteError(AppException):
    """El store remoto respondio con un status no-2xx."""
    
    def __init__(self, message: str, status_code: int, table: Optional[str] = None, body: str = ""):
        super().__init__(
            message=message,
            status_code=502,
            error_code="REMOTE_ERROR",
            details={"table": table, "remote_status": status_code, "body": body[:500]}
        )
        self.remote_status = status_code
        self.table = table
        self.body = body


class SyncConfigError(AppException):
    """Configuracion invalida o incompleta del motor de sync."""
    
    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=500,
            error_code="SYNC_CONFIG_ERROR"
        )
