"""
Adaptador del cache local: colecciones de registros serializadas en JSON.

Contrato:
- get() nunca falla: clave ausente, JSON corrupto o payload que no es
  una lista => coleccion vacia (con warning en el log).
- set() nunca lanza: cuota excedida, payload no serializable o error del
  backend => False (con error en el log). El caller sigue su flujo.
"""
import json
from typing import Any, List, Optional, Sequence

from loguru import logger

from mistral_sync.domain.repositories.storage import IStorage
from mistral_sync.infrastructure.external.supabase_sync.types import Record
from mistral_sync.shared.exceptions.sync import LocalStorageError, StorageQuotaExceededError


class LocalCache:
    """
    Lectura/escritura de colecciones sobre un IStorage.

    Para que el Change Detector vea las escrituras, el storage recibido
    debe ser el ObservedStorage que envuelve al almacenamiento real.
    """

    def __init__(self, storage: IStorage):
        self.storage = storage

    def get(self, collection_name: str) -> List[Record]:
        """
        Obtiene una coleccion del cache.

        Args:
            collection_name: Clave de la coleccion

        Returns:
            List[Record]: Registros almacenados o lista vacia
        """
        value = self.read_value(collection_name, default=None)
        if value is None:
            return []
        if not isinstance(value, list):
            logger.warning(f"[cache] '{collection_name}' no contiene una lista, se trata como vacia")
            return []
        return value

    def set(self, collection_name: str, records: Sequence[Record]) -> bool:
        """
        Reemplaza una coleccion completa en el cache.

        Args:
            collection_name: Clave de la coleccion
            records: Registros a guardar

        Returns:
            bool: True si se guardo correctamente
        """
        return self.write_value(collection_name, list(records))

    def read_value(self, key: str, default: Any = None) -> Any:
        """Lee y decodifica un valor JSON arbitrario."""
        try:
            raw: Optional[str] = self.storage.get_item(key)
        except LocalStorageError as e:
            logger.error(f"[cache] Error leyendo '{key}': {e.message}")
            return default

        if raw is None:
            return default

        try:
            return json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"[cache] JSON corrupto en '{key}', se ignora: {e}")
            return default

    def write_value(self, key: str, value: Any) -> bool:
        """Codifica y escribe un valor JSON arbitrario."""
        try:
            raw = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"[cache] '{key}' no es serializable a JSON: {e}")
            return False

        try:
            self.storage.set_item(key, raw)
            return True
        except StorageQuotaExceededError as e:
            logger.error(f"[cache] {e.message}")
            return False
        except LocalStorageError as e:
            logger.error(f"[cache] Error escribiendo '{key}': {e.message}")
            return False
