"""
Deteccion de cambios en las colecciones rastreadas del cache local.

Dos fuentes:
- Escrituras directas: ObservedStorage decora al IStorage real y avisa al
  detector tras cada set_item exitoso.
- Otros procesos que comparten el mismo almacenamiento: notify_external_change()
  como canal explicito, y scan_external_changes() que compara revisiones
  escritas por otro writer_id con la ultima revision vista.

Cualquiera de las dos llama al listener (el SyncScheduler) con la clave y
el origen del cambio ("local" o "external"). Las claves no rastreadas se
ignoran.
"""
from __future__ import annotations

import threading
from typing import Callable, Dict, Iterable, List, Optional

from loguru import logger

from mistral_sync.domain.repositories.storage import IStorage, Revision
from mistral_sync.shared.exceptions.sync import LocalStorageError


ChangeListener = Callable[[str, str], None]

SOURCE_LOCAL = "local"
SOURCE_EXTERNAL = "external"


class ChangeDetector:
    """Marca colecciones rastreadas como modificadas."""

    def __init__(self, tracked_keys: Iterable[str], listener: Optional[ChangeListener] = None):
        self._tracked = frozenset(tracked_keys)
        self._listener = listener
        self._seen: Dict[str, int] = {}
        self._lock = threading.Lock()
        self._storage: Optional[IStorage] = None

    @property
    def tracked_keys(self) -> frozenset:
        return self._tracked

    def is_tracked(self, key: str) -> bool:
        return key in self._tracked

    def set_listener(self, listener: Optional[ChangeListener]) -> None:
        self._listener = listener

    def wrap(self, storage: IStorage) -> "ObservedStorage":
        """
        Decora un storage para observar sus escrituras.

        Returns:
            ObservedStorage: storage a entregar al LocalCache
        """
        self._storage = storage
        return ObservedStorage(storage, self)

    def prime(self) -> None:
        """Registra las revisiones actuales como vistas (arranque del proceso)."""
        if self._storage is None:
            return
        try:
            current = self._storage.revisions(self._tracked)
        except LocalStorageError as e:
            logger.error(f"[changes] No se pudieron leer revisiones iniciales: {e.message}")
            return
        with self._lock:
            for key, (revision, _writer) in current.items():
                self._seen[key] = revision

    def on_local_write(self, key: str) -> None:
        """Aviso de ObservedStorage tras una escritura directa."""
        if not self.is_tracked(key):
            return
        self._remember_revision(key)
        logger.debug(f"[changes] Modificacion local: {key}")
        self._emit(key, SOURCE_LOCAL)

    def notify_external_change(self, key: str) -> bool:
        """
        Canal explicito para cambios hechos por otro proceso.

        Returns:
            bool: True si la clave esta rastreada y se marco
        """
        if not self.is_tracked(key):
            return False
        self._remember_revision(key)
        logger.info(f"[changes] Cambio detectado en otro proceso: {key}")
        self._emit(key, SOURCE_EXTERNAL)
        return True

    def scan_external_changes(self) -> List[str]:
        """
        Compara revisiones del storage con las ultimas vistas.

        Solo cuentan revisiones nuevas escritas por otro writer_id; las
        escrituras propias ya se notificaron por ObservedStorage.

        Returns:
            List[str]: claves marcadas en este escaneo
        """
        if self._storage is None:
            return []
        try:
            current = self._storage.revisions(self._tracked)
        except LocalStorageError as e:
            logger.error(f"[changes] Error escaneando revisiones: {e.message}")
            return []

        own_writer = self._storage.writer_id
        changed: List[str] = []
        with self._lock:
            for key, (revision, writer) in current.items():
                if revision > self._seen.get(key, 0):
                    self._seen[key] = revision
                    if writer != own_writer:
                        changed.append(key)

        for key in changed:
            logger.info(f"[changes] Cambio detectado en otro proceso: {key}")
            self._emit(key, SOURCE_EXTERNAL)
        return changed

    def _remember_revision(self, key: str) -> None:
        if self._storage is None:
            return
        try:
            current: Dict[str, Revision] = self._storage.revisions([key])
        except LocalStorageError:
            return
        if key in current:
            with self._lock:
                self._seen[key] = max(self._seen.get(key, 0), current[key][0])

    def _emit(self, key: str, source: str) -> None:
        if self._listener is None:
            return
        try:
            self._listener(key, source)
        except Exception:
            # Un listener roto no puede hacer fallar la escritura local
            logger.exception(f"[changes] Listener fallo para '{key}'")


class ObservedStorage(IStorage):
    """
    Decorador de IStorage que notifica al ChangeDetector cada set_item.

    Sustituye el parcheo de localStorage.setItem: no se toca ningun objeto
    global, solo se entrega este wrapper al LocalCache.
    """

    def __init__(self, inner: IStorage, detector: ChangeDetector):
        self._inner = inner
        self._detector = detector

    @property
    def inner(self) -> IStorage:
        return self._inner

    @property
    def writer_id(self) -> str:
        return self._inner.writer_id

    def get_item(self, key: str) -> Optional[str]:
        return self._inner.get_item(key)

    def set_item(self, key: str, value: str) -> None:
        self._inner.set_item(key, value)
        self._detector.on_local_write(key)

    def remove_item(self, key: str) -> None:
        self._inner.remove_item(key)

    def keys(self) -> List[str]:
        return self._inner.keys()

    def revisions(self, keys: Iterable[str]) -> Dict[str, Revision]:
        return self._inner.revisions(keys)
