"""
Orquestador de la sincronizacion cache local <-> Supabase.

Diseño (resumen):
- Cambio en una coleccion rastreada -> se marca pendiente y se (re)arma un
  debounce; al expirar se hace push de todas las tablas (una sola vez por
  rafaga de ediciones).
- Cada intervalo fijo: ciclo completo = pull de todas las tablas, luego
  push de todas, se actualiza last_sync y se publica SYNC_COMPLETED_EVENT.
- is_syncing impide dos ciclos completos simultaneos (el segundo se
  descarta), pero NO bloquea los push por debounce: el push es UPSERT
  idempotente, intercalarlos no corrompe nada.
- El fallo de una tabla (pull o push), incluso uno inesperado, se registra
  y el ciclo sigue con las demas.

El SyncState es propiedad exclusiva de esta clase; el resto del sistema
solo lee instantaneas via get_state().
"""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Sequence

import httpx
from loguru import logger

from mistral_sync.application.services.change_detector import ChangeDetector
from mistral_sync.application.services.event_notifier import SYNC_COMPLETED_EVENT, EventNotifier
from mistral_sync.infrastructure.external.supabase_sync.merge import merge
from mistral_sync.infrastructure.database.session import create_cache_engine
from mistral_sync.infrastructure.external.supabase_sync.supabase_client import (
    SupabaseCredentials,
    SupabaseRestClient,
)
from mistral_sync.infrastructure.external.supabase_sync.sync_config import TableBinding
from mistral_sync.infrastructure.external.supabase_sync.table_mappings import get_table_bindings
from mistral_sync.infrastructure.external.supabase_sync.transformer import to_local, to_remote
from mistral_sync.infrastructure.external.supabase_sync.types import (
    has_valid_id,
    isoformat_z,
    parse_timestamp,
    utc_now,
)
from mistral_sync.infrastructure.storage.local_cache import LocalCache
from mistral_sync.infrastructure.storage.sql_storage import SqlKeyValueStorage
from mistral_sync.shared.exceptions.sync import NetworkError, RemoteError, SyncConfigError

if TYPE_CHECKING:
    from mistral_sync.core.config import Settings


class SchedulerStatus(str, Enum):
    """Estados del scheduler."""

    IDLE = "idle"
    PUSH_SCHEDULED = "push_scheduled"
    SYNCING = "syncing"


@dataclass
class SyncState:
    """Estado mutable del motor (solo lo toca SyncScheduler)."""

    last_sync: Optional[datetime] = None
    pending_changes: set[str] = field(default_factory=set)
    is_syncing: bool = False


@dataclass(frozen=True)
class SyncStateSnapshot:
    """Vista de solo lectura del estado para consultas externas."""

    last_sync: Optional[datetime]
    pending_changes: tuple[str, ...]
    is_syncing: bool
    status: SchedulerStatus
    auto_sync_interval_ms: int
    auto_sync_running: bool


@dataclass
class SyncCycleResult:
    """Resultado de un pull_all / push_all / full_sync."""

    kind: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    pulled: List[str] = field(default_factory=list)
    pull_failed: List[str] = field(default_factory=list)
    pushed: List[str] = field(default_factory=list)
    push_failed: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.pull_failed and not self.push_failed

    def to_payload(self) -> Dict[str, Any]:
        return {
            "kind": self.kind,
            "last_sync": isoformat_z(self.finished_at) if self.finished_at else None,
            "pulled": list(self.pulled),
            "pull_failed": list(self.pull_failed),
            "pushed": list(self.pushed),
            "push_failed": list(self.push_failed),
        }


class SyncScheduler:
    """
    Motor de sincronizacion offline-first.

    Uso:
        scheduler = build_from_settings(settings)
        await scheduler.start()      # carga estado, pull inicial, auto-sync
        ...
        await scheduler.stop()
    """

    def __init__(
        self,
        *,
        bindings: Sequence[TableBinding],
        cache: LocalCache,
        remote: Optional[SupabaseRestClient],
        notifier: EventNotifier,
        detector: Optional[ChangeDetector] = None,
        debounce_ms: int = 2000,
        interval_ms: int = 30000,
        watch_interval_ms: int = 1000,
        state_key: str = "mistral_sync_state",
        initial_pull: bool = True,
    ) -> None:
        locals_seen: set[str] = set()
        for binding in bindings:
            if binding.local in locals_seen:
                raise SyncConfigError(f"Coleccion local con mas de un binding: {binding.local}")
            locals_seen.add(binding.local)

        self._bindings = tuple(bindings)
        self._cache = cache
        self._remote = remote
        self._notifier = notifier
        self._detector = detector
        self._debounce_ms = debounce_ms
        self._interval_ms = interval_ms
        self._watch_interval_ms = watch_interval_ms
        self._state_key = state_key
        self._initial_pull = initial_pull

        self._state = SyncState()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._debounce_task: Optional[asyncio.Task] = None
        # Push por debounce ya en marcha (no se cancela, stop() lo espera)
        self._push_tasks: set[asyncio.Task] = set()
        self._auto_sync_task: Optional[asyncio.Task] = None
        self._watch_task: Optional[asyncio.Task] = None
        # Coleccion que el propio motor esta escribiendo (pull o borrado)
        self._engine_writing: Optional[str] = None

    # ------------------------------------------------------------------
    # Lectura de estado
    # ------------------------------------------------------------------

    @property
    def bindings(self) -> tuple[TableBinding, ...]:
        return self._bindings

    @property
    def cache(self) -> LocalCache:
        return self._cache

    @property
    def notifier(self) -> EventNotifier:
        return self._notifier

    @property
    def is_syncing(self) -> bool:
        return self._state.is_syncing

    @property
    def last_sync(self) -> Optional[datetime]:
        return self._state.last_sync

    @property
    def status(self) -> SchedulerStatus:
        if self._state.is_syncing:
            return SchedulerStatus.SYNCING
        if self._debounce_task is not None and not self._debounce_task.done():
            return SchedulerStatus.PUSH_SCHEDULED
        return SchedulerStatus.IDLE

    @property
    def auto_sync_running(self) -> bool:
        return self._auto_sync_task is not None and not self._auto_sync_task.done()

    def get_state(self) -> SyncStateSnapshot:
        return SyncStateSnapshot(
            last_sync=self._state.last_sync,
            pending_changes=tuple(sorted(self._state.pending_changes)),
            is_syncing=self._state.is_syncing,
            status=self.status,
            auto_sync_interval_ms=self._interval_ms,
            auto_sync_running=self.auto_sync_running,
        )

    # ------------------------------------------------------------------
    # Ciclo de vida
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Carga el estado persistido, conecta el detector y arranca los loops."""
        logger.info("[sync] Inicializando modulo de sincronizacion...")
        self._loop = asyncio.get_running_loop()
        self.load_state()

        if self._detector is not None:
            self._detector.set_listener(self._on_collection_changed)
            self._detector.prime()

        if self._initial_pull:
            await self.pull_all()

        if self._state.pending_changes:
            # Cambios de una sesion anterior que nunca llegaron a Supabase
            logger.info(f"[sync] Cambios pendientes al arrancar: {sorted(self._state.pending_changes)}")
            self.request_push()

        self.start_auto_sync()
        self._start_watch()
        logger.success("[sync] Modulo de sincronizacion listo")

    async def stop(self, *, flush_pending: bool = True) -> None:
        """
        Detiene loops y timers.

        Args:
            flush_pending: si hay un push en debounce, se ejecuta ya en vez de perderlo
        """
        had_scheduled_push = self._debounce_task is not None and not self._debounce_task.done()

        tasks = [t for t in (self._auto_sync_task, self._watch_task, self._debounce_task) if t]
        self.stop_auto_sync()
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._auto_sync_task = None
        self._watch_task = None
        self._debounce_task = None

        if self._push_tasks:
            logger.info("[sync] Esperando el push en curso antes de cerrar")
            await asyncio.gather(*self._push_tasks, return_exceptions=True)

        if self._detector is not None:
            self._detector.set_listener(None)

        if flush_pending and had_scheduled_push:
            logger.info("[sync] Ejecutando push pendiente antes de cerrar")
            await self.push_all()

        if self._remote is not None:
            await self._remote.aclose()
        logger.info("[sync] Modulo de sincronizacion detenido")

    # ------------------------------------------------------------------
    # Estado persistido (solo informativo)
    # ------------------------------------------------------------------

    def load_state(self) -> None:
        stored = self._cache.read_value(self._state_key, default=None)
        if not isinstance(stored, dict):
            return
        last_sync = stored.get("lastSync")
        if last_sync:
            self._state.last_sync = parse_timestamp(last_sync)
        tracked = {b.local for b in self._bindings}
        pending = stored.get("pendingChanges") or []
        if isinstance(pending, list):
            self._state.pending_changes.update(k for k in pending if k in tracked)

    def save_state(self) -> None:
        self._cache.write_value(
            self._state_key,
            {
                "lastSync": isoformat_z(self._state.last_sync) if self._state.last_sync else None,
                "pendingChanges": sorted(self._state.pending_changes),
            },
        )

    # ------------------------------------------------------------------
    # Pull / push por tabla
    # ------------------------------------------------------------------

    async def pull_table(self, binding: TableBinding) -> bool:
        """
        Recupera la tabla remota y la fusiona en el cache local.

        Returns:
            bool: False si la tabla no se pudo actualizar en este ciclo
        """
        if self._remote is None:
            logger.warning(f"[sync] Cliente remoto no disponible, pull {binding.remote} omitido")
            return False

        try:
            rows = await self._remote.pull(binding.remote, fetch_filter=binding.fetch_filter)
        except (NetworkError, RemoteError) as e:
            logger.error(f"[sync] Error pull {binding.remote}: {e.message}")
            return False

        if not rows:
            logger.debug(f"[sync] Pull {binding.remote}: sin registros remotos")
            return True

        remote_records = [to_local(binding.remote, row) for row in rows if isinstance(row, Mapping)]
        merged = merge(self._cache.get(binding.local), remote_records, binding.id_field)

        self._engine_writing = binding.local
        try:
            saved = self._cache.set(binding.local, merged)
        finally:
            self._engine_writing = None

        if not saved:
            logger.error(f"[sync] Pull {binding.remote}: no se pudo escribir el cache local")
            return False

        logger.success(f"[sync] Pull {binding.remote}: {len(rows)} registros")
        return True

    async def push_table(self, binding: TableBinding) -> bool:
        """
        Envia cada registro local de la coleccion con UPSERT.

        Returns:
            bool: True si todos los registros con id valido se aceptaron
        """
        records = self._cache.get(binding.local)
        if not records:
            return True  # Nada que sincronizar

        if self._remote is None:
            logger.warning(f"[sync] Cliente remoto no disponible, push {binding.remote} omitido")
            return False

        sent = 0
        failed = 0
        for record in records:
            if not isinstance(record, dict) or not has_valid_id(record, binding.id_field):
                logger.debug(f"[sync] Registro sin '{binding.id_field}' en {binding.local}, omitido")
                continue
            ok = await self._remote.push(binding.remote, to_remote(binding.remote, record), binding.id_field)
            if ok:
                sent += 1
            else:
                failed += 1

        if failed:
            logger.error(f"[sync] Push {binding.remote}: {failed} errores, {sent} enviados")
            return False

        logger.success(f"[sync] Push {binding.remote}: {sent} registros")
        return True

    def get_binding(self, collection_name: str) -> TableBinding:
        """
        Busca el binding de una coleccion local rastreada.

        Raises:
            SyncConfigError: si la coleccion no esta rastreada
        """
        for binding in self._bindings:
            if binding.local == collection_name:
                return binding
        raise SyncConfigError(f"Coleccion no rastreada: {collection_name}")

    async def delete_record(self, collection_name: str, record_id: Any) -> bool:
        """
        Borra un registro en Supabase y, si el borrado remoto se acepta, en el cache.

        Si Supabase rechaza el borrado, el registro local se conserva.

        Args:
            collection_name: coleccion local rastreada
            record_id: id del registro (se compara como texto, los ids de
                una ruta HTTP llegan siempre como str)

        Returns:
            bool: True si el registro ya no existe en Supabase

        Raises:
            SyncConfigError: si la coleccion no esta rastreada
        """
        binding = self.get_binding(collection_name)
        if self._remote is None:
            logger.warning(f"[sync] Cliente remoto no disponible, delete {binding.remote} omitido")
            return False

        if not await self._remote.delete(binding.remote, record_id, binding.id_field):
            return False

        records = self._cache.get(binding.local)
        remaining = [
            r for r in records
            if not (isinstance(r, Mapping) and str(r.get(binding.id_field)) == str(record_id))
        ]
        if len(remaining) != len(records):
            self._engine_writing = binding.local
            try:
                self._cache.set(binding.local, remaining)
            finally:
                self._engine_writing = None

        logger.success(f"[sync] Delete {binding.remote}: {record_id}")
        return True

    # ------------------------------------------------------------------
    # Operaciones sobre todas las tablas
    # ------------------------------------------------------------------

    async def _pull_into(self, result: SyncCycleResult) -> None:
        for binding in self._bindings:
            try:
                ok = await self.pull_table(binding)
            except Exception:
                logger.exception(f"[sync] Error inesperado en pull {binding.remote}")
                ok = False
            if ok:
                result.pulled.append(binding.local)
            else:
                result.pull_failed.append(binding.local)

    async def _push_into(self, result: SyncCycleResult) -> None:
        for binding in self._bindings:
            try:
                ok = await self.push_table(binding)
            except Exception:
                logger.exception(f"[sync] Error inesperado en push {binding.remote}")
                ok = False
            if ok:
                result.pushed.append(binding.local)
                self._state.pending_changes.discard(binding.local)
            else:
                result.push_failed.append(binding.local)

    async def pull_all(self) -> SyncCycleResult:
        """Solo pull desde Supabase; actualiza last_sync y publica el evento."""
        logger.info("[sync] Pull desde Supabase...")
        result = SyncCycleResult(kind="pull", started_at=utc_now())
        await self._pull_into(result)
        self._complete(result)
        logger.success("[sync] Pull terminado")
        return result

    async def push_all(self) -> SyncCycleResult:
        """Solo push hacia Supabase (no toca last_sync ni publica evento)."""
        logger.info("[sync] Push hacia Supabase...")
        result = SyncCycleResult(kind="push", started_at=utc_now())
        await self._push_into(result)
        result.finished_at = utc_now()
        self.save_state()
        logger.success("[sync] Push terminado")
        return result

    async def full_sync(self) -> Optional[SyncCycleResult]:
        """
        Sincronizacion completa: pull de todas las tablas y luego push.

        Returns:
            Optional[SyncCycleResult]: None si ya habia un ciclo en curso
        """
        if self._state.is_syncing:
            logger.warning("[sync] Sync ya en curso (sync already in progress), se descarta")
            return None

        self._state.is_syncing = True
        logger.info("[sync] Inicio de sincronizacion completa...")
        try:
            result = SyncCycleResult(kind="full", started_at=utc_now())
            await self._pull_into(result)
            await self._push_into(result)
            self._complete(result)
            logger.success("[sync] Sincronizacion completa terminada")
            return result
        finally:
            self._state.is_syncing = False

    def _complete(self, result: SyncCycleResult) -> None:
        result.finished_at = utc_now()
        self._state.last_sync = result.finished_at
        self.save_state()
        # Aviso para que la UI vuelva a leer el cache
        self._notifier.publish(SYNC_COMPLETED_EVENT, result.to_payload())

    # ------------------------------------------------------------------
    # Debounce de push
    # ------------------------------------------------------------------

    def _on_collection_changed(self, key: str, source: str) -> None:
        if key == self._engine_writing:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # Escritura desde otro hilo: el estado solo se toca en el loop
            if self._loop is not None and self._loop.is_running():
                self._loop.call_soon_threadsafe(self._mark_dirty, key, source)
                return
        self._mark_dirty(key, source)

    def _mark_dirty(self, key: str, source: str) -> None:
        self._state.pending_changes.add(key)
        self.save_state()
        logger.info(f"[sync] Cambio {source} en {key}, push programado")
        self.request_push()

    def request_push(self) -> None:
        """
        (Re)arma el timer de debounce. Se puede llamar desde fuera del loop.
        """
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            if self._loop is not None and self._loop.is_running():
                self._loop.call_soon_threadsafe(self._schedule_debounced_push)
            else:
                logger.debug("[sync] Sin event loop activo; el cambio queda pendiente")
            return
        self._schedule_debounced_push()

    def _schedule_debounced_push(self) -> None:
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounced_push())

    async def _debounced_push(self) -> None:
        await asyncio.sleep(self._debounce_ms / 1000)
        # A partir de aqui el push ya no se cancela por nuevas ediciones
        self._debounce_task = None
        task = asyncio.current_task()
        self._push_tasks.add(task)
        try:
            await self.push_all()
        except Exception:
            logger.exception("[sync] Error inesperado en push por debounce")
        finally:
            self._push_tasks.discard(task)

    # ------------------------------------------------------------------
    # Auto-sync y vigilancia de otros procesos
    # ------------------------------------------------------------------

    def start_auto_sync(self) -> None:
        if self._interval_ms > 0 and not self.auto_sync_running:
            self._auto_sync_task = asyncio.create_task(self._auto_sync_loop())
            logger.info(f"[sync] Auto-sync activado ({self._interval_ms / 1000:g}s)")

    def stop_auto_sync(self) -> None:
        if self.auto_sync_running:
            self._auto_sync_task.cancel()
            logger.info("[sync] Auto-sync desactivado")
        self._auto_sync_task = None

    def set_auto_sync_interval(self, interval_ms: int) -> None:
        """Cambia el intervalo del auto-sync (0 lo desactiva)."""
        if interval_ms < 0:
            raise SyncConfigError("El intervalo de auto-sync no puede ser negativo")
        self._interval_ms = interval_ms
        self.stop_auto_sync()
        if interval_ms > 0:
            self.start_auto_sync()

    async def _auto_sync_loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_ms / 1000)
            try:
                await self.full_sync()
            except Exception:
                logger.exception("[sync] Error inesperado en auto-sync")

    def _start_watch(self) -> None:
        if self._detector is None or self._watch_interval_ms <= 0 or self._watch_task is not None:
            return
        self._watch_task = asyncio.create_task(self._watch_loop())

    async def _watch_loop(self) -> None:
        while True:
            await asyncio.sleep(self._watch_interval_ms / 1000)
            self._detector.scan_external_changes()


def build_from_settings(
    app_settings: "Settings",
    *,
    bindings: Optional[Sequence[TableBinding]] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> SyncScheduler:
    """
    Constructor "oficial" del motor a partir de la configuracion.

    Sin SUPABASE_URL/SUPABASE_KEY el motor arranca en modo solo-local:
    el cache funciona y los pull/push se registran como fallidos.

    Args:
        app_settings: Settings de la aplicacion
        bindings: tablas a sincronizar (por defecto DEFAULT_TABLE_BINDINGS)
        http_client: cliente httpx inyectable (tests)
    """
    bindings = tuple(bindings) if bindings is not None else get_table_bindings()

    engine = create_cache_engine(app_settings.CACHE_DATABASE_URL, echo=app_settings.DEBUG)
    storage = SqlKeyValueStorage(engine, max_value_bytes=app_settings.CACHE_MAX_VALUE_BYTES)
    detector = ChangeDetector(b.local for b in bindings)
    cache = LocalCache(detector.wrap(storage))

    remote: Optional[SupabaseRestClient] = None
    if app_settings.remote_configured:
        remote = SupabaseRestClient(
            SupabaseCredentials(url=app_settings.SUPABASE_URL, api_key=app_settings.SUPABASE_KEY),
            client=http_client,
            timeout_s=app_settings.REMOTE_TIMEOUT_S,
            max_retries=app_settings.REMOTE_MAX_RETRIES,
        )
    else:
        logger.warning("[sync] SUPABASE_URL/SUPABASE_KEY no configurados, modo solo-local")

    return SyncScheduler(
        bindings=bindings,
        cache=cache,
        remote=remote,
        notifier=EventNotifier(),
        detector=detector,
        debounce_ms=app_settings.SYNC_DEBOUNCE_MS,
        interval_ms=app_settings.SYNC_INTERVAL_MS,
        watch_interval_ms=app_settings.SYNC_WATCH_INTERVAL_MS,
        state_key=app_settings.SYNC_STATE_KEY,
        initial_pull=app_settings.SYNC_INITIAL_PULL,
    )
