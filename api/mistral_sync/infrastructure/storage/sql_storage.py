"""
Implementacion SQLAlchemy del almacenamiento clave/valor del cache local.

Varias instancias del proceso (p.ej. dos UIs abiertas) pueden compartir el
mismo fichero SQLite; cada una se identifica con un writer_id distinto.
"""
from __future__ import annotations

import uuid
from typing import Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from mistral_sync.domain.repositories.storage import IStorage, Revision
from mistral_sync.infrastructure.database.models import CacheEntryModel
from mistral_sync.infrastructure.database.session import create_session_factory
from mistral_sync.infrastructure.external.supabase_sync.types import utc_now
from mistral_sync.shared.exceptions.sync import LocalStorageError, StorageQuotaExceededError


class SqlKeyValueStorage(IStorage):
    """
    Gestiona la tabla cache_entries.

    - max_value_bytes: cuota por valor (emula QuotaExceededError de localStorage).
      None o 0 desactiva el limite.
    """

    def __init__(
        self,
        engine: Engine,
        *,
        max_value_bytes: Optional[int] = None,
        writer_id: Optional[str] = None,
    ) -> None:
        self._engine = engine
        self._session_factory = create_session_factory(engine)
        self._max_value_bytes = max_value_bytes or None
        self._writer_id = writer_id or uuid.uuid4().hex

    @property
    def writer_id(self) -> str:
        return self._writer_id

    def get_item(self, key: str) -> Optional[str]:
        try:
            with self._session_factory() as session:
                entry = session.get(CacheEntryModel, key)
                return entry.value if entry else None
        except SQLAlchemyError as e:
            raise LocalStorageError(f"No se pudo leer '{key}': {e}", key=key) from e

    def set_item(self, key: str, value: str) -> None:
        if self._max_value_bytes is not None:
            size = len(value.encode("utf-8"))
            if size > self._max_value_bytes:
                raise StorageQuotaExceededError(key, size, self._max_value_bytes)

        try:
            with self._session_factory() as session, session.begin():
                entry = session.get(CacheEntryModel, key)
                if entry:
                    entry.value = value
                    entry.revision = (entry.revision or 0) + 1
                    entry.writer_id = self._writer_id
                    entry.updated_at = utc_now()
                else:
                    session.add(
                        CacheEntryModel(
                            key=key,
                            value=value,
                            revision=1,
                            writer_id=self._writer_id,
                            updated_at=utc_now(),
                        )
                    )
        except SQLAlchemyError as e:
            raise LocalStorageError(f"No se pudo escribir '{key}': {e}", key=key) from e

    def remove_item(self, key: str) -> None:
        try:
            with self._session_factory() as session, session.begin():
                entry = session.get(CacheEntryModel, key)
                if entry:
                    session.delete(entry)
        except SQLAlchemyError as e:
            raise LocalStorageError(f"No se pudo eliminar '{key}': {e}", key=key) from e

    def keys(self) -> List[str]:
        try:
            with self._session_factory() as session:
                return list(session.scalars(select(CacheEntryModel.key)).all())
        except SQLAlchemyError as e:
            raise LocalStorageError(f"No se pudieron listar las claves: {e}") from e

    def revisions(self, keys: Iterable[str]) -> Dict[str, Revision]:
        wanted = list(keys)
        if not wanted:
            return {}
        try:
            with self._session_factory() as session:
                rows = session.execute(
                    select(
                        CacheEntryModel.key,
                        CacheEntryModel.revision,
                        CacheEntryModel.writer_id,
                    ).where(CacheEntryModel.key.in_(wanted))
                ).all()
                return {row.key: (row.revision, row.writer_id) for row in rows}
        except SQLAlchemyError as e:
            raise LocalStorageError(f"No se pudieron leer revisiones: {e}") from e
