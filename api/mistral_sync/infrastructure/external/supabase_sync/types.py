"""
Tipos y utilidades puras para el pipeline cache local <-> Supabase.

Se mantienen libres de I/O para poder testearlos fácilmente.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Optional

from loguru import logger

# Un registro de entidad tal cual viaja entre cache, transformer y remoto.
Record = dict[str, Any]

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Retorna la hora actual en UTC, como datetime aware."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normaliza datetime a UTC (aware).

    Los registros locales pueden traer fechas sin zona; las asumimos UTC
    para comparar de forma consistente con las de Supabase.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def isoformat_z(dt: datetime) -> str:
    """Serializa datetime a ISO8601 UTC con sufijo 'Z' (formato Date.toISOString)."""
    dt_utc = ensure_utc(dt)
    return dt_utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime:
    """
    Convierte un timestamp de registro a datetime UTC.

    Acepta:
    - datetime (naive => UTC)
    - str ISO8601, con 'Z', offset o solo fecha ("2024-06-01")
    - int/float: milisegundos desde epoch (como Date.now())

    Cualquier valor ausente o no parseable cuenta como epoch, de modo que
    nunca gana una comparacion contra un timestamp valido.
    """
    if value is None or value == "" or isinstance(value, bool):
        return EPOCH
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return EPOCH
    try:
        return ensure_utc(datetime.fromisoformat(str(value).strip().replace("Z", "+00:00")))
    except ValueError:
        logger.debug(f"[sync] Timestamp no parseable, se usa epoch: {value!r}")
        return EPOCH


def has_valid_id(record: Mapping[str, Any], id_field: str) -> bool:
    """Un id valido es un str no vacio o un int (bool no cuenta)."""
    value = record.get(id_field)
    if isinstance(value, bool):
        return False
    if isinstance(value, str):
        return value != ""
    return isinstance(value, int)


def record_updated_at(record: Mapping[str, Any]) -> datetime:
    """
    Timestamp de ultima modificacion.

    Un registro local puede llevar updated_at (copiado del remoto en el ultimo
    pull) y updatedAt (sellado por la UI al editar). Se toma el mas nuevo.
    """
    return max(parse_timestamp(record.get("updated_at")), parse_timestamp(record.get("updatedAt")))


Transform = Callable[[Any], Any]


class RuleKind(str, Enum):
    """Tipos de regla de mapeo de campos."""

    RENAME = "rename"
    ALIAS = "alias"
    DERIVE = "derive"
    FLATTEN = "flatten"


@dataclass(frozen=True)
class FieldRule:
    """
    Define el mapeo de un campo local a una columna Supabase.

    - local_field: nombre del campo en el cache local
    - remote_field: nombre de la columna en Supabase (vacio en FLATTEN)
    - kind: semantica de la regla (ver RuleKind)
    - to_remote / to_local: transformaciones opcionales del valor
    - subfields: pares (clave anidada local, columna remota) para FLATTEN
    - default: valor para DERIVE cuando la transformacion no produce nada
    """

    local_field: str
    remote_field: str
    kind: RuleKind = RuleKind.RENAME
    to_remote: Optional[Transform] = None
    to_local: Optional[Transform] = None
    subfields: tuple[tuple[str, str], ...] = ()
    default: Any = None
