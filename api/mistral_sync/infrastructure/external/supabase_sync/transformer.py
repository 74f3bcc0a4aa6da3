"""
Transformaciones de registros entre el formato del cache local y Supabase.

Reglas comunes (todas las entidades):
- to_remote: elimina los espejos locales createdAt/updatedAt y rellena
  created_at/updated_at si faltan (con el espejo local o con la hora actual).
  Si updatedAt es posterior a updated_at, gana updatedAt (edicion local).
- to_local: nunca inventa timestamps; solo copia created_at/updated_at a
  createdAt/updatedAt cuando vienen de Supabase.

Reglas por entidad: ver ENTITY_FIELD_RULES en table_mappings.py.
Ambas funciones son puras: nunca mutan el registro de entrada.
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional

from .table_mappings import get_entity_rules
from .types import FieldRule, Record, RuleKind, isoformat_z, parse_timestamp, utc_now

# (columna Supabase, espejo en el cache local)
_TIMESTAMP_MIRRORS = (("created_at", "createdAt"), ("updated_at", "updatedAt"))


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


def _is_newer(candidate: Any, current: Any) -> bool:
    return not _is_blank(candidate) and parse_timestamp(candidate) > parse_timestamp(current)


def _apply_to_remote(rule: FieldRule, out: Record) -> None:
    if rule.kind is RuleKind.RENAME:
        if rule.local_field in out:
            value = out.pop(rule.local_field)
            out[rule.remote_field] = rule.to_remote(value) if rule.to_remote else value

    elif rule.kind is RuleKind.ALIAS:
        if not _is_blank(out.get(rule.local_field)) and _is_blank(out.get(rule.remote_field)):
            value = out[rule.local_field]
            out[rule.remote_field] = rule.to_remote(value) if rule.to_remote else value

    elif rule.kind is RuleKind.DERIVE:
        source = out.get(rule.local_field)
        if source and _is_blank(out.get(rule.remote_field)):
            value = rule.to_remote(source) if rule.to_remote else source
            out[rule.remote_field] = rule.default if value is None else value

    elif rule.kind is RuleKind.FLATTEN:
        nested = out.pop(rule.local_field, None)
        if isinstance(nested, Mapping):
            for sub_key, column in rule.subfields:
                if sub_key in nested:
                    out[column] = nested[sub_key]


def _apply_to_local(rule: FieldRule, out: Record) -> None:
    if rule.kind is RuleKind.RENAME:
        if rule.remote_field in out:
            value = out.pop(rule.remote_field)
            out[rule.local_field] = rule.to_local(value) if rule.to_local else value

    elif rule.kind is RuleKind.ALIAS:
        if not _is_blank(out.get(rule.remote_field)) and _is_blank(out.get(rule.local_field)):
            value = out[rule.remote_field]
            out[rule.local_field] = rule.to_local(value) if rule.to_local else value

    elif rule.kind is RuleKind.FLATTEN:
        nested: dict[str, Any] = {}
        for sub_key, column in rule.subfields:
            if column in out:
                nested[sub_key] = out.pop(column)
        if any(v is not None for v in nested.values()):
            out[rule.local_field] = nested

    # DERIVE es solo de ida: la columna derivada se conserva tal cual.


def to_remote(entity_name: str, record: Mapping[str, Any], *, now: Optional[datetime] = None) -> Record:
    """
    Transforma un registro local al formato de la tabla Supabase.

    Args:
        entity_name: nombre de la tabla remota (p.ej. "professeurs")
        record: registro del cache local
        now: hora de referencia para los timestamps rellenados (tests)

    Returns:
        Record: copia transformada, lista para UPSERT
    """
    out: Record = dict(record)
    mirrors = {column: out.pop(mirror, None) for column, mirror in _TIMESTAMP_MIRRORS}

    for rule in get_entity_rules(entity_name):
        _apply_to_remote(rule, out)

    stamp: Optional[str] = None
    for column, _mirror in _TIMESTAMP_MIRRORS:
        if _is_blank(out.get(column)):
            if not _is_blank(mirrors[column]):
                out[column] = mirrors[column]
            else:
                if stamp is None:
                    stamp = isoformat_z(now or utc_now())
                out[column] = stamp
        elif column == "updated_at" and _is_newer(mirrors[column], out[column]):
            # Edicion local posterior al ultimo pull
            out[column] = mirrors[column]

    return out


def to_local(entity_name: str, remote_record: Mapping[str, Any]) -> Record:
    """
    Transforma un registro de Supabase al formato del cache local.

    Args:
        entity_name: nombre de la tabla remota
        remote_record: fila devuelta por Supabase

    Returns:
        Record: copia transformada para el cache local
    """
    out: Record = dict(remote_record)

    for rule in get_entity_rules(entity_name):
        _apply_to_local(rule, out)

    for column, mirror in _TIMESTAMP_MIRRORS:
        if not _is_blank(out.get(column)):
            out[mirror] = out[column]

    return out
