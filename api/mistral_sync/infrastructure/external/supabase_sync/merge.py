"""
Reconciliacion de una coleccion local con su copia remota.

Regla: last-write-wins a nivel de registro completo, usando updated_at.
- El mapa se siembra con los registros locales (ultimo duplicado gana).
- Un registro remoto reemplaza al local solo si es estrictamente mas nuevo.
- Empate de timestamps => se conserva el local (desempate documentado).

Orden del resultado: ids locales en su orden original, luego los ids
que solo existen en remoto, en el orden remoto.
"""

from __future__ import annotations

from typing import Any, Iterable, Mapping

from .types import Record, has_valid_id, record_updated_at


def merge(
    local_records: Iterable[Record],
    remote_records: Iterable[Record],
    id_field: str = "id",
) -> list[Record]:
    """
    Fusiona dos colecciones en una coleccion autoritativa.

    Los registros sin id valido, o que no son un objeto, se descartan
    (no se consideran error).

    Args:
        local_records: coleccion del cache local
        remote_records: coleccion remota ya transformada a formato local
        id_field: campo usado como clave de union

    Returns:
        list[Record]: coleccion fusionada
    """
    merged: dict[Any, Record] = {}

    for record in local_records:
        if isinstance(record, Mapping) and has_valid_id(record, id_field):
            merged[record[id_field]] = record

    for record in remote_records:
        if not isinstance(record, Mapping) or not has_valid_id(record, id_field):
            continue

        key = record[id_field]
        existing = merged.get(key)
        if existing is None:
            merged[key] = record
        elif record_updated_at(record) > record_updated_at(existing):
            merged[key] = record

    return list(merged.values())
