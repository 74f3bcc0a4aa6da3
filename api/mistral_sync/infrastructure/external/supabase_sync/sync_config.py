"""
Configuración del sync (binding coleccion local -> tabla Supabase).

La idea es que aquí tengas control total de:
- clave del cache local
- tabla destino en Supabase
- campo id usado como clave de union y como conflict target del UPSERT
- filtro opcional de lectura (varias colecciones locales sobre una tabla)

Este módulo no realiza I/O: solo define configuración.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class FetchFilter:
    """Filtro de igualdad aplicado en el pull (column = value)."""

    column: str
    value: Any


@dataclass(frozen=True)
class TableBinding:
    """
    Config de una coleccion local <-> una tabla Supabase.

    Los bindings son inmutables en runtime: cada coleccion local
    rastreada tiene exactamente un binding.
    """

    local: str
    remote: str
    id_field: str = "id"
    fetch_filter: Optional[FetchFilter] = None
