"""
Mapeos cache local <-> Supabase por tabla.

Este es el punto recomendado para tener “control total” sobre:
- qué colecciones locales se sincronizan y contra qué tabla
- cómo se renombran/aplanan los campos entre ambos lados

Patrón:
- DEFAULT_TABLE_BINDINGS lista las colecciones rastreadas (orden = orden de sync).
  Varias colecciones pueden compartir tabla remota con filtros distintos
  (profesores activos y pendientes).
- ENTITY_FIELD_RULES se indexa por nombre de tabla remota; una tabla sin
  entrada pasa sin cambios (salvo las reglas comunes de timestamps).
"""

from __future__ import annotations

from typing import Any, Optional, Sequence

from .sync_config import FetchFilter, TableBinding
from .types import FieldRule, RuleKind


DEFAULT_TABLE_BINDINGS: tuple[TableBinding, ...] = (
    TableBinding(local="mistral_gestion_clients", remote="clients"),
    TableBinding(local="mistral_gestion_instruments", remote="instruments"),
    TableBinding(local="mistral_gestion_locations", remote="locations"),
    TableBinding(local="mistral_gestion_commandes", remote="commandes"),
    TableBinding(local="mistral_gestion_factures", remote="factures"),
    TableBinding(local="mistral_teachers", remote="professeurs", fetch_filter=FetchFilter("statut", "active")),
    TableBinding(
        local="mistral_pending_teachers",
        remote="professeurs",
        fetch_filter=FetchFilter("statut", "pending"),
    ),
    TableBinding(local="mistral_gallery", remote="galerie"),
    TableBinding(local="mistral_blog_articles", remote="articles"),
)


def _parse_note_count(value: Any) -> Optional[int]:
    """'9 notes' / '9' / 9 -> 9. Devuelve None si no hay numero al inicio."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return int(value) or None
    digits = ""
    for ch in str(value).strip():
        if not ch.isdigit():
            break
        digits += ch
    if not digits:
        return None
    return int(digits) or None


ENTITY_FIELD_RULES: dict[str, tuple[FieldRule, ...]] = {
    "instruments": (
        FieldRule(
            local_field="notes",
            remote_field="nombre_notes",
            kind=RuleKind.DERIVE,
            to_remote=_parse_note_count,
            default=9,
        ),
    ),
    "professeurs": (
        FieldRule(local_field="name", remote_field="nom", kind=RuleKind.ALIAS),
        FieldRule(local_field="courseTypes", remote_field="course_types"),
        FieldRule(local_field="courseFormats", remote_field="course_formats"),
        FieldRule(local_field="instrumentAvailable", remote_field="instrument_available"),
        FieldRule(local_field="photo", remote_field="photo_url"),
    ),
    "articles": (
        FieldRule(local_field="coverImage", remote_field="cover_image"),
        FieldRule(local_field="publishedAt", remote_field="published_at"),
        FieldRule(
            local_field="seo",
            remote_field="",
            kind=RuleKind.FLATTEN,
            subfields=(
                ("metaTitle", "meta_title"),
                ("metaDescription", "meta_description"),
            ),
        ),
    ),
}


def get_table_bindings(only: Optional[Sequence[str]] = None) -> tuple[TableBinding, ...]:
    """
    Retorna los bindings a sincronizar.

    Args:
        only: nombres locales o remotos a conservar (None = todos)
    """
    if not only:
        return DEFAULT_TABLE_BINDINGS
    wanted = set(only)
    return tuple(b for b in DEFAULT_TABLE_BINDINGS if b.local in wanted or b.remote in wanted)


def get_entity_rules(entity_name: str) -> tuple[FieldRule, ...]:
    """Reglas de una entidad (tabla remota). Entidad desconocida => sin reglas."""
    return ENTITY_FIELD_RULES.get(entity_name, ())
