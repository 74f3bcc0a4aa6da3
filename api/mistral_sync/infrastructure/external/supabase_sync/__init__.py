"""
Pipeline de sincronización bidireccional: cache local <-> Supabase.

Objetivos de diseño:
- Offline-first: las escrituras locales siempre funcionan, el remoto converge.
- Idempotencia: el push es UPSERT por id, se puede repetir N veces.
- Last-write-wins por registro completo usando updated_at.
- Mapeo de campos explícito y por tabla (table_mappings.py), sin if/else por entidad.
"""
from .merge import merge
from .supabase_client import SupabaseCredentials, SupabaseRestClient
from .sync_config import FetchFilter, TableBinding
from .table_mappings import DEFAULT_TABLE_BINDINGS, ENTITY_FIELD_RULES, get_table_bindings
from .transformer import to_local, to_remote
from .types import FieldRule, Record, RuleKind, parse_timestamp

__all__ = [
    "DEFAULT_TABLE_BINDINGS",
    "ENTITY_FIELD_RULES",
    "FetchFilter",
    "FieldRule",
    "Record",
    "RuleKind",
    "SupabaseCredentials",
    "SupabaseRestClient",
    "TableBinding",
    "get_table_bindings",
    "merge",
    "parse_timestamp",
    "to_local",
    "to_remote",
]
