from mistral_sync.infrastructure.storage.local_cache import LocalCache
from mistral_sync.infrastructure.storage.sql_storage import SqlKeyValueStorage

__all__ = ["LocalCache", "SqlKeyValueStorage"]
