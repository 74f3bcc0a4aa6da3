from mistral_sync.infrastructure.database.session import (
    Base,
    create_cache_engine,
    create_session_factory,
)
from mistral_sync.infrastructure.database.models import CacheEntryModel

__all__ = ["Base", "CacheEntryModel", "create_cache_engine", "create_session_factory"]
