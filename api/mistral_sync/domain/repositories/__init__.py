from mistral_sync.domain.repositories.storage import IStorage, Revision

__all__ = ["IStorage", "Revision"]
