from mistral_sync.api.v1.dependencies.use_case_deps import get_sync_scheduler

__all__ = ["get_sync_scheduler"]
