from mistral_sync.application.services.change_detector import (
    SOURCE_EXTERNAL,
    SOURCE_LOCAL,
    ChangeDetector,
    ObservedStorage,
)
from mistral_sync.application.services.event_notifier import SYNC_COMPLETED_EVENT, EventNotifier
from mistral_sync.application.services.sync_scheduler import (
    SchedulerStatus,
    SyncCycleResult,
    SyncScheduler,
    SyncState,
    SyncStateSnapshot,
    build_from_settings,
)

__all__ = [
    "ChangeDetector",
    "EventNotifier",
    "ObservedStorage",
    "SOURCE_EXTERNAL",
    "SOURCE_LOCAL",
    "SYNC_COMPLETED_EVENT",
    "SchedulerStatus",
    "SyncCycleResult",
    "SyncScheduler",
    "SyncState",
    "SyncStateSnapshot",
    "build_from_settings",
]
