"""Session coordinator: completion dispatch and activity tracking.

Sits between the file watchers' event stream and the session processing
step:
- CompletionDispatcher: single-flight processing of completed sessions
- ActivityTracker: time-windowed view of currently active sessions
"""

__version__ = "0.1.0"

from .activity import ActiveSession, ActivityTracker
from .config import ActivityConfig, CoordinatorConfig
from .dispatcher import CompletionDispatcher, DispatcherStats
from .errors import (
    ContentReadError,
    CoordinatorError,
    ProcessorError,
    SessionNotFoundError,
)
from .events import (
    RESCAN_PROGRESS,
    SESSION_ACTIVITY,
    SESSION_COMPLETED,
    EventBus,
)
from .interfaces import ContentReader, SessionLookup, SessionProcessor
from .models import Locality, Provider, RescanProgress, SessionEvent, SessionRecord
from .processor import JsonlProcessingLog
from .storage import FileContentReader, SqliteSessionLookup

__all__ = [
    # Coordination
    "CompletionDispatcher",
    "DispatcherStats",
    "ActivityTracker",
    "ActiveSession",
    "EventBus",
    "SESSION_COMPLETED",
    "SESSION_ACTIVITY",
    "RESCAN_PROGRESS",
    # Collaborators
    "SessionLookup",
    "ContentReader",
    "SessionProcessor",
    "SqliteSessionLookup",
    "FileContentReader",
    "JsonlProcessingLog",
    # Types & Config
    "Provider",
    "Locality",
    "SessionRecord",
    "SessionEvent",
    "RescanProgress",
    "ActivityConfig",
    "CoordinatorConfig",
    "CoordinatorError",
    "SessionNotFoundError",
    "ContentReadError",
    "ProcessorError",
]
