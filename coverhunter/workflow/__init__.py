"""Missing-cover workflow: selection, search, watch and removal."""

from .cancellation import CancellationToken
from .debouncer import DebounceState, SelectionDebouncer
from .display import DisplayState
from .missing_set import MissingSet, MissingSetMutator
from .search_orchestrator import SearchOrchestrator, SearchRequest
from .session import CoverSession
from .watch_reactor import (
    DirectoryWatcher,
    DirectoryWatchReactor,
    FileCreatedEvent,
    PendingConversion,
    WatchOutcome,
)

__all__ = [
    "CancellationToken",
    "DebounceState",
    "SelectionDebouncer",
    "DisplayState",
    "MissingSet",
    "MissingSetMutator",
    "SearchOrchestrator",
    "SearchRequest",
    "CoverSession",
    "DirectoryWatcher",
    "DirectoryWatchReactor",
    "FileCreatedEvent",
    "PendingConversion",
    "WatchOutcome",
]
