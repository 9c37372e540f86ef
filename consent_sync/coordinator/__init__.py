"""
Consent State Coordinator

Sequences consent service calls and owns the local consent state.
"""

from consent_sync.coordinator.coordinator import ConsentCoordinator
from consent_sync.coordinator.results import (
    CoordinatorPhase,
    LoadMessagesResult,
    MessageToDisplay,
    StageOutcome,
    StageResult,
    SyncStage,
)
from consent_sync.coordinator.sampling import sample
from consent_sync.coordinator.state import CoordinatorState

__all__ = [
    "ConsentCoordinator",
    "CoordinatorPhase",
    "CoordinatorState",
    "LoadMessagesResult",
    "MessageToDisplay",
    "StageOutcome",
    "StageResult",
    "SyncStage",
    "sample",
]
