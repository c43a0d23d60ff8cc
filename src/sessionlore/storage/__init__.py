# Sessionlore — Persistence
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""JSON-file stores for observations, memories and run state."""

from sessionlore.storage.memory_store import MemoryStore, MemoryStoreError
from sessionlore.storage.observation_store import (
    IngestResult,
    IngestSummary,
    ObservationStore,
    ObservationStoreError,
)
from sessionlore.storage.state import AnalysisState, StateStore

__all__ = [
    "AnalysisState",
    "IngestResult",
    "IngestSummary",
    "MemoryStore",
    "MemoryStoreError",
    "ObservationStore",
    "ObservationStoreError",
    "StateStore",
]
