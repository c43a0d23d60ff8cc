# Sessionlore — Core domain types
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Core domain types: sessions, messages, tool uses and observations."""

from __future__ import annotations

from sessionlore.core.observation import (
    InvalidTransitionError,
    Observation,
    ObservationCategory,
    ObservationDecodeError,
    ObservationStatus,
    deserialize_observation,
    serialize_observation,
)
from sessionlore.core.types import Message, Session, ToolUse

__all__ = [
    "InvalidTransitionError",
    "Message",
    "Observation",
    "ObservationCategory",
    "ObservationDecodeError",
    "ObservationStatus",
    "Session",
    "ToolUse",
    "deserialize_observation",
    "serialize_observation",
]
