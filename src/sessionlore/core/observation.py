# Sessionlore
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Sessionlore.
#
# Sessionlore is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""Observation: one deduplicated behavioral pattern.

An observation carries a recurrence count, the sessions it was seen in,
first/last-seen timestamps and a review status.  Status only moves
forward: once denied or promoted to core it never changes again.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from sessionlore.core.types import as_utc, format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger("sessionlore.core.observation")


class ObservationCategory(str, Enum):
    PREFERENCE = "preference"
    PATTERN = "pattern"
    WORKFLOW = "workflow"
    TOOL_CHOICE = "tool-choice"
    STYLE = "style"
    OTHER = "other"


class ObservationStatus(str, Enum):
    """Review lifecycle of an observation."""

    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    PROMOTED_TO_LONG_TERM = "promoted-to-long-term"
    PROMOTED_TO_CORE = "promoted-to-core"


VALID_TRANSITIONS: dict[ObservationStatus, set[ObservationStatus]] = {
    ObservationStatus.PENDING: {ObservationStatus.APPROVED, ObservationStatus.DENIED},
    ObservationStatus.APPROVED: {
        ObservationStatus.PROMOTED_TO_LONG_TERM,
        ObservationStatus.DENIED,
    },
    ObservationStatus.PROMOTED_TO_LONG_TERM: {ObservationStatus.PROMOTED_TO_CORE},
    ObservationStatus.DENIED: set(),
    ObservationStatus.PROMOTED_TO_CORE: set(),
}


class InvalidTransitionError(ValueError):
    """Raised when an invalid status transition is attempted."""


class ObservationDecodeError(ValueError):
    """Raised when a serialized observation is missing or has bad fields."""


def _unique(items: list[str]) -> list[str]:
    """Drop duplicates, keeping first-occurrence order."""
    seen: set[str] = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


@dataclass
class Observation:
    """A recurring pattern noticed across one or more sessions."""

    text: str
    category: ObservationCategory = ObservationCategory.OTHER
    count: int = 1
    status: ObservationStatus = ObservationStatus.PENDING
    source_session_ids: list[str] = field(default_factory=list)
    first_seen: datetime = field(default_factory=utcnow)
    last_seen: datetime = field(default_factory=utcnow)
    tags: list[str] | None = None
    metadata: dict[str, Any] | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self) -> None:
        self.category = ObservationCategory(self.category)
        self.status = ObservationStatus(self.status)
        if self.count < 1:
            raise ValueError(f"Observation count must be >= 1, got {self.count}")
        self.first_seen = as_utc(self.first_seen)
        self.last_seen = as_utc(self.last_seen)
        if self.first_seen > self.last_seen:
            raise ValueError("Observation first_seen must not be after last_seen")
        self.source_session_ids = _unique(list(self.source_session_ids))
        if self.tags is not None:
            self.tags = _unique(list(self.tags))

    @property
    def is_terminal(self) -> bool:
        return not VALID_TRANSITIONS[self.status]

    def transition(self, new_status: ObservationStatus | str) -> None:
        """Move to a new status. Raises InvalidTransitionError when not allowed.

        Re-applying the current status is a no-op.
        """
        new_status = ObservationStatus(new_status)
        if new_status == self.status:
            return
        valid = VALID_TRANSITIONS.get(self.status, set())
        if new_status not in valid:
            raise InvalidTransitionError(
                f"Cannot transition from {self.status.value} to {new_status.value}. "
                f"Valid: {', '.join(s.value for s in valid) or 'none'}"
            )
        old = self.status
        self.status = new_status
        logger.info("Observation %s: %s → %s", self.id, old.value, new_status.value)

    def add_session(self, session_id: str) -> bool:
        """Record a source session. Returns False if it was already known."""
        if session_id in self.source_session_ids:
            return False
        self.source_session_ids.append(session_id)
        return True

    def to_dict(self) -> dict[str, Any]:
        return serialize_observation(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Observation:
        return deserialize_observation(data)


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------


def serialize_observation(observation: Observation) -> dict[str, Any]:
    """Plain JSON-safe dict with ISO-8601 timestamps."""
    data: dict[str, Any] = {
        "id": observation.id,
        "text": observation.text,
        "category": observation.category.value,
        "count": observation.count,
        "status": observation.status.value,
        "sourceSessionIds": list(observation.source_session_ids),
        "firstSeen": format_timestamp(observation.first_seen),
        "lastSeen": format_timestamp(observation.last_seen),
    }
    if observation.tags is not None:
        data["tags"] = list(observation.tags)
    if observation.metadata is not None:
        data["metadata"] = dict(observation.metadata)
    return data


def deserialize_observation(data: dict[str, Any]) -> Observation:
    """Inverse of :func:`serialize_observation`.

    Raises ObservationDecodeError naming the offending field.
    """
    if not isinstance(data, dict):
        raise ObservationDecodeError("Serialized observation must be an object")

    for key in ("id", "text", "firstSeen", "lastSeen"):
        if key not in data:
            raise ObservationDecodeError(f"Serialized observation is missing {key}")

    try:
        first_seen = parse_timestamp(data["firstSeen"])
        last_seen = parse_timestamp(data["lastSeen"])
    except (TypeError, ValueError) as exc:
        raise ObservationDecodeError(f"Serialized observation has a bad timestamp: {exc}") from exc

    try:
        return Observation(
            id=str(data["id"]),
            text=str(data["text"]),
            category=ObservationCategory(data.get("category", "other")),
            count=int(data.get("count", 1)),
            status=ObservationStatus(data.get("status", "pending")),
            source_session_ids=list(data.get("sourceSessionIds", [])),
            first_seen=first_seen,
            last_seen=last_seen,
            tags=list(data["tags"]) if data.get("tags") is not None else None,
            metadata=dict(data["metadata"]) if data.get("metadata") is not None else None,
        )
    except (TypeError, ValueError) as exc:
        raise ObservationDecodeError(f"Serialized observation {data.get('id')}: {exc}") from exc
