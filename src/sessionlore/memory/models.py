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
"""Scoped memories and the promotion gate.

Three tiers, each wrapping one observation:

  Session -- a pattern seen in one session
  Project -- session memories of one project folded together
  Global  -- project memories folded together across projects

Aggregates keep the ids of the memories they were built from
(``child_memory_ids``), so provenance can always be walked back down to
individual sessions.  A memory is eligible for promotion once its
observation count and its age reach the configured thresholds; a global
memory must additionally have been seen in at least two sessions.
Eligible global memories are snapshotted into long-term memory only after
a human approves them.
"""

from __future__ import annotations

import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from sessionlore.config import PromotionConfig
from sessionlore.core.observation import (
    Observation,
    ObservationStatus,
    deserialize_observation,
    serialize_observation,
)
from sessionlore.core.types import as_utc, format_timestamp, parse_timestamp, utcnow

logger = logging.getLogger("sessionlore.memory.models")

MIN_GLOBAL_SOURCE_SESSIONS = 2
LONG_TERM_STATUS = "approved"


class MemoryScope(str, Enum):
    SESSION = "session"
    PROJECT = "project"
    GLOBAL = "global"


class MemoryDecodeError(ValueError):
    """Raised when a serialized memory cannot be reconstructed."""


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


# ---------------------------------------------------------------------------
# Eligibility result
# ---------------------------------------------------------------------------


@dataclass
class PromotionEligibility:
    """Structured answer to "can this memory be promoted yet?"."""

    eligible: bool
    current_count: int
    required_count: int
    current_days: int
    required_days: int
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "eligible": self.eligible,
            "currentCount": self.current_count,
            "requiredCount": self.required_count,
            "currentDays": self.current_days,
            "requiredDays": self.required_days,
        }
        if self.reason is not None:
            data["reason"] = self.reason
        return data


# ---------------------------------------------------------------------------
# Long-term snapshot
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LongTermMemory:
    """Immutable record of a global memory approved for long-term use."""

    id: str
    observation: Observation
    promoted_at: datetime
    status: str = LONG_TERM_STATUS

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "observation": serialize_observation(self.observation),
            "status": self.status,
            "promotedAt": format_timestamp(self.promoted_at),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> LongTermMemory:
        for key in ("id", "observation", "promotedAt"):
            if key not in data:
                raise MemoryDecodeError(f"Serialized long-term memory is missing {key}")
        try:
            return cls(
                id=str(data["id"]),
                observation=deserialize_observation(data["observation"]),
                promoted_at=parse_timestamp(data["promotedAt"]),
                status=str(data.get("status", LONG_TERM_STATUS)),
            )
        except (TypeError, ValueError) as exc:
            raise MemoryDecodeError(f"Serialized long-term memory {data['id']}: {exc}") from exc


# ---------------------------------------------------------------------------
# Memory
# ---------------------------------------------------------------------------


@dataclass
class Memory:
    """One observation held at a given scope of the hierarchy."""

    observation: Observation
    scope: MemoryScope
    session_id: str | None = None
    project_id: str | None = None
    child_memory_ids: list[str] = field(default_factory=list)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.scope = MemoryScope(self.scope)
        if self.scope == MemoryScope.SESSION and not self.session_id:
            raise ValueError("A session memory requires a session_id")
        if self.scope == MemoryScope.PROJECT and not self.project_id:
            raise ValueError("A project memory requires a project_id")
        self.child_memory_ids = _unique(list(self.child_memory_ids))
        self.created_at = as_utc(self.created_at)
        self.updated_at = as_utc(self.updated_at)

    # ── Factories ────────────────────────────────────────────────────────

    @classmethod
    def for_session(cls, observation: Observation, session_id: str) -> Memory:
        return cls(observation=observation, scope=MemoryScope.SESSION, session_id=session_id)

    @classmethod
    def from_session_memories(cls, project_id: str, session_memories: list[Memory]) -> Memory:
        """Fold session memories of one project into a project memory.

        Raises ValueError on an empty list or a non-session input.
        """
        observation = _aggregate_observation(session_memories, MemoryScope.SESSION, "project")
        memory = cls(
            observation=observation,
            scope=MemoryScope.PROJECT,
            project_id=project_id,
            child_memory_ids=[m.id for m in session_memories],
        )
        logger.debug(
            "Project memory %s for %s from %d session memories",
            memory.id,
            project_id,
            len(session_memories),
        )
        return memory

    @classmethod
    def from_project_memories(cls, project_memories: list[Memory]) -> Memory:
        """Fold project memories into a global memory.

        Raises ValueError on an empty list or a non-project input.
        """
        observation = _aggregate_observation(project_memories, MemoryScope.PROJECT, "global")
        return cls(
            observation=observation,
            scope=MemoryScope.GLOBAL,
            child_memory_ids=[m.id for m in project_memories],
        )

    # ── Behaviour ────────────────────────────────────────────────────────

    def add_child_memory_id(self, memory_id: str) -> None:
        if memory_id in self.child_memory_ids:
            return
        self.child_memory_ids.append(memory_id)
        self.updated_at = utcnow()

    def days_since_creation(self, now: datetime | None = None) -> int:
        """Whole days elapsed since creation, rounded down."""
        return (as_utc(now or utcnow()) - as_utc(self.created_at)).days

    def check_promotion_eligibility(
        self, config: PromotionConfig, now: datetime | None = None
    ) -> PromotionEligibility:
        count = self.observation.count
        days = self.days_since_creation(now)
        required_count = config.observation_count_threshold
        required_days = config.long_term_days_threshold

        if self.scope == MemoryScope.GLOBAL:
            sessions = len(set(self.observation.source_session_ids))
            if sessions < MIN_GLOBAL_SOURCE_SESSIONS:
                return PromotionEligibility(
                    eligible=False,
                    current_count=count,
                    required_count=required_count,
                    current_days=days,
                    required_days=required_days,
                    reason=(
                        "Not eligible for long-term promotion: global memory must span at "
                        f"least {MIN_GLOBAL_SOURCE_SESSIONS} source sessions (has {sessions})"
                    ),
                )

        unmet = []
        if count < required_count:
            unmet.append(f"count {count}/{required_count}")
        if days < required_days:
            unmet.append(f"days {days}/{required_days}")

        return PromotionEligibility(
            eligible=not unmet,
            current_count=count,
            required_count=required_count,
            current_days=days,
            required_days=required_days,
            reason=f"Not eligible for promotion: {', '.join(unmet)}" if unmet else None,
        )

    def to_long_term_memory(self, promoted_at: datetime | None = None) -> LongTermMemory:
        """Snapshot a global memory. The observation is copied, not shared."""
        if self.scope != MemoryScope.GLOBAL:
            raise ValueError(f"Only global memories can become long-term memory (got {self.scope.value})")
        return LongTermMemory(
            id=self.id,
            observation=copy.deepcopy(self.observation),
            promoted_at=promoted_at or utcnow(),
        )

    # ── Serialization ────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "scope": self.scope.value,
            "observation": serialize_observation(self.observation),
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
        }
        if self.scope == MemoryScope.SESSION:
            data["sessionId"] = self.session_id
        elif self.scope == MemoryScope.PROJECT:
            data["projectId"] = self.project_id
        if self.child_memory_ids:
            data["childMemoryIds"] = list(self.child_memory_ids)
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Memory:
        """Rebuild a memory of the right scope. Raises MemoryDecodeError."""
        if not isinstance(data, dict):
            raise MemoryDecodeError("Serialized memory must be an object")
        if "scope" not in data:
            raise MemoryDecodeError("Serialized memory is missing scope")
        try:
            scope = MemoryScope(data["scope"])
        except ValueError:
            raise MemoryDecodeError(f"Unknown memory scope: {data['scope']}") from None

        if scope == MemoryScope.SESSION and not data.get("sessionId"):
            raise MemoryDecodeError("Serialized session memory is missing sessionId")
        if scope == MemoryScope.PROJECT and not data.get("projectId"):
            raise MemoryDecodeError("Serialized project memory is missing projectId")
        for key in ("id", "observation", "createdAt", "updatedAt"):
            if key not in data:
                raise MemoryDecodeError(f"Serialized {scope.value} memory is missing {key}")

        try:
            return cls(
                id=str(data["id"]),
                scope=scope,
                observation=deserialize_observation(data["observation"]),
                session_id=data.get("sessionId") if scope == MemoryScope.SESSION else None,
                project_id=data.get("projectId") if scope == MemoryScope.PROJECT else None,
                child_memory_ids=list(data.get("childMemoryIds", [])),
                created_at=parse_timestamp(data["createdAt"]),
                updated_at=parse_timestamp(data["updatedAt"]),
            )
        except (TypeError, ValueError) as exc:
            raise MemoryDecodeError(f"Serialized {scope.value} memory {data['id']}: {exc}") from exc


def _aggregate_observation(memories: list[Memory], expected: MemoryScope, target: str) -> Observation:
    """Combine the observations of ``memories`` into a fresh pending one."""
    if not memories:
        raise ValueError(
            f"Cannot create a {target} memory from an empty list of {expected.value} memories"
        )
    wrong = [m.id for m in memories if m.scope != expected]
    if wrong:
        raise ValueError(
            f"Cannot create a {target} memory from non-{expected.value} memories: {', '.join(wrong)}"
        )

    observations = [m.observation for m in memories]
    first = observations[0]

    session_ids: list[str] = []
    tags: list[str] = []
    metadata: dict[str, Any] = {}
    for obs in observations:
        session_ids.extend(obs.source_session_ids)
        tags.extend(obs.tags or [])
        metadata.update(obs.metadata or {})

    return Observation(
        text=first.text,
        category=first.category,
        count=sum(obs.count for obs in observations),
        status=ObservationStatus.PENDING,
        source_session_ids=_unique(session_ids),
        first_seen=min(obs.first_seen for obs in observations),
        last_seen=max(obs.last_seen for obs in observations),
        tags=_unique(tags) or None,
        metadata=metadata or None,
    )
