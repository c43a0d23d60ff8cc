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
"""
Memory hierarchy orchestration.

Moves patterns up the tiers:

  record_session()      -- session memories from one session's observations
  aggregate_project()   -- fold similar session memories of a project
  aggregate_global()    -- fold similar project memories across projects
  promote_to_long_term()-- human-approved snapshot of an eligible global memory

Re-aggregating the same pattern refreshes the existing aggregate in place:
its id and creation time are kept, so the age that the promotion gate
measures keeps running across analysis runs.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from sessionlore.config import PromotionConfig
from sessionlore.core.observation import Observation, ObservationStatus
from sessionlore.memory.models import LongTermMemory, Memory, MemoryScope, PromotionEligibility
from sessionlore.storage.memory_store import MemoryStore
from sessionlore.storage.observation_store import ObservationStore
from sessionlore.storage.similarity import is_similar

logger = logging.getLogger("sessionlore.memory.hierarchy")


@dataclass
class PromotionOutcome:
    success: bool
    memory_id: str
    reason: str = ""
    long_term_memory: LongTermMemory | None = None
    eligibility: PromotionEligibility | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "memoryId": self.memory_id,
            "reason": self.reason,
        }
        if self.long_term_memory is not None:
            data["longTermMemory"] = self.long_term_memory.to_dict()
        if self.eligibility is not None:
            data["eligibility"] = self.eligibility.to_dict()
        return data


class MemoryHierarchy:
    def __init__(
        self,
        observation_store: ObservationStore,
        memory_store: MemoryStore,
        config: PromotionConfig,
        similarity_threshold: float = 0.8,
    ) -> None:
        self.observations = observation_store
        self.memories = memory_store
        self.config = config
        self.similarity_threshold = similarity_threshold

    def _similar(self, a: Observation, b: Observation) -> bool:
        return is_similar(a, b, self.similarity_threshold)

    def _group(self, memories: list[Memory]) -> list[list[Memory]]:
        """Greedy grouping: each memory joins the first group it resembles."""
        groups: list[list[Memory]] = []
        for memory in memories:
            for group in groups:
                if self._similar(group[0].observation, memory.observation):
                    group.append(memory)
                    break
            else:
                groups.append([memory])
        return groups

    # ── Session tier ─────────────────────────────────────────────────────

    def record_session(self, session_id: str, observations: list[Observation]) -> list[Memory]:
        """Wrap a session's observations as session memories.

        Patterns already recorded for this session are not recorded again.
        """
        known = [m for m in self.memories.by_scope(MemoryScope.SESSION) if m.session_id == session_id]
        created = []
        for observation in observations:
            if any(self._similar(m.observation, observation) for m in known + created):
                continue
            memory = Memory.for_session(copy.deepcopy(observation), session_id)
            self.memories.add(memory)
            created.append(memory)
        if created:
            logger.info("Recorded %d session memories for %s", len(created), session_id)
        return created

    # ── Aggregate tiers ──────────────────────────────────────────────────

    def aggregate_project(self, project_id: str, session_ids: list[str]) -> list[Memory]:
        """Fold session memories into project memories for ``project_id``.

        Session memories carry no project, so ``session_ids`` must name the
        project's sessions; only their memories are folded in.  An existing
        project memory for the same pattern absorbs them.
        """
        wanted = set(session_ids)
        sources = [m for m in self.memories.by_scope(MemoryScope.SESSION) if m.session_id in wanted]
        existing = [m for m in self.memories.by_scope(MemoryScope.PROJECT) if m.project_id == project_id]

        def build(children: list[Memory]) -> Memory:
            return Memory.from_session_memories(project_id, children)

        return self._aggregate(sources, existing, build)

    def aggregate_global(self) -> list[Memory]:
        """Fold all project memories into global memories."""
        sources = self.memories.by_scope(MemoryScope.PROJECT)
        existing = self.memories.by_scope(MemoryScope.GLOBAL)
        return self._aggregate(sources, existing, Memory.from_project_memories)

    def _aggregate(self, sources: list[Memory], existing: list[Memory], build) -> list[Memory]:
        existing = list(existing)
        results: list[Memory] = []
        for group in self._group(sources):
            fresh = build(group)
            previous = next((m for m in existing if self._similar(m.observation, fresh.observation)), None)
            if previous is not None:
                child_ids = list(dict.fromkeys(previous.child_memory_ids + [m.id for m in group]))
                children = self.memories.children_of(
                    dataclasses.replace(previous, child_memory_ids=child_ids)
                )
                fresh = dataclasses.replace(
                    build(children),
                    id=previous.id,
                    created_at=previous.created_at,
                )
                # Later groups that resemble the same aggregate build on this refresh.
                existing[existing.index(previous)] = fresh
                results = [m for m in results if m.id != fresh.id]
            self.memories.add(fresh)
            results.append(fresh)
        logger.debug("Aggregated %d memories into %d", len(sources), len(results))
        return results

    # ── Promotion ────────────────────────────────────────────────────────

    def promotion_candidates(
        self, now: datetime | None = None
    ) -> list[tuple[Memory, PromotionEligibility]]:
        """Global memories that pass the gate and are not yet long-term."""
        candidates = []
        for memory in self.memories.by_scope(MemoryScope.GLOBAL):
            if self.memories.get_long_term(memory.id) is not None:
                continue
            eligibility = memory.check_promotion_eligibility(self.config, now)
            if eligibility.eligible:
                candidates.append((memory, eligibility))
        return candidates

    def promote_to_long_term(
        self, memory_id: str, approved: bool, now: datetime | None = None
    ) -> PromotionOutcome:
        """Snapshot an eligible global memory once a human has approved it."""
        memory = self.memories.get(memory_id)
        if memory is None:
            return PromotionOutcome(False, memory_id, f"Memory {memory_id} not found")
        if memory.scope != MemoryScope.GLOBAL:
            return PromotionOutcome(
                False, memory_id, f"Only global memories can be promoted (got {memory.scope.value})"
            )
        if self.memories.get_long_term(memory_id) is not None:
            return PromotionOutcome(False, memory_id, "Memory is already in long-term memory")
        if not approved:
            return PromotionOutcome(False, memory_id, "Promotion requires human approval")

        eligibility = memory.check_promotion_eligibility(self.config, now)
        if not eligibility.eligible:
            return PromotionOutcome(False, memory_id, eligibility.reason or "", eligibility=eligibility)

        snapshot = self.memories.record_long_term(memory.to_long_term_memory(now))
        self._mark_promoted(memory.observation)
        return PromotionOutcome(
            True,
            memory_id,
            "Promoted to long-term memory",
            long_term_memory=snapshot,
            eligibility=eligibility,
        )

    def _mark_promoted(self, pattern: Observation) -> None:
        for observation in self.observations.by_status(ObservationStatus.APPROVED):
            if self._similar(observation, pattern):
                observation.transition(ObservationStatus.PROMOTED_TO_LONG_TERM)

    # ── Review ───────────────────────────────────────────────────────────

    def approve_observation(self, observation_id: str) -> Observation:
        return self.observations.set_status(observation_id, ObservationStatus.APPROVED)

    def deny_observation(self, observation_id: str) -> Observation:
        return self.observations.set_status(observation_id, ObservationStatus.DENIED)
