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
"""Observation store: deduplicating collection of observations.

Candidates coming out of the analyzers are merged into an existing
observation when one with the same category and similar text is already
stored; otherwise they are inserted as-is.  Merging sums counts, unions
source sessions and widens the first/last-seen window.  Status is never
touched by a merge.

Storage: a single JSON file (default ~/.sessionlore/observations.json)
with an explicit load/save cycle.  Saves go through a temp file and an
atomic rename so a crash never leaves a half-written store behind.

Re-ingesting the same session twice counts it twice.  Callers that need
idempotence pass ``guard_sessions=True``: a match that already lists every
source session of the candidate is then left untouched.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable

from sessionlore.config import DEFAULT_OBSERVATIONS_PATH, PromotionConfig
from sessionlore.core.observation import (
    Observation,
    ObservationCategory,
    ObservationStatus,
    deserialize_observation,
    serialize_observation,
)
from sessionlore.core.types import as_utc, utcnow
from sessionlore.storage.similarity import is_similar

logger = logging.getLogger("sessionlore.storage.observation_store")

STORE_VERSION = 1

SORT_FIELDS = ("count", "first_seen", "last_seen", "text")


class ObservationStoreError(Exception):
    """Raised when the store file cannot be read or written."""


@dataclass
class IngestResult:
    """Outcome of ingesting one candidate."""

    action: str  # "created" | "merged" | "skipped"
    observation: Observation

    @property
    def created(self) -> bool:
        return self.action == "created"


@dataclass
class IngestSummary:
    created: int = 0
    merged: int = 0
    skipped: int = 0

    def to_dict(self) -> dict[str, int]:
        return {"created": self.created, "merged": self.merged, "skipped": self.skipped}


def merge_into(existing: Observation, candidate: Observation) -> None:
    """Fold ``candidate`` into ``existing`` in place."""
    existing.count += candidate.count
    for session_id in candidate.source_session_ids:
        existing.add_session(session_id)
    existing.first_seen = min(as_utc(existing.first_seen), as_utc(candidate.first_seen))
    existing.last_seen = max(as_utc(existing.last_seen), as_utc(candidate.last_seen))

    if candidate.tags:
        merged_tags = list(existing.tags or [])
        merged_tags += [t for t in candidate.tags if t not in merged_tags]
        existing.tags = merged_tags
    if candidate.metadata:
        # Existing keys win; the candidate only fills gaps.
        existing.metadata = {**candidate.metadata, **(existing.metadata or {})}


class ObservationStore:
    """In-memory observation collection backed by a JSON file."""

    def __init__(
        self,
        path: Path | str | None = None,
        similarity_threshold: float = 0.8,
    ) -> None:
        self.path = Path(path) if path else DEFAULT_OBSERVATIONS_PATH
        self.similarity_threshold = similarity_threshold
        self._observations: dict[str, Observation] = {}

    # ── Persistence ──────────────────────────────────────────────────────

    def load(self) -> int:
        """Replace in-memory state with the file contents.

        A missing file yields an empty store.  Returns the number loaded.
        """
        self._observations = {}
        if not self.path.exists():
            logger.debug("No observation store at %s -- starting empty", self.path)
            return 0

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ObservationStoreError(f"Failed to read observation store {self.path}: {exc}") from exc

        if not isinstance(raw, dict) or not isinstance(raw.get("observations"), list):
            raise ObservationStoreError(f"Malformed observation store {self.path}")

        try:
            for entry in raw["observations"]:
                observation = deserialize_observation(entry)
                self._observations[observation.id] = observation
        except ValueError as exc:
            raise ObservationStoreError(f"Malformed observation in {self.path}: {exc}") from exc

        logger.info("Loaded %d observations from %s", len(self._observations), self.path)
        return len(self._observations)

    def save(self) -> None:
        """Write all observations atomically (temp file + rename)."""
        payload = {
            "version": STORE_VERSION,
            "observations": [serialize_observation(o) for o in self._observations.values()],
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise ObservationStoreError(f"Failed to save observation store {self.path}: {exc}") from exc
        logger.debug("Saved %d observations to %s", len(self._observations), self.path)

    # ── Deduplicating ingest ─────────────────────────────────────────────

    def find_similar(self, candidate: Observation) -> Observation | None:
        """First stored observation that ``candidate`` is a re-sighting of."""
        for existing in self._observations.values():
            if existing.id == candidate.id:
                return existing
            if is_similar(existing, candidate, self.similarity_threshold):
                return existing
        return None

    def ingest(self, candidate: Observation, guard_sessions: bool = False) -> IngestResult:
        """Merge ``candidate`` into a similar observation or insert it.

        Never raises: if matching fails the candidate is stored as new.
        """
        try:
            match = self.find_similar(candidate)
        except Exception as exc:
            logger.warning("Similarity check failed for %r: %s -- storing as new", candidate.text, exc)
            match = None

        if match is None:
            self._observations[candidate.id] = candidate
            logger.debug("New observation %s: %s", candidate.id, candidate.text)
            return IngestResult(action="created", observation=candidate)

        if match is candidate:
            return IngestResult(action="skipped", observation=match)

        if guard_sessions and candidate.source_session_ids and all(
            sid in match.source_session_ids for sid in candidate.source_session_ids
        ):
            return IngestResult(action="skipped", observation=match)

        merge_into(match, candidate)
        logger.debug("Merged into %s (count=%d): %s", match.id, match.count, match.text)
        return IngestResult(action="merged", observation=match)

    def ingest_many(
        self, candidates: Iterable[Observation], guard_sessions: bool = False
    ) -> IngestSummary:
        summary = IngestSummary()
        for candidate in candidates:
            result = self.ingest(candidate, guard_sessions=guard_sessions)
            if result.action == "created":
                summary.created += 1
            elif result.action == "merged":
                summary.merged += 1
            else:
                summary.skipped += 1
        return summary

    # ── Access ───────────────────────────────────────────────────────────

    def add(self, observation: Observation) -> Observation:
        """Insert without deduplication. Raises ValueError on a duplicate id."""
        if observation.id in self._observations:
            raise ValueError(f"Observation {observation.id} already exists")
        self._observations[observation.id] = observation
        return observation

    def get(self, observation_id: str) -> Observation | None:
        return self._observations.get(observation_id)

    def all(self) -> list[Observation]:
        return list(self._observations.values())

    def count(self) -> int:
        return len(self._observations)

    def by_status(self, status: ObservationStatus | str) -> list[Observation]:
        status = ObservationStatus(status)
        return [o for o in self._observations.values() if o.status == status]

    def pending(self) -> list[Observation]:
        return self.by_status(ObservationStatus.PENDING)

    def query(
        self,
        status: ObservationStatus | str | list[ObservationStatus | str] | None = None,
        category: ObservationCategory | str | None = None,
        min_count: int | None = None,
        tags: list[str] | None = None,
        session_ids: list[str] | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        date_field: str = "last_seen",
        sort_by: str | None = None,
        descending: bool = True,
        offset: int = 0,
        limit: int | None = None,
    ) -> list[Observation]:
        """Filter observations. All given criteria must hold.

        ``tags`` and ``session_ids`` match when any listed value is present.
        ``since``/``until`` bound ``date_field`` (first_seen or last_seen).
        """
        if date_field not in ("first_seen", "last_seen"):
            raise ValueError(f"date_field must be first_seen or last_seen, got {date_field!r}")
        if sort_by is not None and sort_by not in SORT_FIELDS:
            raise ValueError(f"sort_by must be one of {', '.join(SORT_FIELDS)}, got {sort_by!r}")

        statuses: set[ObservationStatus] | None = None
        if status is not None:
            raw = status if isinstance(status, list) else [status]
            statuses = {ObservationStatus(s) for s in raw}
        wanted_category = ObservationCategory(category) if category is not None else None

        results = []
        for obs in self._observations.values():
            if statuses is not None and obs.status not in statuses:
                continue
            if wanted_category is not None and obs.category != wanted_category:
                continue
            if min_count is not None and obs.count < min_count:
                continue
            if tags and not any(t in (obs.tags or []) for t in tags):
                continue
            if session_ids and not any(s in obs.source_session_ids for s in session_ids):
                continue
            stamp = getattr(obs, date_field)
            if since is not None and stamp < since:
                continue
            if until is not None and stamp > until:
                continue
            results.append(obs)

        if sort_by is not None:
            results.sort(key=lambda o: getattr(o, sort_by), reverse=descending)

        end = offset + limit if limit is not None else None
        return results[offset:end]

    def promotable(self, config: PromotionConfig) -> list[Observation]:
        """Approved observations seen often enough to promote."""
        return [
            o
            for o in self.by_status(ObservationStatus.APPROVED)
            if o.count >= config.observation_count_threshold
        ]

    # ── Mutation ─────────────────────────────────────────────────────────

    def _require(self, observation_id: str) -> Observation:
        observation = self._observations.get(observation_id)
        if observation is None:
            raise KeyError(f"Observation {observation_id} not found")
        return observation

    def set_status(self, observation_id: str, status: ObservationStatus | str) -> Observation:
        """Move an observation forward in its lifecycle.

        Raises KeyError for unknown ids and InvalidTransitionError for
        backward moves.
        """
        observation = self._require(observation_id)
        observation.transition(status)
        return observation

    def increment_count(self, observation_id: str, by: int = 1) -> Observation:
        if by < 1:
            raise ValueError(f"Increment must be >= 1, got {by}")
        observation = self._require(observation_id)
        observation.count += by
        observation.last_seen = max(observation.last_seen, utcnow())
        return observation

    def add_session_ref(self, observation_id: str, session_id: str) -> Observation:
        observation = self._require(observation_id)
        observation.add_session(session_id)
        return observation

    def stats(self) -> dict[str, Any]:
        by_status: dict[str, int] = {}
        for obs in self._observations.values():
            by_status[obs.status.value] = by_status.get(obs.status.value, 0) + 1
        return {"total": len(self._observations), "by_status": by_status}
