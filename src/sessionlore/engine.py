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
Analysis engine -- drives one analysis run end to end.

  1. Load the observation store (and memory store, when a hierarchy is set)
  2. Collect sessions from every enabled, available adapter
  3. Run each analyzer over each session
  4. Ingest the resulting observations (deduplicated)
  5. Record session memories and refresh project/global aggregates
  6. Save stores and run state

A failing analyzer or session is logged and counted; it never aborts the
run.  Reading session transcripts is delegated to SessionAdapter
implementations that live outside this package.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Protocol, runtime_checkable

from sessionlore.analyzers import PatternAnalyzer, default_analyzers
from sessionlore.config import Config
from sessionlore.core.observation import Observation
from sessionlore.core.types import Message, Session, format_timestamp, utcnow
from sessionlore.memory.hierarchy import MemoryHierarchy
from sessionlore.storage.observation_store import IngestSummary, ObservationStore
from sessionlore.storage.state import StateStore

logger = logging.getLogger("sessionlore.engine")


@runtime_checkable
class SessionAdapter(Protocol):
    """Source of recorded sessions for one coding assistant."""

    name: str

    def is_available(self) -> bool: ...

    def get_sessions(self, since: datetime | None = None) -> list[Session]: ...

    def get_messages(self, session: Session) -> list[Message]: ...


@dataclass
class AnalysisResult:
    status: str = "success"  # success | partial_failure | failure
    sessions_processed: int = 0
    sessions_failed: int = 0
    observations_created: int = 0
    observations_merged: int = 0
    observations_skipped: int = 0
    errors: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    duration_ms: float = 0.0
    analyzer_ms: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "sessions_processed": self.sessions_processed,
            "sessions_failed": self.sessions_failed,
            "observations_created": self.observations_created,
            "observations_merged": self.observations_merged,
            "observations_skipped": self.observations_skipped,
            "errors": list(self.errors),
            "started_at": format_timestamp(self.started_at),
            "duration_ms": round(self.duration_ms, 1),
            "analyzer_ms": {k: round(v, 1) for k, v in self.analyzer_ms.items()},
        }


class AnalysisEngine:
    def __init__(
        self,
        config: Config,
        adapters: list[SessionAdapter],
        observation_store: ObservationStore,
        state_store: StateStore,
        analyzers: list[PatternAnalyzer] | None = None,
        hierarchy: MemoryHierarchy | None = None,
    ) -> None:
        self.config = config
        self.adapters = adapters
        self.store = observation_store
        self.state_store = state_store
        self.analyzers = analyzers if analyzers is not None else default_analyzers()
        self.hierarchy = hierarchy
        self._timings: dict[str, float] = {}

    def analyze_session(self, session: Session, messages: list[Message]) -> list[Observation]:
        """Run every analyzer over one session, skipping any that fail."""
        observations: list[Observation] = []
        for analyzer in self.analyzers:
            started = time.perf_counter()
            try:
                found = analyzer.analyze(session, messages)
            except Exception as exc:
                logger.warning("Analyzer %s failed on session %s: %s", analyzer.name, session.id, exc)
                continue
            finally:
                elapsed = (time.perf_counter() - started) * 1000
                self._timings[analyzer.name] = self._timings.get(analyzer.name, 0.0) + elapsed
            observations.extend(found)
        return observations

    def process_session(self, session: Session, messages: list[Message]) -> IngestSummary:
        """Analyze one session and fold its observations into the stores.

        Stores are neither loaded nor saved here.
        """
        observations = self.analyze_session(session, messages)
        summary = self.store.ingest_many(observations, guard_sessions=True)
        if self.hierarchy is not None:
            self.hierarchy.record_session(session.id, observations)
        return summary

    def refresh_aggregates(self, project_sessions: dict[str, list[str]]) -> None:
        """Re-fold project memories for the touched projects, then global ones."""
        if self.hierarchy is None or not project_sessions:
            return
        for project_id, session_ids in project_sessions.items():
            self.hierarchy.aggregate_project(project_id, session_ids)
        self.hierarchy.aggregate_global()

    def _collect_sessions(
        self, since: datetime | None, result: AnalysisResult
    ) -> list[tuple[SessionAdapter, Session]]:
        collected = []
        for adapter in self.adapters:
            if not self.config.is_adapter_enabled(adapter.name):
                logger.debug("Adapter %s disabled in config", adapter.name)
                continue
            try:
                if not adapter.is_available():
                    logger.info("Adapter %s not available -- skipping", adapter.name)
                    continue
                sessions = adapter.get_sessions(since)
            except Exception as exc:
                logger.error("Adapter %s failed to list sessions: %s", adapter.name, exc)
                result.errors.append(f"{adapter.name}: {exc}")
                continue
            collected.extend((adapter, session) for session in sessions)
        return collected

    def run(self, since: datetime | None = None, force_full: bool = False) -> AnalysisResult:
        """Analyze all new sessions and persist the outcome."""
        result = AnalysisResult()
        self._timings = {}
        started = time.perf_counter()
        state = self.state_store.load()

        if since is None and not force_full:
            if state.last_analysis_run is not None:
                since = state.last_analysis_run
            else:
                since = utcnow() - timedelta(days=self.config.analysis.window_days)

        try:
            self.store.load()
            if self.hierarchy is not None:
                self.hierarchy.memories.load()
        except Exception as exc:
            logger.error("Failed to load stores: %s", exc)
            result.status = "failure"
            result.errors.append(str(exc))
            state.last_analysis_error = str(exc)
            self.state_store.save(state)
            return result

        projects_touched: dict[str, list[str]] = {}
        for adapter, session in self._collect_sessions(since, result):
            try:
                messages = adapter.get_messages(session)
                summary = self.process_session(session, messages)
                if session.project_slug:
                    projects_touched.setdefault(session.project_slug, []).append(session.id)
            except Exception as exc:
                logger.error("Session %s (%s) failed: %s", session.id, adapter.name, exc)
                result.sessions_failed += 1
                result.errors.append(f"{session.id}: {exc}")
                continue

            result.sessions_processed += 1
            result.observations_created += summary.created
            result.observations_merged += summary.merged
            result.observations_skipped += summary.skipped
            cursor = state.session_cursors.get(adapter.name)
            if cursor is None or session.modified_at > cursor:
                state.session_cursors[adapter.name] = session.modified_at

        self.refresh_aggregates(projects_touched)

        try:
            self.store.save()
            if self.hierarchy is not None:
                self.hierarchy.memories.save()
        except Exception as exc:
            logger.error("Failed to save stores: %s", exc)
            result.errors.append(str(exc))
            result.status = "failure"

        if result.status != "failure":
            if result.sessions_failed and result.sessions_processed:
                result.status = "partial_failure"
            elif result.sessions_failed or (result.errors and not result.sessions_processed):
                result.status = "failure"
            elif result.errors:
                result.status = "partial_failure"

        state.last_analysis_run = result.started_at
        state.last_analysis_error = result.errors[-1] if result.errors else None
        state.observation_count = self.store.count()
        if self.hierarchy is not None:
            state.long_term_memory_count = len(self.hierarchy.memories.long_term_memories())
        self.state_store.save(state)

        result.duration_ms = (time.perf_counter() - started) * 1000
        result.analyzer_ms = dict(self._timings)
        logger.info(
            "Analysis %s: %d sessions, %d new, %d merged observations (%.0f ms)",
            result.status,
            result.sessions_processed,
            result.observations_created,
            result.observations_merged,
            result.duration_ms,
        )
        return result
