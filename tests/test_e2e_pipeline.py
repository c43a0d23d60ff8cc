# Sessionlore
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""End-to-end tests -- sessions in, long-term memory out.

Covers:
- E2E-01: Sessions across projects fold into one observation per pattern
- E2E-02: Session, project and global tiers stay consistent with the store
- E2E-03: Stores survive a reload from disk
- E2E-04: Promotion waits for age and human approval, then snapshots
- E2E-05: Re-running over the same sessions changes nothing
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from sessionlore.config import Config
from sessionlore.core.observation import ObservationStatus
from sessionlore.core.types import Message, Session, ToolUse, utcnow
from sessionlore.engine import AnalysisEngine
from sessionlore.memory import MemoryScope
from sessionlore.memory.hierarchy import MemoryHierarchy
from sessionlore.storage.memory_store import MemoryStore
from sessionlore.storage.observation_store import ObservationStore
from sessionlore.storage.state import StateStore

BASH_FAILURE = 'Tool "bash" fails 67% of the time (2/3 calls)'


# ---------------------------------------------------------------------------
# Helpers -- a test-fix debugging loop, replayed in every session
# ---------------------------------------------------------------------------


def _debug_loop() -> list[Message]:
    steps = [
        ("edit", {"file_path": "src/app.py"}, None, None),
        ("bash", {"command": "pytest"}, False, "AssertionError: expected 3"),
        ("edit", {"file_path": "src/app.py"}, None, None),
        ("bash", {"command": "pytest"}, False, "AssertionError: expected 3"),
        ("edit", {"file_path": "src/app.py"}, None, None),
        ("bash", {"command": "pytest"}, True, "3 passed"),
    ]
    return [
        Message(
            role="assistant",
            tool_uses=[ToolUse(id=f"t{i}", name=name, input=args, result=result, success=ok)],
        )
        for i, (name, args, ok, result) in enumerate(steps)
    ]


class ReplayAdapter:
    name = "claude-code"

    def __init__(self, sessions):
        self.sessions = sessions

    def is_available(self):
        return True

    def get_sessions(self, since=None):
        return list(self.sessions)

    def get_messages(self, session):
        return _debug_loop()


def _open(tmp_path):
    config = Config()
    observations = ObservationStore(tmp_path / "observations.json")
    memories = MemoryStore(tmp_path / "memories.json")
    hierarchy = MemoryHierarchy(observations, memories, config.promotion)
    adapter = ReplayAdapter(
        [
            Session(id="s1", tool="claude-code", project_slug="web"),
            Session(id="s2", tool="claude-code", project_slug="api"),
            Session(id="s3", tool="claude-code", project_slug="api"),
        ]
    )
    engine = AnalysisEngine(
        config, [adapter], observations, StateStore(tmp_path / "state.json"), hierarchy=hierarchy
    )
    return engine, hierarchy


def _by_text(items, text):
    return [item for item in items if getattr(item, "observation", item).text == text]


@pytest.fixture
def analyzed(tmp_path):
    engine, hierarchy = _open(tmp_path)
    result = engine.run()
    return engine, hierarchy, result


# ---------------------------------------------------------------------------
# E2E-01 / 02: One pass over three sessions
# ---------------------------------------------------------------------------


class TestSinglePass:
    def test_observations_deduplicated(self, analyzed):
        _, hierarchy, result = analyzed
        assert result.status == "success"
        assert result.sessions_processed == 3
        assert result.observations_merged == 2 * result.observations_created

        [bash] = _by_text(hierarchy.observations.all(), BASH_FAILURE)
        assert bash.count == 3
        assert bash.source_session_ids == ["s1", "s2", "s3"]
        assert bash.metadata["commonErrorMessage"] == "AssertionError: expected 3"

    def test_expected_patterns_found(self, analyzed):
        _, hierarchy, _ = analyzed
        texts = {o.text for o in hierarchy.observations.all()}
        assert 'Recurring error (2x): "AssertionError: expected 3"' in texts
        assert 'After "bash" errors, typically uses "edit" to recover (2 times)' in texts
        assert 'File "src/app.py" modified 3 times in session' in texts
        assert "Iterative loop detected: [edit → bash] repeated 3 times" in texts

    def test_tiers(self, analyzed):
        _, hierarchy, _ = analyzed
        memories = hierarchy.memories
        per_session = len(_by_text(memories.by_scope(MemoryScope.SESSION), BASH_FAILURE))
        assert per_session == 3

        projects = _by_text(memories.by_scope(MemoryScope.PROJECT), BASH_FAILURE)
        assert {p.project_id: p.observation.count for p in projects} == {"web": 1, "api": 2}

        [glob] = _by_text(memories.by_scope(MemoryScope.GLOBAL), BASH_FAILURE)
        assert glob.observation.count == 3
        assert glob.observation.source_session_ids == ["s1", "s2", "s3"]
        assert sorted(c.project_id for c in memories.children_of(glob)) == ["api", "web"]

        global_count = len(memories.by_scope(MemoryScope.GLOBAL))
        assert global_count == hierarchy.observations.count()


# ---------------------------------------------------------------------------
# E2E-03 / 04 / 05: Persistence, promotion, re-runs
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_reload_from_disk(self, analyzed, tmp_path):
        _, hierarchy, _ = analyzed
        _, fresh = _open(tmp_path)
        fresh.observations.load()
        fresh.memories.load()
        assert fresh.observations.count() == hierarchy.observations.count()
        assert fresh.memories.counts() == hierarchy.memories.counts()

    def test_promotion_flow(self, analyzed, tmp_path):
        _, hierarchy, _ = analyzed
        later = utcnow() + timedelta(days=8)
        [glob] = _by_text(hierarchy.memories.by_scope(MemoryScope.GLOBAL), BASH_FAILURE)
        [bash] = _by_text(hierarchy.observations.all(), BASH_FAILURE)

        assert glob.id not in [m.id for m, _ in hierarchy.promotion_candidates(now=utcnow())]
        assert glob.id in [m.id for m, _ in hierarchy.promotion_candidates(now=later)]

        assert not hierarchy.promote_to_long_term(glob.id, approved=False, now=later).success

        hierarchy.approve_observation(bash.id)
        outcome = hierarchy.promote_to_long_term(glob.id, approved=True, now=later)
        assert outcome.success
        assert bash.status == ObservationStatus.PROMOTED_TO_LONG_TERM

        hierarchy.observations.save()
        hierarchy.memories.save()
        _, fresh = _open(tmp_path)
        fresh.observations.load()
        fresh.memories.load()
        assert fresh.memories.get_long_term(glob.id).promoted_at == later
        assert fresh.observations.get(bash.id).status == ObservationStatus.PROMOTED_TO_LONG_TERM

    def test_rerun_is_stable(self, analyzed):
        engine, hierarchy, first = analyzed
        counts_before = hierarchy.memories.counts()
        [glob_before] = _by_text(hierarchy.memories.by_scope(MemoryScope.GLOBAL), BASH_FAILURE)

        second = engine.run(force_full=True)

        assert second.observations_created == 0
        assert second.observations_merged == 0
        assert second.observations_skipped == first.observations_created + first.observations_merged
        assert hierarchy.memories.counts() == counts_before
        [glob_after] = _by_text(hierarchy.memories.by_scope(MemoryScope.GLOBAL), BASH_FAILURE)
        assert glob_after.id == glob_before.id
        assert glob_after.observation.count == 3
