# Sessionlore
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for sessionlore.memory -- scoped memories, aggregation and the promotion gate.

Tests cover:
- Session/project/global factories and aggregation rules
- check_promotion_eligibility() for base and global scope
- days_since_creation() flooring
- to_long_term_memory() snapshots
- Serialization round trips and decode errors
- query_memories() AND/OR semantics
"""

from datetime import datetime, timedelta, timezone

import pytest

from sessionlore.config import PromotionConfig
from sessionlore.core.observation import Observation, ObservationCategory, ObservationStatus
from sessionlore.memory import (
    LongTermMemory,
    Memory,
    MemoryDecodeError,
    MemoryScope,
    query_memories,
)

NOW = datetime(2025, 6, 15, 12, 0, tzinfo=timezone.utc)
CONFIG = PromotionConfig(observation_count_threshold=3, long_term_days_threshold=7)


def _obs(count=1, sessions=("s1",), text="Runs tests after every edit", at=NOW, **kw):
    return Observation(
        text=text,
        category=kw.pop("category", ObservationCategory.WORKFLOW),
        count=count,
        source_session_ids=list(sessions),
        first_seen=at,
        last_seen=at,
        **kw,
    )


def _global(count, sessions, age_days=10):
    project = Memory.from_session_memories(
        "proj", [Memory.for_session(_obs(count=count, sessions=sessions), sessions[0])]
    )
    memory = Memory.from_project_memories([project])
    memory.created_at = NOW - timedelta(days=age_days)
    return memory


class TestFactories:
    def test_session_memory(self):
        memory = Memory.for_session(_obs(), "s1")
        assert memory.scope == MemoryScope.SESSION
        assert memory.session_id == "s1"
        assert memory.child_memory_ids == []

    def test_project_aggregation_sums_and_unions(self):
        a = Memory.for_session(
            _obs(count=3, sessions=["s1"], at=NOW, tags=["ci"], metadata={"k": 1, "a": True}), "s1"
        )
        b = Memory.for_session(
            _obs(
                count=4,
                sessions=["s2", "s1"],
                at=NOW + timedelta(days=2),
                tags=["ci", "py"],
                metadata={"k": 2},
                status=ObservationStatus.APPROVED,
            ),
            "s2",
        )
        project = Memory.from_session_memories("web", [a, b])
        obs = project.observation

        assert project.scope == MemoryScope.PROJECT
        assert project.project_id == "web"
        assert project.child_memory_ids == [a.id, b.id]
        assert obs.count == 7
        assert obs.source_session_ids == ["s1", "s2"]
        assert obs.first_seen == NOW
        assert obs.last_seen == NOW + timedelta(days=2)
        assert obs.tags == ["ci", "py"]
        assert obs.metadata == {"k": 2, "a": True}
        assert obs.status == ObservationStatus.PENDING
        assert obs.text == a.observation.text
        assert obs.id not in (a.observation.id, b.observation.id)

    def test_aggregate_without_tags_or_metadata(self):
        project = Memory.from_session_memories("web", [Memory.for_session(_obs(), "s1")])
        assert project.observation.tags is None
        assert project.observation.metadata is None

    def test_empty_project_aggregation_raises(self):
        with pytest.raises(ValueError, match="empty"):
            Memory.from_session_memories("web", [])

    def test_empty_global_aggregation_raises(self):
        with pytest.raises(ValueError, match="empty"):
            Memory.from_project_memories([])

    def test_wrong_scope_rejected(self):
        session_memory = Memory.for_session(_obs(), "s1")
        with pytest.raises(ValueError):
            Memory.from_project_memories([session_memory])

    def test_global_from_projects(self):
        p1 = Memory.from_session_memories("a", [Memory.for_session(_obs(count=2, sessions=["s1"]), "s1")])
        p2 = Memory.from_session_memories("b", [Memory.for_session(_obs(count=3, sessions=["s2"]), "s2")])
        memory = Memory.from_project_memories([p1, p2])
        assert memory.scope == MemoryScope.GLOBAL
        assert memory.observation.count == 5
        assert memory.observation.source_session_ids == ["s1", "s2"]
        assert memory.child_memory_ids == [p1.id, p2.id]

    def test_scope_identifiers_required(self):
        with pytest.raises(ValueError):
            Memory(observation=_obs(), scope=MemoryScope.SESSION)
        with pytest.raises(ValueError):
            Memory(observation=_obs(), scope="project")

    def test_add_child_memory_id(self):
        memory = Memory.from_session_memories("web", [Memory.for_session(_obs(), "s1")])
        before = memory.updated_at
        memory.add_child_memory_id("extra")
        memory.add_child_memory_id("extra")
        assert memory.child_memory_ids.count("extra") == 1
        assert memory.updated_at >= before


class TestEligibility:
    def test_days_are_floored(self):
        memory = Memory.for_session(_obs(), "s1")
        memory.created_at = NOW - timedelta(days=6, hours=23, minutes=59)
        assert memory.days_since_creation(NOW) == 6

    def test_naive_created_at_treated_as_utc(self):
        memory = Memory.for_session(_obs(count=3), "s1")
        memory.created_at = datetime(2024, 1, 1)
        result = memory.check_promotion_eligibility(CONFIG, now=NOW)
        assert result.eligible is True
        assert result.current_days == (NOW - datetime(2024, 1, 1, tzinfo=timezone.utc)).days

    def test_naive_now_and_constructor_values(self):
        memory = Memory(
            observation=_obs(count=3),
            scope=MemoryScope.SESSION,
            session_id="s1",
            created_at=datetime(2025, 6, 1),
            updated_at=datetime(2025, 6, 1),
        )
        assert memory.created_at.tzinfo is not None
        assert memory.days_since_creation(datetime(2025, 6, 15, 12, 0)) == 14

    def test_base_eligible(self):
        memory = Memory.for_session(_obs(count=3), "s1")
        memory.created_at = NOW - timedelta(days=7)
        result = memory.check_promotion_eligibility(CONFIG, now=NOW)
        assert result.eligible is True
        assert result.reason is None

    def test_base_reason_names_every_unmet_dimension(self):
        memory = Memory.for_session(_obs(count=2), "s1")
        memory.created_at = NOW - timedelta(days=1)
        result = memory.check_promotion_eligibility(CONFIG, now=NOW)
        assert result.eligible is False
        assert "count 2/3" in result.reason
        assert "days 1/7" in result.reason
        assert (result.current_count, result.required_count) == (2, 3)
        assert (result.current_days, result.required_days) == (1, 7)

    def test_only_unmet_dimension_reported(self):
        memory = Memory.for_session(_obs(count=5), "s1")
        memory.created_at = NOW - timedelta(days=2)
        reason = memory.check_promotion_eligibility(CONFIG, now=NOW).reason
        assert "days 2/7" in reason
        assert "count" not in reason

    def test_global_needs_two_sessions_first(self):
        memory = _global(count=10, sessions=["s1"], age_days=30)
        result = memory.check_promotion_eligibility(CONFIG, now=NOW)
        assert result.eligible is False
        assert "2 source sessions" in result.reason
        assert "count" not in result.reason
        assert result.current_count == 10

    def test_global_with_three_sessions_eligible(self):
        memory = _global(count=10, sessions=["s1", "s2", "s3"], age_days=8)
        assert memory.check_promotion_eligibility(CONFIG, now=NOW).eligible is True

    def test_global_with_sessions_falls_back_to_base_rule(self):
        memory = _global(count=2, sessions=["s1", "s2"], age_days=8)
        result = memory.check_promotion_eligibility(CONFIG, now=NOW)
        assert result.eligible is False
        assert "count 2/3" in result.reason

    def test_to_dict(self):
        memory = Memory.for_session(_obs(count=1), "s1")
        memory.created_at = NOW
        data = memory.check_promotion_eligibility(CONFIG, now=NOW).to_dict()
        assert data["eligible"] is False
        assert data["requiredCount"] == 3
        assert "reason" in data


class TestLongTerm:
    def test_snapshot(self):
        memory = _global(count=5, sessions=["s1", "s2"])
        snapshot = memory.to_long_term_memory(promoted_at=NOW)
        assert isinstance(snapshot, LongTermMemory)
        assert snapshot.status == "approved"
        assert snapshot.promoted_at == NOW
        assert snapshot.id == memory.id

        memory.observation.count = 99
        assert snapshot.observation.count == 5

    def test_snapshot_is_frozen(self):
        snapshot = _global(count=5, sessions=["s1", "s2"]).to_long_term_memory(NOW)
        with pytest.raises(AttributeError):
            snapshot.status = "denied"

    def test_only_global_memories(self):
        with pytest.raises(ValueError):
            Memory.for_session(_obs(), "s1").to_long_term_memory()

    def test_round_trip(self):
        snapshot = _global(count=5, sessions=["s1", "s2"]).to_long_term_memory(NOW)
        assert LongTermMemory.from_dict(snapshot.to_dict()) == snapshot


class TestSerialization:
    def test_session_round_trip(self):
        memory = Memory.for_session(_obs(tags=["x"], metadata={"loopCycle": ["a", "b"]}), "s1")
        data = memory.to_dict()
        assert data["scope"] == "session"
        assert data["sessionId"] == "s1"
        assert "childMemoryIds" not in data
        assert Memory.from_dict(data) == memory

    def test_project_and_global_round_trip(self):
        project = Memory.from_session_memories("web", [Memory.for_session(_obs(), "s1")])
        glob = Memory.from_project_memories([project])
        assert project.to_dict()["projectId"] == "web"
        assert project.to_dict()["childMemoryIds"] == project.child_memory_ids
        assert Memory.from_dict(project.to_dict()) == project
        assert Memory.from_dict(glob.to_dict()) == glob

    def test_missing_session_id_named(self):
        data = Memory.for_session(_obs(), "s1").to_dict()
        del data["sessionId"]
        with pytest.raises(MemoryDecodeError, match="sessionId"):
            Memory.from_dict(data)

    def test_missing_project_id_named(self):
        data = Memory.from_session_memories("web", [Memory.for_session(_obs(), "s1")]).to_dict()
        del data["projectId"]
        with pytest.raises(MemoryDecodeError, match="projectId"):
            Memory.from_dict(data)

    def test_unknown_scope(self):
        data = Memory.for_session(_obs(), "s1").to_dict()
        data["scope"] = "galactic"
        with pytest.raises(MemoryDecodeError, match="Unknown memory scope: galactic"):
            Memory.from_dict(data)

    def test_bad_nested_observation(self):
        data = Memory.for_session(_obs(), "s1").to_dict()
        del data["observation"]["text"]
        with pytest.raises(MemoryDecodeError):
            Memory.from_dict(data)

    def test_decode_error_is_value_error(self):
        assert issubclass(MemoryDecodeError, ValueError)


class TestQueryMemories:
    @pytest.fixture
    def memories(self):
        s1 = Memory.for_session(_obs(count=1, tags=["ci"]), "s1")
        s2 = Memory.for_session(
            _obs(count=4, tags=["py"], category=ObservationCategory.STYLE, text="Prefers tabs"), "s2"
        )
        eligible = _global(count=6, sessions=["s1", "s2"], age_days=9)
        young = _global(count=6, sessions=["s1", "s2"], age_days=1)
        return [s1, s2, eligible, young]

    def test_no_filters_returns_all(self, memories):
        assert query_memories(memories) == memories

    def test_scope(self, memories):
        assert query_memories(memories, scope="global") == memories[2:]

    def test_min_count_and_category(self, memories):
        assert query_memories(memories, min_count=4, category="style") == [memories[1]]

    def test_tags_or(self, memories):
        assert query_memories(memories, tags=["py", "ci"]) == memories[:2]

    def test_dimensions_anded(self, memories):
        assert query_memories(memories, scope="session", tags=["ci"], min_count=2) == []

    def test_eligible_for_promotion(self, memories):
        result = query_memories(memories, eligible_for_promotion=True, config=CONFIG, now=NOW)
        assert result == [memories[2]]

    def test_eligible_requires_config(self, memories):
        with pytest.raises(ValueError):
            query_memories(memories, eligible_for_promotion=True)
