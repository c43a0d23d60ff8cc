# Sessionlore
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Tests for the tool-usage, error-pattern and file-interaction analyzers."""

import pytest

from sessionlore.analyzers import (
    ErrorPatternDetector,
    FileInteractionTracker,
    ToolUsageAnalyzer,
    WorkflowSequenceDetector,
    create_observation,
    default_analyzers,
)
from sessionlore.analyzers.file_tracker import normalize_path
from sessionlore.core.observation import ObservationCategory, ObservationStatus
from sessionlore.core.types import Message, ToolUse


def _msg(name, success=None, result=None, **tool_input):
    return Message(
        role="assistant",
        tool_uses=[
            ToolUse(id=name, name=name, input=tool_input or None, success=success, result=result)
        ],
    )


class TestCreateObservation:
    def test_defaults(self):
        obs = create_observation("Some pattern", "preference", "s-9", {"k": 1})
        assert obs.category == ObservationCategory.PREFERENCE
        assert obs.status == ObservationStatus.PENDING
        assert obs.count == 1
        assert obs.source_session_ids == ["s-9"]
        assert obs.metadata == {"k": 1}
        assert obs.first_seen == obs.last_seen

    def test_default_analyzer_order(self):
        names = [a.name for a in default_analyzers()]
        assert names == ["tool-usage", "error-pattern", "file-interaction", "workflow-sequence"]
        assert isinstance(default_analyzers()[-1], WorkflowSequenceDetector)


class TestToolUsageAnalyzer:
    def test_frequent_tool(self, session, tool_messages):
        observations = ToolUsageAnalyzer().analyze(session, tool_messages(["Read", "Read", "Read", "Edit"]))
        texts = [o.text for o in observations]
        assert "Frequently uses Read tool (3 times)" in texts
        assert not any("Edit tool" in t for t in texts)

        frequent = next(o for o in observations if o.text.startswith("Frequently"))
        assert frequent.category == ObservationCategory.TOOL_CHOICE
        assert frequent.metadata == {"toolName": "Read", "frequency": 3}

    def test_transition_between_messages(self, session, tool_messages):
        observations = ToolUsageAnalyzer().analyze(
            session, tool_messages(["Read", "Edit", "Read", "Edit"])
        )
        transition = next(o for o in observations if o.text.startswith("Common workflow"))
        assert transition.text == "Common workflow pattern: Read → Edit (2 times)"
        assert transition.category == ObservationCategory.WORKFLOW
        assert transition.metadata["typicalSequence"] == ["Read", "Edit"]

    def test_messages_without_tools_break_transitions(self, session):
        messages = [_msg("Read"), Message(role="user", content="ok"), _msg("Edit")] * 2
        observations = ToolUsageAnalyzer().analyze(session, messages)
        assert not any(o.text.startswith("Common workflow") for o in observations)

    def test_common_parameters(self, session):
        messages = [_msg("Read", file_path="src/app.py") for _ in range(3)]
        observations = ToolUsageAnalyzer().analyze(session, messages)
        params = next(o for o in observations if o.text.startswith("Commonly uses"))
        assert params.text == "Commonly uses Read with parameters: file_path"
        assert params.category == ObservationCategory.PATTERN
        assert params.metadata["commonParameters"] == {"file_path": ["src/app.py"]}

    def test_unhashable_parameter_values(self, session):
        messages = [_msg("Bash", env={"CI": "1"}) for _ in range(3)]
        observations = ToolUsageAnalyzer().analyze(session, messages)
        params = next(o for o in observations if o.text.startswith("Commonly uses"))
        assert params.metadata["commonParameters"] == {"env": [{"CI": "1"}]}

    def test_rare_tools_ignored(self, session, tool_messages):
        assert ToolUsageAnalyzer().analyze(session, tool_messages(["Read", "Edit"])) == []


class TestErrorPatternDetector:
    @pytest.fixture
    def failing_bash(self):
        return [
            _msg("bash", success=False, result="exit 1"),
            _msg("edit"),
            _msg("bash", success=False, result="  exit 1  "),
            _msg("edit"),
            _msg("bash", success=True),
        ]

    def test_error_rate(self, session, failing_bash):
        observations = ErrorPatternDetector().analyze(session, failing_bash)
        rate = next(o for o in observations if o.text.startswith("Tool "))
        assert rate.text == 'Tool "bash" fails 67% of the time (2/3 calls)'
        assert rate.metadata["commonErrorMessage"] == "exit 1"
        assert rate.metadata["errorCount"] == 2
        assert rate.metadata["totalCalls"] == 3

    def test_recurring_error_is_normalized(self, session, failing_bash):
        observations = ErrorPatternDetector().analyze(session, failing_bash)
        assert 'Recurring error (2x): "exit 1"' in [o.text for o in observations]

    def test_recovery_tool(self, session, failing_bash):
        observations = ErrorPatternDetector().analyze(session, failing_bash)
        recovery = next(o for o in observations if o.text.startswith("After"))
        assert recovery.text == 'After "bash" errors, typically uses "edit" to recover (2 times)'
        assert recovery.category == ObservationCategory.WORKFLOW
        assert recovery.metadata["recoveryTools"] == ["edit"]

    def test_rate_at_threshold_not_reported(self, session):
        messages = [_msg("bash", success=False, result=f"err {i}") for i in range(2)]
        messages += [_msg("bash") for _ in range(8)]
        observations = ErrorPatternDetector().analyze(session, messages)
        assert not any(o.text.startswith("Tool ") for o in observations)

    def test_missing_success_counts_as_success(self, session, tool_messages):
        assert ErrorPatternDetector().analyze(session, tool_messages(["bash"] * 5)) == []


class TestFileInteractionTracker:
    def test_normalize_path(self):
        assert normalize_path("src//pkg///mod.py") == "src/pkg/mod.py"
        assert normalize_path("src/pkg/") == "src/pkg"

    def test_frequently_modified_and_top_files(self, session):
        messages = [_msg("Edit", file_path="src//app.py/") for _ in range(3)]
        messages.append(_msg("Read", path="README.md"))
        observations = FileInteractionTracker().analyze(session, messages)
        texts = [o.text for o in observations]

        assert 'File "src/app.py" modified 3 times in session' in texts
        assert "Most active files: src/app.py (3), README.md (1)" in texts
        assert not any(t.startswith("Hotspot") for t in texts)

        modified = next(o for o in observations if o.text.startswith("File "))
        assert modified.metadata["editCount"] == 3
        assert modified.metadata["writeCount"] == 3
        assert modified.metadata["readCount"] == 0

    def test_hotspot(self, session):
        messages = [_msg("write", filePath="big.py") for _ in range(10)]
        observations = FileInteractionTracker().analyze(session, messages)
        hotspot = next(o for o in observations if o.text.startswith("Hotspot"))
        assert hotspot.text == 'Hotspot detected: "big.py" has 10 edits (heavily modified)'
        assert hotspot.metadata["isHotspot"] is True

    def test_non_file_tools_ignored(self, session):
        messages = [_msg("Grep", path="src") for _ in range(5)]
        assert FileInteractionTracker().analyze(session, messages) == []

    def test_single_file_has_no_top_files(self, session):
        messages = [_msg("Read", file_path="a.py") for _ in range(5)]
        assert FileInteractionTracker().analyze(session, messages) == []
