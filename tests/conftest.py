"""Pytest configuration for sessionlore tests."""

import sys
from pathlib import Path

import pytest

# Ensure src/sessionlore is importable
src_path = str(Path(__file__).parent.parent / "src")
if src_path not in sys.path:
    sys.path.insert(0, src_path)

from sessionlore.core.types import Message, Session, ToolUse  # noqa: E402


def messages_for(tools, **tool_kwargs):
    """One assistant message per tool name, in order."""
    return [
        Message(
            role="assistant",
            content="",
            tool_uses=[ToolUse(id=f"t{i}", name=name, **tool_kwargs)],
        )
        for i, name in enumerate(tools)
    ]


@pytest.fixture
def session():
    return Session(id="sess-1", tool="claude-code", path="/tmp/sess-1.jsonl")


@pytest.fixture
def make_session():
    def _make(session_id="sess-1", project_slug=None):
        return Session(id=session_id, tool="claude-code", project_slug=project_slug)

    return _make


@pytest.fixture
def tool_messages():
    return messages_for
