# Sessionlore — Pattern analyzers
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""Programmatic pattern analyzers run against each session."""

from __future__ import annotations

from sessionlore.analyzers.base import PatternAnalyzer, create_observation, extract_tool_chain
from sessionlore.analyzers.error_pattern import ErrorPatternDetector
from sessionlore.analyzers.file_tracker import FileInteractionTracker
from sessionlore.analyzers.tool_usage import ToolUsageAnalyzer
from sessionlore.analyzers.workflow import WorkflowSequenceDetector


def default_analyzers() -> list[PatternAnalyzer]:
    """The built-in analyzers, in the order they run."""
    return [
        ToolUsageAnalyzer(),
        ErrorPatternDetector(),
        FileInteractionTracker(),
        WorkflowSequenceDetector(),
    ]


__all__ = [
    "ErrorPatternDetector",
    "FileInteractionTracker",
    "PatternAnalyzer",
    "ToolUsageAnalyzer",
    "WorkflowSequenceDetector",
    "create_observation",
    "default_analyzers",
    "extract_tool_chain",
]
