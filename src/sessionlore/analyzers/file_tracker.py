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
"""Tracks which files a session reads and edits, and flags hotspots."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

from sessionlore.analyzers.base import PatternAnalyzer, create_observation
from sessionlore.core.observation import Observation, ObservationCategory
from sessionlore.core.types import Message, Session

logger = logging.getLogger("sessionlore.analyzers.file_tracker")

WRITE_OPERATIONS = frozenset({"edit", "write", "Edit", "Write"})
READ_OPERATIONS = frozenset({"read", "Read"})
FILE_TOOL_NAMES = frozenset({"read", "edit", "write", "bash"})
PATH_KEYS = ("file_path", "filePath", "path")

HOTSPOT_EDIT_THRESHOLD = 10
MIN_FREQUENT_EDITS = 3
MAX_TOP_FILES = 5

_MULTI_SLASH = re.compile(r"/+")


@dataclass
class FileStats:
    file_path: str
    read_count: int = 0
    write_count: int = 0
    edit_count: int = 0
    total_interactions: int = 0

    def to_metadata(self) -> dict[str, Any]:
        return {
            "filePath": self.file_path,
            "readCount": self.read_count,
            "writeCount": self.write_count,
            "editCount": self.edit_count,
            "totalInteractions": self.total_interactions,
        }


def extract_file_path(tool_input: dict[str, Any] | None) -> str | None:
    if not tool_input:
        return None
    for key in PATH_KEYS:
        value = tool_input.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def normalize_path(path: str) -> str:
    """Collapse repeated slashes and drop a trailing slash."""
    collapsed = _MULTI_SLASH.sub("/", path)
    return collapsed[:-1] if collapsed.endswith("/") else collapsed


class FileInteractionTracker(PatternAnalyzer):
    name = "file-interaction"

    def analyze(self, session: Session, messages: list[Message]) -> list[Observation]:
        stats = self._collect(messages)
        observations = []

        for stat in stats.values():
            if stat.edit_count >= MIN_FREQUENT_EDITS:
                observations.append(
                    create_observation(
                        f'File "{stat.file_path}" modified {stat.edit_count} times in session',
                        ObservationCategory.PATTERN,
                        session.id,
                        stat.to_metadata(),
                    )
                )

        for stat in stats.values():
            if stat.edit_count >= HOTSPOT_EDIT_THRESHOLD:
                observations.append(
                    create_observation(
                        f'Hotspot detected: "{stat.file_path}" has {stat.edit_count} edits '
                        "(heavily modified)",
                        ObservationCategory.PATTERN,
                        session.id,
                        {**stat.to_metadata(), "isHotspot": True},
                    )
                )

        top = self._top_files_observation(stats, session.id)
        if top is not None:
            observations.append(top)
        return observations

    @staticmethod
    def _collect(messages: list[Message]) -> dict[str, FileStats]:
        stats: dict[str, FileStats] = {}
        for message in messages:
            for tool_use in message.tool_uses:
                if tool_use.name.lower() not in FILE_TOOL_NAMES:
                    continue
                raw_path = extract_file_path(tool_use.input)
                if raw_path is None:
                    continue

                path = normalize_path(raw_path)
                stat = stats.setdefault(path, FileStats(file_path=path))
                stat.total_interactions += 1
                if tool_use.name in READ_OPERATIONS:
                    stat.read_count += 1
                elif tool_use.name in WRITE_OPERATIONS:
                    stat.write_count += 1
                    stat.edit_count += 1
        return stats

    @staticmethod
    def _top_files_observation(stats: dict[str, FileStats], session_id: str) -> Observation | None:
        if len(stats) < 2:
            return None

        ranked = sorted(stats.values(), key=lambda s: s.total_interactions, reverse=True)
        top = ranked[:MAX_TOP_FILES]
        if top[0].total_interactions < MIN_FREQUENT_EDITS:
            return None

        listing = ", ".join(f"{s.file_path} ({s.total_interactions})" for s in top)
        metadata = {
            "filePath": ",".join(s.file_path for s in top),
            "readCount": sum(s.read_count for s in top),
            "writeCount": sum(s.write_count for s in top),
            "editCount": sum(s.edit_count for s in top),
            "totalInteractions": sum(s.total_interactions for s in top),
            "topFiles": [
                {"path": s.file_path, "interactions": s.total_interactions, "edits": s.edit_count}
                for s in top
            ],
        }
        return create_observation(
            f"Most active files: {listing}", ObservationCategory.PATTERN, session_id, metadata
        )
