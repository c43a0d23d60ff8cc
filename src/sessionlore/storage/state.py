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
"""Analysis run bookkeeping (~/.sessionlore/state.json)."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

from sessionlore.config import DEFAULT_STATE_PATH
from sessionlore.core.types import format_timestamp, parse_timestamp

logger = logging.getLogger("sessionlore.storage.state")


@dataclass
class AnalysisState:
    last_analysis_run: datetime | None = None
    last_analysis_error: str | None = None
    observation_count: int = 0
    long_term_memory_count: int = 0
    # adapter name -> modified_at of the newest session analyzed
    session_cursors: dict[str, datetime] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "lastAnalysisRun": (
                format_timestamp(self.last_analysis_run) if self.last_analysis_run else None
            ),
            "lastAnalysisError": self.last_analysis_error,
            "observationCount": self.observation_count,
            "longTermMemoryCount": self.long_term_memory_count,
            "sessionCursors": {k: format_timestamp(v) for k, v in self.session_cursors.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AnalysisState:
        last_run = data.get("lastAnalysisRun")
        return cls(
            last_analysis_run=parse_timestamp(last_run) if last_run else None,
            last_analysis_error=data.get("lastAnalysisError"),
            observation_count=data.get("observationCount", 0),
            long_term_memory_count=data.get("longTermMemoryCount", 0),
            session_cursors={
                k: parse_timestamp(v) for k, v in (data.get("sessionCursors") or {}).items()
            },
        )


class StateStore:
    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else DEFAULT_STATE_PATH

    def load(self) -> AnalysisState:
        """Read the state file. A missing or corrupt file gives fresh state."""
        if not self.path.exists():
            return AnalysisState()
        try:
            return AnalysisState.from_dict(json.loads(self.path.read_text(encoding="utf-8")))
        except (OSError, ValueError, AttributeError) as exc:
            logger.warning("Failed to read state from %s: %s -- starting fresh", self.path, exc)
            return AnalysisState()

    def save(self, state: AnalysisState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
