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
"""Error pattern detection.

Three signals are extracted from failed tool calls:

1. Tools with a high failure rate (at least 2 failures, more than 20%).
2. Error messages that recur within a session.
3. The tool a user typically reaches for right after a failure.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field

from sessionlore.analyzers.base import PatternAnalyzer, create_observation
from sessionlore.core.observation import Observation, ObservationCategory
from sessionlore.core.types import UNKNOWN_TOOL, Message, Session

logger = logging.getLogger("sessionlore.analyzers.error_pattern")

MIN_ERROR_COUNT = 2
MIN_ERROR_RATE = 0.2
MIN_MESSAGE_FREQUENCY = 2
MAX_MESSAGE_LENGTH = 100


@dataclass
class ToolErrorStats:
    tool_name: str
    total_calls: int = 0
    error_count: int = 0
    error_messages: list[str] = field(default_factory=list)

    @property
    def error_rate(self) -> float:
        if self.total_calls == 0:
            return 0.0
        return self.error_count / self.total_calls


def normalize_error_message(message: object) -> str:
    """Trim and truncate an error result; empty string if nothing remains."""
    return str(message).strip()[:MAX_MESSAGE_LENGTH]


def _most_common(messages: list[str]) -> str | None:
    counts = Counter(m for m in (normalize_error_message(msg) for msg in messages) if m)
    if not counts:
        return None
    return counts.most_common(1)[0][0]


class ErrorPatternDetector(PatternAnalyzer):
    """Finds failure-prone tools, recurring errors and recovery habits."""

    name = "error-pattern"

    def analyze(self, session: Session, messages: list[Message]) -> list[Observation]:
        stats = self._collect_error_stats(messages)
        observations = self._error_rate_observations(stats, session.id)
        observations += self._recurring_error_observations(messages, session.id)
        observations += self._recovery_observations(messages, stats, session.id)
        return observations

    @staticmethod
    def _collect_error_stats(messages: list[Message]) -> dict[str, ToolErrorStats]:
        stats: dict[str, ToolErrorStats] = {}
        for message in messages:
            for tool_use in message.tool_uses:
                stat = stats.setdefault(tool_use.name, ToolErrorStats(tool_name=tool_use.name))
                stat.total_calls += 1
                if not tool_use.succeeded:
                    stat.error_count += 1
                    if tool_use.result:
                        stat.error_messages.append(str(tool_use.result))
        return stats

    @staticmethod
    def _error_rate_observations(
        stats: dict[str, ToolErrorStats], session_id: str
    ) -> list[Observation]:
        observations = []
        for name, stat in stats.items():
            if stat.error_count < MIN_ERROR_COUNT or stat.error_rate <= MIN_ERROR_RATE:
                continue
            percent = int(stat.error_rate * 100 + 0.5)
            metadata = {
                "toolName": name,
                "errorCount": stat.error_count,
                "totalCalls": stat.total_calls,
                "errorRate": stat.error_rate,
            }
            common = _most_common(stat.error_messages)
            if common:
                metadata["commonErrorMessage"] = common
            observations.append(
                create_observation(
                    f'Tool "{name}" fails {percent}% of the time '
                    f"({stat.error_count}/{stat.total_calls} calls)",
                    ObservationCategory.PATTERN,
                    session_id,
                    metadata,
                )
            )
        return observations

    @staticmethod
    def _recurring_error_observations(messages: list[Message], session_id: str) -> list[Observation]:
        frequencies: Counter[str] = Counter()
        for message in messages:
            for tool_use in message.tool_uses:
                if tool_use.succeeded or not tool_use.result:
                    continue
                normalized = normalize_error_message(tool_use.result)
                if normalized:
                    frequencies[normalized] += 1

        return [
            create_observation(
                f'Recurring error ({count}x): "{text}"',
                ObservationCategory.PATTERN,
                session_id,
                {
                    "toolName": UNKNOWN_TOOL,
                    "errorCount": count,
                    "totalCalls": count,
                    "errorRate": 1.0,
                    "commonErrorMessage": text,
                },
            )
            for text, count in frequencies.items()
            if count >= MIN_MESSAGE_FREQUENCY
        ]

    @staticmethod
    def _recovery_observations(
        messages: list[Message], stats: dict[str, ToolErrorStats], session_id: str
    ) -> list[Observation]:
        recoveries: dict[str, list[str]] = {}
        for current, following in zip(messages, messages[1:]):
            if not current.tool_uses or not following.tool_uses:
                continue
            for tool_use in current.tool_uses:
                if not tool_use.succeeded:
                    recoveries.setdefault(tool_use.name, []).append(following.tool_uses[0].name)

        observations = []
        for failed_tool, recovery_tools in recoveries.items():
            if len(recovery_tools) < MIN_ERROR_COUNT:
                continue
            counts = Counter(recovery_tools)
            dominant, dominant_count = counts.most_common(1)[0]
            if dominant_count < MIN_ERROR_COUNT:
                continue

            stat = stats.get(failed_tool)
            observations.append(
                create_observation(
                    f'After "{failed_tool}" errors, typically uses "{dominant}" '
                    f"to recover ({dominant_count} times)",
                    ObservationCategory.WORKFLOW,
                    session_id,
                    {
                        "toolName": failed_tool,
                        "errorCount": stat.error_count if stat else len(recovery_tools),
                        "totalCalls": stat.total_calls if stat else len(recovery_tools),
                        "errorRate": stat.error_rate if stat else 1.0,
                        "recoveryTools": list(counts),
                    },
                )
            )
        return observations
