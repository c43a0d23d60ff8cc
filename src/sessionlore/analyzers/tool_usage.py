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
"""Tool usage frequency, tool-to-tool transitions and habitual parameters."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from sessionlore.analyzers.base import PatternAnalyzer, create_observation
from sessionlore.core.observation import Observation, ObservationCategory
from sessionlore.core.types import Message, Session

logger = logging.getLogger("sessionlore.analyzers.tool_usage")

MIN_FREQUENCY = 3
MIN_TRANSITION_FREQUENCY = 2
MAX_VALUES_PER_PARAMETER = 3


@dataclass
class ToolStats:
    tool_name: str
    frequency: int = 0
    success_count: int = 0
    # parameter name -> {value key: [value, count]}
    parameters: dict[str, dict[str, list[Any]]] = field(default_factory=dict)


def _value_key(value: Any) -> str:
    return json.dumps(value, sort_keys=True, default=str)


class ToolUsageAnalyzer(PatternAnalyzer):
    """Reports which tools a user leans on and how they chain them."""

    name = "tool-usage"

    def analyze(self, session: Session, messages: list[Message]) -> list[Observation]:
        stats = self._collect_stats(messages)
        transitions = self._collect_transitions(messages)

        observations = self._frequency_observations(stats, session.id)
        observations += self._transition_observations(transitions, session.id)
        observations += self._parameter_observations(stats, session.id)
        return observations

    # ── Collection ───────────────────────────────────────────────────────

    @staticmethod
    def _collect_stats(messages: list[Message]) -> dict[str, ToolStats]:
        stats: dict[str, ToolStats] = {}
        for message in messages:
            for tool_use in message.tool_uses:
                stat = stats.setdefault(tool_use.name, ToolStats(tool_name=tool_use.name))
                stat.frequency += 1
                if tool_use.succeeded:
                    stat.success_count += 1
                for key, value in (tool_use.input or {}).items():
                    values = stat.parameters.setdefault(key, {})
                    entry = values.setdefault(_value_key(value), [value, 0])
                    entry[1] += 1
        return stats

    @staticmethod
    def _collect_transitions(messages: list[Message]) -> dict[tuple[str, str], int]:
        """Count first-tool transitions between adjacent tool-bearing messages."""
        transitions: dict[tuple[str, str], int] = {}
        for current, following in zip(messages, messages[1:]):
            if not current.tool_uses or not following.tool_uses:
                continue
            pair = (current.tool_uses[0].name, following.tool_uses[0].name)
            transitions[pair] = transitions.get(pair, 0) + 1
        return transitions

    # ── Observations ─────────────────────────────────────────────────────

    @staticmethod
    def _frequency_observations(stats: dict[str, ToolStats], session_id: str) -> list[Observation]:
        return [
            create_observation(
                f"Frequently uses {name} tool ({stat.frequency} times)",
                ObservationCategory.TOOL_CHOICE,
                session_id,
                {"toolName": name, "frequency": stat.frequency},
            )
            for name, stat in stats.items()
            if stat.frequency >= MIN_FREQUENCY
        ]

    @staticmethod
    def _transition_observations(
        transitions: dict[tuple[str, str], int], session_id: str
    ) -> list[Observation]:
        observations = []
        for (first, second), frequency in transitions.items():
            if frequency < MIN_TRANSITION_FREQUENCY:
                continue
            observations.append(
                create_observation(
                    f"Common workflow pattern: {first} → {second} ({frequency} times)",
                    ObservationCategory.WORKFLOW,
                    session_id,
                    {
                        "toolName": "workflow",
                        "frequency": frequency,
                        "typicalSequence": [first, second],
                    },
                )
            )
        return observations

    @staticmethod
    def _parameter_observations(stats: dict[str, ToolStats], session_id: str) -> list[Observation]:
        observations = []
        for name, stat in stats.items():
            if stat.frequency < MIN_FREQUENCY:
                continue

            common: dict[str, list[Any]] = {}
            for param, values in stat.parameters.items():
                frequent = [value for value, count in values.values() if count >= MIN_FREQUENCY]
                if frequent:
                    common[param] = frequent[:MAX_VALUES_PER_PARAMETER]
            if not common:
                continue

            observations.append(
                create_observation(
                    f"Commonly uses {name} with parameters: {', '.join(common)}",
                    ObservationCategory.PATTERN,
                    session_id,
                    {"toolName": name, "frequency": stat.frequency, "commonParameters": common},
                )
            )
        return observations
