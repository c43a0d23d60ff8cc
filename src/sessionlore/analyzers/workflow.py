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
"""Workflow sequence and iterative loop detection.

Works on the flat tool chain of a session:

* Sequences: every contiguous window of 3 to 5 tools is counted; windows
  seen at least twice are candidates.  A shorter candidate is dropped when
  a longer accepted candidate contains it and happens at least as often,
  so ``read → edit → bash`` is not reported a second time as
  ``read → edit``.
* Loops: a cycle of 2 or 3 tools repeated back to back, e.g. the
  test-fix-test rhythm ``bash → edit → bash → edit``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sessionlore.analyzers.base import PatternAnalyzer, create_observation, extract_tool_chain
from sessionlore.core.observation import Observation, ObservationCategory
from sessionlore.core.types import Message, Session

logger = logging.getLogger("sessionlore.analyzers.workflow")

MIN_SEQUENCE_LENGTH = 3
MAX_WINDOW_SIZE = 5
MIN_SEQUENCE_FREQUENCY = 2
LOOP_PERIODS = (2, 3)
MIN_LOOP_FREQUENCY = 2

ARROW = " → "


@dataclass
class SequenceRecord:
    steps: tuple[str, ...]
    frequency: int


@dataclass
class LoopRecord:
    cycle: tuple[str, ...]
    frequency: int
    full_sequence: tuple[str, ...]


def _contains(full: tuple[str, ...], sub: tuple[str, ...]) -> bool:
    """True if ``sub`` appears contiguously inside ``full``."""
    width = len(sub)
    return any(full[i : i + width] == sub for i in range(len(full) - width + 1))


def find_sequences(chain: list[str]) -> list[SequenceRecord]:
    """Frequent contiguous windows, longest first, with subsumed ones removed."""
    counts: dict[tuple[str, ...], int] = {}
    upper = min(MAX_WINDOW_SIZE, len(chain))
    for width in range(MIN_SEQUENCE_LENGTH, upper + 1):
        for i in range(len(chain) - width + 1):
            window = tuple(chain[i : i + width])
            counts[window] = counts.get(window, 0) + 1

    candidates = [
        SequenceRecord(steps=steps, frequency=freq)
        for steps, freq in counts.items()
        if freq >= MIN_SEQUENCE_FREQUENCY
    ]
    candidates.sort(key=lambda rec: len(rec.steps), reverse=True)

    accepted: list[SequenceRecord] = []
    for candidate in candidates:
        subsumed = any(
            len(kept.steps) > len(candidate.steps)
            and kept.frequency >= candidate.frequency
            and _contains(kept.steps, candidate.steps)
            for kept in accepted
        )
        if not subsumed:
            accepted.append(candidate)
    return accepted


def _find_periodic_loops(chain: list[str], period: int) -> list[LoopRecord]:
    best: dict[tuple[str, ...], LoopRecord] = {}
    for i in range(len(chain) - period * MIN_LOOP_FREQUENCY + 1):
        cycle = tuple(chain[i : i + period])
        repetitions = 1
        end = i + period
        while end + period <= len(chain) and tuple(chain[end : end + period]) == cycle:
            repetitions += 1
            end += period

        if repetitions < MIN_LOOP_FREQUENCY:
            continue
        # Keep the longest run per cycle; earlier runs win ties.
        existing = best.get(cycle)
        if existing is None or repetitions > existing.frequency:
            best[cycle] = LoopRecord(
                cycle=cycle,
                frequency=repetitions,
                full_sequence=tuple(chain[i:end]),
            )
    return list(best.values())


def find_loops(chain: list[str]) -> list[LoopRecord]:
    """Back-to-back repeated cycles, period 2 first, then period 3."""
    loops: list[LoopRecord] = []
    for period in LOOP_PERIODS:
        loops.extend(_find_periodic_loops(chain, period))
    return loops


class WorkflowSequenceDetector(PatternAnalyzer):
    """Detects frequent multi-step tool sequences and iterative loops."""

    name = "workflow-sequence"

    def analyze(self, session: Session, messages: list[Message]) -> list[Observation]:
        chain = extract_tool_chain(messages)
        if len(chain) < MIN_SEQUENCE_LENGTH:
            return []

        sequences = find_sequences(chain)
        loops = find_loops(chain)
        logger.debug(
            "Session %s: %d tools, %d sequences, %d loops",
            session.id,
            len(chain),
            len(sequences),
            len(loops),
        )
        return self._sequence_observations(sequences, session.id) + self._loop_observations(
            loops, session.id
        )

    @staticmethod
    def _sequence_observations(
        sequences: list[SequenceRecord], session_id: str
    ) -> list[Observation]:
        ranked = sorted(sequences, key=lambda rec: rec.frequency, reverse=True)
        return [
            create_observation(
                f"Workflow pattern: {ARROW.join(rec.steps)} ({rec.frequency} times)",
                ObservationCategory.WORKFLOW,
                session_id,
                {
                    "sequenceSteps": list(rec.steps),
                    "sequenceLength": len(rec.steps),
                    "frequency": rec.frequency,
                },
            )
            for rec in ranked
        ]

    @staticmethod
    def _loop_observations(loops: list[LoopRecord], session_id: str) -> list[Observation]:
        return [
            create_observation(
                f"Iterative loop detected: [{ARROW.join(rec.cycle)}] repeated {rec.frequency} times",
                ObservationCategory.WORKFLOW,
                session_id,
                {
                    "loopCycle": list(rec.cycle),
                    "loopFrequency": rec.frequency,
                    "fullSequence": list(rec.full_sequence),
                },
            )
            for rec in loops
        ]
