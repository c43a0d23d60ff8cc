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
"""Shared analyzer plumbing.

Every analyzer takes a session plus its messages and returns fresh
``pending`` observations with a count of one.  Deduplication against
what was seen before happens later, in the observation store.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any

from sessionlore.core.observation import Observation, ObservationCategory
from sessionlore.core.types import UNKNOWN_TOOL, Message, Session, utcnow

logger = logging.getLogger("sessionlore.analyzers.base")


def extract_tool_chain(messages: list[Message]) -> list[str]:
    """Flatten the tool names used across a conversation, in order."""
    chain: list[str] = []
    for message in messages:
        for tool_use in message.tool_uses:
            chain.append(tool_use.name or UNKNOWN_TOOL)
    return chain


def create_observation(
    text: str,
    category: ObservationCategory | str,
    session_id: str,
    metadata: dict[str, Any] | None = None,
) -> Observation:
    """Build a new pending observation sourced from a single session."""
    now = utcnow()
    return Observation(
        text=text,
        category=ObservationCategory(category),
        count=1,
        source_session_ids=[session_id],
        first_seen=now,
        last_seen=now,
        metadata=metadata,
    )


class PatternAnalyzer(ABC):
    """Base class for programmatic pattern detectors."""

    name: str = "analyzer"

    @abstractmethod
    def analyze(self, session: Session, messages: list[Message]) -> list[Observation]:
        """Return the observations found in one session."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"
